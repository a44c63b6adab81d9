"""Notification packets and broadcast."""

from .packet import ENCRYPTED_PATHS, Packet, PacketAction, PacketIcon, build_quickstart_packet
from .trigger import NotificationTrigger

__all__ = [
    "ENCRYPTED_PATHS",
    "NotificationTrigger",
    "Packet",
    "PacketAction",
    "PacketIcon",
    "build_quickstart_packet",
]
