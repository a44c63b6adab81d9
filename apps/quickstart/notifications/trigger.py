"""Broadcast of the quickstart notification to every enabled user."""

from __future__ import annotations

import json
import logging
from typing import Callable, Optional

from apps.quickstart.exceptions import DeliveryError
from apps.quickstart.focals.base import EncryptionService, KeyService, PacketPublisher
from apps.quickstart.notifications.packet import ENCRYPTED_PATHS, Packet, build_quickstart_packet
from apps.quickstart.users.store import UserStateStore

logger = logging.getLogger(__name__)


class NotificationTrigger:
    """Encrypts and publishes one packet per enabled user.

    Delivery is all-or-nothing per call: the first failure aborts the
    remaining users and surfaces as :class:`DeliveryError`.  Users reached
    before the failure keep their packet.
    """

    def __init__(
        self,
        store: UserStateStore,
        keys: KeyService,
        encryption: EncryptionService,
        publisher: PacketPublisher,
        integration_id: str,
        packet_factory: Optional[Callable[[], Packet]] = None,
    ) -> None:
        self._store = store
        self._keys = keys
        self._encryption = encryption
        self._publisher = publisher
        self._integration_id = integration_id
        self._packet_factory = packet_factory or build_quickstart_packet

    async def broadcast(self) -> int:
        """Send the packet to all enabled users. Returns how many were reached."""
        users = self._store.list_enabled()
        logger.info(f"About to send to {len(users)} enabled user(s)")
        if not users:
            return 0

        packet = self._packet_factory().to_payload()
        logger.debug(f"Plain packet: {json.dumps(packet)}")

        delivered = 0
        for user_id in users:
            logger.info(f"Sending to {user_id}")
            try:
                public_keys = await self._keys.get_public_keys(user_id, self._integration_id)
                encrypted = self._encryption.encrypt_packet(packet, ENCRYPTED_PATHS, public_keys)
                await self._publisher.publish_to_user(user_id, encrypted)
            except Exception as exc:
                raise DeliveryError(f"Error publishing secure packet: {exc}") from exc
            delivered += 1
        return delivered
