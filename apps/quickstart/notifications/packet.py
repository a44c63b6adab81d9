"""
Notification packet models.

Packets are serialized with the platform's camelCase field names
(``packetId``, ``actionId``, ``templateId``).
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Fields sealed end-to-end before publishing.
ENCRYPTED_PATHS = ["/packetId", "/icon/value"]


class PacketIcon(BaseModel):
    type: str = "URL"
    value: str


class PacketAction(BaseModel):
    """An action button shown under the notification."""
    model_config = ConfigDict(populate_by_name=True)

    type: str
    action_id: str = Field(..., alias="actionId")
    title: str
    icon: Optional[PacketIcon] = None


class Packet(BaseModel):
    """A template-based notification delivered to a user's device."""
    model_config = ConfigDict(populate_by_name=True)

    packet_id: str = Field(..., alias="packetId", min_length=1)
    timestamp: str = ""
    icon: Optional[PacketIcon] = None
    title: str
    body: str
    template_id: str = Field("actionable_text", alias="templateId")
    actions: List[PacketAction] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """Wire form of the packet (camelCase keys, unset optionals omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True)


def build_quickstart_packet(now: Optional[datetime] = None) -> Packet:
    """The fixed quickstart notification, stamped with the build time."""
    stamp = (now or datetime.now(timezone.utc)).isoformat(timespec="seconds")
    return Packet(
        packet_id="north-quickstart-ability",
        timestamp=stamp,
        icon=PacketIcon(type="URL", value="https://via.placeholder.com/300"),
        title="North Quickstart",
        body="Test quickstart message",
        template_id="actionable_text",
        actions=[
            PacketAction(type="system:reply", action_id="reply", title="Respond"),
            PacketAction(
                type="system:webhook",
                action_id="mark_as_read",
                title="Mark as Read",
                icon=PacketIcon(type="URL", value="static:/system/icon/mark-as-read"),
            ),
        ],
    )
