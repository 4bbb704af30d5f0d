"""Fan-out groups for outbound events.

Channels form a closed set: ``Personal`` (one user's connections),
``RoleChannel`` (every connection of users holding a role) and ``EVERYONE``
(every registered connection, never stored). Sends are fire-and-forget and
never suspend.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Union

from .constants import Role
from .logging_config import get_logger
from .registry import Connection, ConnectionRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class Personal:
    user_id: str

    def __str__(self) -> str:
        return f"personal:{self.user_id}"


@dataclass(frozen=True)
class RoleChannel:
    role: Role

    def __str__(self) -> str:
        return f"role:{self.role.value}"


@dataclass(frozen=True)
class Everyone:
    def __str__(self) -> str:
        return "everyone"


EVERYONE = Everyone()

Channel = Union[Personal, RoleChannel, Everyone]


class ChannelRouter:
    """Tracks channel membership and delivers events to channel members."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry
        self._members: Dict[Union[Personal, RoleChannel], Dict[str, Connection]] = {}

    # -------------------- Membership -------------------- #

    def _join(self, channel: Union[Personal, RoleChannel], connection: Connection) -> None:
        self._members.setdefault(channel, {})[connection.connection_id] = connection
        connection.joined_channels.add(channel)

    def join_personal(self, connection: Connection) -> Personal:
        channel = Personal(connection.owner_user_id)
        self._join(channel, connection)
        return channel

    def join_role(self, connection: Connection, role: Role) -> bool:
        """Join the role channel if the connection's identity holds *role*."""
        if connection.identity is None or connection.identity.role != role:
            return False
        self._join(RoleChannel(role), connection)
        return True

    def leave(self, connection: Connection, channel: Union[Personal, RoleChannel]) -> None:
        members = self._members.get(channel)
        if members is not None:
            members.pop(connection.connection_id, None)
            if not members:
                del self._members[channel]
        connection.joined_channels.discard(channel)

    def leave_all(self, connection: Connection) -> None:
        for channel in list(connection.joined_channels):
            self.leave(connection, channel)

    def members(self, channel: Channel) -> List[Connection]:
        if isinstance(channel, Everyone):
            return self.registry.all_connections()
        return list(self._members.get(channel, {}).values())

    # -------------------- Delivery -------------------- #

    def send(self, channel: Channel, event: str, payload: Any) -> int:
        """Queue *event* for every member of *channel*; return how many accepted it."""
        delivered = 0
        for connection in self.members(channel):
            if connection.send(event, payload):
                delivered += 1
        logger.debug("event sent", channel=str(channel), event_type=event, delivered=delivered)
        return delivered

    def send_to_connection(self, connection: Connection, event: str, payload: Any) -> bool:
        return connection.send(event, payload)

    def send_to_user(self, user_id: str, event: str, payload: Any) -> int:
        return self.send(Personal(user_id), event, payload)

    def send_to_role(self, role: Role, event: str, payload: Any) -> int:
        return self.send(RoleChannel(role), event, payload)

    def broadcast(self, event: str, payload: Any) -> int:
        return self.send(EVERYONE, event, payload)


__all__ = ["Channel", "Personal", "RoleChannel", "Everyone", "EVERYONE", "ChannelRouter"]
