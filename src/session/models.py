from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def new_session_id() -> str:
    """Globally unique, unguessable session id (uuid4 from os.urandom)."""
    return str(uuid.uuid4())


@dataclass
class TransportState:
    """Per-session protocol state owned by the transport manager."""

    protocol_version: str | None = None
    client_info: dict[str, Any] = field(default_factory=dict)
    initialized: bool = False
    request_count: int = 0
    last_seen: datetime = field(default_factory=lambda: datetime.now(UTC))
    closed: asyncio.Event = field(default_factory=asyncio.Event)

    def touch(self) -> None:
        self.request_count += 1
        self.last_seen = datetime.now(UTC)


@dataclass
class SessionContext:
    """A client session after a successful initialize handshake."""

    session_id: str = field(default_factory=new_session_id)
    transport_state: TransportState = field(default_factory=TransportState)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_closed(self) -> bool:
        return self.transport_state.closed.is_set()

    def describe(self) -> dict[str, Any]:
        state = self.transport_state
        return {
            "sessionId": self.session_id,
            "createdAt": self.created_at.isoformat(),
            "protocolVersion": state.protocol_version,
            "clientInfo": state.client_info,
            "initialized": state.initialized,
            "requestCount": state.request_count,
            "lastSeen": state.last_seen.isoformat(),
        }
