"""Session transport manager: maps mcp-session-id headers to live sessions.

A session is created only by a well-formed initialize request sent without
a session header. Later requests must carry the returned id. Closed ids are
removed from the mapping and are never resurrected.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from src.constants import INVALID_REQUEST, SESSION_ERROR, SESSION_HEADER
from src.gateway.protocol import error_payload, is_initialize_request
from src.session.models import SessionContext, new_session_id

if TYPE_CHECKING:
    from src.gateway.server import McpServer

logger = structlog.get_logger()

NO_VALID_SESSION = "Bad Request: No valid session ID provided"
INVALID_SESSION = "Invalid or missing session ID"


@dataclass
class TransportReply:
    """What the HTTP layer should send back.

    body: dict/list → JSON, str → plain text, None → empty body.
    session_id: set when the reply must carry the session header.
    """

    status_code: int
    body: Any = None
    session_id: str | None = None


def session_id_from_headers(headers: Mapping[str, str]) -> str | None:
    """Case-insensitive session header lookup. Blank values count as absent."""
    for key, value in headers.items():
        if key.lower() == SESSION_HEADER:
            value = value.strip()
            return value or None
    return None


class SessionManager:
    """Owns the sessionId → SessionContext mapping for one McpServer."""

    def __init__(
        self,
        server: McpServer,
        *,
        id_factory: Callable[[], str] = new_session_id,
    ) -> None:
        self._server = server
        self._sessions: dict[str, SessionContext] = {}
        self._lock = asyncio.Lock()
        self._id_factory = id_factory
        # Calls whose waiting caller went away; kept referenced until they finish.
        self._abandoned: set[asyncio.Future] = set()

    @property
    def server(self) -> McpServer:
        return self._server

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> SessionContext | None:
        return self._sessions.get(session_id)

    # ------------------------------------------------------------------
    # Inbound requests
    # ------------------------------------------------------------------

    async def handle_post(self, headers: Mapping[str, str], body: Any) -> TransportReply:
        """Route a POST body to an existing session or bootstrap a new one."""
        session_id = session_id_from_headers(headers)

        if session_id is not None:
            session = await self._resolve(session_id)
            if session is None:
                logger.warning("session_unknown", server=self._server.name, session_id=session_id)
                return TransportReply(400, INVALID_SESSION)
            return await self._deliver(session, body)

        if not is_initialize_request(body):
            logger.warning("session_bootstrap_rejected", server=self._server.name)
            return TransportReply(400, error_payload(SESSION_ERROR, NO_VALID_SESSION, None))

        session = await self._create()
        try:
            reply = await self._deliver(session, body)
        except BaseException:
            await self.close(session.session_id, reason="transport_error")
            raise
        reply.session_id = session.session_id
        return reply

    async def handle_get(self, headers: Mapping[str, str]) -> TransportReply:
        """Session status query."""
        session = await self._resolve_from_headers(headers)
        if session is None:
            return TransportReply(400, INVALID_SESSION)
        session.transport_state.touch()
        return TransportReply(200, session.describe(), session_id=session.session_id)

    async def handle_delete(self, headers: Mapping[str, str]) -> TransportReply:
        """Explicit session termination."""
        session = await self._resolve_from_headers(headers)
        if session is None:
            return TransportReply(400, INVALID_SESSION)
        await self.close(session.session_id, reason="client_terminated")
        return TransportReply(200, None)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self, session_id: str, *, reason: str = "closed") -> bool:
        """Deregister a session and wake any caller still waiting on it."""
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.transport_state.closed.set()
        logger.info(
            "session_closed", server=self._server.name, session_id=session_id, reason=reason
        )
        return True

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id, reason="shutdown")

    async def _create(self) -> SessionContext:
        async with self._lock:
            session_id = self._id_factory()
            while session_id in self._sessions:
                logger.warning("session_id_collision", server=self._server.name)
                session_id = self._id_factory()
            session = SessionContext(session_id=session_id)
            self._sessions[session_id] = session
        logger.info("session_created", server=self._server.name, session_id=session_id)
        return session

    async def _resolve(self, session_id: str) -> SessionContext | None:
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None or session.is_closed:
            return None
        return session

    async def _resolve_from_headers(self, headers: Mapping[str, str]) -> SessionContext | None:
        session_id = session_id_from_headers(headers)
        if session_id is None:
            return None
        return await self._resolve(session_id)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def _deliver(self, session: SessionContext, body: Any) -> TransportReply:
        if isinstance(body, list):
            if not body:
                return TransportReply(
                    400, error_payload(INVALID_REQUEST, "Invalid Request: empty batch", None)
                )
            results = await asyncio.gather(*(self._await_message(session, m) for m in body))
            responses = [r for r in results if r is not None]
            if not responses:
                return TransportReply(202)
            return TransportReply(200, responses, session_id=session.session_id)

        response = await self._await_message(session, body)
        if response is None:
            return TransportReply(202)
        return TransportReply(200, response, session_id=session.session_id)

    async def _await_message(self, session: SessionContext, message: Any) -> dict | None:
        """Run one message, giving up waiting (not the call) if the session closes."""
        call = asyncio.ensure_future(self._server.handle_message(message, session))
        closed = asyncio.ensure_future(session.transport_state.closed.wait())
        try:
            await asyncio.wait({call, closed}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            self._keep_running(call)
            raise
        finally:
            closed.cancel()

        if call.done():
            return call.result()

        self._keep_running(call)
        logger.info(
            "call_abandoned", server=self._server.name, session_id=session.session_id
        )
        request_id = message.get("id") if isinstance(message, dict) else None
        if request_id is None:
            return None
        return error_payload(SESSION_ERROR, "Session closed before the call completed", request_id)

    def _keep_running(self, call: asyncio.Future) -> None:
        if call.done():
            return
        self._abandoned.add(call)
        call.add_done_callback(self._abandoned.discard)
