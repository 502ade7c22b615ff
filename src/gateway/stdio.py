"""Line-delimited JSON-RPC over stdin/stdout.

One implicit session per process: created before the first line is read,
closed at EOF. Logs go to stderr so stdout carries protocol frames only.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from src.config.settings import get_settings
from src.constants import PARSE_ERROR
from src.gateway.protocol import decode_line, error_payload
from src.gateway.server import McpServer
from src.gateway.servers import DEFAULT_STDIO_SERVER, build_servers
from src.infra.errors import ProtocolError
from src.infra.logging import setup_logging
from src.session.models import SessionContext

logger = structlog.get_logger()

LineReader = Callable[[], Awaitable[bytes | str]]
LineWriter = Callable[[str], Awaitable[None]]


async def serve_stdio(server: McpServer, read_line: LineReader, write_line: LineWriter) -> int:
    """Serve one stdio session until EOF. Returns the number of frames handled.

    Each frame runs as its own task, so a slow tool call does not hold up
    frames read after it. Responses are written in completion order, one
    line at a time. At EOF the outstanding frames finish before the
    session is closed.
    """
    session = SessionContext()
    logger.info("stdio_session_opened", server=server.name, session_id=session.session_id)
    write_lock = asyncio.Lock()
    in_flight: set[asyncio.Task] = set()
    handled = 0

    async def respond(raw: bytes | str) -> None:
        response = await _handle_line(server, session, raw)
        if response is not None:
            async with write_lock:
                await write_line(json.dumps(response))

    try:
        while True:
            raw = await read_line()
            if not raw:
                break
            if not raw.strip():
                continue
            handled += 1
            task = asyncio.create_task(respond(raw))
            in_flight.add(task)
            task.add_done_callback(in_flight.discard)
        if in_flight:
            await asyncio.gather(*in_flight)
    finally:
        session.transport_state.closed.set()
        logger.info(
            "stdio_session_closed", server=server.name, session_id=session.session_id, frames=handled
        )
    return handled


async def _handle_line(
    server: McpServer, session: SessionContext, raw: bytes | str
) -> dict[str, Any] | None:
    try:
        message = decode_line(raw)
    except ProtocolError as e:
        logger.warning("stdio_parse_error", error=str(e))
        return error_payload(PARSE_ERROR, "Parse error", None)
    return await server.handle_message(message, session)


async def _run(server_name: str) -> None:
    settings = get_settings()
    setup_logging(json_output=settings.gateway.json_logs, log_level=settings.gateway.log_level)
    servers = build_servers(settings)
    if server_name not in servers:
        raise SystemExit(f"Unknown server '{server_name}'. Available: {', '.join(servers)}")

    async def read_line() -> str:
        return await asyncio.to_thread(sys.stdin.readline)

    async def write_line(line: str) -> None:
        sys.stdout.write(line + "\n")
        sys.stdout.flush()

    await serve_stdio(servers[server_name], read_line, write_line)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Serve one HyperFill tool server over stdio.")
    parser.add_argument("server", nargs="?", default=DEFAULT_STDIO_SERVER)
    args = parser.parse_args(argv)
    asyncio.run(_run(args.server))


if __name__ == "__main__":
    main()
