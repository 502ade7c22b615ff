from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from src.config.settings import get_settings
from src.constants import INTERNAL_ERROR, PARSE_ERROR, SESSION_HEADER
from src.gateway.protocol import error_payload
from src.gateway.server import McpServer
from src.gateway.servers import build_servers
from src.infra.logging import setup_logging
from src.session.manager import SessionManager, TransportReply

logger = structlog.get_logger()


def _mount(app: FastAPI, servers: dict[str, McpServer]) -> None:
    app.state.session_managers = {
        name: SessionManager(server) for name, server in servers.items()
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: build tool servers on startup, close sessions on shutdown."""
    if getattr(app.state, "session_managers", None) is None:
        settings = get_settings()
        setup_logging(json_output=settings.gateway.json_logs, log_level=settings.gateway.log_level)
        _mount(app, build_servers(settings))
        logger.info(
            "gateway_started",
            host=settings.gateway.host,
            port=settings.gateway.port,
            servers=list(app.state.session_managers),
        )

    yield

    for manager in app.state.session_managers.values():
        await manager.close_all()
    logger.info("gateway_stopped")


def create_app(servers: dict[str, McpServer] | None = None) -> FastAPI:
    """Build the HTTP gateway. Pre-built servers skip settings-driven assembly."""
    application = FastAPI(title="HyperFill MCP Gateway", version="1.0.0", lifespan=lifespan)
    application.state.session_managers = None
    if servers is not None:
        _mount(application, servers)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[SESSION_HEADER],
    )

    application.add_api_route("/health", health, methods=["GET"])
    application.add_api_route("/{server_name}/mcp", mcp_post, methods=["POST"])
    application.add_api_route("/{server_name}/mcp", mcp_get, methods=["GET"])
    application.add_api_route("/{server_name}/mcp", mcp_delete, methods=["DELETE"])
    return application


async def health() -> dict[str, str]:
    return {"status": "ok"}


def _manager(request: Request, server_name: str) -> SessionManager | None:
    return request.app.state.session_managers.get(server_name)


def _unknown_server(server_name: str) -> Response:
    return JSONResponse({"detail": f"Unknown server: {server_name}"}, status_code=404)


def _to_response(reply: TransportReply) -> Response:
    headers = {SESSION_HEADER: reply.session_id} if reply.session_id else None
    if reply.body is None:
        return Response(status_code=reply.status_code, headers=headers)
    if isinstance(reply.body, str):
        return PlainTextResponse(reply.body, status_code=reply.status_code, headers=headers)
    return JSONResponse(reply.body, status_code=reply.status_code, headers=headers)


def _internal_error() -> Response:
    return JSONResponse(
        error_payload(INTERNAL_ERROR, "An internal error occurred", None), status_code=500
    )


async def mcp_post(server_name: str, request: Request) -> Response:
    manager = _manager(request, server_name)
    if manager is None:
        return _unknown_server(server_name)

    raw = await request.body()
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("http_parse_error", server=server_name, error=str(e))
        return JSONResponse(error_payload(PARSE_ERROR, "Parse error", None), status_code=400)

    try:
        reply = await manager.handle_post(request.headers, body)
    except Exception:
        logger.exception("http_request_failed", server=server_name)
        return _internal_error()
    return _to_response(reply)


async def mcp_get(server_name: str, request: Request) -> Response:
    manager = _manager(request, server_name)
    if manager is None:
        return _unknown_server(server_name)
    try:
        reply = await manager.handle_get(request.headers)
    except Exception:
        logger.exception("http_request_failed", server=server_name)
        return _internal_error()
    return _to_response(reply)


async def mcp_delete(server_name: str, request: Request) -> Response:
    manager = _manager(request, server_name)
    if manager is None:
        return _unknown_server(server_name)
    try:
        reply = await manager.handle_delete(request.headers)
    except Exception:
        logger.exception("http_request_failed", server=server_name)
        return _internal_error()
    return _to_response(reply)


app = create_app()
