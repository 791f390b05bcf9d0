"""FastAPI application exposing the MCP Streamable HTTP endpoint.

Routes:
- ``POST /mcp``: JSON-RPC message or batch; creates a session when no
  ``Mcp-Session-Id`` header is sent.
- ``GET /mcp``: no server-initiated stream; 405 for known sessions.
- ``DELETE /mcp``: closes the session.
- ``GET /health``: bridge status.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger
from mcp.types import INTERNAL_ERROR, INVALID_REQUEST, PARSE_ERROR

from browserbridge import __version__
from browserbridge.config.schema import BridgeConfig
from browserbridge.gateway.auth import AUTH_ERROR_CODE, AUTH_REALM, AccessPolicy
from browserbridge.gateway.mcp_server import jsonrpc_error
from browserbridge.gateway.sessions import SessionManager
from browserbridge.utils.exceptions import (
    AuthenticationError,
    BridgeError,
    SessionNotFoundError,
    classify_exception,
    classify_http_status,
    sanitize_error_message,
)

SESSION_HEADER = "Mcp-Session-Id"

StatusProvider = Callable[[], dict[str, Any]]


def rpc_error_response(
    status_code: int,
    code: int,
    message: str,
    *,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonrpc_error(code, message), headers=headers)


def create_gateway_app(
    sessions: SessionManager,
    config: BridgeConfig,
    *,
    status: StatusProvider | None = None,
) -> FastAPI:
    """Build the HTTP app around an existing session manager."""
    policy = AccessPolicy.from_config(config)
    app = FastAPI(
        title="browserbridge",
        description="MCP Streamable HTTP endpoint bridged to a browser extension",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.sessions = sessions
    app.state.policy = policy

    @app.exception_handler(SessionNotFoundError)
    async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
        return rpc_error_response(classify_http_status(exc), INVALID_REQUEST, "Session not found")

    @app.exception_handler(BridgeError)
    async def bridge_exception_handler(request: Request, exc: BridgeError):
        logger.warning("Request {} {} failed with {}: {}", request.method, request.url.path, exc.code, exc.message)
        return rpc_error_response(classify_http_status(exc), INTERNAL_ERROR, exc.message)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        code, _, _ = classify_exception(exc)
        logger.exception("Unhandled exception [{}]: {}", code, sanitize_error_message(str(exc)))
        return rpc_error_response(500, INTERNAL_ERROR, "Internal error")

    # Registration order is inner to outer: auth, then origin, then CORS outermost.
    @app.middleware("http")
    async def require_bearer_token(request: Request, call_next):
        if request.method == "OPTIONS" or policy.is_authorized(request.headers.get("Authorization")):
            return await call_next(request)
        client = request.client.host if request.client else "unknown"
        logger.warning("Authentication failed from {}", client)
        return rpc_error_response(
            classify_http_status(AuthenticationError()),
            AUTH_ERROR_CODE,
            AuthenticationError().message,
            headers={"WWW-Authenticate": AUTH_REALM},
        )

    @app.middleware("http")
    async def reject_foreign_origins(request: Request, call_next):
        origin = request.headers.get("Origin")
        if policy.is_origin_allowed(origin):
            return await call_next(request)
        logger.warning("Rejected request from origin: {}", origin)
        return rpc_error_response(403, INVALID_REQUEST, "Origin not allowed")

    app.add_middleware(CORSMiddleware, **policy.cors_options())

    @app.post("/mcp")
    async def mcp_post(request: Request):
        raw = await request.body()
        try:
            body = json.loads(raw) if raw else None
        except (UnicodeDecodeError, json.JSONDecodeError):
            return rpc_error_response(400, PARSE_ERROR, "Parse error")
        if body is None or (isinstance(body, list) and not body):
            return rpc_error_response(400, INVALID_REQUEST, "Invalid Request")

        session_id = request.headers.get(SESSION_HEADER)
        if session_id:
            session = sessions.require(session_id)
        else:
            session = await sessions.create()
        headers = {SESSION_HEADER: session.id}

        messages = body if isinstance(body, list) else [body]
        replies = []
        try:
            for message in messages:
                reply = await sessions.dispatch(session, message)
                if reply is not None:
                    replies.append(reply)
        except Exception as e:
            logger.exception("Error handling request for session {}: {}", session.id, sanitize_error_message(str(e)))
            return rpc_error_response(500, INTERNAL_ERROR, "Internal error", headers=headers)

        if not replies:
            return Response(status_code=202, headers=headers)
        content = replies if isinstance(body, list) else replies[0]
        return JSONResponse(content=content, headers=headers)

    @app.get("/mcp")
    async def mcp_get(request: Request):
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id:
            return rpc_error_response(400, INVALID_REQUEST, "Missing session ID for GET request")
        session = sessions.require(session_id)
        return rpc_error_response(
            405,
            INVALID_REQUEST,
            "Server-initiated streams are not supported",
            headers={"Allow": "POST, DELETE", SESSION_HEADER: session.id},
        )

    @app.delete("/mcp")
    async def mcp_delete(request: Request):
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id:
            return rpc_error_response(400, INVALID_REQUEST, "Missing session ID for DELETE request")
        session = sessions.require(session_id)
        await sessions.close(session.id)
        return Response(status_code=200)

    @app.get("/health")
    async def health():
        payload: dict[str, Any] = {"status": "ok", "version": __version__, "sessions": len(sessions)}
        if status is not None:
            payload.update(status())
        return payload

    return app
