"""
Ably Token Authentication Server

This module provides a FastAPI app that creates Ably tokens for clients.

Clients either call it directly with X-User-Id / X-User-Name headers, or point
the Ably SDK's authUrl at it, in which case the SDK sends its combined
clientId (``<name>.<userId>``) in the query string or form body. Each token is
scoped by the configured capability policy and lives for one hour by default.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from urllib.parse import parse_qs

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from token_service.capabilities import get_policy
from token_service.config import Settings, load_settings
from token_service.exceptions import NotFound, TokenServiceError
from token_service.identity import read_claim, resolve_identity
from token_service.issuer import AblyTokenAuthority, IssuingAuthority, issue_token
from token_service.schemas import ErrorResponse, TokenEnvelope

logger = logging.getLogger("auth_server")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-User-Id, X-User-Name, X-User-Full-Name",
}


async def parse_body(request: Request) -> Dict[str, Any]:
    """Parses a form-encoded or JSON request body. Unparseable bodies count as empty."""
    raw = await request.body()
    if not raw:
        return {}

    text = raw.decode("utf-8", errors="replace")
    if "application/json" in request.headers.get("content-type", ""):
        try:
            data = json.loads(text)
        except ValueError as e:
            logger.warning(f"Ignoring malformed JSON body: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    return parse_qs(text)


def create_app(
    settings: Optional[Settings] = None,
    authority: Optional[IssuingAuthority] = None,
) -> FastAPI:
    """
    Builds the auth server.

    Args:
        settings: Service settings. Read from the environment when omitted.
        authority: Issuing authority used to sign tokens. When omitted, an
            Ably REST client is created from ``settings.ably_api_key`` at
            startup and closed at shutdown.
    """
    settings = settings or load_settings()
    policy = get_policy(settings.capability_policy)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if app.state.authority is None:
            owned = AblyTokenAuthority(api_key=settings.ably_api_key)
            app.state.authority = owned
            logger.info("Ably REST client initialized successfully")
        try:
            yield
        finally:
            if owned is not None:
                await owned.close()
                app.state.authority = None

    app = FastAPI(
        title="Ably Token Service",
        description="Creates capability-scoped Ably tokens for clients",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.authority = authority

    @app.middleware("http")
    async def cors_and_logging(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path}")

        # Preflight is answered for every path
        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_HEADERS)

        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(TokenServiceError)
    async def token_service_error_handler(request: Request, exc: TokenServiceError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return await token_service_error_handler(request, NotFound())
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.api_route(
        "/auth",
        methods=["GET", "POST"],
        response_model=TokenEnvelope,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def auth(request: Request):
        """
        Creates an Ably token for the requesting user.

        Identity comes from the X-User-Id header (with optional X-User-Name or
        X-User-Full-Name), or from a ``clientId`` of the form ``name.userId``
        in the query string or request body.
        """
        body = {}
        if not request.headers.get("x-user-id"):
            body = await parse_body(request)

        claim = read_claim(request.headers, query=request.query_params, body=body)
        identity = resolve_identity(claim)

        envelope = await issue_token(
            identity,
            authority=request.app.state.authority,
            policy=policy,
            ttl=settings.token_ttl_ms,
        )
        return envelope.model_dump()

    return app


# Run the app using Uvicorn when this file is executed directly
if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    logging.basicConfig(level=settings.log_level)
    logger.info(f"Ably auth server running on http://localhost:{settings.port}")
    logger.info(f"Send requests to: http://localhost:{settings.port}/auth")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
