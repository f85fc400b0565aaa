"""Entry point for the files gateway service."""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from gateway import config
from gateway.codec_client import CodecClient
from gateway.config import GatewaySettings, load_settings
from gateway.exceptions import (
    AuthenticationRequiredError,
    ForbiddenError,
    GatewayException,
    NotFoundError,
    PaymentRequiredError,
    PreconditionFailedError,
    RemoteError,
    RpcError,
    ValidationError,
)
from gateway.identity import IdentityResolver, resolve_identity_from_headers
from gateway.projection import ResourceProjector
from gateway.routes import file_router, hook_router, preview_router
from gateway.routing import RouteRegistry, load_route_config
from gateway.rpc_client import RpcClient, ping
from gateway.schemas.common import ErrorMeta, ErrorObject, ErrorResponse
from gateway.validator import format_errors

logger = setup_logging('gateway')


def error_body(exc: GatewayException, request_id: Optional[str]) -> dict:
    """JSON:API error document for a gateway exception."""
    return ErrorResponse(
        errors=[ErrorObject(status=str(exc.status_code), code=exc.code, title=exc.message or exc.code)],
        meta=ErrorMeta(id=request_id),
    ).model_dump()


def _request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', 'unknown')


async def client_error_handler(request: Request, exc: GatewayException):
    request_id = _request_id(request)
    logger.warning(
        f"{type(exc).__name__}: {exc.message} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc, request_id))


async def rpc_error_handler(request: Request, exc: RpcError):
    request_id = _request_id(request)
    if isinstance(exc, RemoteError) and exc.status_code < 500:
        logger.warning(f"Remote error {exc} [request_id={request_id}] path={request.url.path}")
    else:
        logger.error(f"RPC failure {type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc, request_id))


async def gateway_exception_handler(request: Request, exc: GatewayException):
    request_id = _request_id(request)
    logger.error(
        f"Gateway exception: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc, request_id))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    request_id = _request_id(request)
    error = ValidationError(format_errors(exc))
    logger.warning(f"Request validation error: {error.message} [request_id={request_id}]")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body(error, request_id))


async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    identity = getattr(request.state, 'identity', None)
    user_id = getattr(identity, 'id', None)

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s "
        f"[request_id={request_id}] [user_id={user_id or 'anonymous'}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


def create_app(
    settings: Optional[GatewaySettings] = None,
    rpc_client: Optional[RpcClient] = None,
    codec_client: Optional[CodecClient] = None,
    route_registry: Optional[RouteRegistry] = None,
    identity_resolver: Optional[IdentityResolver] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Collaborators default to the ones described by the environment; tests
    pass their own.

    Args:
        settings: Settings snapshot
        rpc_client: Backend RPC client
        codec_client: Image codec client
        route_registry: Route registry
        identity_resolver: Callable turning a request into an Identity

    Returns:
        FastAPI application
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Files gateway starting up...")
        yield
        logger.info("Files gateway shutting down...")
        await app.state.rpc_client.close()
        await app.state.codec_client.close()
        logger.info("RPC channels closed")

    app = FastAPI(
        title="Files Gateway",
        description="HTTP file management API in front of the file catalog backend",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.rpc_client = rpc_client or RpcClient(config.RPC_TARGET)
    app.state.codec_client = codec_client or CodecClient(config.CODEC_TARGET)
    app.state.route_registry = route_registry or RouteRegistry(load_route_config())
    app.state.identity_resolver = identity_resolver or resolve_identity_from_headers
    app.state.projector = ResourceProjector(settings.files_base_url, settings.users_base_url)

    app.middleware("http")(log_requests)

    for exc_class in (
        ValidationError,
        AuthenticationRequiredError,
        PaymentRequiredError,
        ForbiddenError,
        NotFoundError,
        PreconditionFailedError,
    ):
        app.add_exception_handler(exc_class, client_error_handler)
    app.add_exception_handler(RpcError, rpc_error_handler)
    app.add_exception_handler(GatewayException, gateway_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(hook_router, prefix=settings.files_attach_point)
    app.include_router(preview_router, prefix=settings.files_attach_point)
    app.include_router(file_router, prefix=settings.files_attach_point)

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint for Docker healthcheck.
        Returns 200 if service is alive.
        """
        return {"status": "healthy", "service": "gateway"}

    @app.get("/ready")
    async def ready_check(request: Request):
        """
        Readiness check endpoint.
        Verifies the backend answers on the `list` route.
        """
        registry: RouteRegistry = request.app.state.route_registry
        ready = await ping(request.app.state.rpc_client, registry.resolve("list"))
        status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE
        return JSONResponse(
            status_code=status_code,
            content={"ready": ready, "backend": "ok" if ready else "unavailable"}
        )

    return app


app = create_app()


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "gateway.main:app",
        host=config.GATEWAY_HOST,
        port=config.GATEWAY_PORT,
    )


if __name__ == "__main__":
    main()
