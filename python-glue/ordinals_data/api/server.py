"""FastAPI server application"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
import uvicorn

from .routes import router
from ..config import Config, load_config
from ..errors import DataClientError, ErrorKind, InvalidRequestError
from ..observability import get_logger, set_correlation_id, setup_logging
from ..service import BitcoinService

logger = get_logger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FATAL: 502,
    ErrorKind.RETRYABLE: 502,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.CIRCUIT_OPEN: 503,
    ErrorKind.TIMEOUT: 504,
}


def error_status(error: DataClientError) -> int:
    """HTTP status for a data client error"""
    if isinstance(error, InvalidRequestError):
        return 400
    return STATUS_BY_KIND.get(error.kind, 500)


def create_app(
    service: Optional[BitcoinService] = None,
    config: Optional[Config] = None,
) -> FastAPI:
    """Create and configure FastAPI application

    When ``service`` is given it is used as-is and left open on shutdown;
    otherwise one is built from ``config`` (or the config file) at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        owned = service is None
        app.state.service = service or BitcoinService.from_config(config or load_config())

        yield

        if owned:
            await app.state.service.aclose()

    app = FastAPI(
        title="Ordinals Data API",
        version="0.1.0",
        description="Cached, rate-limited access to Ordinals block and inscription data",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def correlation_id(request: Request, call_next):
        set_correlation_id(request.headers.get("x-correlation-id"))
        return await call_next(request)

    @app.exception_handler(DataClientError)
    async def data_client_error_handler(request: Request, exc: DataClientError):
        status_code = error_status(exc)
        logger.warning(
            "Request failed",
            extra={"extra": {"path": request.url.path, "status_code": status_code, **exc.to_dict()}},
        )
        headers = {}
        if exc.retry_after is not None:
            headers["Retry-After"] = str(max(1, int(exc.retry_after)))
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.to_dict()},
            headers=headers,
        )

    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint with circuit and cache status"""
        health_status = request.app.state.service.health()
        health_status["timestamp"] = datetime.now(timezone.utc).isoformat()
        return health_status

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics(request: Request):
        """Prometheus metrics"""
        collector = request.app.state.service.client.metrics
        return collector.export() if collector else ""

    return app


def serve(config: Optional[Config] = None, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the API with uvicorn"""
    config = config or load_config()
    setup_logging()
    uvicorn.run(
        create_app(config=config),
        host=host or config.server.host,
        port=port or config.server.port,
    )
