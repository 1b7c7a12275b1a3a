"""FastAPI application factory for the zkLogin proving service."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from zkprover.api.routes_debug import router as debug_router
from zkprover.api.routes_health import SERVICE_NAME, SERVICE_VERSION
from zkprover.api.routes_health import router as health_router
from zkprover.api.routes_prove import router as prove_router
from zkprover.api.schemas import ErrorResponse
from zkprover.core.errors import ProverServiceError
from zkprover.core.log_config import configure_logging
from zkprover.core.pipeline import ProofPipeline
from zkprover.core.settings import ProverSettings
from zkprover.keys.resolver import KeyResolver
from zkprover.prover.coordinator import ProverCoordinator
from zkprover.prover.readiness import Readiness

logger = logging.getLogger(__name__)


def create_app(
    settings: ProverSettings | None = None,
    *,
    key_resolver: KeyResolver | None = None,
    coordinator: ProverCoordinator | None = None,
    readiness: Readiness | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Components not passed in are built from ``settings``. The HTTP client
    used for key discovery is owned by the app only when the resolver is.
    """
    settings = settings or ProverSettings()
    configure_logging(settings.log_level)

    owned_client: httpx.AsyncClient | None = None
    if key_resolver is None:
        owned_client = httpx.AsyncClient(timeout=settings.jwks_timeout)
        key_resolver = KeyResolver.from_settings(settings, owned_client)
    coordinator = coordinator or ProverCoordinator.from_settings(settings)
    readiness = readiness or Readiness.from_settings(settings)
    pipeline = ProofPipeline(settings, key_resolver, coordinator, readiness)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Starting %s environment=%s slots=%d",
            SERVICE_NAME,
            settings.environment,
            coordinator.slots,
        )
        await readiness.initialize()
        try:
            yield
        finally:
            await readiness.shutdown()
            if owned_client is not None:
                await owned_client.aclose()

    app = FastAPI(
        title=SERVICE_NAME,
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline

    origins = settings.get_cors_origin_list()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["Authorization", "Content-Type"],
        )

    @app.exception_handler(ProverServiceError)
    async def _service_error(_request: Request, exc: ProverServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Proof request failed: %s (%s)", exc.code, exc.message)
        else:
            logger.info("Proof request rejected: %s", exc.code)
        body = ErrorResponse(
            error=exc.code,
            message=exc.message,
            details=exc.diagnostics if settings.expose_error_detail else None,
        )
        return JSONResponse(
            body.model_dump(exclude_none=True), status_code=exc.status_code
        )

    app.include_router(health_router)
    app.include_router(prove_router)
    app.include_router(debug_router)

    return app
