"""Service description and health endpoints."""

import time
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends

from zkprover.api.deps import get_pipeline, get_settings
from zkprover.core.pipeline import ProofPipeline
from zkprover.core.settings import ProverSettings
from zkprover.prover.readiness import ReadinessState

router = APIRouter()

SERVICE_NAME = "zkLogin Proving Service"
SERVICE_VERSION = "0.1.0"


@router.get("/")
async def service_info(
    settings: Annotated[ProverSettings, Depends(get_settings)],
) -> dict:
    """GET / -- describe the service and its endpoints."""
    endpoints = {
        "GET /": "Service information",
        "GET /health": "Readiness, key cache and prover slot status",
        "POST /prove": "Generate a zkLogin proof",
    }
    if settings.debug_endpoints:
        endpoints["GET /debug"] = "Debug information"
        endpoints["GET /debug/jwk/{provider}"] = "Cached signing keys"
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": settings.environment,
        "endpoints": endpoints,
        "required": [
            "jwt",
            "ephemeralPublicKey",
            "maxEpoch",
            "jwtRandomness",
            "salt",
        ],
    }


@router.get("/health")
async def health(
    pipeline: Annotated[ProofPipeline, Depends(get_pipeline)],
) -> dict:
    """GET /health -- readiness plus resolver and prover status."""
    readiness = pipeline.readiness
    state = readiness.state
    cache = pipeline.resolver.cache
    now = time.time()
    providers: dict[str, int] = {name: 0 for name in pipeline.resolver.registry.names}
    cached = []
    for key in cache.entries():
        providers[key.provider] = providers.get(key.provider, 0) + 1
        cached.append(
            {
                "provider": key.provider,
                "kid": key.key_id,
                "ageSeconds": int(now - key.fetched_at),
            }
        )
    return {
        "status": "healthy" if state is ReadinessState.READY else "degraded",
        "readiness": state.value,
        "error": readiness.error,
        "keyCache": {"providers": providers, "entries": cached},
        "prover": pipeline.coordinator.status(),
        "timestamp": datetime.now(UTC).isoformat(),
    }
