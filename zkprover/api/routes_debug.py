"""Debug endpoints for trusted development environments."""

from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from zkprover.api.deps import get_pipeline, require_debug_access
from zkprover.core.pipeline import ProofPipeline
from zkprover.keys.material import resolved_to_jwk_entry
from zkprover.keys.types import JWKSResponse

router = APIRouter(prefix="/debug", dependencies=[Depends(require_debug_access)])


@router.get("")
async def debug_info(
    pipeline: Annotated[ProofPipeline, Depends(get_pipeline)],
) -> dict:
    """GET /debug -- configuration and artifact status."""
    settings = pipeline.settings
    coordinator = pipeline.coordinator
    return {
        "environment": settings.environment,
        "readiness": pipeline.readiness.state.value,
        "readinessError": pipeline.readiness.error,
        "missingArtifacts": pipeline.readiness.missing_artifacts(),
        "files": {
            "circuitWasm": Path(coordinator.circuit_wasm).exists(),
            "provingKey": Path(coordinator.proving_key).exists(),
        },
        "noncePolicy": settings.nonce_policy,
        "verifySignature": settings.verify_signature,
        "supportedKeyClaims": settings.supported_key_claims,
        "providers": pipeline.resolver.registry.names,
        "prover": coordinator.status(),
    }


@router.get("/jwk/{provider}")
async def debug_cached_keys(
    provider: str,
    pipeline: Annotated[ProofPipeline, Depends(get_pipeline)],
) -> dict:
    """GET /debug/jwk/{provider} -- cached signing keys as a JWKS document."""
    if pipeline.resolver.registry.get(provider) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    keys = [
        resolved_to_jwk_entry(k)
        for k in pipeline.resolver.cache.entries()
        if k.provider == provider
    ]
    return {
        "provider": provider,
        "jwks": JWKSResponse(keys=keys).model_dump(exclude_none=True),
    }
