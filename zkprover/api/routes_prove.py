"""Proof generation endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from zkprover.api.deps import get_pipeline
from zkprover.api.schemas import ProofResponse, ProveRequest
from zkprover.core.pipeline import ProofPipeline

router = APIRouter()


@router.post("/prove", response_model_exclude_none=True)
async def prove(
    payload: ProveRequest,
    pipeline: Annotated[ProofPipeline, Depends(get_pipeline)],
) -> ProofResponse:
    """POST /prove -- generate a zkLogin proof for a JWT."""
    return await pipeline.run(payload)
