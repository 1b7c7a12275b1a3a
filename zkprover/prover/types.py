"""Type definitions for prover outputs."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProofArtifact(BaseModel):
    """Proof and public signals as written by the external prover."""

    model_config = ConfigDict(frozen=True)

    pi_a: list[Any] = Field(default_factory=list)
    pi_b: list[Any] = Field(default_factory=list)
    pi_c: list[Any] = Field(default_factory=list)
    protocol: str | None = None
    curve: str | None = None
    public_signals: list[str] = Field(default_factory=list)
