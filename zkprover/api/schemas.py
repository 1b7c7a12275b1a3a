"""Pydantic schemas for the proving HTTP API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )


class ProveRequest(_CamelModel):
    """Request body for POST /prove."""

    jwt: str = Field(min_length=1)
    ephemeral_public_key: str = Field(min_length=1)
    max_epoch: str
    jwt_randomness: str
    salt: str
    key_claim_name: str = "sub"

    @field_validator("max_epoch", "jwt_randomness", "salt", mode="before")
    @classmethod
    def _integers_as_strings(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class ProofPoints(BaseModel):
    """Groth16 proof points as produced by the prover."""

    a: list[Any]
    b: list[Any]
    c: list[Any]


class IssBase64Details(_CamelModel):
    """Base64url slice of the payload covering the iss claim."""

    value: str
    index_mod4: int


class ProofResponse(_CamelModel):
    """Response for POST /prove."""

    proof_points: ProofPoints
    protocol: str | None = None
    curve: str | None = None
    public_signals: list[str] = Field(default_factory=list)
    header_base64: str | None = None
    iss_base64_details: IssBase64Details | None = None
    address_seed: str | None = None
    is_valid: bool | None = None


class ErrorResponse(BaseModel):
    """Body of every typed failure."""

    error: str
    message: str
    details: str | None = None
