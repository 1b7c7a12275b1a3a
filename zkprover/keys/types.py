"""Type definitions for JWKS documents and resolved signing keys."""

from pydantic import BaseModel, ConfigDict


class JWKEntry(BaseModel):
    """Single JWK entry as published by an issuer."""

    model_config = ConfigDict(extra="allow")

    kty: str
    kid: str
    use: str | None = None
    alg: str | None = None
    n: str | None = None
    e: str | None = None


class JWKSResponse(BaseModel):
    """JSON Web Key Set document."""

    keys: list[JWKEntry]


class ResolvedKey(BaseModel):
    """A validated RSA signing key fetched from an issuer's key set.

    Instances are immutable; the cache replaces entries as a whole.
    """

    model_config = ConfigDict(frozen=True)

    provider: str
    key_id: str
    modulus: bytes
    exponent: bytes
    fetched_at: float

    @property
    def modulus_bits(self) -> int:
        return int.from_bytes(self.modulus, "big").bit_length()
