"""Type definitions for parsed compact JWTs."""

from typing import Any

from pydantic import BaseModel, ConfigDict


class TokenHeader(BaseModel):
    """JOSE header of a compact JWT."""

    model_config = ConfigDict(extra="allow", frozen=True)

    alg: str
    typ: str
    kid: str | None = None


class TokenPayload(BaseModel):
    """Claims of a compact JWT. Provider-specific claims are kept as extras."""

    model_config = ConfigDict(extra="allow", frozen=True)

    iss: str
    sub: str
    aud: str | list[str]
    exp: float | None = None
    nbf: float | None = None
    iat: float | None = None
    nonce: str | None = None

    @property
    def audience(self) -> str:
        """The single audience value the token was issued for."""
        if isinstance(self.aud, str):
            return self.aud
        return self.aud[0]

    def claim(self, name: str) -> Any:
        """Return a claim by name, standard or provider-specific."""
        return self.model_dump().get(name)


class RawSegments(BaseModel):
    """The three base64url segments exactly as received."""

    model_config = ConfigDict(frozen=True)

    header: str
    payload: str
    signature: str


class ParsedToken(BaseModel):
    """A structurally and temporally validated JWT."""

    model_config = ConfigDict(frozen=True)

    header: TokenHeader
    payload: TokenPayload
    signature_raw: bytes
    raw_segments: RawSegments

    @property
    def signing_input(self) -> str:
        """The ``header.payload`` string the signature is computed over."""
        return f"{self.raw_segments.header}.{self.raw_segments.payload}"

    @property
    def compact(self) -> str:
        """The token re-joined in compact serialization."""
        return f"{self.signing_input}.{self.raw_segments.signature}"
