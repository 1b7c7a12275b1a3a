"""Nonce binding between an ephemeral key session and a JWT.

The wallet derives the ``nonce`` it asks the OAuth provider to embed from its
ephemeral public key, the last epoch the key is valid for, and fresh
randomness. Recomputing it here ties the proof to that session.
"""

import base64
import binascii
import hashlib
import hmac

from pydantic import BaseModel, ConfigDict

from zkprover.circuit.fields import int_to_field_bytes, parse_numeric
from zkprover.circuit.schema import DEFAULT_SCHEMA
from zkprover.core.errors import InvalidEphemeralKey, MissingNonceClaim
from zkprover.token.types import ParsedToken

NONCE_DOMAIN = b"zklogin-nonce-v1"
NONCE_BYTES = 20
MAX_EPHEMERAL_KEY_BYTES = 33
COORDINATE_BITS = 128


class NonceBinding(BaseModel):
    """Outcome of comparing the derived nonce with the token's claim."""

    model_config = ConfigDict(frozen=True)

    ephemeral_public_key: str
    max_epoch: str
    jwt_randomness: str
    expected_nonce: str
    actual_nonce: str
    matches: bool


def ephemeral_key_coordinates(ephemeral_public_key: str) -> tuple[int, int]:
    """Split the ephemeral key into high and low 128-bit coordinates.

    The key may be given as a decimal big integer or as base64 of its bytes
    (optionally prefixed with a one-byte signature scheme flag).
    """
    text = ephemeral_public_key.strip()
    if not text:
        raise InvalidEphemeralKey("ephemeral public key is empty")
    if text.isascii() and text.isdigit():
        value = int(text)
        if value.bit_length() > MAX_EPHEMERAL_KEY_BYTES * 8:
            raise InvalidEphemeralKey("ephemeral public key is too long")
    else:
        try:
            raw = base64.b64decode(
                text.replace("-", "+").replace("_", "/") + "=" * (-len(text) % 4),
                validate=True,
            )
        except (binascii.Error, ValueError) as exc:
            raise InvalidEphemeralKey("ephemeral public key is not base64") from exc
        if not raw or len(raw) > MAX_EPHEMERAL_KEY_BYTES:
            raise InvalidEphemeralKey("ephemeral public key has an invalid length")
        value = int.from_bytes(raw, "big")
    mask = (1 << COORDINATE_BITS) - 1
    return value >> COORDINATE_BITS, value & mask


def compute_nonce(
    ephemeral_public_key: str, max_epoch: str | int, jwt_randomness: str | int
) -> str:
    """Derive the nonce the provider should have embedded in the token."""
    high, low = ephemeral_key_coordinates(ephemeral_public_key)
    epoch = parse_numeric(max_epoch, "maxEpoch", DEFAULT_SCHEMA.max_epoch_bits)
    randomness = parse_numeric(
        jwt_randomness, "jwtRandomness", DEFAULT_SCHEMA.randomness_bits
    )
    digest = hashlib.sha256(
        NONCE_DOMAIN
        + int_to_field_bytes(high)
        + int_to_field_bytes(low)
        + int_to_field_bytes(epoch)
        + int_to_field_bytes(randomness)
    ).digest()
    return base64.urlsafe_b64encode(digest[:NONCE_BYTES]).rstrip(b"=").decode()


def verify_nonce(token: ParsedToken, expected_nonce: str) -> bool:
    """Exact comparison of the token's nonce claim with ``expected_nonce``."""
    actual = token.payload.nonce
    if not actual:
        raise MissingNonceClaim("token has no nonce claim")
    return hmac.compare_digest(actual.encode(), expected_nonce.encode())


def bind_token(
    token: ParsedToken,
    ephemeral_public_key: str,
    max_epoch: str | int,
    jwt_randomness: str | int,
) -> NonceBinding:
    """Derive the expected nonce and record whether the token carries it."""
    expected = compute_nonce(ephemeral_public_key, max_epoch, jwt_randomness)
    matches = verify_nonce(token, expected)
    return NonceBinding(
        ephemeral_public_key=ephemeral_public_key,
        max_epoch=str(max_epoch),
        jwt_randomness=str(jwt_randomness),
        expected_nonce=expected,
        actual_nonce=token.payload.nonce or "",
        matches=matches,
    )
