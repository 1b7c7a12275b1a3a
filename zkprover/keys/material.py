"""RSA key material conversion between JWK, raw bytes and cryptography keys."""

import base64
import binascii

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey, RSAPublicNumbers

from zkprover.keys.types import JWKEntry, ResolvedKey


def int_to_base64url(value: int) -> str:
    """Encode an integer as base64url without padding."""
    byte_length = max(1, (value.bit_length() + 7) // 8)
    raw = value.to_bytes(byte_length, byteorder="big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def base64url_to_bytes(value: str) -> bytes:
    """Decode an unpadded base64url string, stripping leading zero bytes.

    Raises ValueError on invalid input.
    """
    padded = value + "=" * (-len(value) % 4)
    try:
        raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError("invalid base64url value") from exc
    return raw.lstrip(b"\x00")


def public_key_from_resolved(key: ResolvedKey) -> RSAPublicKey:
    """Build a cryptography RSA public key from resolved material."""
    numbers = RSAPublicNumbers(
        e=int.from_bytes(key.exponent, "big"),
        n=int.from_bytes(key.modulus, "big"),
    )
    return numbers.public_key()


def resolved_to_jwk_entry(key: ResolvedKey) -> JWKEntry:
    """Render resolved key material back into JWK form."""
    return JWKEntry(
        kty="RSA",
        use="sig",
        alg="RS256",
        kid=key.key_id,
        n=int_to_base64url(int.from_bytes(key.modulus, "big")),
        e=int_to_base64url(int.from_bytes(key.exponent, "big")),
    )
