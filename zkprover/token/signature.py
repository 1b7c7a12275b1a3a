"""Off-circuit RS256 signature check against a resolved issuer key."""

import jwt

from zkprover.core.errors import InvalidSignature
from zkprover.keys.material import public_key_from_resolved
from zkprover.keys.types import ResolvedKey
from zkprover.token.types import ParsedToken

SUPPORTED_ALGORITHMS = ["RS256"]


def verify_signature(token: ParsedToken, key: ResolvedKey) -> None:
    """Raise InvalidSignature unless ``token`` is signed by ``key``."""
    if token.header.alg not in SUPPORTED_ALGORITHMS:
        raise InvalidSignature(f"unsupported signing algorithm {token.header.alg!r}")
    try:
        jwt.PyJWS().decode_complete(
            token.compact,
            key=public_key_from_resolved(key),
            algorithms=SUPPORTED_ALGORITHMS,
        )
    except jwt.PyJWTError as exc:
        raise InvalidSignature("token signature does not verify") from exc
