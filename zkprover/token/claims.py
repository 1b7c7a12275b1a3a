"""Structural and temporal validation of compact JWTs.

Parsing here does not check the signature; that needs the issuer's key and
happens in ``zkprover.token.signature`` once the key has been resolved.
"""

import binascii
import json
import math
import re
import time
from typing import Any

from jwt.utils import base64url_decode

from zkprover.core.errors import (
    InvalidClaims,
    InvalidHeader,
    MalformedToken,
    TokenExpired,
    TokenIssuedInFuture,
    TokenNotYetValid,
)
from zkprover.core.settings import IAT_SKEW_DEFAULT
from zkprover.token.types import ParsedToken, RawSegments, TokenHeader, TokenPayload

EXPECTED_TYP = "JWT"
SEGMENT_COUNT = 3
_BASE64URL = re.compile(r"[A-Za-z0-9_-]+")


def parse_token(
    token: str,
    *,
    now: float | None = None,
    iat_skew: int = IAT_SKEW_DEFAULT,
) -> ParsedToken:
    """Parse and validate a compact JWT without verifying its signature."""
    segments = token.split(".")
    if len(segments) != SEGMENT_COUNT or not all(segments):
        raise MalformedToken("token must have three non-empty segments")
    if not all(_BASE64URL.fullmatch(s) for s in segments):
        raise MalformedToken("token segments must be base64url encoded")

    header_seg, payload_seg, signature_seg = segments
    header = _decode_json_segment(header_seg, "header")
    payload = _decode_json_segment(payload_seg, "payload")
    try:
        signature = base64url_decode(signature_seg.encode("ascii"))
    except (binascii.Error, ValueError, UnicodeEncodeError) as exc:
        raise MalformedToken("signature segment is not base64url") from exc

    parsed_header = _validate_header(header)
    parsed_payload = _validate_payload(payload)
    _check_temporal_claims(
        parsed_payload,
        now=time.time() if now is None else now,
        iat_skew=iat_skew,
    )

    return ParsedToken(
        header=parsed_header,
        payload=parsed_payload,
        signature_raw=signature,
        raw_segments=RawSegments(
            header=header_seg,
            payload=payload_seg,
            signature=signature_seg,
        ),
    )


def _decode_json_segment(segment: str, name: str) -> dict[str, Any]:
    try:
        raw = base64url_decode(segment.encode("ascii"))
        value = json.loads(raw)
    except (binascii.Error, ValueError, UnicodeError) as exc:
        raise MalformedToken(f"{name} segment is not base64url JSON") from exc
    if not isinstance(value, dict):
        raise MalformedToken(f"{name} segment is not a JSON object")
    return value


def _validate_header(header: dict[str, Any]) -> TokenHeader:
    alg = header.get("alg")
    typ = header.get("typ")
    if not isinstance(alg, str) or not alg:
        raise InvalidHeader("header is missing alg")
    if alg.lower() == "none":
        raise InvalidHeader("unsigned tokens are not accepted")
    if not isinstance(typ, str) or not typ:
        raise InvalidHeader("header is missing typ")
    if typ != EXPECTED_TYP:
        raise InvalidHeader(f"unexpected typ {typ!r}")
    kid = header.get("kid")
    if kid is not None and not isinstance(kid, str):
        raise InvalidHeader("kid must be a string")
    return TokenHeader.model_validate(header)


def _validate_payload(payload: dict[str, Any]) -> TokenPayload:
    for claim in ("iss", "sub"):
        value = payload.get(claim)
        if not isinstance(value, str) or not value:
            raise InvalidClaims(f"missing or empty {claim} claim")
    if not _is_valid_audience(payload.get("aud")):
        raise InvalidClaims("missing or empty aud claim")

    for claim in ("exp", "nbf", "iat"):
        value = payload.get(claim)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidClaims(f"{claim} must be a numeric date")
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidClaims(f"{claim} must be a finite numeric date")

    nonce = payload.get("nonce")
    if nonce is not None and not isinstance(nonce, str):
        raise InvalidClaims("nonce must be a string")
    return TokenPayload.model_validate(payload)


def _is_valid_audience(aud: Any) -> bool:
    if isinstance(aud, str):
        return bool(aud)
    if isinstance(aud, list) and aud:
        return all(isinstance(a, str) and a for a in aud)
    return False


def _check_temporal_claims(
    payload: TokenPayload, *, now: float, iat_skew: int
) -> None:
    if payload.exp is not None and payload.exp <= now:
        raise TokenExpired("token has expired")
    if payload.nbf is not None and payload.nbf > now:
        raise TokenNotYetValid("token is not valid yet")
    if payload.iat is not None and payload.iat > now + iat_skew:
        raise TokenIssuedInFuture("token iat is too far in the future")
