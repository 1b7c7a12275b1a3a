"""Map prover output into the wire format expected by on-chain verifiers."""

import binascii
import logging
import re
from dataclasses import dataclass

from jwt.utils import base64url_decode

from zkprover.api.schemas import IssBase64Details, ProofPoints, ProofResponse
from zkprover.core.errors import MalformedProofArtifact
from zkprover.prover.types import ProofArtifact

logger = logging.getLogger(__name__)

VALID_SIGNAL = "1"
_ISS_PATTERN = re.compile(rb'"iss"\s*:\s*"(?:[^"\\]|\\.)*"\s*[,}]')


@dataclass(frozen=True)
class AssemblyContext:
    """Request data passed through to the response."""

    header_base64: str | None = None
    payload_base64: str | None = None
    address_seed: str | None = None
    include_validity: bool = False


def assemble(artifact: ProofArtifact, context: AssemblyContext) -> ProofResponse:
    """Build the caller-visible proof response."""
    _check_point(artifact.pi_a, "pi_a")
    _check_point(artifact.pi_c, "pi_c")
    if len(artifact.pi_b) < 2 or not all(
        isinstance(pair, list) and len(pair) >= 2 for pair in artifact.pi_b[:2]
    ):
        raise MalformedProofArtifact("pi_b must contain two coordinate pairs")
    if not artifact.public_signals:
        raise MalformedProofArtifact("proof has no public signals")

    iss_details = None
    if context.payload_base64:
        iss_details = iss_base64_details(context.payload_base64)
        if iss_details is None:
            logger.warning("Could not locate iss claim for issBase64Details")

    return ProofResponse(
        proof_points=ProofPoints(a=artifact.pi_a, b=artifact.pi_b, c=artifact.pi_c),
        protocol=artifact.protocol,
        curve=artifact.curve,
        public_signals=artifact.public_signals,
        header_base64=context.header_base64,
        iss_base64_details=iss_details,
        address_seed=context.address_seed,
        is_valid=(
            artifact.public_signals[0] == VALID_SIGNAL
            if context.include_validity
            else None
        ),
    )


def iss_base64_details(payload_base64: str) -> IssBase64Details | None:
    """Locate the ``"iss":"..."`` claim inside the encoded payload segment.

    Returns the smallest base64url substring whose decoding covers the claim
    (including its trailing ``,`` or ``}``) and the substring's start offset
    modulo 4, which the verifier needs to realign the decoding.
    """
    try:
        decoded = base64url_decode(payload_base64.encode("ascii"))
    except (binascii.Error, ValueError, UnicodeEncodeError):
        return None
    match = _ISS_PATTERN.search(decoded)
    if match is None:
        return None
    start = (match.start() * 4) // 3
    end = (match.end() * 8 - 1) // 6 + 1
    return IssBase64Details(
        value=payload_base64[start:end],
        index_mod4=start % 4,
    )


def _check_point(point: list, name: str) -> None:
    if len(point) < 2 or not all(isinstance(c, (str, int)) for c in point[:2]):
        raise MalformedProofArtifact(f"{name} must contain at least two coordinates")
