"""Proof-request orchestration.

Stages run in order: claim validation, nonce binding, key resolution,
signature check, circuit input encoding, proving, response assembly. Every
check that can reject a request runs before any subprocess is started.
"""

import logging

from zkprover.api.assembler import AssemblyContext, assemble
from zkprover.api.schemas import ProofResponse, ProveRequest
from zkprover.circuit.encoder import encode
from zkprover.core.errors import InvalidClaims, NonceMismatch
from zkprover.core.settings import ProverSettings
from zkprover.keys.resolver import KeyResolver
from zkprover.nonce.binder import NonceBinding, bind_token
from zkprover.prover.coordinator import ProverCoordinator
from zkprover.prover.readiness import Readiness
from zkprover.token.claims import parse_token
from zkprover.token.signature import verify_signature
from zkprover.token.types import ParsedToken

logger = logging.getLogger(__name__)


class ProofPipeline:
    """Turns a proof request into a proof response."""

    def __init__(
        self,
        settings: ProverSettings,
        resolver: KeyResolver,
        coordinator: ProverCoordinator,
        readiness: Readiness,
    ) -> None:
        self.settings = settings
        self.resolver = resolver
        self.coordinator = coordinator
        self.readiness = readiness

    async def run(self, request: ProveRequest) -> ProofResponse:
        self.readiness.ensure_ready()

        if request.key_claim_name not in self.settings.supported_key_claims:
            raise InvalidClaims(f"key claim {request.key_claim_name!r} is not supported")

        token = parse_token(request.jwt, iat_skew=self.settings.iat_skew_seconds)
        binding = bind_token(
            token,
            request.ephemeral_public_key,
            request.max_epoch,
            request.jwt_randomness,
        )
        self._enforce_nonce_policy(token, binding)

        key = await self.resolver.resolve(token.payload.iss, token.header.kid)
        if self.settings.verify_signature:
            verify_signature(token, key)

        circuit_input = encode(
            token,
            key,
            binding,
            request.salt,
            key_claim_name=request.key_claim_name,
        )
        logger.info(
            "Encoded proof request iss=%s kid=%s provider=%s",
            token.payload.iss,
            token.header.kid,
            key.provider,
        )

        artifact = await self.coordinator.prove(circuit_input)
        return assemble(
            artifact,
            AssemblyContext(
                header_base64=token.raw_segments.header,
                payload_base64=token.raw_segments.payload,
                address_seed=circuit_input.address_seed,
                include_validity=self.settings.include_validity,
            ),
        )

    def _enforce_nonce_policy(self, token: ParsedToken, binding: NonceBinding) -> None:
        if binding.matches:
            return
        if self.settings.nonce_policy == "reject":
            raise NonceMismatch("token nonce does not match the ephemeral key session")
        logger.warning(
            "Nonce mismatch accepted by warn policy iss=%s kid=%s",
            token.payload.iss,
            token.header.kid,
        )
