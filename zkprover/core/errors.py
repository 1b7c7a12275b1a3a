"""Typed failures raised by the proof-request pipeline.

Every error carries a stable ``code`` used in HTTP error bodies and an HTTP
status. Messages never include raw tokens, salts or key material; subprocess
output goes into ``diagnostics`` and is only rendered when the deployment
allows it.
"""

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_INTERNAL_ERROR = 500
HTTP_BAD_GATEWAY = 502
HTTP_SERVICE_UNAVAILABLE = 503
HTTP_GATEWAY_TIMEOUT = 504


class ProverServiceError(Exception):
    """Base error for the proving service."""

    code = "internal_error"
    status_code = HTTP_INTERNAL_ERROR

    def __init__(self, message: str = "", *, diagnostics: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.diagnostics = diagnostics


# Input shape


class TokenInputError(ProverServiceError):
    code = "invalid_token"
    status_code = HTTP_BAD_REQUEST


class MalformedToken(TokenInputError):
    code = "malformed_token"


class InvalidHeader(TokenInputError):
    code = "invalid_header"


class InvalidClaims(TokenInputError):
    code = "invalid_claims"


# Temporal


class TemporalError(ProverServiceError):
    code = "temporal_error"
    status_code = HTTP_BAD_REQUEST


class TokenExpired(TemporalError):
    code = "token_expired"


class TokenNotYetValid(TemporalError):
    code = "token_not_yet_valid"


class TokenIssuedInFuture(TemporalError):
    code = "token_issued_in_future"


# Trust resolution


class TrustResolutionError(ProverServiceError):
    code = "trust_resolution_error"
    status_code = HTTP_BAD_REQUEST


class UnsupportedIssuer(TrustResolutionError):
    code = "unsupported_issuer"


class KeyDiscoveryUnavailable(TrustResolutionError):
    code = "key_discovery_unavailable"
    status_code = HTTP_BAD_GATEWAY


class InvalidKeySet(TrustResolutionError):
    code = "invalid_key_set"
    status_code = HTTP_BAD_GATEWAY


class KeyNotFound(TrustResolutionError):
    code = "key_not_found"


class UnsupportedKeyType(TrustResolutionError):
    code = "unsupported_key_type"


class InvalidKeyUsage(TrustResolutionError):
    code = "invalid_key_usage"


class InsufficientKeySize(TrustResolutionError):
    code = "insufficient_key_size"


class InvalidSignature(TrustResolutionError):
    code = "invalid_signature"
    status_code = HTTP_UNAUTHORIZED


# Nonce binding


class BindingError(ProverServiceError):
    code = "binding_error"
    status_code = HTTP_BAD_REQUEST


class MissingNonceClaim(BindingError):
    code = "missing_nonce_claim"


class NonceMismatch(BindingError):
    code = "nonce_mismatch"


class InvalidEphemeralKey(BindingError):
    code = "invalid_ephemeral_key"


# Encoding


class EncodingError(ProverServiceError):
    code = "encoding_error"
    status_code = HTTP_BAD_REQUEST


class InvalidNumericInput(EncodingError):
    code = "invalid_numeric_input"


class EncodingOverflow(EncodingError):
    code = "encoding_overflow"


class KeyMaterialTooLarge(EncodingError):
    code = "key_material_too_large"


# Proving pipeline


class ProvingError(ProverServiceError):
    code = "proving_error"


class WitnessGenerationFailed(ProvingError):
    code = "witness_generation_failed"


class ProofGenerationFailed(ProvingError):
    code = "proof_generation_failed"


class ProverTimeout(ProvingError):
    code = "prover_timeout"
    status_code = HTTP_GATEWAY_TIMEOUT


class ProofOutputCorrupt(ProvingError):
    code = "proof_output_corrupt"


class MalformedProofArtifact(ProvingError):
    code = "malformed_proof_artifact"


# Service readiness


class ServiceInitializing(ProverServiceError):
    code = "service_initializing"
    status_code = HTTP_SERVICE_UNAVAILABLE


class ServiceUnavailable(ProverServiceError):
    code = "service_unavailable"
    status_code = HTTP_SERVICE_UNAVAILABLE
