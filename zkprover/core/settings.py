"""Application settings loaded from environment variables."""

import os
from typing import Literal

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

IAT_SKEW_DEFAULT = 300
KEY_CACHE_TTL_DEFAULT = 3600
JWKS_TIMEOUT_DEFAULT = 5.0
JWKS_RETRY_BACKOFF_DEFAULT = 0.5
MIN_KEY_BITS_DEFAULT = 2048
PROVER_TIMEOUT_DEFAULT = 60.0
WITNESS_TIMEOUT_DEFAULT = 30.0
SETUP_TIMEOUT_DEFAULT = 1800.0

TESTNET_ENVIRONMENTS = frozenset({"testnet", "development"})


class ProviderConfig(BaseModel):
    """An OAuth issuer whose signing keys may be resolved."""

    name: str
    issuers: list[str]
    jwks_uri: str | None = None
    discovery_url: str | None = None


class ProverSettings(BaseSettings):
    """Proving service settings."""

    model_config = SettingsConfigDict(env_prefix="PROVER_")

    environment: str = "testnet"
    log_level: str = "INFO"
    cors_origins: str = ""
    host: str = "0.0.0.0"
    port: int = 3000

    circuit_wasm_path: str = "circuits/zklogin_js/zklogin.wasm"
    proving_key_path: str = "keys/zklogin_final.zkey"
    witness_command: list[str] = [
        "node",
        "circuits/zklogin_js/generate_witness.js",
    ]
    prover_command: list[str] = ["rapidsnark/rapidsnark"]
    setup_command: list[str] = []
    setup_timeout: float = SETUP_TIMEOUT_DEFAULT
    work_dir: str = ""
    prover_slots: int = 0
    prover_timeout: float = PROVER_TIMEOUT_DEFAULT
    witness_timeout: float = WITNESS_TIMEOUT_DEFAULT

    nonce_policy: Literal["reject", "warn"] = "reject"
    verify_signature: bool = True
    iat_skew_seconds: int = IAT_SKEW_DEFAULT
    supported_key_claims: list[str] = ["sub", "email"]

    key_cache_ttl: int = KEY_CACHE_TTL_DEFAULT
    jwks_timeout: float = JWKS_TIMEOUT_DEFAULT
    jwks_retry_backoff: float = JWKS_RETRY_BACKOFF_DEFAULT
    min_key_bits: int = MIN_KEY_BITS_DEFAULT
    extra_providers: list[ProviderConfig] = []

    debug_endpoints: bool = False
    debug_token: str = ""
    expose_error_detail: bool = False
    expose_validity: bool | None = None

    @property
    def is_testnet(self) -> bool:
        """True for environments where verbose diagnostics are acceptable."""
        return self.environment in TESTNET_ENVIRONMENTS

    @property
    def include_validity(self) -> bool:
        """Whether proof responses carry ``isValid``; testnet default on."""
        if self.expose_validity is None:
            return self.is_testnet
        return self.expose_validity

    @property
    def effective_prover_slots(self) -> int:
        """Number of concurrent prover invocations, defaulting to CPU count."""
        if self.prover_slots > 0:
            return self.prover_slots
        return os.cpu_count() or 1

    def get_cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins."""
        if not self.cors_origins:
            return []
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
