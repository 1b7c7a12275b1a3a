"""Type definitions for encoded circuit inputs."""

from pydantic import BaseModel, ConfigDict


class CircuitInput(BaseModel):
    """Signals for one witness generation, as decimal field-element strings."""

    model_config = ConfigDict(frozen=True)

    jwt_hash: list[str]
    iss_hash: list[str]
    sub_hash: list[str]
    modulus: list[str]
    exponent: list[str]
    signature: list[str]
    nonce: str
    eph_public_key: list[str]
    max_epoch: str
    jwt_randomness: str
    salt: str
    address_seed: str

    def to_signals(self) -> dict[str, str | list[str]]:
        """Signal names as declared by the circuit's main component."""
        return {
            "jwtHash": self.jwt_hash,
            "issHash": self.iss_hash,
            "subHash": self.sub_hash,
            "modulus": self.modulus,
            "exponent": self.exponent,
            "signature": self.signature,
            "nonce": self.nonce,
            "ephPublicKey": self.eph_public_key,
            "maxEpoch": self.max_epoch,
            "jwtRandomness": self.jwt_randomness,
            "salt": self.salt,
            "addressSeed": self.address_seed,
        }
