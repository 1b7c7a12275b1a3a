"""Declared signal shapes of the compiled zkLogin circuit."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CircuitSchema:
    """Fixed array lengths and numeric bounds the circuit expects."""

    digest_length: int = 32
    limb_bits: int = 32
    modulus_limbs: int = 64
    signature_limbs: int = 64
    exponent_limbs: int = 2
    max_epoch_bits: int = 64
    randomness_bits: int = 128
    salt_bits: int = 128


DEFAULT_SCHEMA = CircuitSchema()
