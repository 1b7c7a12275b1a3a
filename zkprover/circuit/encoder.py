"""Translate validated request data into fixed-shape circuit signals.

All values handed to the witness generator are decimal strings of integers
below the BN254 prime. Arrays always have their declared length: byte arrays
are left-padded with zero elements, limb arrays are padded on the high end.
"""

import hashlib

from zkprover.circuit.fields import (
    bytes_to_elements,
    ensure_field_element,
    hash_to_field,
    int_to_field_bytes,
    int_to_limbs,
    parse_numeric,
)
from zkprover.circuit.schema import DEFAULT_SCHEMA, CircuitSchema
from zkprover.circuit.types import CircuitInput
from zkprover.core.errors import InvalidClaims
from zkprover.keys.types import ResolvedKey
from zkprover.nonce.binder import NonceBinding, ephemeral_key_coordinates
from zkprover.token.types import ParsedToken


def compute_address_seed(
    subject_value: str, audience: str, issuer: str, salt: int
) -> int:
    """Field-sized identity seed over (subject, audience, issuer, salt)."""
    return hash_to_field(
        subject_value.encode(),
        audience.encode(),
        issuer.encode(),
        int_to_field_bytes(salt),
    )


def key_claim_value(token: ParsedToken, key_claim_name: str) -> str:
    value = token.payload.claim(key_claim_name)
    if not isinstance(value, str) or not value:
        raise InvalidClaims(f"token has no usable {key_claim_name} claim")
    return value


def encode(
    token: ParsedToken,
    key: ResolvedKey,
    binding: NonceBinding,
    salt: str,
    *,
    key_claim_name: str = "sub",
    schema: CircuitSchema = DEFAULT_SCHEMA,
) -> CircuitInput:
    """Build the circuit input for one proof request."""
    max_epoch = parse_numeric(binding.max_epoch, "maxEpoch", schema.max_epoch_bits)
    randomness = parse_numeric(
        binding.jwt_randomness, "jwtRandomness", schema.randomness_bits
    )
    salt_value = parse_numeric(salt, "salt", schema.salt_bits)
    subject = key_claim_value(token, key_claim_name)
    audience = token.payload.audience
    issuer = token.payload.iss

    def digest(data: bytes, field: str) -> list[str]:
        elements = bytes_to_elements(
            hashlib.sha256(data).digest(), schema.digest_length, field
        )
        return _to_strings(elements, field)

    def limbs(data: bytes, count: int, field: str) -> list[str]:
        value = int.from_bytes(data, "big")
        return _to_strings(int_to_limbs(value, schema.limb_bits, count, field), field)

    high, low = ephemeral_key_coordinates(binding.ephemeral_public_key)
    address_seed = compute_address_seed(subject, audience, issuer, salt_value)
    nonce_scalar = hash_to_field(binding.actual_nonce.encode())

    return CircuitInput(
        jwt_hash=digest(token.signing_input.encode("ascii"), "jwtHash"),
        iss_hash=digest(issuer.encode(), "issHash"),
        sub_hash=digest(subject.encode(), "subHash"),
        modulus=limbs(key.modulus, schema.modulus_limbs, "modulus"),
        exponent=limbs(key.exponent, schema.exponent_limbs, "exponent"),
        signature=limbs(token.signature_raw, schema.signature_limbs, "signature"),
        nonce=_to_string(nonce_scalar, "nonce"),
        eph_public_key=_to_strings([high, low], "ephPublicKey"),
        max_epoch=_to_string(max_epoch, "maxEpoch"),
        jwt_randomness=_to_string(randomness, "jwtRandomness"),
        salt=_to_string(salt_value, "salt"),
        address_seed=_to_string(address_seed, "addressSeed"),
    )


def _to_string(value: int, field: str) -> str:
    return str(ensure_field_element(value, field))


def _to_strings(values: list[int], field: str) -> list[str]:
    return [_to_string(v, field) for v in values]
