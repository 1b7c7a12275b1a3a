"""Field-element arithmetic helpers for BN254 circuit inputs."""

import hashlib

from zkprover.core.errors import EncodingOverflow, InvalidNumericInput, KeyMaterialTooLarge

BN254_PRIME = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)
FIELD_HASH_BYTES = 31


def parse_numeric(value: str | int, field: str, max_bits: int) -> int:
    """Parse a non-negative decimal string strictly below ``2**max_bits``."""
    if isinstance(value, bool):
        raise InvalidNumericInput(f"{field} must be a decimal string")
    text = str(value) if isinstance(value, int) else value
    if not isinstance(text, str) or not text or not text.isascii() or not text.isdigit():
        raise InvalidNumericInput(f"{field} must be a non-empty string of digits")
    number = int(text)
    if number >= 1 << max_bits:
        raise InvalidNumericInput(f"{field} must be below 2^{max_bits}")
    return number


def bytes_to_elements(data: bytes, length: int, field: str) -> list[int]:
    """One element per byte, most significant first, left-padded with zeros."""
    if len(data) > length:
        raise EncodingOverflow(f"{field} needs {len(data)} elements, {length} declared")
    return [0] * (length - len(data)) + list(data)


def int_to_limbs(value: int, limb_bits: int, count: int, field: str) -> list[int]:
    """Split ``value`` into ``count`` little-endian limbs of ``limb_bits`` bits."""
    mask = (1 << limb_bits) - 1
    if value.bit_length() > limb_bits * count:
        raise KeyMaterialTooLarge(f"{field} needs more than {count} limbs")
    return [(value >> (i * limb_bits)) & mask for i in range(count)]


def hash_to_field(*parts: bytes) -> int:
    """SHA-256 over length-prefixed parts, truncated below the field prime."""
    digest = hashlib.sha256()
    for part in parts:
        digest.update(len(part).to_bytes(4, "big"))
        digest.update(part)
    return int.from_bytes(digest.digest()[:FIELD_HASH_BYTES], "big")


def int_to_field_bytes(value: int) -> bytes:
    """Fixed 32-byte big-endian encoding of a field-sized integer."""
    return value.to_bytes(32, "big")


def ensure_field_element(value: int, field: str) -> int:
    if not 0 <= value < BN254_PRIME:
        raise EncodingOverflow(f"{field} is outside the scalar field")
    return value
