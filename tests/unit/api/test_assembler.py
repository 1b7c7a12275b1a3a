"""Tests for mapping prover output into proof responses."""

import base64
import json

import pytest

from zkprover.api.assembler import AssemblyContext, assemble, iss_base64_details
from zkprover.core.errors import MalformedProofArtifact
from zkprover.prover.types import ProofArtifact


def _artifact(**overrides) -> ProofArtifact:
    fields = {
        "pi_a": ["11", "12", "1"],
        "pi_b": [["21", "22"], ["23", "24"], ["1", "0"]],
        "pi_c": ["31", "32", "1"],
        "protocol": "groth16",
        "curve": "bn128",
        "public_signals": ["1", "99"],
    }
    fields.update(overrides)
    return ProofArtifact(**fields)


def _encode_payload(claims: dict) -> str:
    raw = json.dumps(claims, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _decode_window(payload_b64: str, value: str, index_mod4: int) -> bytes:
    start = payload_b64.index(value)
    assert start % 4 == index_mod4
    chunk = payload_b64[start - index_mod4 : start + len(value)]
    return base64.urlsafe_b64decode(chunk + "=" * (-len(chunk) % 4))


class TestAssemble:
    """Wire format mapping."""

    def test_maps_points_and_signals(self) -> None:
        response = assemble(_artifact(), AssemblyContext())
        assert response.proof_points.a == ["11", "12", "1"]
        assert response.proof_points.b[1] == ["23", "24"]
        assert response.proof_points.c == ["31", "32", "1"]
        assert response.protocol == "groth16"
        assert response.public_signals == ["1", "99"]
        assert response.is_valid is None

    def test_passthrough_fields(self) -> None:
        payload = _encode_payload({"iss": "https://issuer.test", "sub": "1"})
        response = assemble(
            _artifact(),
            AssemblyContext(
                header_base64="eyJhbGciOiJSUzI1NiJ9",
                payload_base64=payload,
                address_seed="12345",
            ),
        )
        assert response.header_base64 == "eyJhbGciOiJSUzI1NiJ9"
        assert response.address_seed == "12345"
        assert response.iss_base64_details is not None

    def test_camel_case_serialization(self) -> None:
        body = assemble(_artifact(), AssemblyContext(include_validity=True)).model_dump(
            by_alias=True, exclude_none=True
        )
        assert set(body) == {"proofPoints", "protocol", "curve", "publicSignals", "isValid"}

    @pytest.mark.parametrize(("flag", "expected"), [("1", True), ("0", False)])
    def test_validity_flag(self, flag: str, expected: bool) -> None:
        response = assemble(
            _artifact(public_signals=[flag]), AssemblyContext(include_validity=True)
        )
        assert response.is_valid is expected

    @pytest.mark.parametrize(
        "overrides",
        [
            {"pi_a": []},
            {"pi_a": ["1"]},
            {"pi_c": [None, None]},
            {"pi_b": [["1", "2"]]},
            {"pi_b": ["1", "2"]},
            {"public_signals": []},
        ],
    )
    def test_malformed_artifact(self, overrides: dict) -> None:
        with pytest.raises(MalformedProofArtifact):
            assemble(_artifact(**overrides), AssemblyContext())


class TestIssBase64Details:
    """Locating the iss claim inside the encoded payload."""

    @pytest.mark.parametrize(
        "claims",
        [
            {"iss": "https://accounts.google.com", "sub": "1", "aud": "a"},
            {"sub": "1", "iss": "https://accounts.google.com", "aud": "a"},
            {"aud": "ab", "sub": "12", "iss": "https://accounts.google.com"},
            {"x": "abc", "iss": "https://id.twitch.tv/oauth2"},
        ],
    )
    def test_window_covers_claim(self, claims: dict) -> None:
        payload = _encode_payload(claims)
        details = iss_base64_details(payload)
        assert details is not None
        assert 0 <= details.index_mod4 < 4
        decoded = _decode_window(payload, details.value, details.index_mod4)
        assert f'"iss":"{claims["iss"]}"'.encode() in decoded

    def test_escaped_quote_in_issuer(self) -> None:
        payload = _encode_payload({"iss": 'https://odd"issuer', "sub": "1"})
        details = iss_base64_details(payload)
        assert details is not None

    def test_missing_iss(self) -> None:
        assert iss_base64_details(_encode_payload({"sub": "1"})) is None

    def test_undecodable_payload(self) -> None:
        assert iss_base64_details("é") is None
