"""Shared test fixtures for the zkLogin proving service."""

import base64
import json
import sys
import textwrap
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from zkprover.core.app import create_app
from zkprover.core.settings import ProverSettings, ProviderConfig
from zkprover.keys.cache import InMemoryKeyCache
from zkprover.keys.material import int_to_base64url
from zkprover.keys.providers import ProviderRegistry
from zkprover.keys.resolver import KeyResolver
from zkprover.nonce.binder import compute_nonce
from zkprover.prover.coordinator import ProverCoordinator
from zkprover.prover.readiness import Readiness

TEST_ISSUER = "https://issuer.test"
TEST_JWKS_URI = "https://issuer.test/.well-known/jwks.json"
TEST_KID = "test-key-1"
TEST_AUDIENCE = "test-client-id"
TEST_SUBJECT = "110169484474386276334"

# flag byte followed by a 32-byte public key
EPHEMERAL_KEY = base64.b64encode(bytes([0]) + bytes(range(1, 33))).decode()
MAX_EPOCH = "5"
JWT_RANDOMNESS = "1234"
SALT = "129390038577185583942388216820280642146"

TEST_PROVIDER = ProviderConfig(name="test", issuers=[TEST_ISSUER], jwks_uri=TEST_JWKS_URI)

WITNESS_SCRIPT = """
    import shutil
    import sys

    # wasm, input, witness
    shutil.copyfile(sys.argv[2], sys.argv[3])
"""

PROVER_SCRIPT = """
    import json
    import os
    import sys
    import time
    from pathlib import Path

    _zkey, witness, proof, public = sys.argv[1:5]
    log = Path(__file__).with_name("prover.log")
    job_dir = os.path.dirname(proof)
    with log.open("a") as fh:
        fh.write(f"start {job_dir}\\n")
    signals = json.loads(Path(witness).read_text())
    time.sleep(float(os.environ.get("FAKE_PROVER_DELAY", "0.2")))
    document = {
        "pi_a": ["1", "2", "1"],
        "pi_b": [["3", "4"], ["5", "6"], ["1", "0"]],
        "pi_c": ["7", "8", "1"],
        "protocol": "groth16",
        "curve": "bn128",
    }
    Path(proof).write_bytes(json.dumps(document).encode() + b"\\x00" * 64)
    Path(public).write_bytes(
        json.dumps(["1", signals["nonce"], signals["addressSeed"], signals["salt"]]).encode()
        + b"\\x00" * 16
    )
    with log.open("a") as fh:
        fh.write(f"end {job_dir}\\n")
"""

FAILING_PROVER_SCRIPT = """
    import sys

    sys.stderr.write("constraint check failed at line 42\\n")
    sys.exit(1)
"""

SLOW_PROVER_SCRIPT = """
    import time

    time.sleep(30)
"""

CORRUPT_PROVER_SCRIPT = """
    import sys
    from pathlib import Path

    Path(sys.argv[3]).write_text("not json at all")
    Path(sys.argv[4]).write_text("[]")
"""


@dataclass
class FakeTools:
    """Paths of the fake circuit artifacts and prover scripts."""

    root: Path
    wasm: Path
    zkey: Path
    work_dir: Path
    witness: Path
    prover: Path
    failing_prover: Path
    slow_prover: Path
    corrupt_prover: Path

    @property
    def log(self) -> Path:
        return self.prover.with_name("prover.log")

    def log_lines(self) -> list[str]:
        if not self.log.exists():
            return []
        return self.log.read_text().splitlines()

    def leftovers(self) -> list[Path]:
        if not self.work_dir.exists():
            return []
        return list(self.work_dir.iterdir())


@dataclass
class FakeKeyServer:
    """In-process JWKS endpoint served through httpx.MockTransport."""

    documents: dict[str, Any]
    requests: list[httpx.Request] = field(default_factory=list)
    transport_failures: int = 0
    status_code: int = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.transport_failures > 0:
            self.transport_failures -= 1
            raise httpx.ConnectError("connection refused", request=request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="unavailable")
        document = self.documents.get(str(request.url))
        if document is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, json=document)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def _write_script(path: Path, body: str) -> Path:
    path.write_text(textwrap.dedent(body).lstrip())
    return path


def _segment(value: dict[str, Any]) -> str:
    raw = json.dumps(value, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host PROVER_* variables out of test settings."""
    monkeypatch.delenv("PROVER_ENVIRONMENT", raising=False)
    monkeypatch.delenv("PROVER_NONCE_POLICY", raising=False)
    monkeypatch.delenv("PROVER_DEBUG_ENDPOINTS", raising=False)
    monkeypatch.setenv("FAKE_PROVER_DELAY", "0.2")


@pytest.fixture
def session_params() -> SimpleNamespace:
    """Identifiers and ephemeral-session values the fixtures are built from."""
    return SimpleNamespace(
        issuer=TEST_ISSUER,
        jwks_uri=TEST_JWKS_URI,
        kid=TEST_KID,
        audience=TEST_AUDIENCE,
        subject=TEST_SUBJECT,
        ephemeral_key=EPHEMERAL_KEY,
        max_epoch=MAX_EPOCH,
        jwt_randomness=JWT_RANDOMNESS,
        salt=SALT,
        provider=TEST_PROVIDER,
    )


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """A 2048-bit RSA key shared by all tests."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def jwk_entry(rsa_private_key: rsa.RSAPrivateKey) -> dict[str, str]:
    numbers = rsa_private_key.public_key().public_numbers()
    return {
        "kty": "RSA",
        "kid": TEST_KID,
        "use": "sig",
        "alg": "RS256",
        "n": int_to_base64url(numbers.n),
        "e": int_to_base64url(numbers.e),
    }


@pytest.fixture
def key_server(jwk_entry: dict[str, str]) -> FakeKeyServer:
    return FakeKeyServer(documents={TEST_JWKS_URI: {"keys": [jwk_entry]}})


@pytest.fixture
def expected_nonce() -> str:
    return compute_nonce(EPHEMERAL_KEY, MAX_EPOCH, JWT_RANDOMNESS)


@pytest.fixture
def claims(expected_nonce: str) -> Callable[..., dict[str, Any]]:
    """Build a valid claim set; pass ``name=None`` to drop a claim."""

    def _claims(**overrides: Any) -> dict[str, Any]:
        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": TEST_ISSUER,
            "sub": TEST_SUBJECT,
            "aud": TEST_AUDIENCE,
            "iat": now,
            "exp": now + 600,
            "nonce": expected_nonce,
            "email": "user@example.com",
        }
        payload.update(overrides)
        return {k: v for k, v in payload.items() if v is not None}

    return _claims


@pytest.fixture
def make_token(
    rsa_private_key: rsa.RSAPrivateKey,
    claims: Callable[..., dict[str, Any]],
) -> Callable[..., str]:
    """Sign a JWT with the test key."""

    def _make(*, kid: str = TEST_KID, **overrides: Any) -> str:
        return jwt.encode(
            claims(**overrides),
            rsa_private_key,
            algorithm="RS256",
            headers={"kid": kid},
        )

    return _make


@pytest.fixture
def raw_token(claims: Callable[..., dict[str, Any]]) -> Callable[..., str]:
    """Assemble an unsigned compact token from an arbitrary header and payload."""

    def _raw(
        header: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> str:
        header = header if header is not None else {"alg": "RS256", "typ": "JWT", "kid": TEST_KID}
        payload = payload if payload is not None else claims()
        return f"{_segment(header)}.{_segment(payload)}.c2lnbmF0dXJl"

    return _raw


@pytest.fixture
def fake_tools(tmp_path: Path) -> FakeTools:
    """Fake circuit artifacts plus witness/prover scripts in ``tmp_path``."""
    wasm = tmp_path / "zklogin.wasm"
    zkey = tmp_path / "zklogin_final.zkey"
    wasm.write_bytes(b"\x00asm")
    zkey.write_bytes(b"zkey")
    return FakeTools(
        root=tmp_path,
        wasm=wasm,
        zkey=zkey,
        work_dir=tmp_path / "work",
        witness=_write_script(tmp_path / "witness.py", WITNESS_SCRIPT),
        prover=_write_script(tmp_path / "prover.py", PROVER_SCRIPT),
        failing_prover=_write_script(tmp_path / "failing_prover.py", FAILING_PROVER_SCRIPT),
        slow_prover=_write_script(tmp_path / "slow_prover.py", SLOW_PROVER_SCRIPT),
        corrupt_prover=_write_script(tmp_path / "corrupt_prover.py", CORRUPT_PROVER_SCRIPT),
    )


@pytest.fixture
def make_coordinator(fake_tools: FakeTools) -> Callable[..., ProverCoordinator]:
    def _make(prover: Path | None = None, **overrides: Any) -> ProverCoordinator:
        options: dict[str, Any] = {
            "circuit_wasm": fake_tools.wasm,
            "proving_key": fake_tools.zkey,
            "witness_command": [sys.executable, str(fake_tools.witness)],
            "prover_command": [sys.executable, str(prover or fake_tools.prover)],
            "slots": 2,
            "prover_timeout": 10.0,
            "witness_timeout": 10.0,
            "work_dir": fake_tools.work_dir,
        }
        options.update(overrides)
        return ProverCoordinator(**options)

    return _make


@pytest.fixture
def settings() -> ProverSettings:
    return ProverSettings(
        environment="testnet",
        extra_providers=[TEST_PROVIDER],
        jwks_retry_backoff=0.0,
        debug_endpoints=True,
    )


@pytest.fixture
async def http_client(key_server: FakeKeyServer) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=key_server.transport) as client:
        yield client


@pytest.fixture
def resolver(http_client: httpx.AsyncClient) -> KeyResolver:
    return KeyResolver(
        ProviderRegistry([TEST_PROVIDER]),
        InMemoryKeyCache(),
        http_client,
        retry_backoff=0.0,
    )


@pytest.fixture
async def readiness(fake_tools: FakeTools) -> Readiness:
    ready = Readiness(
        artifacts=[fake_tools.wasm, fake_tools.zkey],
        executables=[sys.executable],
    )
    await ready.initialize()
    return ready


@pytest.fixture
def make_app(
    settings: ProverSettings,
    resolver: KeyResolver,
    readiness: Readiness,
    make_coordinator: Callable[..., ProverCoordinator],
) -> Callable[..., FastAPI]:
    """Build the app around test collaborators; keyword overrides replace them."""

    def _make(**overrides: Any) -> FastAPI:
        options: dict[str, Any] = {
            "key_resolver": resolver,
            "coordinator": make_coordinator(),
            "readiness": readiness,
        }
        options.update(overrides)
        app_settings = options.pop("settings", settings)
        return create_app(app_settings, **options)

    return _make


@pytest.fixture
def app(make_app: Callable[..., FastAPI]) -> FastAPI:
    return make_app()


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Create an httpx test client for the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def prove_body(make_token: Callable[..., str]) -> Callable[..., dict[str, Any]]:
    """Build a POST /prove body; keyword overrides replace fields."""

    def _body(**overrides: Any) -> dict[str, Any]:
        body: dict[str, Any] = {
            "jwt": make_token(),
            "ephemeralPublicKey": EPHEMERAL_KEY,
            "maxEpoch": MAX_EPOCH,
            "jwtRandomness": JWT_RANDOMNESS,
            "salt": SALT,
            "keyClaimName": "sub",
        }
        body.update(overrides)
        return body

    return _body
