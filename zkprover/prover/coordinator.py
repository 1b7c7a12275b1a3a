"""Run witness generation and proving for one circuit input.

Each proof gets its own temporary directory holding the input, witness,
proof and public-signal files; the directory is removed on every exit path.
Prover invocations are bounded by a fixed number of slots and excess
requests queue on the slot semaphore.
"""

import asyncio
import json
import logging
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from zkprover.circuit.types import CircuitInput
from zkprover.core.errors import (
    ProofGenerationFailed,
    ProofOutputCorrupt,
    ProverTimeout,
    ProvingError,
    WitnessGenerationFailed,
)
from zkprover.core.settings import (
    PROVER_TIMEOUT_DEFAULT,
    WITNESS_TIMEOUT_DEFAULT,
    ProverSettings,
)
from zkprover.prover.types import ProofArtifact

logger = logging.getLogger(__name__)

DIAGNOSTIC_TAIL_CHARS = 2000


@dataclass(frozen=True)
class JobPaths:
    """Transient files of one proof job, all inside ``root``."""

    root: Path

    @property
    def input(self) -> Path:
        return self.root / "input.json"

    @property
    def witness(self) -> Path:
        return self.root / "witness.wtns"

    @property
    def proof(self) -> Path:
        return self.root / "proof.json"

    @property
    def public(self) -> Path:
        return self.root / "public.json"


class ProverCoordinator:
    """Bounded, isolated execution of the external witness generator and prover."""

    def __init__(
        self,
        *,
        circuit_wasm: str | Path,
        proving_key: str | Path,
        witness_command: list[str],
        prover_command: list[str],
        slots: int = 1,
        prover_timeout: float = PROVER_TIMEOUT_DEFAULT,
        witness_timeout: float = WITNESS_TIMEOUT_DEFAULT,
        work_dir: str | Path | None = None,
    ) -> None:
        if slots < 1:
            raise ValueError("slots must be at least 1")
        self.circuit_wasm = Path(circuit_wasm)
        self.proving_key = Path(proving_key)
        self.witness_command = list(witness_command)
        self.prover_command = list(prover_command)
        self.slots = slots
        self.prover_timeout = prover_timeout
        self.witness_timeout = witness_timeout
        self.work_dir = Path(work_dir) if work_dir else None
        self._semaphore = asyncio.Semaphore(slots)
        self._active = 0
        self._queued = 0

    @classmethod
    def from_settings(cls, settings: ProverSettings) -> "ProverCoordinator":
        return cls(
            circuit_wasm=settings.circuit_wasm_path,
            proving_key=settings.proving_key_path,
            witness_command=settings.witness_command,
            prover_command=settings.prover_command,
            slots=settings.effective_prover_slots,
            prover_timeout=settings.prover_timeout,
            witness_timeout=settings.witness_timeout,
            work_dir=settings.work_dir or None,
        )

    def status(self) -> dict[str, int]:
        return {"slots": self.slots, "active": self._active, "queued": self._queued}

    async def prove(self, circuit_input: CircuitInput) -> ProofArtifact:
        """Generate a proof for ``circuit_input``.

        A caller cancelled while still queued for a slot drops the job. Once
        the job holds a slot, cancelling the caller detaches it: the job runs
        to completion in the background and still cleans up.
        """
        job_id = uuid.uuid4().hex
        self._queued += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._queued -= 1
        self._active += 1
        job = asyncio.ensure_future(self._run_job(job_id, circuit_input))
        try:
            return await asyncio.shield(job)
        except asyncio.CancelledError:
            logger.info("Proof job %s detached from cancelled request", job_id)
            job.add_done_callback(_log_detached_result)
            raise

    async def _run_job(self, job_id: str, circuit_input: CircuitInput) -> ProofArtifact:
        """Run one job inside an acquired slot and give the slot back."""
        try:
            return await self._run_in_workspace(job_id, circuit_input)
        finally:
            self._active -= 1
            self._semaphore.release()

    def _create_job_dir(self, job_id: str) -> Path:
        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=f"proof-{job_id}-", dir=self.work_dir))

    async def _run_in_workspace(
        self, job_id: str, circuit_input: CircuitInput
    ) -> ProofArtifact:
        paths = JobPaths(await asyncio.to_thread(self._create_job_dir, job_id))
        try:
            artifact = await self._run_steps(job_id, paths, circuit_input)
        finally:
            await asyncio.to_thread(shutil.rmtree, paths.root)
        logger.info("Proof job %s complete", job_id)
        return artifact

    async def _run_steps(
        self, job_id: str, paths: JobPaths, circuit_input: CircuitInput
    ) -> ProofArtifact:
        await asyncio.to_thread(
            paths.input.write_text, json.dumps(circuit_input.to_signals())
        )

        logger.info("Generating witness job=%s", job_id)
        await _run_step(
            [
                *self.witness_command,
                str(self.circuit_wasm),
                str(paths.input),
                str(paths.witness),
            ],
            timeout=self.witness_timeout,
            stage="witness generation",
            failure=WitnessGenerationFailed,
        )

        logger.info("Generating proof job=%s", job_id)
        await _run_step(
            [
                *self.prover_command,
                str(self.proving_key),
                str(paths.witness),
                str(paths.proof),
                str(paths.public),
            ],
            timeout=self.prover_timeout,
            stage="proof generation",
            failure=ProofGenerationFailed,
        )
        return await asyncio.to_thread(read_artifact, paths)


async def _run_step(
    command: list[str],
    *,
    timeout: float,
    stage: str,
    failure: type[ProvingError],
) -> None:
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise failure(f"{stage} could not start", diagnostics=str(exc)) from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError as exc:
        raise ProverTimeout(f"{stage} exceeded {timeout:g}s") from exc
    finally:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()

    if proc.returncode != 0:
        output = (stderr or stdout).decode(errors="replace").strip()
        logger.warning("%s exited with status %s", stage, proc.returncode)
        raise failure(
            f"{stage} exited with status {proc.returncode}",
            diagnostics=output[-DIAGNOSTIC_TAIL_CHARS:] or None,
        )


def read_artifact(paths: JobPaths) -> ProofArtifact:
    """Parse prover output files, dropping trailing null-byte padding."""
    proof = _read_json(paths.proof, "proof")
    public = _read_json(paths.public, "public signals")
    if not isinstance(proof, dict):
        raise ProofOutputCorrupt("proof output is not a JSON object")
    if not isinstance(public, list):
        raise ProofOutputCorrupt("public signals output is not a JSON array")
    return ProofArtifact(
        pi_a=_as_list(proof.get("pi_a")),
        pi_b=_as_list(proof.get("pi_b")),
        pi_c=_as_list(proof.get("pi_c")),
        protocol=_as_str(proof.get("protocol")),
        curve=_as_str(proof.get("curve")),
        public_signals=[str(s) for s in public],
    )


def _read_json(path: Path, label: str) -> Any:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ProofOutputCorrupt(f"{label} output is missing") from exc
    try:
        return json.loads(raw.rstrip(b"\x00").decode("utf-8"))
    except ValueError as exc:
        raise ProofOutputCorrupt(f"{label} output is not valid JSON") from exc


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _log_detached_result(job: "asyncio.Future[ProofArtifact]") -> None:
    if job.cancelled():
        return
    exc = job.exception()
    if exc is not None:
        logger.warning("Detached proof job failed: %s", exc)
