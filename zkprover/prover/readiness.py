"""Startup readiness of the proving artifacts.

Readiness moves ``uninitialized -> initializing -> ready | failed`` exactly
once. If the compiled circuit or proving key is missing and a setup command
is configured, the command runs in the background while the service reports
``initializing``; otherwise the service fails closed and refuses proofs.
"""

import asyncio
import enum
import logging
import shutil
import threading
from pathlib import Path

from zkprover.core.errors import ServiceInitializing, ServiceUnavailable
from zkprover.core.settings import SETUP_TIMEOUT_DEFAULT, ProverSettings

logger = logging.getLogger(__name__)

_TRANSITIONS = {
    "uninitialized": {"initializing"},
    "initializing": {"ready", "failed"},
    "ready": set(),
    "failed": set(),
}


class ReadinessState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class Readiness:
    """Tracks whether proving artifacts are available."""

    def __init__(
        self,
        artifacts: list[Path],
        executables: list[str] | None = None,
        setup_command: list[str] | None = None,
        setup_timeout: float = SETUP_TIMEOUT_DEFAULT,
    ) -> None:
        self.artifacts = [Path(p) for p in artifacts]
        self.executables = list(executables or [])
        self.setup_command = list(setup_command or [])
        self.setup_timeout = setup_timeout
        self._state = ReadinessState.UNINITIALIZED
        self._error: str | None = None
        self._lock = threading.Lock()
        self._setup_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, settings: ProverSettings) -> "Readiness":
        executables = [cmd[0] for cmd in (settings.witness_command, settings.prover_command) if cmd]
        return cls(
            artifacts=[Path(settings.circuit_wasm_path), Path(settings.proving_key_path)],
            executables=executables,
            setup_command=settings.setup_command,
            setup_timeout=settings.setup_timeout,
        )

    @property
    def state(self) -> ReadinessState:
        with self._lock:
            return self._state

    @property
    def error(self) -> str | None:
        with self._lock:
            return self._error

    def ensure_ready(self) -> None:
        """Raise a service-unavailable error unless proofs can be served."""
        state = self.state
        if state is ReadinessState.READY:
            return
        if state is ReadinessState.INITIALIZING:
            raise ServiceInitializing("proving keys are still being prepared")
        raise ServiceUnavailable("proving artifacts are not available")

    async def initialize(self) -> None:
        """Check artifacts, starting background setup if they are missing."""
        if self.state is not ReadinessState.UNINITIALIZED:
            return
        self._transition(ReadinessState.INITIALIZING)

        missing = self.missing_artifacts()
        if not missing:
            self._transition(ReadinessState.READY)
            return
        if self.setup_command:
            logger.info("Proving artifacts missing, running setup in background")
            self._setup_task = asyncio.create_task(self._run_setup())
            return
        self._transition(
            ReadinessState.FAILED,
            error=f"missing artifacts: {', '.join(missing)}",
        )

    async def wait(self) -> ReadinessState:
        """Wait for any background setup to finish and return the state."""
        if self._setup_task is not None:
            await asyncio.shield(self._setup_task)
        return self.state

    async def shutdown(self) -> None:
        if self._setup_task is not None and not self._setup_task.done():
            self._setup_task.cancel()
            try:
                await self._setup_task
            except asyncio.CancelledError:
                pass

    def missing_artifacts(self) -> list[str]:
        missing = [str(p) for p in self.artifacts if not _is_readable_file(p)]
        missing.extend(
            exe
            for exe in self.executables
            if shutil.which(exe) is None and not _is_readable_file(Path(exe))
        )
        return missing

    async def _run_setup(self) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.setup_command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            self._transition(ReadinessState.FAILED, error=f"setup could not start: {exc}")
            return
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), self.setup_timeout)
        except asyncio.TimeoutError:
            self._transition(ReadinessState.FAILED, error="setup timed out")
            return
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip()[-500:]
            self._transition(
                ReadinessState.FAILED,
                error=f"setup exited with status {proc.returncode}: {detail}",
            )
            return
        missing = self.missing_artifacts()
        if missing:
            self._transition(
                ReadinessState.FAILED,
                error=f"setup finished but artifacts are missing: {', '.join(missing)}",
            )
            return
        self._transition(ReadinessState.READY)

    def _transition(self, new: ReadinessState, *, error: str | None = None) -> None:
        with self._lock:
            if new.value not in _TRANSITIONS[self._state.value]:
                raise RuntimeError(f"invalid readiness transition {self._state.value} -> {new.value}")
            self._state = new
            self._error = error
        if new is ReadinessState.FAILED:
            logger.error("Proving service unavailable: %s", error)
        else:
            logger.info("Readiness is now %s", new.value)


def _is_readable_file(path: Path) -> bool:
    try:
        with path.open("rb"):
            return True
    except OSError:
        return False
