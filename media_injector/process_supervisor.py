"""
FFmpeg process supervisor.

Owns at most one ffmpeg process at a time and guarantees it is cleaned up:
every spawned process resolves exactly one completion future with a tagged
outcome, and ownership is always released once that outcome is known.
"""

import asyncio
import inspect
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union

import psutil

from media_injector.log_parser import FFmpegLogParser

logger = logging.getLogger(__name__)

ProcessRunner = Callable[[Sequence[str]], Awaitable[asyncio.subprocess.Process]]
ExitCallback = Callable[[], Union[None, Awaitable[None]]]

READ_CHUNK_SIZE = 4096
_LINE_SPLIT = re.compile(r"[\r\n]+")


class ProcessState(str, Enum):
    """Supervisor states."""

    IDLE = "idle"
    RUNNING = "running"


class ExitKind(str, Enum):
    """How a managed process ended."""

    NATURAL = "natural"  # exit code 0, no stop requested
    ABNORMAL = "abnormal"  # non-zero exit code, no stop requested
    STOPPED = "stopped"  # ended after stop()
    SPAWN_ERROR = "spawn_error"  # never started


@dataclass
class ProcessOutcome:
    """Result of one managed process."""

    kind: ExitKind
    returncode: Optional[int] = None
    error: Optional[BaseException] = None


@dataclass
class ManagedProcess:
    """The single ffmpeg process a supervisor owns."""

    args: List[str]
    state: ProcessState = ProcessState.RUNNING
    started_at: datetime = field(default_factory=datetime.now)
    process: Optional[asyncio.subprocess.Process] = None
    log_parser: FFmpegLogParser = field(default_factory=FFmpegLogParser)
    stop_requested: bool = False
    completion: "asyncio.Future[ProcessOutcome]" = field(
        default_factory=lambda: asyncio.get_running_loop().create_future()
    )
    watcher: Optional[asyncio.Task] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def stdin(self) -> Optional[asyncio.StreamWriter]:
        """Write side of the process input pipe."""
        return self.process.stdin if self.process else None

    async def wait(self) -> ProcessOutcome:
        """Wait for the outcome without letting a cancelled caller cancel it."""
        return await asyncio.shield(self.completion)


async def default_process_runner(cmd: Sequence[str]) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )


class ProcessSupervisor:
    """
    Runs one ffmpeg process at a time.

    Features:
    - Rejects a second start while a process is owned (no queueing)
    - Invokes the natural-exit callback only for a zero exit without stop()
    - Logs stdout/stderr, separating error-looking lines from the rest
    - stop() waits for the process to finish before releasing ownership
    """

    def __init__(self, process_runner: Optional[ProcessRunner] = None, name: str = "ffmpeg"):
        """
        Initialize supervisor.

        Args:
            process_runner: Coroutine spawning a process from an argument vector
                (defaults to asyncio.create_subprocess_exec with three pipes)
            name: Label used in log messages
        """
        self._process_runner: ProcessRunner = process_runner or default_process_runner
        self.name = name
        self._current: Optional[ManagedProcess] = None

    @property
    def state(self) -> ProcessState:
        return ProcessState.RUNNING if self._current else ProcessState.IDLE

    @property
    def current(self) -> Optional[ManagedProcess]:
        return self._current

    def is_running(self) -> bool:
        return self._current is not None

    async def start(
        self,
        args: Sequence[str],
        on_natural_exit: Optional[ExitCallback] = None,
    ) -> Optional[ManagedProcess]:
        """
        Spawn a process unless one is already owned.

        Args:
            args: Full argument vector, binary first
            on_natural_exit: Called after a zero exit that was not caused by stop();
                may be a coroutine function

        Returns:
            The managed process, or None if busy or the spawn failed
        """
        if self._current is not None:
            logger.warning(f"[{self.name}] Already on execution (PID: {self._current.pid}), start rejected")
            return None

        managed = ManagedProcess(args=list(args))
        # Reserve ownership before the spawn suspends
        self._current = managed

        logger.info(f"[{self.name}] Executing: {' '.join(managed.args)}")

        try:
            managed.process = await self._process_runner(managed.args)
        except Exception as e:
            outcome = ProcessOutcome(kind=ExitKind.SPAWN_ERROR, error=e)
            self._handle_outcome(managed, outcome)
            self._resolve(managed, outcome)
            return None

        logger.info(f"[{self.name}] Process started (PID: {managed.pid})")

        managed.watcher = asyncio.create_task(
            self._watch(managed, on_natural_exit), name=f"{self.name}_watcher"
        )
        managed.watcher.add_done_callback(lambda _: self._on_watcher_done(managed))

        if managed.stop_requested:
            # stop() arrived while the spawn was pending
            self._signal_terminate(managed)

        return managed

    async def stop(self) -> Optional[ProcessOutcome]:
        """
        Terminate the owned process and wait until it has finished.

        Returns:
            The process outcome, or None if nothing was running
        """
        managed = self._current
        if managed is None:
            logger.warning(f"[{self.name}] Already stopped")
            return None

        managed.stop_requested = True
        if managed.process is not None:
            self._signal_terminate(managed)

        # Ownership is released by the watcher once the process has exited,
        # so a cancelled stop() keeps the still-running process owned.
        outcome = await managed.wait()
        logger.info(f"[{self.name}] Process exited with code {outcome.returncode}")
        return outcome

    async def cleanup(self, timeout: float = 10.0) -> None:
        """
        Stop the owned process, escalating to SIGKILL after timeout.

        Args:
            timeout: Seconds to wait for a graceful exit
        """
        managed = self._current
        if managed is None:
            return

        try:
            await asyncio.wait_for(self.stop(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[{self.name}] Process {managed.pid} did not terminate gracefully, force killing")
            if managed.process is not None:
                try:
                    managed.process.kill()
                except ProcessLookupError:
                    pass
            await managed.wait()

    def get_status(self) -> Dict:
        """
        Get current status of the supervised process.

        Returns:
            Dictionary with process status information
        """
        managed = self._current
        if managed is None:
            return {
                "state": ProcessState.IDLE,
                "pid": None,
                "args": None,
                "uptime_seconds": 0,
            }

        status = {
            "state": managed.state,
            "pid": managed.pid,
            "args": managed.args,
            "uptime_seconds": (datetime.now() - managed.started_at).total_seconds(),
            "output": managed.log_parser.get_summary(),
        }

        if managed.pid is not None:
            try:
                proc = psutil.Process(managed.pid)
                status["cpu_percent"] = proc.cpu_percent(interval=None)
                status["memory_mb"] = proc.memory_info().rss / 1024 / 1024
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                pass

        return status

    def _signal_terminate(self, managed: ManagedProcess) -> None:
        try:
            managed.process.terminate()
            logger.info(f"[{self.name}] SIGTERM sent to process {managed.pid}")
        except ProcessLookupError:
            logger.debug(f"[{self.name}] Process {managed.pid} already terminated")

    async def _watch(self, managed: ManagedProcess, on_natural_exit: Optional[ExitCallback]) -> None:
        """Wait for exit, run the natural-exit callback and resolve the completion future."""
        outcome: Optional[ProcessOutcome] = None
        try:
            outcome = await self._wait_for_exit(managed)
            self._handle_outcome(managed, outcome)

            if outcome.kind == ExitKind.NATURAL and on_natural_exit is not None:
                try:
                    result = on_natural_exit()
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"[{self.name}] Natural exit handler failed: {e}", exc_info=True)
        finally:
            if outcome is None:
                # Cancelled before the exit was seen: the process must not outlive ownership
                outcome = self._abandon(managed)
                self._handle_outcome(managed, outcome)
            self._resolve(managed, outcome)

    async def _wait_for_exit(self, managed: ManagedProcess) -> ProcessOutcome:
        """Pump output until the process exits and classify the exit."""
        process = managed.process
        pumps = [
            asyncio.create_task(self._pump(process.stdout, managed, is_stderr=False)),
            asyncio.create_task(self._pump(process.stderr, managed, is_stderr=True)),
        ]

        try:
            returncode = await process.wait()
            await asyncio.gather(*pumps)
        except Exception as e:
            logger.error(f"[{self.name}] Error while watching process {managed.pid}: {e}", exc_info=True)
            return ProcessOutcome(kind=ExitKind.ABNORMAL, returncode=process.returncode, error=e)
        finally:
            for pump in pumps:
                pump.cancel()

        if managed.stop_requested:
            kind = ExitKind.STOPPED
        elif returncode == 0:
            kind = ExitKind.NATURAL
        else:
            kind = ExitKind.ABNORMAL
        return ProcessOutcome(kind=kind, returncode=returncode)

    def _on_watcher_done(self, managed: ManagedProcess) -> None:
        # A watcher cancelled before its first step never runs its own cleanup
        if not managed.completion.done():
            outcome = self._abandon(managed)
            self._handle_outcome(managed, outcome)
            self._resolve(managed, outcome)

    def _abandon(self, managed: ManagedProcess) -> ProcessOutcome:
        process = managed.process
        if process.returncode is None:
            logger.warning(f"[{self.name}] Watcher cancelled, killing process {managed.pid}")
            try:
                process.kill()
            except ProcessLookupError:
                pass

        kind = ExitKind.STOPPED if managed.stop_requested else ExitKind.ABNORMAL
        return ProcessOutcome(kind=kind, returncode=process.returncode, error=asyncio.CancelledError())

    def _handle_outcome(self, managed: ManagedProcess, outcome: ProcessOutcome) -> None:
        """Log the outcome and release ownership."""
        if outcome.kind == ExitKind.SPAWN_ERROR:
            logger.error(f"[{self.name}] Process error: {outcome.error}")
        elif outcome.kind == ExitKind.ABNORMAL:
            logger.error(f"[{self.name}] FFmpeg failed with exit code {outcome.returncode}")
        else:
            logger.info(f"[{self.name}] FFmpeg process exited with code {outcome.returncode}")

        managed.state = ProcessState.IDLE
        if self._current is managed:
            self._current = None

    @staticmethod
    def _resolve(managed: ManagedProcess, outcome: ProcessOutcome) -> None:
        if not managed.completion.done():
            managed.completion.set_result(outcome)

    async def _pump(
        self,
        stream: Optional[asyncio.StreamReader],
        managed: ManagedProcess,
        is_stderr: bool,
    ) -> None:
        """Read a pipe until EOF and log every line."""
        if stream is None:
            return

        pending = ""
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            pending += chunk.decode("utf-8", errors="replace")
            *lines, pending = _LINE_SPLIT.split(pending)
            for line in lines:
                self._log_line(line, managed, is_stderr)

        if pending:
            self._log_line(pending, managed, is_stderr)

    def _log_line(self, line: str, managed: ManagedProcess, is_stderr: bool) -> None:
        line = line.strip()
        if not line:
            return
        if not is_stderr:
            logger.debug(f"[{self.name}] stdout: {line}")
        elif managed.log_parser.is_error_line(line):
            logger.error(f"[{self.name}] stderr: {line}")
        else:
            logger.debug(f"[{self.name}] info: {line}")
