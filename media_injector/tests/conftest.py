"""
Pytest configuration and fixtures for media injector tests.

External processes are replaced by FakeProcess objects handed out by a
FakeRunner, injected where the real code would call
asyncio.create_subprocess_exec.
"""

import asyncio
from typing import List, Optional, Sequence, Union

import pytest

from media_injector.command_builder import InjectorCommandBuilder
from media_injector.config import InjectorConfig
from media_injector.log_parser import FFmpegLogParser

RUNNING = None  # Runner outcome: process keeps running until told otherwise


class FakeSink:
    """Stands in for the asyncio.StreamWriter of a process stdin."""

    def __init__(self, process: "FakeProcess"):
        self._process = process
        self.data = bytearray()
        self.closed = False

    def write(self, data: bytes) -> None:
        if self.closed:
            raise BrokenPipeError("sink closed")
        self.data.extend(data)

    async def drain(self) -> None:
        return None

    def is_closing(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.closed = True
        if self._process.exit_on_stdin_close:
            self._process.finish(0)


class FakeProcess:
    """Minimal asyncio.subprocess.Process look-alike."""

    def __init__(
        self,
        pid: int,
        terminate_code: Optional[int] = 255,
        exit_on_stdin_close: bool = True,
    ):
        self.pid = pid
        self.returncode: Optional[int] = None
        self.stdin = FakeSink(self)
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.terminate_code = terminate_code
        self.exit_on_stdin_close = exit_on_stdin_close
        self.terminate_calls = 0
        self.kill_calls = 0
        self._exit: asyncio.Future = asyncio.get_running_loop().create_future()

    def emit_stderr(self, text: str) -> None:
        self.stderr.feed_data(text.encode("utf-8"))

    def emit_stdout(self, text: str) -> None:
        self.stdout.feed_data(text.encode("utf-8"))

    def finish(self, code: int = 0) -> None:
        if self._exit.done():
            return
        self.returncode = code
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exit.set_result(code)

    def terminate(self) -> None:
        if self._exit.done():
            raise ProcessLookupError
        self.terminate_calls += 1
        # terminate_code None simulates a process ignoring SIGTERM
        if self.terminate_code is not None:
            self.finish(self.terminate_code)

    def kill(self) -> None:
        if self._exit.done():
            raise ProcessLookupError
        self.kill_calls += 1
        self.finish(-9)

    async def wait(self) -> int:
        return await asyncio.shield(self._exit)


class FakeRunner:
    """
    Process runner handing out FakeProcess objects.

    Each call consumes the next outcome: an int finishes the process
    immediately with that code, an exception is raised as a spawn failure,
    RUNNING leaves the process alive. Once the list is exhausted, processes
    keep running.
    """

    def __init__(
        self,
        outcomes: Optional[Sequence[Union[int, BaseException, None]]] = None,
        terminate_code: Optional[int] = 255,
    ):
        self.outcomes = list(outcomes or [])
        self.terminate_code = terminate_code
        self.commands: List[List[str]] = []
        self.processes: List[FakeProcess] = []

    async def __call__(self, cmd: Sequence[str]) -> FakeProcess:
        self.commands.append(list(cmd))
        outcome = self.outcomes.pop(0) if self.outcomes else RUNNING

        if isinstance(outcome, BaseException):
            raise outcome

        process = FakeProcess(pid=4000 + len(self.commands), terminate_code=self.terminate_code)
        self.processes.append(process)

        if outcome is not RUNNING:
            process.finish(outcome)
        return process

    @property
    def last(self) -> FakeProcess:
        return self.processes[-1]


@pytest.fixture
def test_config() -> InjectorConfig:
    """Create a test configuration."""
    return InjectorConfig(
        ffmpeg_binary="ffmpeg",
        log_level="info",
        microphone_devices=["virtual_mic", "pulse:virtual_mic"],
        camera_device="/dev/video10",
        sample_rate=16000,
        video_fps=25,
        idle_audio_path="/assets/silence.opus",
        idle_video_path="/assets/branding.mp4",
        probe_timeout=3.0,
    )


@pytest.fixture
def command_builder(test_config: InjectorConfig) -> InjectorCommandBuilder:
    """Create a command builder for testing."""
    return InjectorCommandBuilder(test_config)


@pytest.fixture
def log_parser() -> FFmpegLogParser:
    """Create a log parser for testing."""
    return FFmpegLogParser()


@pytest.fixture
def sample_stderr_lines() -> list:
    """Sample ffmpeg stderr lines seen when writing to virtual devices."""
    return [
        "[alsa @ 0x55d1c2e0] cannot open audio device virtual_mic (No such file or directory)",
        "[video4linux2,v4l2 @ 0x5581ac5f8ac0] ioctl(VIDIOC_G_FMT): Invalid argument",
        "[pulse @ 0x561f] pa_context_connect() failed: Connection refused",
        "clip.mp4: No such file or directory",
        "Error opening input files: Invalid data found when processing input",
    ]


@pytest.fixture
def make_runner():
    """Factory for FakeRunner instances."""
    return FakeRunner
