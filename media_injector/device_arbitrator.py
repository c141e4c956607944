"""
Microphone device arbitration.

Finds the first microphone identifier ffmpeg can actually read from on this
host, so that audio subsystem naming (ALSA vs PulseAudio aliases, monitor
sources) does not have to be hardcoded.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from media_injector.command_builder import InjectorCommandBuilder
from media_injector.config import (
    MICROPHONE_DEVICES,
    PROBE_SPAWN_FAILURE_CODE,
    PROBE_TIMEOUT_CODE,
    PROBE_TIMEOUT_SECONDS,
)
from media_injector.process_supervisor import ProcessRunner

logger = logging.getLogger(__name__)

# Time allowed for a terminated probe to exit before SIGKILL
PROBE_REAP_TIMEOUT_SECONDS = 1.0


async def default_probe_runner(cmd: Sequence[str]) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )


class DeviceArbitrator:
    """
    Resolves a working microphone identifier from an ordered candidate list.

    The first successful candidate is cached for the lifetime of the
    instance. A failed resolution is not cached, so the next call probes the
    whole list again.

    A probe that is still running when the timeout fires counts as a
    success, the same as a clean exit.
    """

    def __init__(
        self,
        command_builder: InjectorCommandBuilder,
        candidates: Optional[Sequence[str]] = None,
        probe_runner: Optional[ProcessRunner] = None,
        probe_timeout: float = PROBE_TIMEOUT_SECONDS,
    ):
        """
        Initialize arbitrator.

        Args:
            command_builder: Builder for the probe commands
            candidates: Identifiers, most preferred first (defaults to MICROPHONE_DEVICES)
            probe_runner: Coroutine spawning a probe process
            probe_timeout: Seconds before a running probe is terminated
        """
        self.command_builder = command_builder
        self.candidates: List[str] = list(candidates if candidates is not None else MICROPHONE_DEVICES)
        self._probe_runner: ProcessRunner = probe_runner or default_probe_runner
        self.probe_timeout = probe_timeout
        self._resolved_device: Optional[str] = None

    @property
    def resolved_device(self) -> Optional[str]:
        return self._resolved_device

    async def resolve(self) -> Optional[str]:
        """
        Return the first usable candidate.

        Returns:
            Device identifier, or None if no candidate works
        """
        if self._resolved_device:
            return self._resolved_device

        logger.info("Testing available microphone devices...")

        for device in self.candidates:
            logger.info(f"Testing device: {device}")
            code = await self.probe(device)

            if code in (0, PROBE_TIMEOUT_CODE):
                logger.info(f"Device {device} works (code {code})")
                self._resolved_device = device
                return device

            logger.info(f"Device {device} failed with code {code}")

        logger.error("No working microphone device found")
        return None

    async def probe(self, device: str) -> int:
        """
        Read a short sample from one candidate.

        Args:
            device: Candidate identifier

        Returns:
            Exit code of the probe, PROBE_TIMEOUT_CODE if it had to be
            terminated, or PROBE_SPAWN_FAILURE_CODE if it could not start
        """
        cmd = self.command_builder.build_probe_command(device)

        try:
            process = await self._probe_runner(cmd)
        except Exception as e:
            logger.debug(f"Probe for {device} could not start: {e}")
            return PROBE_SPAWN_FAILURE_CODE

        try:
            return await asyncio.wait_for(process.wait(), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            logger.debug(f"Probe for {device} timed out after {self.probe_timeout}s")
            await self._terminate(process)
            return PROBE_TIMEOUT_CODE

    @staticmethod
    async def _terminate(process: asyncio.subprocess.Process) -> None:
        try:
            process.terminate()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=PROBE_REAP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
