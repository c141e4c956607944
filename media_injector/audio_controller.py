"""
Audio injection into the virtual microphone.

Plays files (optionally looped) or a live frame stream into whichever
microphone identifier the device arbitrator resolves. When file playback
ends on its own, the idle audio asset takes over so the device never goes
silent.
"""

import asyncio
import logging
from typing import Dict, Optional

from media_injector.command_builder import InjectorCommandBuilder
from media_injector.config import InjectorConfig
from media_injector.device_arbitrator import DeviceArbitrator
from media_injector.process_supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


class AudioInjectionController:
    """
    Feeds the virtual microphone.

    Device resolution happens lazily on the first play request and is cached
    by the arbitrator for the lifetime of this controller.
    """

    def __init__(
        self,
        sample_rate: int,
        config: Optional[InjectorConfig] = None,
        command_builder: Optional[InjectorCommandBuilder] = None,
        arbitrator: Optional[DeviceArbitrator] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        idle_asset: Optional[str] = None,
    ):
        """
        Initialize audio controller.

        Args:
            sample_rate: Rate of raw frames pushed through play_stdin()
            config: Injector configuration (creates default if not provided)
            command_builder: Command builder (creates default if not provided)
            arbitrator: Microphone arbitrator (creates default if not provided)
            supervisor: Process supervisor (creates default if not provided)
            idle_asset: Audio played after natural end of file playback
        """
        if config is None:
            from media_injector.config import get_config

            config = get_config()

        self.config = config
        self.sample_rate = sample_rate
        self.command_builder = command_builder or InjectorCommandBuilder(config)
        self.arbitrator = arbitrator or DeviceArbitrator(
            self.command_builder,
            candidates=config.microphone_devices,
            probe_timeout=config.probe_timeout,
        )
        self.supervisor = supervisor or ProcessSupervisor(name="audio")
        self.idle_asset = idle_asset or config.idle_audio_path

    async def play(self, path: str, loop: bool = False) -> bool:
        """
        Play a media file into the microphone.

        Args:
            path: File to play
            loop: Loop the file indefinitely

        Returns:
            True if a playback process was started
        """
        device = await self.arbitrator.resolve()
        if not device:
            logger.error("Cannot play: no working microphone device available")
            return False

        cmd = self.command_builder.build_audio_file_command(path, loop, device)

        logger.info(f"Playing {path} to device: {device}")
        managed = await self.supervisor.start(cmd, self.play_idle)
        return managed is not None

    async def play_idle(self) -> bool:
        """Play the idle asset once; its own natural end chains another play."""
        logger.info(f"Playing idle audio: {self.idle_asset}")
        return await self.play(self.idle_asset, loop=False)

    async def play_stdin(self) -> Optional[asyncio.StreamWriter]:
        """
        Start a process reading raw mono f32le frames and return its input sink.

        The sink is returned as soon as the process is spawned. Closing it ends
        the stream without any idle fallback.

        Returns:
            Writable sink, or None if no device is available or the start failed
        """
        device = await self.arbitrator.resolve()
        if not device:
            logger.error("Cannot create stdin stream: no working microphone device available")
            return None

        cmd = self.command_builder.build_audio_stream_command(device, self.sample_rate)

        logger.info(f"Creating stdin stream for device: {device}")
        managed = await self.supervisor.start(cmd, self._on_stream_end)
        if managed is None:
            return None
        return managed.stdin

    async def stop(self) -> None:
        await self.supervisor.stop()

    async def cleanup(self) -> None:
        """Stop playback, force killing ffmpeg if it ignores SIGTERM."""
        await self.supervisor.cleanup(self.config.stop_timeout)

    def is_running(self) -> bool:
        return self.supervisor.is_running()

    def get_status(self) -> Dict:
        status = self.supervisor.get_status()
        status["device"] = self.arbitrator.resolved_device
        status["sample_rate"] = self.sample_rate
        return status

    @staticmethod
    def _on_stream_end() -> None:
        logger.warning("Live audio stream ended")
