"""
Video injection into the v4l2 loopback camera.

The camera path is fixed, so there is no arbitration step. Natural end of a
file playback switches to the idle video, looped.
"""

import logging
from typing import Dict, Optional

from media_injector.command_builder import InjectorCommandBuilder
from media_injector.config import InjectorConfig
from media_injector.process_supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


class VideoInjectionController:
    """Feeds the virtual camera at a fixed frame size."""

    def __init__(
        self,
        fps: Optional[int] = None,
        config: Optional[InjectorConfig] = None,
        command_builder: Optional[InjectorCommandBuilder] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        idle_asset: Optional[str] = None,
    ):
        if config is None:
            from media_injector.config import get_config

            config = get_config()

        self.config = config
        self.fps = fps or config.video_fps
        self.command_builder = command_builder or InjectorCommandBuilder(config)
        self.supervisor = supervisor or ProcessSupervisor(name="video")
        self.idle_asset = idle_asset or config.idle_video_path

    async def play(self, path: str, loop: bool = False) -> bool:
        """
        Play a video file into the camera device.

        Args:
            path: File to play
            loop: Loop the file indefinitely

        Returns:
            True if a playback process was started
        """
        cmd = self.command_builder.build_video_file_command(path, loop, self.fps)

        logger.info(f"Playing {path} to camera: {self.config.camera_device}")
        managed = await self.supervisor.start(cmd, self.play_idle)
        return managed is not None

    async def play_idle(self) -> bool:
        logger.info(f"Playing idle video: {self.idle_asset}")
        return await self.play(self.idle_asset, loop=True)

    async def stop(self) -> None:
        await self.supervisor.stop()

    async def cleanup(self) -> None:
        """Stop playback, force killing ffmpeg if it ignores SIGTERM."""
        await self.supervisor.cleanup(self.config.stop_timeout)

    def is_running(self) -> bool:
        return self.supervisor.is_running()

    def get_status(self) -> Dict:
        status = self.supervisor.get_status()
        status["device"] = self.config.camera_device
        status["fps"] = self.fps
        return status
