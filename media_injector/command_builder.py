"""
FFmpeg command builder.

Constructs the argument vectors used to probe microphone candidates and to
feed files or raw frames into the virtual microphone and camera devices.
"""

import logging
from typing import List, Optional

from media_injector.config import PROBE_DURATION_SECONDS, InjectorConfig

logger = logging.getLogger(__name__)


class InjectorCommandBuilder:
    """
    Builds FFmpeg commands for device probing and media injection.

    Every command starts with the configured binary, so the result can be
    handed to the process runner unchanged.
    """

    def __init__(self, config: InjectorConfig):
        """
        Initialize command builder.

        Args:
            config: Injector configuration
        """
        self.config = config

    def build_probe_command(self, device: str) -> List[str]:
        """
        Build a short capture that reads from a microphone candidate and discards it.

        Args:
            device: Candidate microphone identifier

        Returns:
            List of command arguments for subprocess
        """
        if not device:
            raise ValueError("device cannot be empty")

        cmd = [self.config.ffmpeg_binary]
        cmd.extend(self._build_global_options())
        cmd.extend([
            "-f", self.config.probe_input_format,
            "-i", device,
            "-t", str(PROBE_DURATION_SECONDS),
            "-f", "null",
            "-",
        ])
        return cmd

    def build_audio_file_command(self, path: str, loop: bool, device: str) -> List[str]:
        """
        Build command playing an audio (or audio/video) file into the microphone.

        Args:
            path: Media file to play
            loop: Loop the file indefinitely
            device: Resolved microphone identifier

        Returns:
            List of command arguments for subprocess

        Raises:
            ValueError: If path or device is empty
        """
        self._validate_path(path)
        if not device:
            raise ValueError("device cannot be empty")

        cmd = [self.config.ffmpeg_binary]
        cmd.extend(self._build_global_options())
        cmd.extend(self._build_file_input(path, loop))
        cmd.extend([
            "-f", self.config.file_output_format,
            "-acodec", self.config.audio_codec,
            device,
        ])

        logger.debug(f"Built audio file command: {' '.join(cmd)}")
        return cmd

    def build_audio_stream_command(self, device: str, sample_rate: Optional[int] = None) -> List[str]:
        """
        Build command reading raw mono f32le frames from stdin into the microphone.

        Args:
            device: Resolved microphone identifier
            sample_rate: Rate of the incoming frames (defaults to config)

        Returns:
            List of command arguments for subprocess
        """
        if not device:
            raise ValueError("device cannot be empty")

        sample_rate = sample_rate or self.config.sample_rate

        cmd = [self.config.ffmpeg_binary]
        cmd.extend(self._build_global_options())
        cmd.extend([
            "-f", "f32le",
            "-ar", str(sample_rate),
            "-ac", "1",
            "-i", "-",  # Frames arrive on stdin
            "-f", self.config.stream_output_format,
            "-acodec", self.config.audio_codec,
            device,
        ])

        logger.debug(f"Built audio stream command: {' '.join(cmd)}")
        return cmd

    def build_video_file_command(self, path: str, loop: bool, fps: Optional[int] = None) -> List[str]:
        """
        Build command playing a video file into the camera device.

        Args:
            path: Video file to play
            loop: Loop the file indefinitely
            fps: Output frame rate (defaults to config)

        Returns:
            List of command arguments for subprocess

        Raises:
            ValueError: If path is empty
        """
        self._validate_path(path)
        fps = fps or self.config.video_fps

        cmd = [self.config.ffmpeg_binary]
        cmd.extend(self._build_global_options())
        cmd.extend(self._build_file_input(path, loop))
        cmd.extend([
            "-f", "v4l2",
            "-vcodec", "rawvideo",
            "-s", self.config.frame_size,
            "-r", str(fps),
            self.config.camera_device,
        ])

        logger.debug(f"Built video file command: {' '.join(cmd)}")
        return cmd

    def _build_global_options(self) -> List[str]:
        """Build global FFmpeg options."""
        return [
            "-hide_banner",
            "-loglevel",
            self.config.log_level,
        ]

    def _build_file_input(self, path: str, loop: bool) -> List[str]:
        """Build file input options, paced at native rate."""
        options = []
        if loop:
            options.extend(["-stream_loop", "-1"])  # Loop indefinitely
        options.extend(["-re", "-i", path])
        return options

    @staticmethod
    def _validate_path(path: str) -> None:
        if not path or not path.strip():
            raise ValueError("path cannot be empty")

