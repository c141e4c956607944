"""
Media injector configuration.

Device identifiers, fixed probe/geometry constants and environment-driven
settings for the ffmpeg processes that feed the virtual microphone and camera.
"""

from typing import List

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

# Microphone identifiers in order of preference
MICROPHONE_DEVICES: List[str] = [
    "virtual_mic",  # Primary target
    "pulse:virtual_mic",  # Alternative naming
    "pulse:virtual_mic.monitor",  # Monitor source
    "pulse:default",  # Fallback to default
]

# v4l2loopback device
CAMERA_DEVICE = "/dev/video10"

VIDEO_WIDTH = 640
VIDEO_HEIGHT = 360

# Device probing
PROBE_TIMEOUT_SECONDS = 3.0
PROBE_DURATION_SECONDS = 0.1
PROBE_TIMEOUT_CODE = 124  # Same code as coreutils `timeout`
PROBE_SPAWN_FAILURE_CODE = 1


class InjectorConfig(BaseSettings):
    """Media injector configuration from environment variables."""

    # FFmpeg binary
    ffmpeg_binary: str = Field(
        default="ffmpeg",
        description="Path to FFmpeg binary",
    )

    log_level: str = Field(
        default="info",
        description="FFmpeg log level (quiet, panic, fatal, error, warning, info, verbose, debug)",
    )

    # Devices
    microphone_devices: List[str] = Field(
        default_factory=lambda: list(MICROPHONE_DEVICES),
        description="Candidate microphone identifiers, most preferred first",
    )

    camera_device: str = Field(
        default=CAMERA_DEVICE,
        description="Path of the v4l2 loopback camera device",
    )

    # Formats
    probe_input_format: str = Field(
        default="pulse",
        description="Input format used when probing microphone candidates",
    )

    file_output_format: str = Field(
        default="alsa",
        description="Output format for file playback into the microphone",
    )

    stream_output_format: str = Field(
        default="pulse",
        description="Output format for live stream playback into the microphone",
    )

    audio_codec: str = Field(
        default="pcm_s16le",
        description="PCM codec expected by the microphone device",
    )

    sample_rate: int = Field(
        default=48000,
        description="Sample rate of raw frames written to the live stream sink",
        ge=8000,
        le=192000,
    )

    video_fps: int = Field(
        default=30,
        description="Frame rate written to the camera device",
        ge=1,
        le=60,
    )

    # Idle assets
    idle_audio_path: str = Field(
        default="../silence.opus",
        description="Audio played when file playback ends naturally",
    )

    idle_video_path: str = Field(
        default="../branding.mp4",
        description="Video looped when file playback ends naturally",
    )

    # Process management
    probe_timeout: float = Field(
        default=PROBE_TIMEOUT_SECONDS,
        description="Wall-clock limit for one microphone probe (seconds)",
        gt=0.0,
        le=30.0,
    )

    stop_timeout: float = Field(
        default=10.0,
        description="Time allowed for a graceful stop during cleanup before SIGKILL (seconds)",
        gt=0.0,
        le=120.0,
    )

    # Application logging
    app_log_level: str = Field(
        default="INFO",
        description="Python log level for the injector itself",
    )

    app_log_file: str = Field(
        default="",
        description="Optional JSON log file path (empty disables file logging)",
    )

    model_config = ConfigDict(
        env_prefix="INJECTOR_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def frame_size(self) -> str:
        """Camera frame geometry in ffmpeg ``WxH`` notation."""
        return f"{VIDEO_WIDTH}x{VIDEO_HEIGHT}"


def get_config() -> InjectorConfig:
    """
    Get injector configuration from environment variables.

    Returns:
        InjectorConfig: Configuration instance
    """
    return InjectorConfig()
