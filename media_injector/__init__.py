"""
Media Injector

Feeds pre-recorded files or live audio frames into a virtual microphone and
a v4l2 loopback camera, so a meeting client sees them as real devices.

Version: 1.0.0
"""

__version__ = "1.0.0"

from media_injector.audio_controller import AudioInjectionController
from media_injector.command_builder import InjectorCommandBuilder
from media_injector.config import InjectorConfig
from media_injector.device_arbitrator import DeviceArbitrator
from media_injector.log_parser import FFmpegLogParser
from media_injector.process_supervisor import (
    ExitKind,
    ManagedProcess,
    ProcessOutcome,
    ProcessState,
    ProcessSupervisor,
)
from media_injector.video_controller import VideoInjectionController

__all__ = [
    "AudioInjectionController",
    "DeviceArbitrator",
    "ExitKind",
    "FFmpegLogParser",
    "InjectorCommandBuilder",
    "InjectorConfig",
    "ManagedProcess",
    "ProcessOutcome",
    "ProcessState",
    "ProcessSupervisor",
    "VideoInjectionController",
]
