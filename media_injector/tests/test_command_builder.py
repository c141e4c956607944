"""
Tests for FFmpeg command builder.
"""

import pytest

from media_injector.command_builder import InjectorCommandBuilder
from media_injector.config import InjectorConfig


class TestInjectorCommandBuilder:
    """Test command construction."""

    def test_initialization(self, test_config: InjectorConfig):
        """Test command builder initialization."""
        builder = InjectorCommandBuilder(test_config)

        assert builder.config == test_config

    def test_global_options(self, command_builder: InjectorCommandBuilder):
        """Test that every command starts with the binary and global options."""
        cmd = command_builder.build_probe_command("virtual_mic")

        assert cmd[:4] == ["ffmpeg", "-hide_banner", "-loglevel", "info"]

    def test_custom_binary(self, test_config: InjectorConfig):
        """Test using a custom ffmpeg path."""
        config = test_config.model_copy(update={"ffmpeg_binary": "/opt/ffmpeg/bin/ffmpeg"})
        builder = InjectorCommandBuilder(config)

        cmd = builder.build_video_file_command("clip.mp4", loop=False)

        assert cmd[0] == "/opt/ffmpeg/bin/ffmpeg"

    def test_probe_command(self, command_builder: InjectorCommandBuilder):
        """Test the microphone probe command."""
        cmd = command_builder.build_probe_command("pulse:virtual_mic.monitor")

        assert cmd[-9:] == [
            "-f", "pulse",
            "-i", "pulse:virtual_mic.monitor",
            "-t", "0.1",
            "-f", "null",
            "-",
        ]

    def test_audio_file_command_looped(self, command_builder: InjectorCommandBuilder):
        """Test looped audio file playback."""
        cmd = command_builder.build_audio_file_command("song.mp3", True, "virtual_mic")

        loop_index = cmd.index("-stream_loop")
        assert cmd[loop_index + 1] == "-1"
        # Looping must precede the input it applies to
        assert loop_index < cmd.index("-re") < cmd.index("-i")
        assert cmd[-5:] == ["-f", "alsa", "-acodec", "pcm_s16le", "virtual_mic"]

    def test_audio_file_command_once(self, command_builder: InjectorCommandBuilder):
        """Test one-shot audio file playback."""
        cmd = command_builder.build_audio_file_command("song.mp3", False, "virtual_mic")

        assert "-stream_loop" not in cmd
        assert "-re" in cmd

    def test_audio_stream_command(self, command_builder: InjectorCommandBuilder):
        """Test the stdin stream command uses the configured rate by default."""
        cmd = command_builder.build_audio_stream_command("virtual_mic")

        assert " ".join(cmd).endswith(
            "-f f32le -ar 16000 -ac 1 -i - -f pulse -acodec pcm_s16le virtual_mic"
        )

    def test_audio_stream_command_custom_rate(self, command_builder: InjectorCommandBuilder):
        """Test the stdin stream command with an explicit rate."""
        cmd = command_builder.build_audio_stream_command("virtual_mic", sample_rate=24000)

        assert cmd[cmd.index("-ar") + 1] == "24000"

    def test_video_file_command(self, command_builder: InjectorCommandBuilder):
        """Test video playback into the camera."""
        cmd = command_builder.build_video_file_command("clip.mp4", True, fps=30)

        assert " ".join(cmd).endswith(
            "-stream_loop -1 -re -i clip.mp4 "
            "-f v4l2 -vcodec rawvideo -s 640x360 -r 30 /dev/video10"
        )

    def test_video_file_command_default_fps(self, command_builder: InjectorCommandBuilder):
        """Test video playback with the configured frame rate."""
        cmd = command_builder.build_video_file_command("clip.mp4", False)

        assert cmd[cmd.index("-r") + 1] == "25"

    def test_empty_path_raises(self, command_builder: InjectorCommandBuilder):
        """Test that an empty path is rejected."""
        with pytest.raises(ValueError, match="path cannot be empty"):
            command_builder.build_audio_file_command("  ", False, "virtual_mic")

        with pytest.raises(ValueError, match="path cannot be empty"):
            command_builder.build_video_file_command("", False)

    def test_empty_device_raises(self, command_builder: InjectorCommandBuilder):
        """Test that an empty device is rejected."""
        with pytest.raises(ValueError, match="device cannot be empty"):
            command_builder.build_audio_stream_command("")

        with pytest.raises(ValueError, match="device cannot be empty"):
            command_builder.build_probe_command("")

