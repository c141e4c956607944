"""Command-line entry point.

Usage:
    python -m media_injector probe
    python -m media_injector audio clip.mp3 --loop
    python -m media_injector video clip.mp4 --loop
    some_producer | python -m media_injector stream --sample-rate 48000
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from media_injector.audio_controller import AudioInjectionController
from media_injector.config import InjectorConfig, get_config
from media_injector.logging_setup import setup_logging
from media_injector.video_controller import VideoInjectionController

logger = logging.getLogger("media_injector.cli")

DEFAULT_CHUNK_SIZE = 4096


async def run_probe(config: InjectorConfig) -> int:
    controller = AudioInjectionController(sample_rate=config.sample_rate, config=config)
    device = await controller.arbitrator.resolve()
    if not device:
        return 1

    print(device)
    return 0


async def run_audio(config: InjectorConfig, path: str, loop: bool, sample_rate: int) -> int:
    controller = AudioInjectionController(sample_rate=sample_rate, config=config)
    if not await controller.play(path, loop):
        return 1

    try:
        await asyncio.Event().wait()  # Until interrupted
    finally:
        await controller.cleanup()
    return 0


async def run_video(config: InjectorConfig, path: str, loop: bool, fps: int) -> int:
    controller = VideoInjectionController(fps=fps, config=config)
    if not await controller.play(path, loop):
        return 1

    try:
        await asyncio.Event().wait()
    finally:
        await controller.cleanup()
    return 0


async def run_stream(config: InjectorConfig, sample_rate: int, chunk_size: int) -> int:
    """Forward raw f32le mono frames from stdin into the microphone."""
    controller = AudioInjectionController(sample_rate=sample_rate, config=config)
    sink = await controller.play_stdin()
    if sink is None:
        return 1

    managed = controller.supervisor.current
    source = sys.stdin.buffer

    try:
        while True:
            chunk = await asyncio.to_thread(source.read, chunk_size)
            if not chunk:
                break
            sink.write(chunk)
            await sink.drain()

        sink.close()
        if managed is not None:
            outcome = await managed.wait()
            logger.info(f"Stream finished: {outcome.kind.value} (code {outcome.returncode})")
    except (BrokenPipeError, ConnectionResetError) as e:
        logger.error(f"Stream sink closed by ffmpeg: {e}")
        return 1
    finally:
        await controller.cleanup()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="media-injector",
        description="Inject media into the virtual microphone and camera devices",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--log-file",
        help="Write JSON logs to this file as well",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("probe", help="Resolve and print the working microphone device")

    audio = subparsers.add_parser("audio", help="Play a file into the microphone")
    audio.add_argument("path", help="Media file to play")
    audio.add_argument("--loop", action="store_true", help="Loop the file indefinitely")
    audio.add_argument("--sample-rate", type=int, help="Sample rate (default: from config)")

    video = subparsers.add_parser("video", help="Play a file into the camera")
    video.add_argument("path", help="Video file to play")
    video.add_argument("--loop", action="store_true", help="Loop the file indefinitely")
    video.add_argument("--fps", type=int, help="Frames per second (default: from config)")

    stream = subparsers.add_parser("stream", help="Pipe raw f32le mono frames from stdin into the microphone")
    stream.add_argument("--sample-rate", type=int, help="Sample rate of the frames (default: from config)")
    stream.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help=f"Bytes read from stdin per write (default: {DEFAULT_CHUNK_SIZE})",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = get_config()

    setup_logging(
        "DEBUG" if args.verbose else config.app_log_level,
        args.log_file or config.app_log_file or None,
    )

    if args.command == "probe":
        coro = run_probe(config)
    elif args.command == "audio":
        coro = run_audio(config, args.path, args.loop, args.sample_rate or config.sample_rate)
    elif args.command == "video":
        coro = run_video(config, args.path, args.loop, args.fps or config.video_fps)
    else:
        coro = run_stream(config, args.sample_rate or config.sample_rate, args.chunk_size)

    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
