"""
FFmpeg stderr classifier.

Sorts ffmpeg output lines into error-looking and informational ones so the
supervisor can log them at the right level. Nothing here drives process
control; the exit code alone decides what happens to a process.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    """FFmpeg log levels."""

    DEBUG = "debug"
    VERBOSE = "verbose"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"
    PANIC = "panic"


class ErrorType(str, Enum):
    """Kinds of failures seen when writing into virtual devices."""

    DEVICE_UNAVAILABLE = "device_unavailable"
    DEVICE_BUSY = "device_busy"
    DEVICE_FORMAT = "device_format"
    CONNECTION_FAILED = "connection_failed"
    FILE_NOT_FOUND = "file_not_found"
    INVALID_INPUT = "invalid_input"
    IO_ERROR = "io_error"
    UNKNOWN = "unknown"


@dataclass
class FFmpegError:
    """Represents an FFmpeg error or warning line."""

    timestamp: datetime
    level: LogLevel
    error_type: ErrorType
    message: str
    raw_line: str


@dataclass
class FFmpegProgress:
    """Last progress figures reported by FFmpeg."""

    time: str = "00:00:00.00"
    speed: float = 0.0
    last_update: Optional[datetime] = None


class FFmpegLogParser:
    """
    Classifies FFmpeg stderr lines.

    A line is error-looking when it carries an error/fatal/panic marker or
    the word "error"; the matching pattern group names the likely cause.
    """

    ERROR_PATTERNS = {
        ErrorType.DEVICE_UNAVAILABLE: [
            r"cannot open audio device",
            r"No such (?:device|entity)",
            r"Could not open (?:video|audio) device",
        ],
        ErrorType.DEVICE_BUSY: [
            r"Device or resource busy",
        ],
        ErrorType.DEVICE_FORMAT: [
            r"ioctl\(VIDIOC_\w+\)",
            r"Could not write header",
            r"incorrect codec parameters",
        ],
        ErrorType.CONNECTION_FAILED: [
            r"Connection (?:refused|timed out|reset)",
            r"pa_context_connect\(\) failed",
        ],
        ErrorType.FILE_NOT_FOUND: [
            r"No such file or directory",
            r"does not exist",
        ],
        ErrorType.INVALID_INPUT: [
            r"Invalid data found when processing input",
            r"Error opening input",
        ],
        ErrorType.IO_ERROR: [
            r"I/O error",
            r"Input/output error",
            r"Broken pipe",
        ],
    }

    PROGRESS_PATTERN = re.compile(
        r"time=\s*([\d:.]+)\s+.*?speed=\s*([\d.]+)x"
    )

    COMPILED_PATTERNS: Dict[ErrorType, List[re.Pattern]] = {}

    @classmethod
    def _compile_patterns(cls) -> None:
        """Compile regex patterns for error detection."""
        if not cls.COMPILED_PATTERNS:
            for error_type, patterns in cls.ERROR_PATTERNS.items():
                cls.COMPILED_PATTERNS[error_type] = [
                    re.compile(pattern, re.IGNORECASE) for pattern in patterns
                ]

    def __init__(self):
        self._compile_patterns()
        self.progress = FFmpegProgress()
        self.errors: List[FFmpegError] = []
        self.warnings: List[FFmpegError] = []
        self._seen_errors: Set[str] = set()

    def parse_line(self, line: str) -> Optional[FFmpegError]:
        """
        Parse a single line of FFmpeg output.

        Args:
            line: Line of FFmpeg stderr output

        Returns:
            FFmpegError if the line looks like an error or warning, None otherwise
        """
        line = line.strip()
        if not line:
            return None

        self._update_progress(line)

        level = self._get_log_level(line)
        if level not in (LogLevel.WARNING, LogLevel.ERROR, LogLevel.FATAL, LogLevel.PANIC):
            # Error patterns still count when ffmpeg omits the level marker
            error_type = self._match_error_type(line)
            if error_type is None:
                return None
            level = LogLevel.ERROR
        else:
            error_type = self._match_error_type(line) or ErrorType.UNKNOWN

        error = FFmpegError(
            timestamp=datetime.now(),
            level=level,
            error_type=error_type,
            message=self._extract_message(line),
            raw_line=line,
        )

        error_key = f"{error.error_type}:{error.message[:50]}"
        if error_key not in self._seen_errors:
            self._seen_errors.add(error_key)
            if error.level == LogLevel.WARNING:
                self.warnings.append(error)
            else:
                self.errors.append(error)

        return error

    def is_error_line(self, line: str) -> bool:
        """Return True when a line should be logged as an error."""
        error = self.parse_line(line)
        return error is not None and error.level != LogLevel.WARNING

    def _update_progress(self, line: str) -> None:
        match = self.PROGRESS_PATTERN.search(line)
        if match:
            try:
                self.progress.time = match.group(1)
                self.progress.speed = float(match.group(2))
                self.progress.last_update = datetime.now()
            except ValueError as e:
                logger.debug(f"Failed to parse progress from line: {e}")

    def _match_error_type(self, line: str) -> Optional[ErrorType]:
        for error_type, patterns in self.COMPILED_PATTERNS.items():
            for pattern in patterns:
                if pattern.search(line):
                    return error_type
        return None

    def _get_log_level(self, line: str) -> LogLevel:
        """Determine log level from line content."""
        line_lower = line.lower()

        if "[fatal]" in line_lower or "fatal error" in line_lower:
            return LogLevel.FATAL
        elif "[panic]" in line_lower:
            return LogLevel.PANIC
        elif "[error]" in line_lower or "error" in line_lower or "failed" in line_lower:
            return LogLevel.ERROR
        elif "[warning]" in line_lower or "warning" in line_lower:
            return LogLevel.WARNING
        elif "[verbose]" in line_lower:
            return LogLevel.VERBOSE
        elif "[debug]" in line_lower:
            return LogLevel.DEBUG
        else:
            return LogLevel.INFO

    def _extract_message(self, line: str) -> str:
        """Strip ffmpeg context prefixes such as ``[alsa @ 0x55d1]``."""
        message = re.sub(r"^\[[^\]]*\]\s*", "", line)

        if len(message) > 200:
            message = message[:197] + "..."

        return message.strip()

    def get_summary(self) -> Dict:
        """
        Get counts and last progress figures.

        Returns:
            Dictionary suitable for status reporting
        """
        return {
            "time": self.progress.time,
            "speed": self.progress.speed,
            "total_errors": len(self.errors),
            "total_warnings": len(self.warnings),
            "last_error": self.errors[-1].message if self.errors else None,
        }
