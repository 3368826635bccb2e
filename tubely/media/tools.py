from __future__ import annotations

import json
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from tubely.core.config import Settings
from tubely.core.logging import get_logger
from tubely.services.errors import NormalizeFailed, ProbeFailed

from .probe import ProbeResult, parse_probe_output

FASTSTART_SUFFIX = ".processing"


def faststart_output_path(path: Path) -> Path:
    return path.with_name(path.name + FASTSTART_SUFFIX)


class MediaTool(ABC):
    """The external media operations the upload pipeline depends on."""

    @abstractmethod
    def probe(self, path: Path) -> ProbeResult: ...

    @abstractmethod
    def normalize(self, path: Path) -> Path: ...


class FFmpegMediaTool(MediaTool):
    """Runs the real ``ffprobe``/``ffmpeg`` binaries as subprocesses."""

    def __init__(
        self,
        *,
        ffprobe_binary: str = "ffprobe",
        ffmpeg_binary: str = "ffmpeg",
        timeout_s: Optional[float] = None,
    ):
        self.ffprobe_binary = ffprobe_binary
        self.ffmpeg_binary = ffmpeg_binary
        self.timeout_s = timeout_s
        self.logger = get_logger(component="media_tool")

    def probe(self, path: Path) -> ProbeResult:
        try:
            raw = run_ffprobe(path, binary=self.ffprobe_binary, timeout_s=self.timeout_s)
        except FileNotFoundError as exc:
            raise ProbeFailed(f"{self.ffprobe_binary} not found") from exc
        except subprocess.CalledProcessError as exc:
            self.logger.error("ffprobe_failed", path=str(path), returncode=exc.returncode, stderr=_stderr(exc))
            raise ProbeFailed("ffprobe exited with an error") from exc
        except subprocess.TimeoutExpired as exc:
            raise ProbeFailed("ffprobe timed out") from exc
        except ValueError as exc:
            raise ProbeFailed("ffprobe returned invalid JSON") from exc
        return parse_probe_output(raw)

    def normalize(self, path: Path) -> Path:
        """Remux ``path`` with its index moved ahead of the media data.

        Streams are copied, not re-encoded. On any failure the partial output
        is removed before :class:`NormalizeFailed` is raised.
        """
        output_path = faststart_output_path(path)
        command = [
            self.ffmpeg_binary,
            "-nostdin",
            "-v",
            "error",
            "-y",
            "-i",
            str(path),
            "-c",
            "copy",
            "-movflags",
            "faststart",
            "-f",
            "mp4",
            str(output_path),
        ]
        self.logger.info("ffmpeg_faststart_run", command=command)
        try:
            subprocess.run(
                command,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout_s,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as exc:
            output_path.unlink(missing_ok=True)
            if isinstance(exc, subprocess.CalledProcessError):
                self.logger.error("ffmpeg_faststart_failed", path=str(path), returncode=exc.returncode, stderr=_stderr(exc))
            raise NormalizeFailed() from exc

        if not output_path.exists():
            raise NormalizeFailed("ffmpeg produced no output")
        return output_path


def run_ffprobe(target: Path, *, binary: str = "ffprobe", timeout_s: Optional[float] = None) -> Dict[str, Any]:
    """Execute ffprobe and return parsed JSON stream metadata for the supplied file."""
    command = [
        binary,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_streams",
        str(target),
    ]
    proc = subprocess.run(
        command,
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        timeout=timeout_s,
    )
    return json.loads(proc.stdout)


def get_media_tool(settings: Settings) -> MediaTool:
    return FFmpegMediaTool(
        ffprobe_binary=settings.ffprobe_binary,
        ffmpeg_binary=settings.ffmpeg_binary,
        timeout_s=settings.media_tool_timeout_s,
    )


def tool_available(command: Sequence[str]) -> bool:
    if shutil.which(command[0]) is None:
        return False
    try:
        subprocess.run(list(command), stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=True)
    except (subprocess.CalledProcessError, OSError):
        return False
    return True


def tool_versions(settings: Settings) -> Dict[str, bool]:
    return {
        "ffmpeg": tool_available([settings.ffmpeg_binary, "-version"]),
        "ffprobe": tool_available([settings.ffprobe_binary, "-version"]),
    }


def _stderr(exc: subprocess.CalledProcessError) -> str:
    stderr = exc.stderr.decode() if isinstance(exc.stderr, bytes) else (exc.stderr or "")
    return stderr.strip()


__all__ = [
    "FASTSTART_SUFFIX",
    "MediaTool",
    "FFmpegMediaTool",
    "faststart_output_path",
    "run_ffprobe",
    "get_media_tool",
    "tool_available",
    "tool_versions",
]
