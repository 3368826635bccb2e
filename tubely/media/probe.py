from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from tubely.services.errors import ProbeFailed


class Orientation(str, enum.Enum):
    landscape = "landscape"
    portrait = "portrait"
    other = "other"


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Geometry of the primary video stream of a staged file."""

    width: int
    height: int
    orientation: Orientation
    codec_name: Optional[str] = None
    stream_count: int = 1


def classify_orientation(width: int, height: int) -> Orientation:
    """Bucket stream geometry into a coarse aspect-ratio class.

    Integer division makes the comparison tolerant of a few pixels of encoder
    padding. Only the 16:9 and 9:16 families are recognised; everything else,
    4:3 included, is ``other``.

    Args:
        width: Frame width in pixels.
        height: Frame height in pixels.

    Returns:
        The orientation class.
    """
    if width // 16 == height // 9:
        return Orientation.landscape
    if width // 9 == height // 16:
        return Orientation.portrait
    return Orientation.other


def parse_probe_output(raw: Any) -> ProbeResult:
    """Turn ``ffprobe -show_streams`` JSON into a :class:`ProbeResult`.

    Args:
        raw: The decoded ffprobe payload, or its JSON text.

    Returns:
        The probe result for the first video stream.

    Raises:
        ProbeFailed: The payload is malformed or carries no usable video stream.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ProbeFailed("ffprobe returned invalid JSON") from exc

    if not isinstance(raw, dict):
        raise ProbeFailed("ffprobe returned an unexpected payload")

    streams = raw.get("streams")
    if not isinstance(streams, list) or not streams:
        raise ProbeFailed("ffprobe reported no streams")

    selected = _select_video_stream(streams)
    width = _int_or_none(selected.get("width"))
    height = _int_or_none(selected.get("height"))
    if width is None or height is None:
        raise ProbeFailed("video stream has no dimensions")

    return ProbeResult(
        width=width,
        height=height,
        orientation=classify_orientation(width, height),
        codec_name=selected.get("codec_name"),
        stream_count=len(streams),
    )


def _select_video_stream(streams: List[Dict[str, Any]]) -> Dict[str, Any]:
    typed = [stream for stream in streams if isinstance(stream, dict) and stream.get("codec_type")]
    if not typed:
        first = streams[0]
        if not isinstance(first, dict):
            raise ProbeFailed("ffprobe returned an unexpected stream entry")
        return first
    for stream in typed:
        if str(stream["codec_type"]).lower() == "video":
            return stream
    raise ProbeFailed("no video stream found")


def _int_or_none(value: Any) -> Optional[int]:
    if value in (None, "N/A", "") or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


__all__ = ["Orientation", "ProbeResult", "classify_orientation", "parse_probe_output"]
