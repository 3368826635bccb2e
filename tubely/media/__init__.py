"""Media staging, inspection and key helpers used by the upload pipeline."""

from tubely.media.keys import extension_for, generate_key, random_token
from tubely.media.probe import Orientation, ProbeResult, classify_orientation, parse_probe_output
from tubely.media.staging import StagedFile, scoped_file, staged_upload
from tubely.media.tools import FFmpegMediaTool, MediaTool, faststart_output_path, get_media_tool

__all__ = [
    "extension_for",
    "generate_key",
    "random_token",
    "Orientation",
    "ProbeResult",
    "classify_orientation",
    "parse_probe_output",
    "StagedFile",
    "scoped_file",
    "staged_upload",
    "FFmpegMediaTool",
    "MediaTool",
    "faststart_output_path",
    "get_media_tool",
]
