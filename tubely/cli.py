from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console

from .core.config import get_settings
from .media.keys import generate_key
from .media.probe import Orientation
from .media.tools import FFmpegMediaTool, tool_versions
from .services.errors import TubelyError

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "check", False):
        _run_environment_check()
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tubely media developer CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe dependencies")

    subparsers = parser.add_subparsers(dest="command")

    probe_parser = subparsers.add_parser("probe", help="Probe a file and print its geometry and orientation")
    probe_parser.add_argument("--file", required=True, help="Path to the source media file")
    probe_parser.set_defaults(func=_cmd_probe)

    faststart_parser = subparsers.add_parser("faststart", help="Remux a file so playback can start before download ends")
    faststart_parser.add_argument("--file", required=True, help="Path to the source media file")
    faststart_parser.add_argument(
        "--keep",
        action="store_true",
        help="Keep the .processing output instead of deleting it after reporting.",
    )
    faststart_parser.set_defaults(func=_cmd_faststart)

    key_parser = subparsers.add_parser("key", help="Print a freshly generated storage key")
    key_parser.add_argument(
        "--orientation",
        choices=[item.value for item in Orientation],
        default=Orientation.landscape.value,
    )
    key_parser.add_argument("--ext", default="mp4", help="File extension for the key (default mp4).")
    key_parser.set_defaults(func=_cmd_key)
    return parser


def _media_tool() -> FFmpegMediaTool:
    settings = get_settings()
    return FFmpegMediaTool(
        ffprobe_binary=settings.ffprobe_binary,
        ffmpeg_binary=settings.ffmpeg_binary,
        timeout_s=settings.media_tool_timeout_s,
    )


def _require_file(raw: str) -> Path:
    media_path = Path(raw).expanduser().resolve()
    if not media_path.exists():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)
    return media_path


def _cmd_probe(args: argparse.Namespace) -> None:
    media_path = _require_file(args.file)
    try:
        result = _media_tool().probe(media_path)
    except TubelyError as exc:
        console.print(f"[red]{exc.code}:[/] {exc.message}")
        sys.exit(3)
    console.print_json(
        data={
            "file": str(media_path),
            "width": result.width,
            "height": result.height,
            "orientation": result.orientation.value,
            "codec_name": result.codec_name,
            "stream_count": result.stream_count,
        }
    )


def _cmd_faststart(args: argparse.Namespace) -> None:
    media_path = _require_file(args.file)
    try:
        output_path = _media_tool().normalize(media_path)
    except TubelyError as exc:
        console.print(f"[red]{exc.code}:[/] {exc.message}")
        sys.exit(3)

    size_bytes = output_path.stat().st_size
    console.print(f"[green]Fast-start copy written to {output_path}[/] ({size_bytes} bytes)")
    if not args.keep:
        output_path.unlink(missing_ok=True)
        console.print("[dim]Output removed (pass --keep to retain it).[/]")


def _cmd_key(args: argparse.Namespace) -> None:
    console.print(generate_key(args.orientation, args.ext))


def _run_environment_check() -> None:
    """Check for the presence of required external dependencies."""
    results = tool_versions(get_settings())

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'✅' if ok else '❌'}")

    if not all(results.values()):
        console.print("[red]Missing dependencies detected. Install ffmpeg (which ships ffprobe).[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
