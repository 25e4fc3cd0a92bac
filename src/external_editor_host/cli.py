"""Command-line interface for the External Editor host.

The mail client starts the host with the manifest path and the extension
id as arguments; those are accepted and ignored.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import platform
import sys
from pathlib import Path

import structlog

from external_editor_host import __version__
from external_editor_host.config import Settings, get_settings
from external_editor_host.host import NativeMessagingHost
from external_editor_host.models import AppManifest
from external_editor_host.transport import FrameChannel
from external_editor_host.utils import configure_logging

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="external-editor-host",
        description="Native messaging host for External Editor Revived",
        add_help=False,
    )
    parser.add_argument("-v", "--version", action="store_true", help="Print version and exit")
    parser.add_argument("-h", "--help", action="store_true", help="Print the manifest to install and exit")
    parser.add_argument("manifest", nargs="?", help="Manifest path passed by the mail client")
    parser.add_argument("extension_id", nargs="?", help="Extension id passed by the mail client")
    return parser


def version_line() -> str:
    return (
        f"External Editor Revived native messaging host for "
        f"{platform.system().lower()} ({platform.machine()}) v{__version__}"
    )


def manifest_help(settings: Settings, program_path: str) -> str:
    """Instructions for installing the native messaging manifest."""
    manifest = AppManifest.for_program(program_path, settings)
    app_name = manifest.name
    lines = [f"Please create '{app_name}.json' manifest file with the JSON below."]
    if sys.platform == "darwin":
        lines.append(
            f"Under macOS this is usually ~/Library/Mozilla/NativeMessagingHosts/{app_name}.json,\n"
            f"or /Library/Application Support/Mozilla/NativeMessagingHosts/{app_name}.json "
            "for global visibility."
        )
    else:
        lines.append("Consult https://wiki.mozilla.org/WebExtensions/Native_Messaging for its location.")
    lines.append("")
    lines.append(json.dumps(manifest.model_dump(by_alias=True), indent=2))
    return "\n".join(lines)


def main(args: list[str] | None = None) -> int:
    """Main entry point for the External Editor host.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()
    configure_logging(settings.log_level)

    parsed, extra = _build_parser().parse_known_args(args)

    if parsed.version:
        print(version_line(), file=sys.stderr)
        return 0
    if parsed.help:
        print(manifest_help(settings, str(Path(sys.argv[0]).resolve())), file=sys.stderr)
        return 0

    logger.info("host_starting", manifest=parsed.manifest, extension_id=parsed.extension_id, extra_args=extra)
    channel = FrameChannel.from_stdio(settings.max_frame_size)
    host = NativeMessagingHost(channel, settings)
    try:
        asyncio.run(host.serve())
    except KeyboardInterrupt:
        logger.info("host_interrupted")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
