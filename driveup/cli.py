"""Command line interface for driveup package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import QueueProgressDisplay, render_configuration_summary, render_listing
from .errors import DriveUpError
from .models import FileRef, ListingView, UploadConfig
from .orchestrator import UploadOrchestrator


DEFAULT_REFRESH_DELAY = 1.0


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # one line per request is too chatty next to the progress bars
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _normalize_directory_id(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().strip("/")
    return value or None


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _parse_cookie(raw: Optional[str]) -> Dict[str, str]:
    """'sid=abc; theme=dark' -> {'sid': 'abc', 'theme': 'dark'}"""
    cookies: Dict[str, str] = {}
    if not raw:
        return cookies
    for part in raw.split(";"):
        if "=" not in part:
            continue
        name, value = part.split("=", 1)
        name = name.strip()
        if name:
            cookies[name] = value.strip()
    return cookies


def _collect_files(paths: Sequence[Path]) -> List[FileRef]:
    files = []
    for raw in paths:
        path = Path(raw).expanduser()
        if not path.exists():
            raise CLIError(f"file does not exist: {path}")
        if not path.is_file():
            raise CLIError(f"not a regular file: {path}")
        files.append(FileRef.from_path(path))
    return files


def _parse_refresh_delay(value: Optional[str]) -> float:
    if value is None or value == "":
        return DEFAULT_REFRESH_DELAY
    try:
        delay = float(value)
    except ValueError as exc:
        raise CLIError(f"invalid refresh delay: {value!r}") from exc
    if delay < 0:
        raise CLIError(f"refresh delay must not be negative: {value}")
    return delay


async def _run_upload(config: UploadConfig, files: List[FileRef], cookies: Dict[str, str]) -> int:
    display = QueueProgressDisplay()
    async with UploadOrchestrator(config, cookies=cookies) as drive:
        display.attach(drive)
        listing = await drive.load()
        if listing.error_message:
            raise CLIError(listing.error_message)

        try:
            drive.upload(files)
            summary = await drive.wait()
        except asyncio.CancelledError:
            drive.cancel_all()
            display.stop()
            raise

        render_listing(drive.listing)
        if summary is None or not summary.all_success:
            return 1
        return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drive-up",
        description="Upload files into a drive directory, one at a time.",
    )
    parser.add_argument("files", nargs="*", type=Path, help="Files to upload, in order")
    parser.add_argument(
        "-d",
        "--dir",
        dest="directory_id",
        default=None,
        help="Target directory id (default from DRIVE_DIRECTORY_ID, else the root)",
    )
    parser.add_argument(
        "--admin",
        action="store_true",
        help="Upload through the admin endpoints",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Drive API base URL (default from DRIVE_API_URL)",
    )
    parser.add_argument(
        "--cookie",
        default=None,
        help="Session cookie header, e.g. 'sid=...' (default from DRIVE_COOKIE)",
    )
    parser.add_argument(
        "--refresh-delay",
        default=None,
        help=f"Seconds to wait before refreshing the listing (default {DEFAULT_REFRESH_DELAY})",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="drive-up (from driveup)",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if not args.files:
        parser.print_help()
        return 0

    try:
        api_url = args.api_url or os.getenv("DRIVE_API_URL")
        if not api_url:
            raise CLIError("DRIVE_API_URL environment variable is not set")
        config = UploadConfig(
            api_url=api_url,
            directory_id=_normalize_directory_id(args.directory_id or os.getenv("DRIVE_DIRECTORY_ID")),
            view=ListingView.ADMIN if args.admin else ListingView.USER,
            refresh_delay=_parse_refresh_delay(args.refresh_delay or os.getenv("DRIVE_REFRESH_DELAY")),
        )
        files = _collect_files(args.files)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    cookies = _parse_cookie(args.cookie or os.getenv("DRIVE_COOKIE"))
    render_configuration_summary(
        {
            "Files": len(files),
            "Total Size": sum(f.size for f in files),
            "Directory": config.directory_id or "(root)",
            "View": config.view.value,
            "Drive API": config.base_url,
            "Cookies": ", ".join(sorted(cookies)) or "-",
            "Refresh Delay": f"{config.refresh_delay}s",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(_run_upload(config, files, cookies))
    except (CLIError, DriveUpError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
