"""
Diagnostics: tool version detection and system checks.
"""

import shutil
import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path

from yt_flashcards.core.adapter_factory import TRANSCRIBER_SERVICE, SUMMARIZER_SERVICE
from yt_flashcards.core.config import AppConfig
from yt_flashcards.core.security_utils import run_subprocess_capture, get_api_key, mask_secret

logger = logging.getLogger(__name__)


def _tool_version(args: list[str]) -> str:
    try:
        result = run_subprocess_capture(args, timeout=10)
    except FileNotFoundError:
        return "Not installed"
    except (OSError, subprocess.TimeoutExpired) as e:
        return f"Error: {e}"
    if result.returncode == 0 and result.stdout.strip():
        return result.stdout.strip().splitlines()[0]
    return f"Error (rc={result.returncode})"


def get_ytdlp_version() -> str:
    """Return yt-dlp version string, or error message."""
    return _tool_version(["yt-dlp", "--version"])


def get_ffmpeg_version() -> str:
    """Return ffmpeg version string, or error message."""
    return _tool_version(["ffmpeg", "-version"])


def missing_tools() -> list[str]:
    """External binaries the media resolver needs but cannot find."""
    return [tool for tool in ("yt-dlp", "ffmpeg") if not shutil.which(tool)]


def check_cookies_file(cookies_path: Path) -> dict:
    """Check if cookies.txt exists and return info."""
    info = {"detected": False, "path": str(cookies_path), "last_modified": None}
    if cookies_path.exists():
        info["detected"] = True
        stat = cookies_path.stat()
        info["last_modified"] = datetime.fromtimestamp(
            stat.st_mtime, tz=timezone.utc
        ).isoformat()
    return info


def get_diagnostics(config: AppConfig) -> dict:
    """Gather all diagnostic information."""
    transcriber_service = TRANSCRIBER_SERVICE[config.transcriber]
    summarizer_service = SUMMARIZER_SERVICE[config.summarizer]
    return {
        "ytdlp_version": get_ytdlp_version(),
        "ffmpeg_version": get_ffmpeg_version(),
        "cookies": check_cookies_file(config.cookies_path),
        "transcriber": {
            "name": config.transcriber,
            "api_key": mask_secret(get_api_key(transcriber_service)),
        },
        "summarizer": {
            "name": config.summarizer,
            "api_key": mask_secret(get_api_key(summarizer_service)),
        },
        "db_path": str(config.db_path),
        "workspace_dir": str(config.workspace_dir),
    }
