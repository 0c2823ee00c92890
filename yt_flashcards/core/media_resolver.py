"""
Media resolution via yt-dlp: metadata, then an audio-only download
into the job workspace.
"""

import json
import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from yt_flashcards.core.security_utils import run_subprocess_capture
from yt_flashcards.core.error_codes import JobError, NotFoundError, TransientError
from yt_flashcards.core.models_sqlite import MediaInfo
from yt_flashcards.core.constants import (
    ErrorCode, CookiesMode, DEFAULT_COOKIES_PATH,
    AUDIO_FORMAT, AUDIO_CHANNELS, AUDIO_SAMPLE_RATE, AUDIO_BITRATE,
    METADATA_TIMEOUT_SEC, DOWNLOAD_TIMEOUT_SEC,
)

logger = logging.getLogger(__name__)


def video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


class MediaResolver(ABC):
    """Contract: resolve(video_id, workspace) -> MediaInfo."""

    @abstractmethod
    def resolve(self, video_id: str, workspace: Path) -> MediaInfo:
        raise NotImplementedError


class YtDlpResolver(MediaResolver):

    def __init__(self, cookies_mode: str = CookiesMode.OFF,
                 cookies_path: Path | None = None):
        self.cookies_mode = cookies_mode
        self.cookies_path = cookies_path or DEFAULT_COOKIES_PATH

    def _cookie_args(self) -> list[str]:
        if self.cookies_mode == CookiesMode.USE_FILE and self.cookies_path.exists():
            return ["--cookies", str(self.cookies_path)]
        return []

    def resolve(self, video_id: str, workspace: Path) -> MediaInfo:
        metadata = self.fetch_metadata(video_id)
        audio_path = self.download_audio(video_id, workspace / "source")
        return MediaInfo(
            title=metadata.get('title') or f"video_{video_id}",
            description=metadata.get('description') or "",
            thumbnail_url=metadata.get('thumbnail') or "",
            audio_path=audio_path,
        )

    def fetch_metadata(self, video_id: str) -> dict:
        """
        Fetch video metadata using yt-dlp --dump-json.
        Returns dict with at least 'id', 'title', 'description', 'thumbnail'.
        """
        args = [
            "yt-dlp",
            "--dump-json",
            "--no-playlist",
            "--skip-download",
            *self._cookie_args(),
            video_url(video_id),
        ]

        try:
            result = run_subprocess_capture(args, timeout=METADATA_TIMEOUT_SEC)
        except subprocess.TimeoutExpired:
            raise TransientError(ErrorCode.METADATA_FAILED, "yt-dlp metadata fetch timed out")
        except OSError as e:
            raise TransientError(ErrorCode.METADATA_FAILED, f"yt-dlp metadata fetch failed: {e}")

        if result.returncode != 0:
            raise classify_ytdlp_failure(video_id, result.stderr or "", result.returncode)

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise TransientError(ErrorCode.METADATA_FAILED, f"Failed to parse yt-dlp JSON: {e}")

    def download_audio(self, video_id: str, output_dir: Path) -> Path:
        """
        Download the audio track as mono 16 kHz mp3 using yt-dlp.
        Returns path to the downloaded file.
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        output_template = str(output_dir / "source.%(ext)s")

        args = [
            "yt-dlp",
            "--no-playlist",
            "-f", "bestaudio/best",
            "-x",
            "--audio-format", AUDIO_FORMAT,
            "--postprocessor-args",
            f"ExtractAudio:-ac {AUDIO_CHANNELS} -ar {AUDIO_SAMPLE_RATE} -b:a {AUDIO_BITRATE}",
            "-o", output_template,
            *self._cookie_args(),
            video_url(video_id),
        ]

        try:
            result = run_subprocess_capture(args, timeout=DOWNLOAD_TIMEOUT_SEC)
        except subprocess.TimeoutExpired:
            raise TransientError(ErrorCode.DOWNLOAD_FAILED, "Audio download timed out")
        except OSError as e:
            raise TransientError(ErrorCode.DOWNLOAD_FAILED, f"Audio download failed: {e}")

        if result.returncode != 0:
            raise classify_ytdlp_failure(video_id, result.stderr or "", result.returncode,
                                         fallback_code=ErrorCode.DOWNLOAD_FAILED)

        # Find the downloaded file
        source_files = sorted(output_dir.glob(f"source.{AUDIO_FORMAT}")) or sorted(output_dir.glob("source.*"))
        if not source_files:
            raise TransientError(ErrorCode.DOWNLOAD_FAILED, "No audio file found after download")

        downloaded = source_files[0]
        logger.info("Downloaded audio: %s", downloaded)
        return downloaded


def classify_ytdlp_failure(video_id: str, stderr: str, returncode: int,
                           fallback_code: str = ErrorCode.METADATA_FAILED) -> JobError:
    """Turn yt-dlp stderr into the right error class."""
    lowered = stderr.lower()
    # Region blocks also say "not available", so check them first
    if "geo-restrict" in lowered or "geo restrict" in lowered or "your country" in lowered:
        return JobError(ErrorCode.GEO_BLOCKED,
                        f"Video {video_id} is not available in this region",
                        retryable=False)
    if ("video unavailable" in lowered or "is not available" in lowered
            or "incomplete youtube id" in lowered or "not a valid url" in lowered
            or "does not exist" in lowered or "private video" in lowered):
        return NotFoundError(f"Video not found: {video_id}")
    if ("sign in" in lowered or "age-restricted" in lowered
            or "confirm your age" in lowered or "consent" in lowered):
        return JobError(ErrorCode.RESTRICTED_CONTENT,
                        f"Video {video_id} requires sign-in or age verification",
                        retryable=False)
    return TransientError(fallback_code, f"yt-dlp failed (rc={returncode}): {stderr[:300]}")
