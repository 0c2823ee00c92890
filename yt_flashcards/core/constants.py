"""
Shared constants for YT Flashcards.
Single source of truth — imported by every other module.
"""

import os
import pathlib

# ── Application identity ──────────────────────────────────────────────
APP_NAME = "yt-flashcards"
APP_VERSION = "1.0.0"

# ── Filesystem paths ─────────────────────────────────────────────────
HOME = pathlib.Path.home()

APP_HOME = pathlib.Path(os.environ.get("YT_FLASHCARDS_HOME", HOME / ".yt-flashcards"))
WORKSPACE_DIR = APP_HOME / "jobs"
LOG_DIR = APP_HOME / "logs"
DB_PATH = APP_HOME / "app.db"
CONFIG_PATH = APP_HOME / "config.json"

# Cookies
DEFAULT_COOKIES_PATH = APP_HOME / "youtube_cookies.txt"

# ── Job status values (ordered) ───────────────────────────────────────
class JobStatus:
    PENDING = "pending"
    DOWNLOADING = "downloading"
    TRANSCRIBING = "transcribing"
    SUMMARIZING = "summarizing"
    COMPLETED = "completed"
    FAILED = "failed"

# Forward order of the happy path; FAILED may follow any non-terminal status
STATUS_ORDER = [
    JobStatus.PENDING,
    JobStatus.DOWNLOADING,
    JobStatus.TRANSCRIBING,
    JobStatus.SUMMARIZING,
    JobStatus.COMPLETED,
]

TERMINAL_STATUSES = {JobStatus.COMPLETED, JobStatus.FAILED}

# ── Transcription adapter poll status ─────────────────────────────────
class TranscriptStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

# ── Error codes ───────────────────────────────────────────────────────
class ErrorCode:
    # Non-retryable
    INVALID_INPUT = "ERR_INVALID_INPUT"
    DUPLICATE_JOB = "ERR_DUPLICATE_JOB"
    RECORD_NOT_FOUND = "ERR_RECORD_NOT_FOUND"
    VIDEO_NOT_FOUND = "ERR_VIDEO_NOT_FOUND"
    GEO_BLOCKED = "ERR_GEO_BLOCKED"
    RESTRICTED_CONTENT = "ERR_RESTRICTED_CONTENT"
    AUDIO_TOO_LARGE = "ERR_AUDIO_TOO_LARGE"
    EMPTY_TRANSCRIPT = "ERR_EMPTY_TRANSCRIPT"
    MISSING_API_KEY = "ERR_MISSING_API_KEY"
    SERVICE_REJECTED = "ERR_SERVICE_REJECTED"
    RESOURCE = "ERR_RESOURCE"
    UNEXPECTED = "ERR_UNEXPECTED"

    # Retryable
    METADATA_FAILED = "ERR_METADATA_FAILED"
    DOWNLOAD_FAILED = "ERR_DOWNLOAD_FAILED"
    TRANSCRIPTION_FAILED = "ERR_TRANSCRIPTION_FAILED"
    TRANSCRIPTION_TIMEOUT = "ERR_TRANSCRIPTION_TIMEOUT"
    SUMMARIZATION_FAILED = "ERR_SUMMARIZATION_FAILED"
    NETWORK_TRANSIENT = "ERR_NETWORK_TRANSIENT"

RETRYABLE_ERRORS = {
    ErrorCode.METADATA_FAILED,
    ErrorCode.DOWNLOAD_FAILED,
    ErrorCode.TRANSCRIPTION_FAILED,
    ErrorCode.TRANSCRIPTION_TIMEOUT,
    ErrorCode.SUMMARIZATION_FAILED,
    ErrorCode.NETWORK_TRANSIENT,
}

# ── Pipeline defaults ─────────────────────────────────────────────────
MAX_ATTEMPTS = 5
RETRY_BACKOFF_SEC = 5.0
POLL_INTERVAL_SEC = 5.0
POLL_TIMEOUT_SEC = 1800.0      # 30 minutes
MAX_POLLS = 360
SUMMARY_CHUNK_CHARS = 3500
VISIBILITY_TIMEOUT_SEC = 3600.0
METADATA_TIMEOUT_SEC = 60
DOWNLOAD_TIMEOUT_SEC = 900
# A claim must outlive the longest stretch without a lease renewal
MIN_LEASE_SEC = METADATA_TIMEOUT_SEC + DOWNLOAD_TIMEOUT_SEC
WORKER_COUNT = 1
WORKER_IDLE_WAIT_SEC = 1.0

# Audio extraction target (keeps uploads under service size ceilings)
AUDIO_FORMAT = "mp3"
AUDIO_CHANNELS = 1
AUDIO_SAMPLE_RATE = 16000
AUDIO_BITRATE = "64k"

# ── Cookies ───────────────────────────────────────────────────────────
class CookiesMode:
    OFF = "OFF"
    USE_FILE = "USE_FILE"

# ── Adapters ──────────────────────────────────────────────────────────
class TranscriberName:
    WHISPER = "whisper"
    ASSEMBLYAI = "assemblyai"
    HUGGINGFACE = "huggingface"
    DEEPGRAM = "deepgram"

class SummarizerName:
    OPENAI = "openai"
    HUGGINGFACE = "huggingface"

# Environment variables holding service credentials
API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "assemblyai": "ASSEMBLYAI_API_KEY",
    "huggingface": "HF_API_TOKEN",
    "deepgram": "DEEPGRAM_API_KEY",
}

OPENAI_API_BASE = "https://api.openai.com/v1"
OPENAI_TRANSCRIBE_MODEL = "whisper-1"
OPENAI_SUMMARY_MODEL = "gpt-4"
OPENAI_MAX_UPLOAD_BYTES = 25 * 1024 * 1024

ASSEMBLYAI_API_BASE = "https://api.assemblyai.com/v2"

HF_API_BASE = "https://api-inference.huggingface.co/models"
HF_TRANSCRIBE_MODEL = "openai/whisper-large-v3"
HF_SUMMARY_MODEL = "facebook/bart-large-cnn"

DEEPGRAM_API_BASE = "https://api.deepgram.com/v1"
DEEPGRAM_MODEL = "nova-3"
DEEPGRAM_LANGUAGE = "en"

HTTP_TIMEOUT_SEC = 120

# ── Misc ──────────────────────────────────────────────────────────────
VIDEO_ID_PATTERN = r'^[A-Za-z0-9_-]{1,64}$'
YOUTUBE_URL_PATTERNS = [
    r'(?:https?://)?(?:www\.)?youtube\.com/watch\?v=([a-zA-Z0-9_-]{11})',
    r'(?:https?://)?youtu\.be/([a-zA-Z0-9_-]{11})',
    r'(?:https?://)?(?:www\.)?youtube\.com/embed/([a-zA-Z0-9_-]{11})',
    r'(?:https?://)?(?:www\.)?youtube\.com/v/([a-zA-Z0-9_-]{11})',
    r'(?:https?://)?(?:www\.)?youtube\.com/shorts/([a-zA-Z0-9_-]{11})',
    r'(?:https?://)?m\.youtube\.com/watch\?v=([a-zA-Z0-9_-]{11})',
]
MAX_OWNER_ID_LEN = 128
MAX_ERROR_DETAIL_LEN = 2000
