"""
Application configuration manager.
Stores settings in a JSON file under the app home directory.
API keys are never stored here; they come from the environment.
"""

import json
import logging
from pathlib import Path

from yt_flashcards.core.constants import (
    CONFIG_PATH, DB_PATH, WORKSPACE_DIR, CookiesMode, DEFAULT_COOKIES_PATH,
    TranscriberName, SummarizerName,
    MAX_ATTEMPTS, RETRY_BACKOFF_SEC, POLL_INTERVAL_SEC, POLL_TIMEOUT_SEC,
    MAX_POLLS, SUMMARY_CHUNK_CHARS, VISIBILITY_TIMEOUT_SEC, WORKER_COUNT, MIN_LEASE_SEC,
    OPENAI_TRANSCRIBE_MODEL, OPENAI_SUMMARY_MODEL,
    HF_TRANSCRIBE_MODEL, HF_SUMMARY_MODEL,
)

logger = logging.getLogger(__name__)

_TRANSCRIBERS = (
    TranscriberName.WHISPER, TranscriberName.ASSEMBLYAI,
    TranscriberName.HUGGINGFACE, TranscriberName.DEEPGRAM,
)
_SUMMARIZERS = (SummarizerName.OPENAI, SummarizerName.HUGGINGFACE)

# Validation bounds: key -> (type, min, max)
_BOUNDS = {
    'max_attempts': (int, 1, 20),
    'retry_backoff_sec': (float, 0, 3600),
    'poll_interval_sec': (float, 0.5, 300),
    'poll_timeout_sec': (float, 10, 6 * 3600),
    'max_polls': (int, 1, 10000),
    'summary_chunk_chars': (int, 500, 100000),
    'visibility_timeout_sec': (float, 60, 24 * 3600),
    'worker_count': (int, 1, 16),
}

_DEFAULTS = {
    'db_path': str(DB_PATH),
    'workspace_dir': str(WORKSPACE_DIR),
    'transcriber': TranscriberName.WHISPER,
    'summarizer': SummarizerName.OPENAI,
    'openai_transcribe_model': OPENAI_TRANSCRIBE_MODEL,
    'openai_summary_model': OPENAI_SUMMARY_MODEL,
    'hf_transcribe_model': HF_TRANSCRIBE_MODEL,
    'hf_summary_model': HF_SUMMARY_MODEL,
    'cookies_mode': CookiesMode.OFF,
    'cookies_path': str(DEFAULT_COOKIES_PATH),
    'max_attempts': MAX_ATTEMPTS,
    'retry_backoff_sec': RETRY_BACKOFF_SEC,
    'poll_interval_sec': POLL_INTERVAL_SEC,
    'poll_timeout_sec': POLL_TIMEOUT_SEC,
    'max_polls': MAX_POLLS,
    'summary_chunk_chars': SUMMARY_CHUNK_CHARS,
    'visibility_timeout_sec': VISIBILITY_TIMEOUT_SEC,
    'worker_count': WORKER_COUNT,
}


class AppConfig:
    """Manages application configuration stored as JSON."""

    def __init__(self, config_path: Path | None = None):
        self.path = config_path or CONFIG_PATH
        self._data: dict = {}
        self.load()

    def load(self):
        """Load config from disk, merging with defaults."""
        self._data = dict(_DEFAULTS)
        if self.path.exists():
            try:
                with open(self.path, 'r') as f:
                    saved = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Failed to load config: %s", e)
                return
            for key, value in saved.items():
                self._data[key] = self._validate(key, value)
            self._enforce_lease()

    def save(self):
        """Persist config to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(self._data, f, indent=2)

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value):
        value = self._validate(key, value)
        self._data[key] = value
        if key in ('poll_timeout_sec', 'visibility_timeout_sec'):
            self._enforce_lease()
        self.save()

    def _validate(self, key: str, value):
        """Validate and coerce config values to safe ranges."""
        if key in _BOUNDS:
            kind, low, high = _BOUNDS[key]
            try:
                value = kind(value)
            except (TypeError, ValueError):
                logger.warning("Invalid %s %r — using default", key, value)
                return _DEFAULTS[key]
            return max(low, min(high, value))

        if key == 'transcriber' and value not in _TRANSCRIBERS:
            logger.warning("Unknown transcriber %r — using %s", value, _DEFAULTS[key])
            return _DEFAULTS[key]

        if key == 'summarizer' and value not in _SUMMARIZERS:
            logger.warning("Unknown summarizer %r — using %s", value, _DEFAULTS[key])
            return _DEFAULTS[key]

        if key == 'cookies_mode':
            if value not in (CookiesMode.OFF, CookiesMode.USE_FILE):
                logger.warning("Invalid cookies_mode %r — using OFF", value)
                return CookiesMode.OFF

        return value

    def _enforce_lease(self):
        """
        A queue claim must outlast a full transcription poll plus the audio
        download, or another worker could pick up a job still in flight.
        """
        floor = self._data['poll_timeout_sec'] + MIN_LEASE_SEC
        if self._data['visibility_timeout_sec'] < floor:
            logger.warning("visibility_timeout_sec %.0f is below poll timeout + download time; using %.0f",
                           self._data['visibility_timeout_sec'], floor)
            self._data['visibility_timeout_sec'] = floor

    @property
    def db_path(self) -> Path:
        return Path(self._data['db_path'])

    @property
    def workspace_dir(self) -> Path:
        return Path(self._data['workspace_dir'])

    @property
    def cookies_path(self) -> Path:
        return Path(self._data['cookies_path'])

    @property
    def transcriber(self) -> str:
        return self._data['transcriber']

    @property
    def summarizer(self) -> str:
        return self._data['summarizer']
