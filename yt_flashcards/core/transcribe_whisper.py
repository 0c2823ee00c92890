"""
OpenAI Whisper speech-to-text (synchronous upload).
"""

import logging
from pathlib import Path

from yt_flashcards.core.constants import (
    ErrorCode, OPENAI_API_BASE, OPENAI_TRANSCRIBE_MODEL, OPENAI_MAX_UPLOAD_BYTES,
)
from yt_flashcards.core.error_codes import JobError
from yt_flashcards.core.http_utils import send, parse_json
from yt_flashcards.core.transcription import Transcriber, require_api_key

logger = logging.getLogger(__name__)


class WhisperTranscriber(Transcriber):
    name = "whisper"

    def __init__(self, api_key: str | None, model: str = OPENAI_TRANSCRIBE_MODEL,
                 api_base: str = OPENAI_API_BASE):
        self.api_key = api_key
        self.model = model
        self.url = f"{api_base}/audio/transcriptions"

    def transcribe(self, audio_path: Path) -> str:
        api_key = require_api_key(self.api_key, "OpenAI")

        file_size = audio_path.stat().st_size
        if file_size > OPENAI_MAX_UPLOAD_BYTES:
            raise JobError(ErrorCode.AUDIO_TOO_LARGE,
                           f"Audio is {file_size / (1024 * 1024):.1f} MB, "
                           f"over the {OPENAI_MAX_UPLOAD_BYTES // (1024 * 1024)} MB upload limit",
                           retryable=False)

        # Adaptive timeout: ~1 min per 10MB, minimum 120s
        timeout_sec = max(120, int(file_size / (10 * 1024 * 1024) * 60) + 60)

        with open(audio_path, 'rb') as f:
            resp = send(
                "POST", self.url, "OpenAI Whisper", ErrorCode.TRANSCRIPTION_FAILED,
                timeout=timeout_sec,
                headers={"Authorization": f"Bearer {api_key}"},
                data={"model": self.model, "response_format": "json"},
                files={"file": (audio_path.name, f, "audio/mpeg")},
            )

        data = parse_json(resp, "OpenAI Whisper", ErrorCode.TRANSCRIPTION_FAILED)
        text = (data.get("text") or "").strip()
        logger.info("Whisper transcript: %d chars", len(text))
        return text
