"""
Hugging Face Inference API speech-to-text.
"""

import logging
from pathlib import Path

from yt_flashcards.core.constants import ErrorCode, HF_API_BASE, HF_TRANSCRIBE_MODEL
from yt_flashcards.core.error_codes import TransientError
from yt_flashcards.core.http_utils import send, parse_json
from yt_flashcards.core.transcription import Transcriber, require_api_key

logger = logging.getLogger(__name__)


class HuggingFaceTranscriber(Transcriber):
    name = "huggingface"

    def __init__(self, api_key: str | None, model: str = HF_TRANSCRIBE_MODEL,
                 api_base: str = HF_API_BASE):
        self.api_key = api_key
        self.url = f"{api_base}/{model}"

    def transcribe(self, audio_path: Path) -> str:
        api_key = require_api_key(self.api_key, "Hugging Face")
        with open(audio_path, 'rb') as f:
            # A 503 while the model loads is mapped to a transient error
            resp = send("POST", self.url, "Hugging Face", ErrorCode.TRANSCRIPTION_FAILED,
                        headers={"Authorization": f"Bearer {api_key}",
                                 "Content-Type": "audio/mpeg"},
                        data=f)
        data = parse_json(resp, "Hugging Face", ErrorCode.TRANSCRIPTION_FAILED)
        if isinstance(data, dict) and data.get("error"):
            raise TransientError(ErrorCode.TRANSCRIPTION_FAILED,
                                 f"Hugging Face error: {str(data['error'])[:300]}")
        if not isinstance(data, dict):
            raise TransientError(ErrorCode.TRANSCRIPTION_FAILED,
                                 "Unexpected Hugging Face response shape")
        text = (data.get("text") or "").strip()
        logger.info("Hugging Face transcript: %d chars", len(text))
        return text
