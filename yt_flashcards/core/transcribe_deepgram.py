"""
Deepgram Speech-to-Text integration.
Uses Nova-3 Monolingual (English), pre-recorded mode.
Includes exponential backoff for rate-limit (429) responses.
"""

import json
import logging
import time
import random
from pathlib import Path

import requests

from yt_flashcards.core.constants import (
    ErrorCode, DEEPGRAM_API_BASE, DEEPGRAM_MODEL, DEEPGRAM_LANGUAGE,
)
from yt_flashcards.core.error_codes import JobError, TransientError
from yt_flashcards.core.transcription import Transcriber, require_api_key

logger = logging.getLogger(__name__)

DEEPGRAM_PRERECORDED_URL = f"{DEEPGRAM_API_BASE}/listen"

_MAX_RATE_LIMIT_RETRIES = 4
_RATE_LIMIT_BASE_DELAY = 2.0   # seconds, doubled on each retry, with jitter


class DeepgramTranscriber(Transcriber):
    name = "deepgram"

    def __init__(self, api_key: str | None, sleep=time.sleep):
        self.api_key = api_key
        self._sleep = sleep

    def transcribe(self, audio_path: Path) -> str:
        return extract_transcript_text(self.request(audio_path))

    def request(self, audio_path: Path) -> dict:
        """
        Send the audio to Deepgram pre-recorded transcription.
        Retries up to 4 times with exponential backoff on 429 rate-limit responses.
        Returns the Deepgram response dict.
        """
        api_key = require_api_key(self.api_key, "Deepgram")

        headers = {
            "Authorization": f"Token {api_key}",
            "Content-Type": "audio/mpeg",
        }

        params = {
            "model": DEEPGRAM_MODEL,
            "language": DEEPGRAM_LANGUAGE,
            "smart_format": "true",
            "punctuate": "true",
            "paragraphs": "true",
        }

        file_size = audio_path.stat().st_size
        # Adaptive timeout: ~1 min per 10MB, minimum 120s
        timeout_sec = max(120, int(file_size / (10 * 1024 * 1024) * 60) + 60)

        for attempt in range(_MAX_RATE_LIMIT_RETRIES + 1):
            try:
                with open(audio_path, 'rb') as f:
                    resp = requests.post(
                        DEEPGRAM_PRERECORDED_URL,
                        headers=headers,
                        params=params,
                        data=f,
                        timeout=timeout_sec,
                    )
            except requests.exceptions.Timeout:
                raise TransientError(ErrorCode.TRANSCRIPTION_TIMEOUT,
                                     "Deepgram request timed out")
            except requests.exceptions.ConnectionError:
                raise TransientError(ErrorCode.NETWORK_TRANSIENT,
                                     "Network error connecting to Deepgram")
            except requests.exceptions.RequestException as e:
                raise TransientError(ErrorCode.TRANSCRIPTION_FAILED,
                                     f"Deepgram request failed: {type(e).__name__}")

            if resp.status_code == 429:
                if attempt < _MAX_RATE_LIMIT_RETRIES:
                    # Exponential backoff with jitter: 2s, 4s, 8s, 16s (+/- 10%)
                    delay = _RATE_LIMIT_BASE_DELAY * (2 ** attempt)
                    delay *= 1 + random.uniform(-0.1, 0.1)
                    logger.warning(
                        "Deepgram rate limited (429) — retrying in %.1fs (attempt %d/%d)",
                        delay, attempt + 1, _MAX_RATE_LIMIT_RETRIES,
                    )
                    self._sleep(delay)
                    continue
                raise TransientError(ErrorCode.NETWORK_TRANSIENT,
                                     f"Deepgram rate limited (429) after {_MAX_RATE_LIMIT_RETRIES} retries")

            if resp.status_code >= 500:
                raise TransientError(ErrorCode.TRANSCRIPTION_FAILED,
                                     f"Deepgram returned {resp.status_code}")

            if resp.status_code != 200:
                # Sanitize error message (never log API key)
                error_body = resp.text[:300] if resp.text else "No response body"
                raise JobError(ErrorCode.SERVICE_REJECTED,
                               f"Deepgram returned {resp.status_code}: {error_body}",
                               retryable=False)

            try:
                return resp.json()
            except (json.JSONDecodeError, ValueError):
                raise TransientError(ErrorCode.TRANSCRIPTION_FAILED,
                                     "Failed to parse Deepgram response JSON")

        # Should never reach here
        raise TransientError(ErrorCode.NETWORK_TRANSIENT, "Deepgram request exhausted retries")


def extract_transcript_text(deepgram_response: dict) -> str:
    """
    Extract plain text transcript from Deepgram response.
    Uses paragraphs if available, falls back to channels/alternatives.
    """
    try:
        results = deepgram_response.get('results', {})
        alternative = results.get('channels', [{}])[0].get('alternatives', [{}])[0]

        # Try paragraphs first
        paragraphs = alternative.get('paragraphs', {})
        if paragraphs and paragraphs.get('paragraphs'):
            text_parts = []
            for para in paragraphs['paragraphs']:
                sentences = para.get('sentences', [])
                para_text = ' '.join(s.get('text', '') for s in sentences)
                if para_text.strip():
                    text_parts.append(para_text.strip())
            if text_parts:
                return '\n\n'.join(text_parts)

        # Fallback to transcript
        transcript = alternative.get('transcript', '')
        if transcript:
            return transcript.strip()

    except (IndexError, KeyError, TypeError, AttributeError) as e:
        logger.warning("Error extracting transcript: %s", e)

    return ""
