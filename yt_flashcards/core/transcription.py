"""
Transcription adapter interfaces.

Two shapes are supported by the orchestrator:
- Transcriber: synchronous, transcribe(audio_path) -> text
- AsyncTranscriber: submit(audio_path) -> job id, poll(job id) -> PollResult
"""

from abc import ABC, abstractmethod
from pathlib import Path

from yt_flashcards.core.constants import ErrorCode
from yt_flashcards.core.error_codes import JobError
from yt_flashcards.core.models_sqlite import PollResult


class Transcriber(ABC):
    name = "transcriber"

    @abstractmethod
    def transcribe(self, audio_path: Path) -> str:
        raise NotImplementedError


class AsyncTranscriber(ABC):
    name = "async-transcriber"

    @abstractmethod
    def submit(self, audio_path: Path) -> str:
        raise NotImplementedError

    @abstractmethod
    def poll(self, transcript_id: str) -> PollResult:
        raise NotImplementedError


def require_api_key(api_key: str | None, service: str) -> str:
    if not api_key:
        raise JobError(ErrorCode.MISSING_API_KEY,
                       f"{service} API key is not configured", retryable=False)
    return api_key
