"""
AssemblyAI speech-to-text: upload, create transcript, then poll.
The orchestrator drives the poll loop.
"""

import logging
from pathlib import Path

from yt_flashcards.core.constants import ErrorCode, ASSEMBLYAI_API_BASE, TranscriptStatus
from yt_flashcards.core.error_codes import TransientError
from yt_flashcards.core.http_utils import send, parse_json
from yt_flashcards.core.models_sqlite import PollResult
from yt_flashcards.core.transcription import AsyncTranscriber, require_api_key

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "queued": TranscriptStatus.PENDING,
    "processing": TranscriptStatus.PENDING,
    "completed": TranscriptStatus.COMPLETED,
    "error": TranscriptStatus.FAILED,
}


class AssemblyAITranscriber(AsyncTranscriber):
    name = "assemblyai"

    def __init__(self, api_key: str | None, api_base: str = ASSEMBLYAI_API_BASE):
        self.api_key = api_key
        self.api_base = api_base

    def _headers(self) -> dict:
        return {"authorization": require_api_key(self.api_key, "AssemblyAI")}

    def upload(self, audio_path: Path) -> str:
        headers = self._headers()
        with open(audio_path, 'rb') as f:
            resp = send("POST", f"{self.api_base}/upload", "AssemblyAI",
                        ErrorCode.TRANSCRIPTION_FAILED, headers=headers, data=f)
        data = parse_json(resp, "AssemblyAI", ErrorCode.TRANSCRIPTION_FAILED)
        upload_url = data.get("upload_url")
        if not upload_url:
            raise TransientError(ErrorCode.TRANSCRIPTION_FAILED,
                                 "AssemblyAI upload returned no upload_url")
        return upload_url

    def submit(self, audio_path: Path) -> str:
        upload_url = self.upload(audio_path)
        resp = send("POST", f"{self.api_base}/transcript", "AssemblyAI",
                    ErrorCode.TRANSCRIPTION_FAILED, headers=self._headers(),
                    json={"audio_url": upload_url})
        data = parse_json(resp, "AssemblyAI", ErrorCode.TRANSCRIPTION_FAILED)
        transcript_id = data.get("id")
        if not transcript_id:
            raise TransientError(ErrorCode.TRANSCRIPTION_FAILED,
                                 "AssemblyAI returned no transcript id")
        logger.info("AssemblyAI transcript %s submitted", transcript_id)
        return transcript_id

    def poll(self, transcript_id: str) -> PollResult:
        resp = send("GET", f"{self.api_base}/transcript/{transcript_id}", "AssemblyAI",
                    ErrorCode.TRANSCRIPTION_FAILED, headers=self._headers(), timeout=30)
        data = parse_json(resp, "AssemblyAI", ErrorCode.TRANSCRIPTION_FAILED)
        status = _STATUS_MAP.get(data.get("status"), TranscriptStatus.PENDING)
        if status == TranscriptStatus.COMPLETED:
            return PollResult(status=status, text=data.get("text") or "")
        if status == TranscriptStatus.FAILED:
            return PollResult(status=status, error=data.get("error") or "unknown error")
        return PollResult(status=status)
