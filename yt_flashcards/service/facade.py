"""
Submission and query façade.
The calls an HTTP layer makes on behalf of an authenticated owner.
Every query is scoped to owner_id.
"""

import logging

from yt_flashcards.core.constants import ErrorCode
from yt_flashcards.core.db_sqlite import Database
from yt_flashcards.core.error_codes import NotFoundError, ValidationError
from yt_flashcards.core.orchestrator import PipelineOrchestrator
from yt_flashcards.core.url_parse import normalize_video_id, validate_owner_id

logger = logging.getLogger(__name__)


class FlashcardService:

    def __init__(self, orchestrator: PipelineOrchestrator, db: Database | None = None):
        self.orchestrator = orchestrator
        self.db = db or orchestrator.db

    def submit(self, owner_id: str, payload: dict) -> dict:
        """Accepts {"videoId": ...}; a YouTube URL works as the video id too."""
        if not isinstance(payload, dict) or not payload.get("videoId"):
            raise ValidationError("Video ID is required")
        handle = self.orchestrator.submit(owner_id, payload["videoId"])
        return {
            "message": "Flashcard generation started",
            "jobId": handle.job_id,
        }

    def retry(self, owner_id: str, video_id: str) -> dict:
        handle = self.orchestrator.retry(owner_id, video_id)
        return {
            "message": "Flashcard generation restarted",
            "jobId": handle.job_id,
        }

    def get(self, owner_id: str, video_id: str) -> dict:
        owner_id = validate_owner_id(owner_id)
        video_id = normalize_video_id(video_id)
        record = self.db.get_job_by_key(owner_id, video_id)
        if record is None:
            raise NotFoundError("Video not found", code=ErrorCode.RECORD_NOT_FOUND)
        return record.to_dict()

    def list_records(self, owner_id: str) -> list[dict]:
        owner_id = validate_owner_id(owner_id)
        return [record.to_dict() for record in self.db.list_jobs(owner_id)]

    def search(self, owner_id: str, query: str) -> list[dict]:
        owner_id = validate_owner_id(owner_id)
        if query is None or not str(query).strip():
            return self.list_records(owner_id)
        return [record.to_dict()
                for record in self.db.search_jobs(owner_id, str(query).strip())]

    def delete(self, owner_id: str, video_id: str) -> dict:
        owner_id = validate_owner_id(owner_id)
        video_id = normalize_video_id(video_id)
        if not self.db.delete_job(owner_id, video_id):
            raise NotFoundError("Video not found", code=ErrorCode.RECORD_NOT_FOUND)
        logger.info("Deleted job %s/%s", owner_id, video_id)
        return {"message": "Video and flashcards deleted successfully."}
