"""
SQLite data models (plain dataclasses) for YT Flashcards.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class Flashcard:
    content: str


@dataclass
class JobRecord:
    id: str                          # UUID
    owner_id: str
    video_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    status: str = "pending"
    error_code: Optional[str] = None
    error_detail: Optional[str] = None
    transcript: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None
    flashcards: list[Flashcard] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Client-facing view. The cached transcript stays server-side."""
        return {
            "jobId": self.id,
            "ownerId": self.owner_id,
            "videoId": self.video_id,
            "title": self.title,
            "description": self.description,
            "thumbnailUrl": self.thumbnail_url,
            "status": self.status,
            "errorDetail": self.error_detail,
            "flashcards": [{"content": card.content} for card in self.flashcards],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "completedAt": self.completed_at,
        }


@dataclass
class PipelineMessage:
    """Queue envelope around the {owner_id, video_id} payload."""
    id: int
    owner_id: str
    video_id: str
    attempts: int = 0
    available_at: float = 0.0
    claimed_by: Optional[str] = None
    claimed_at: Optional[float] = None
    enqueued_at: Optional[float] = None


@dataclass
class JobHandle:
    job_id: str
    owner_id: str
    video_id: str


@dataclass
class MediaInfo:
    title: str
    description: str
    thumbnail_url: str
    audio_path: Path


@dataclass
class PollResult:
    status: str
    text: Optional[str] = None
    error: Optional[str] = None
