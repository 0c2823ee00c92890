"""
Pipeline orchestrator.
Takes one queued (owner, video) message through
download → transcription → summarization → persistence.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from yt_flashcards.core.cleanup import job_workspace
from yt_flashcards.core.chunking_text import split_text
from yt_flashcards.core.config import AppConfig
from yt_flashcards.core.constants import (
    JobStatus, ErrorCode, STATUS_ORDER, TERMINAL_STATUSES, TranscriptStatus,
    MAX_ATTEMPTS, RETRY_BACKOFF_SEC, POLL_INTERVAL_SEC, POLL_TIMEOUT_SEC,
    MAX_POLLS, SUMMARY_CHUNK_CHARS, MAX_ERROR_DETAIL_LEN,
)
from yt_flashcards.core.db_sqlite import Database
from yt_flashcards.core.error_codes import (
    DuplicateError, JobError, NotFoundError, TransientError,
)
from yt_flashcards.core.media_resolver import MediaResolver
from yt_flashcards.core.merge import merge_summaries, parse_flashcards
from yt_flashcards.core.message_queue import MessageQueue
from yt_flashcards.core.models_sqlite import (
    Flashcard, JobHandle, JobRecord, MediaInfo, PipelineMessage,
)
from yt_flashcards.core.summarization import Summarizer
from yt_flashcards.core.transcription import AsyncTranscriber
from yt_flashcards.core.url_parse import normalize_video_id, validate_owner_id

logger = logging.getLogger(__name__)


class ClaimLost(Exception):
    """This worker's claim on the message went stale and another worker took it."""


@dataclass
class PipelineSettings:
    max_attempts: int = MAX_ATTEMPTS
    retry_backoff_sec: float = RETRY_BACKOFF_SEC
    poll_interval_sec: float = POLL_INTERVAL_SEC
    poll_timeout_sec: float = POLL_TIMEOUT_SEC
    max_polls: int = MAX_POLLS
    summary_chunk_chars: int = SUMMARY_CHUNK_CHARS

    @classmethod
    def from_config(cls, config: AppConfig) -> "PipelineSettings":
        return cls(
            max_attempts=config.get('max_attempts'),
            retry_backoff_sec=config.get('retry_backoff_sec'),
            poll_interval_sec=config.get('poll_interval_sec'),
            poll_timeout_sec=config.get('poll_timeout_sec'),
            max_polls=config.get('max_polls'),
            summary_chunk_chars=config.get('summary_chunk_chars'),
        )


class PipelineOrchestrator:
    """
    Sequences the media resolver and the transcription/summarization
    adapters for one job at a time, records status on the job record
    and decides between retry and terminal failure.

    The queue delivers a message to one worker at a time, so a job record
    is only ever mutated by the worker holding its message. The claim is
    renewed at every stage, poll and summary chunk; a worker that finds
    its claim taken over stops without writing to the record.
    """

    def __init__(self, db: Database, queue: MessageQueue,
                 resolver: MediaResolver, transcriber, summarizer: Summarizer,
                 workspace_root: Path, settings: PipelineSettings | None = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.db = db
        self.queue = queue
        self.resolver = resolver
        self.transcriber = transcriber
        self.summarizer = summarizer
        self.workspace_root = workspace_root
        self.settings = settings or PipelineSettings()
        self._sleep = sleep
        self._clock = clock

    # ── Submission ────────────────────────────────────────────────────

    def submit(self, owner_id: str, video_id: str) -> JobHandle:
        """
        Create a pending job and enqueue it. A failed job for the same
        key is reset and re-enqueued. Raises ValidationError or DuplicateError.
        """
        owner_id = validate_owner_id(owner_id)
        video_id = normalize_video_id(video_id)

        with self.db.transaction():
            record = self.db.create_job(owner_id, video_id)
            self.queue.enqueue(owner_id, video_id)

        logger.info("Submitted job %s (%s/%s)", record.id, owner_id, video_id)
        return JobHandle(job_id=record.id, owner_id=owner_id, video_id=video_id)

    def retry(self, owner_id: str, video_id: str) -> JobHandle:
        """Explicit retry-from-failed. Raises NotFoundError if no job exists."""
        owner_id = validate_owner_id(owner_id)
        video_id = normalize_video_id(video_id)

        with self.db.transaction():
            record = self.db.get_job_by_key(owner_id, video_id)
            if record is None:
                raise NotFoundError(f"No job for video {video_id}",
                                    code=ErrorCode.RECORD_NOT_FOUND)
            if record.status != JobStatus.FAILED:
                raise DuplicateError(
                    f"Job for video {video_id} is {record.status}; only failed jobs can be retried",
                    job_id=record.id, status=record.status,
                )
            self.db.reset_failed_job(record.id)
            self.queue.enqueue(owner_id, video_id)

        logger.info("Retrying job %s (%s/%s)", record.id, owner_id, video_id)
        return JobHandle(job_id=record.id, owner_id=owner_id, video_id=video_id)

    # ── Processing ────────────────────────────────────────────────────

    def process(self, message: PipelineMessage) -> str | None:
        """
        Run the pipeline for one claimed message.

        Returns the terminal status reached, or None when the message was
        requeued for another attempt, dropped because its job is gone, or
        taken over by another worker after this worker's claim went stale.
        """
        record = self.db.get_job_by_key(message.owner_id, message.video_id)
        if record is None:
            logger.info("Job for %s/%s no longer exists — dropping message",
                        message.owner_id, message.video_id)
            self.queue.ack(message)
            return None

        if record.status in TERMINAL_STATUSES:
            logger.info("Job %s is already %s — dropping message", record.id, record.status)
            self.queue.ack(message)
            return record.status

        logger.info("Processing job %s (%s/%s), attempt %d/%d",
                    record.id, record.owner_id, record.video_id,
                    message.attempts, self.settings.max_attempts)

        # One workspace per delivery, so a stale claim never shares files
        workspace_path = self.workspace_root / f"{record.id}.{message.attempts}"
        try:
            with job_workspace(workspace_path) as workspace:
                media, flashcards = self._run_pipeline(record, message, workspace)
        except ClaimLost:
            logger.warning("Job %s: claim taken over by another worker — abandoning attempt %d",
                           record.id, message.attempts)
            return None
        except JobError as e:
            return self._handle_failure(record, message, e)
        except Exception as e:
            logger.error("Unexpected error processing job %s: %s", record.id, e, exc_info=True)
            error = JobError(ErrorCode.UNEXPECTED,
                             "Unexpected error while generating flashcards",
                             retryable=False)
            return self._handle_failure(record, message, error)

        with self.db.transaction():
            if not self.queue.touch(message):
                logger.warning("Job %s: claim taken over before completion — result discarded",
                               record.id)
                return None
            written = self.db.complete_job(
                record.id, flashcards,
                title=media.title if media else None,
                description=media.description if media else None,
                thumbnail_url=media.thumbnail_url if media else None,
            )
            self.queue.ack(message)

        if not written:
            logger.info("Job %s was deleted during processing — result discarded", record.id)
            return None

        logger.info("Job %s completed with %d flashcards", record.id, len(flashcards))
        return JobStatus.COMPLETED

    def _run_pipeline(self, record: JobRecord, message: PipelineMessage,
                      workspace: Path) -> tuple[MediaInfo | None, list[Flashcard]]:
        media = None
        transcript = record.transcript

        if transcript:
            logger.info("Job %s resuming from cached transcript", record.id)
        else:
            self._advance(record, message, JobStatus.DOWNLOADING)
            media = self.resolver.resolve(record.video_id, workspace)
            self.db.set_metadata(record.id, media.title, media.description,
                                 media.thumbnail_url)

            self._advance(record, message, JobStatus.TRANSCRIBING)
            transcript = self._transcribe(message, media.audio_path)
            if not transcript.strip():
                raise JobError(ErrorCode.EMPTY_TRANSCRIPT,
                               "The video's audio produced an empty transcript",
                               retryable=False)
            self._renew(message)
            self.db.update_job(record.id, transcript=transcript)

        self._advance(record, message, JobStatus.SUMMARIZING)
        summary = self._summarize(message, transcript)
        flashcards = parse_flashcards(summary)
        if not flashcards:
            raise TransientError(ErrorCode.SUMMARIZATION_FAILED,
                                 "Summarizer returned no flashcard content")
        return media, flashcards

    def _renew(self, message: PipelineMessage):
        if not self.queue.touch(message):
            raise ClaimLost()

    def _advance(self, record: JobRecord, message: PipelineMessage, status: str):
        """
        Renew the claim and move status forward. Re-running a stage already
        reached leaves the status as it is.
        """
        self._renew(message)
        if STATUS_ORDER.index(status) <= STATUS_ORDER.index(record.status):
            return
        self.db.update_job_status(record.id, status)
        logger.debug("Job %s: %s -> %s", record.id, record.status, status)
        record.status = status

    # ── Stages ────────────────────────────────────────────────────────

    def _transcribe(self, message: PipelineMessage, audio_path: Path) -> str:
        if isinstance(self.transcriber, AsyncTranscriber):
            transcript_id = self.transcriber.submit(audio_path)
            return self._poll_transcript(message, transcript_id)
        return self.transcriber.transcribe(audio_path)

    def _poll_transcript(self, message: PipelineMessage, transcript_id: str) -> str:
        """Poll until the adapter reports a terminal status, a timeout or max polls."""
        interval = self.settings.poll_interval_sec
        deadline = self._clock() + self.settings.poll_timeout_sec
        polls = 0

        while True:
            self._renew(message)
            polls += 1
            result = self.transcriber.poll(transcript_id)
            if result.status == TranscriptStatus.COMPLETED:
                logger.info("Transcript %s ready after %d polls", transcript_id, polls)
                return result.text or ""
            if result.status == TranscriptStatus.FAILED:
                raise TransientError(ErrorCode.TRANSCRIPTION_FAILED,
                                     f"Transcription failed: {result.error or 'unknown error'}")
            if polls >= self.settings.max_polls or self._clock() + interval > deadline:
                break
            self._sleep(interval)

        raise TransientError(ErrorCode.TRANSCRIPTION_TIMEOUT,
                             f"Transcription did not finish after {polls} polls")

    def _summarize(self, message: PipelineMessage, transcript: str) -> str:
        chunk_chars = min(self.settings.summary_chunk_chars, self.summarizer.max_input_chars)
        chunks = split_text(transcript, chunk_chars)
        summaries = []
        for i, chunk in enumerate(chunks, 1):
            self._renew(message)
            logger.debug("Summarizing chunk %d/%d (%d chars)", i, len(chunks), len(chunk))
            summaries.append(self.summarizer.summarize(chunk))
        return merge_summaries(summaries)

    # ── Failure handling ──────────────────────────────────────────────

    def _handle_failure(self, record: JobRecord, message: PipelineMessage,
                        error: JobError) -> str | None:
        """Requeue a retryable failure, or mark the job failed."""
        if error.retryable and message.attempts < self.settings.max_attempts:
            if not self.queue.requeue(message, self.settings.retry_backoff_sec):
                logger.warning("Job %s attempt %d failed after its claim was taken over: %s",
                               record.id, message.attempts, error)
                return None
            logger.warning("Job %s attempt %d/%d failed: %s — retrying in %.0fs",
                           record.id, message.attempts, self.settings.max_attempts,
                           error, self.settings.retry_backoff_sec)
            return None

        detail = error.message
        if error.retryable:
            detail = f"{detail} (gave up after {message.attempts} attempts)"
        with self.db.transaction():
            if not self.queue.touch(message):
                logger.warning("Job %s failed after its claim was taken over: %s",
                               record.id, error)
                return None
            logger.error("Job %s failed: %s", record.id, error)
            self.db.fail_job(record.id, error.code, detail[:MAX_ERROR_DETAIL_LEN])
            self.queue.ack(message)
        return JobStatus.FAILED
