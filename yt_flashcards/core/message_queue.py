"""
Durable pipeline message queue on top of the SQLite database.
At most one message exists per (owner_id, video_id); a claimed message is
invisible to other workers until it is acked, requeued or its claim goes stale.
"""

import logging
import time
from typing import Callable

from yt_flashcards.core.constants import VISIBILITY_TIMEOUT_SEC
from yt_flashcards.core.db_sqlite import Database
from yt_flashcards.core.models_sqlite import PipelineMessage

logger = logging.getLogger(__name__)


class MessageQueue:

    def __init__(self, db: Database, clock: Callable[[], float] = time.time,
                 visibility_timeout_sec: float = VISIBILITY_TIMEOUT_SEC):
        self.db = db
        self.clock = clock
        self.visibility_timeout_sec = visibility_timeout_sec

    def enqueue(self, owner_id: str, video_id: str, delay: float = 0.0) -> bool:
        now = self.clock()
        added = self.db.insert_message(owner_id, video_id, now + delay, now)
        if added:
            logger.debug("Enqueued %s/%s (delay %.1fs)", owner_id, video_id, delay)
        return added

    def claim(self, worker_id: str) -> PipelineMessage | None:
        now = self.clock()
        message = self.db.claim_message(worker_id, now, now - self.visibility_timeout_sec)
        if message:
            logger.debug("Worker %s claimed %s/%s (attempt %d)",
                         worker_id, message.owner_id, message.video_id, message.attempts)
        return message

    def touch(self, message: PipelineMessage) -> bool:
        """
        Renew the claim so the message stays invisible to other workers.
        Returns False once the claim has gone stale and been taken over.
        """
        now = self.clock()
        if not self.db.touch_message(message.id, message.claimed_by, now):
            logger.warning("Worker %s lost its claim on %s/%s",
                           message.claimed_by, message.owner_id, message.video_id)
            return False
        message.claimed_at = now
        return True

    def ack(self, message: PipelineMessage) -> bool:
        """Message is done with, successfully or terminally."""
        return self.db.delete_message(message.id, message.claimed_by)

    def requeue(self, message: PipelineMessage, delay: float) -> bool:
        """Release the claim and make the message visible again after delay."""
        available_at = self.clock() + delay
        released = self.db.release_message(message.id, message.claimed_by, available_at)
        if released:
            message.available_at = available_at
            message.claimed_by = None
            message.claimed_at = None
        return released

    def pending_count(self) -> int:
        return self.db.count_messages()
