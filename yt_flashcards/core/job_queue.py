"""
Worker pool.
Each worker thread claims one message at a time and hands it to the orchestrator.
"""

import logging
import threading
from typing import Optional

from yt_flashcards.core.constants import WORKER_COUNT, WORKER_IDLE_WAIT_SEC
from yt_flashcards.core.orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)


class WorkerPool:
    """
    Runs worker_count threads pulling from the orchestrator's queue.
    Idle workers wait on the stop event rather than busy-polling.
    """

    def __init__(self, orchestrator: PipelineOrchestrator,
                 worker_count: int = WORKER_COUNT,
                 idle_wait_sec: float = WORKER_IDLE_WAIT_SEC,
                 name: str = "worker"):
        self.orchestrator = orchestrator
        self.worker_count = worker_count
        self.idle_wait_sec = idle_wait_sec
        self.name = name
        self._threads: list[threading.Thread] = []
        self._stop_event = threading.Event()

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start(self):
        """Start the worker threads."""
        if self.is_running():
            return
        self._stop_event.clear()
        self._threads = []
        for i in range(self.worker_count):
            worker_id = f"{self.name}-{i}"
            thread = threading.Thread(target=self._worker_loop, args=(worker_id,),
                                      name=worker_id, daemon=True)
            self._threads.append(thread)
            thread.start()
        logger.info("Started %d worker(s)", self.worker_count)

    def stop(self):
        """
        Stop claiming new messages and wake idle workers. A worker holding
        a job finishes it before exiting.
        """
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None):
        for thread in self._threads:
            thread.join(timeout)

    def is_running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    # ── Inline processing ─────────────────────────────────────────────

    def run_once(self, worker_id: str = "inline") -> bool:
        """Claim and process one message. Returns False if none was available."""
        message = self.orchestrator.queue.claim(worker_id)
        if message is None:
            return False
        self.orchestrator.process(message)
        return True

    def drain(self, max_messages: Optional[int] = None) -> int:
        """Process messages inline until none is available. Returns the count."""
        processed = 0
        while max_messages is None or processed < max_messages:
            if not self.run_once():
                break
            processed += 1
        return processed

    # ── Worker loop ───────────────────────────────────────────────────

    def _worker_loop(self, worker_id: str):
        """Main worker loop: processes one message at a time."""
        logger.debug("Worker %s started", worker_id)
        while not self._stop_event.is_set():
            try:
                claimed = self.run_once(worker_id)
            except Exception as e:
                # A claimed message becomes visible again after the visibility timeout
                logger.error("Worker %s loop error: %s", worker_id, e, exc_info=True)
                claimed = False
            if not claimed:
                self._stop_event.wait(self.idle_wait_sec)
        logger.debug("Worker %s stopped", worker_id)
