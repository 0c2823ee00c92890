"""
Cleanup: the per-job workspace holding downloaded audio.
"""

import shutil
import logging
from contextlib import contextmanager
from pathlib import Path

from yt_flashcards.core.error_codes import ResourceError

logger = logging.getLogger(__name__)


def cleanup_job_workspace(job_workspace: Path):
    """
    Delete a job workspace after the job ends (success or failure).
    Failures are logged as ResourceError and never raised.
    """
    if not job_workspace.exists():
        return

    try:
        shutil.rmtree(job_workspace)
        logger.debug("Deleted workspace: %s", job_workspace)
    except OSError as e:
        err = ResourceError(f"Failed to delete {job_workspace}: {e}")
        logger.warning("%s", err)


@contextmanager
def job_workspace(path: Path):
    """Create the workspace and remove it on every exit path."""
    path.mkdir(parents=True, exist_ok=True)
    try:
        yield path
    finally:
        cleanup_job_workspace(path)
