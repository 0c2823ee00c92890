"""
Security utilities for YT Flashcards.
- Safe subprocess execution (argument arrays only)
- API key lookup (environment only, never logged)
"""

import os
import subprocess
import logging

from yt_flashcards.core.constants import API_KEY_ENV

logger = logging.getLogger(__name__)


# ── Subprocess safety ─────────────────────────────────────────────────

def run_subprocess(args: list[str], **kwargs) -> subprocess.CompletedProcess:
    """
    Execute a subprocess using argument arrays only.
    shell=True is explicitly forbidden.
    """
    if not isinstance(args, (list, tuple)):
        raise TypeError("Subprocess args must be a list/tuple, not a string")

    # Force shell=False: drop any caller-supplied value, then set it once
    kwargs.pop('shell', None)

    logger.debug("Running subprocess: %s", ' '.join(str(a) for a in args))
    return subprocess.run(args, shell=False, **kwargs)


def run_subprocess_capture(args: list[str], timeout: int = 300, **kwargs) -> subprocess.CompletedProcess:
    """Run subprocess and capture stdout/stderr."""
    return run_subprocess(
        args,
        capture_output=True,
        text=True,
        timeout=timeout,
        **kwargs,
    )


# ── API keys ──────────────────────────────────────────────────────────

def get_api_key(service: str) -> str | None:
    """Return the API key for a service from its environment variable."""
    env_var = API_KEY_ENV.get(service)
    if not env_var:
        return None
    value = os.environ.get(env_var, "").strip()
    return value or None


def mask_secret(value: str | None) -> str:
    """Render a secret for diagnostics without revealing it."""
    if not value:
        return "missing"
    return f"set (…{value[-4:]})" if len(value) > 8 else "set"
