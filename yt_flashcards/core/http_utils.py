"""
Shared HTTP helpers for the service adapters.
Maps requests failures onto the JobError taxonomy.
"""

import json
import logging

import requests

from yt_flashcards.core.constants import ErrorCode, HTTP_TIMEOUT_SEC
from yt_flashcards.core.error_codes import JobError, TransientError

logger = logging.getLogger(__name__)

_REJECTED_STATUSES = {400, 401, 403, 404, 413, 415, 422}


def send(method: str, url: str, service: str, failure_code: str,
         timeout: float = HTTP_TIMEOUT_SEC, **kwargs) -> requests.Response:
    """
    Issue an HTTP request and return the response if it succeeded.

    Timeouts, connection errors, 429 and 5xx raise TransientError with
    failure_code. Client errors that retrying cannot fix raise a
    non-retryable JobError.
    """
    try:
        resp = requests.request(method, url, timeout=timeout, **kwargs)
    except requests.exceptions.Timeout:
        raise TransientError(failure_code, f"{service} request timed out")
    except requests.exceptions.ConnectionError:
        raise TransientError(ErrorCode.NETWORK_TRANSIENT,
                             f"Network error connecting to {service}")
    except requests.exceptions.RequestException as e:
        raise TransientError(failure_code, f"{service} request failed: {type(e).__name__}")

    if resp.status_code == 429 or resp.status_code >= 500:
        raise TransientError(failure_code,
                             f"{service} returned {resp.status_code}: {_body_excerpt(resp)}")

    if resp.status_code in _REJECTED_STATUSES or not resp.ok:
        raise JobError(ErrorCode.SERVICE_REJECTED,
                       f"{service} rejected the request ({resp.status_code}): {_body_excerpt(resp)}",
                       retryable=False)

    return resp


def parse_json(resp: requests.Response, service: str, failure_code: str):
    try:
        return resp.json()
    except (json.JSONDecodeError, ValueError):
        raise TransientError(failure_code, f"Failed to parse {service} response JSON")


def _body_excerpt(resp: requests.Response) -> str:
    # Sanitize error message (never echo request headers)
    return resp.text[:300] if resp.text else "No response body"
