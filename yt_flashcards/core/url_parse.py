"""
YouTube URL parsing and video identifier validation.
"""

import re
from urllib.parse import urlparse, parse_qs

from yt_flashcards.core.constants import (
    YOUTUBE_URL_PATTERNS, VIDEO_ID_PATTERN, MAX_OWNER_ID_LEN,
)
from yt_flashcards.core.error_codes import ValidationError


def extract_video_id(url: str) -> str | None:
    """
    Extract the 11-character video_id from a YouTube URL.
    Returns None if the URL is not a valid YouTube URL.
    """
    url = url.strip()
    if not url:
        return None

    # Try regex patterns
    for pattern in YOUTUBE_URL_PATTERNS:
        m = re.search(pattern, url)
        if m:
            return m.group(1)

    # Fallback: parse query string for 'v' parameter
    parsed = urlparse(url)
    if 'youtube.com' in parsed.netloc or 'youtu.be' in parsed.netloc:
        qs = parse_qs(parsed.query)
        v = qs.get('v', [None])[0]
        if v and re.match(r'^[a-zA-Z0-9_-]{11}$', v):
            return v

    return None


def normalize_video_id(value) -> str:
    """
    Accept a bare video identifier or a YouTube URL and return the identifier.
    Raises ValidationError if the value is missing or malformed.
    """
    if value is None or not str(value).strip():
        raise ValidationError("Video ID is required")

    value = str(value).strip()
    if '/' in value or '.' in value:
        video_id = extract_video_id(value)
        if not video_id:
            raise ValidationError(f"Not a valid YouTube URL: {value[:200]}")
        return video_id

    if not re.match(VIDEO_ID_PATTERN, value):
        raise ValidationError(f"Malformed video ID: {value[:200]}")
    return value


def validate_owner_id(owner_id) -> str:
    if owner_id is None or not str(owner_id).strip():
        raise ValidationError("Owner ID is required")
    owner_id = str(owner_id).strip()
    if len(owner_id) > MAX_OWNER_ID_LEN:
        raise ValidationError("Owner ID is too long")
    return owner_id
