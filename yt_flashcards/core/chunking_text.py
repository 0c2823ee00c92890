"""
Character-based transcript chunking for the summarizer.
Boundaries are counted in characters only and may fall mid-sentence.
"""

from yt_flashcards.core.constants import SUMMARY_CHUNK_CHARS


def split_text(text: str, chunk_chars: int = SUMMARY_CHUNK_CHARS) -> list[str]:
    """Split text into consecutive slices of at most chunk_chars characters."""
    if chunk_chars <= 0:
        raise ValueError("chunk_chars must be positive")
    return [text[start:start + chunk_chars] for start in range(0, len(text), chunk_chars)]
