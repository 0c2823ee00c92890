"""
Merge per-chunk summaries and split the result into flashcards.
"""

import logging

from yt_flashcards.core.models_sqlite import Flashcard

logger = logging.getLogger(__name__)


def merge_summaries(summaries: list[str]) -> str:
    """Join chunk summaries in their original order, one line break apart."""
    return '\n'.join(s.strip('\n') for s in summaries)


def parse_flashcards(summary: str) -> list[Flashcard]:
    """One flashcard per non-blank line, in order."""
    cards = [Flashcard(content=line.strip())
             for line in summary.splitlines() if line.strip()]
    logger.debug("Parsed %d flashcards", len(cards))
    return cards
