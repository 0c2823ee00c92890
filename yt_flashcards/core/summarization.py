"""
Summarization adapter interface.
"""

from abc import ABC, abstractmethod


class Summarizer(ABC):
    """
    Turns one chunk of transcript text into bullet-style text with one
    flashcard point per line. Inputs never exceed max_input_chars.
    """
    name = "summarizer"
    max_input_chars = 3500

    @abstractmethod
    def summarize(self, chunk_text: str) -> str:
        raise NotImplementedError
