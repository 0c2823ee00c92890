"""
Hugging Face Inference API summarizer.
The model returns prose; each summary sentence becomes one line.
"""

import re
import logging

from yt_flashcards.core.constants import ErrorCode, HF_API_BASE, HF_SUMMARY_MODEL
from yt_flashcards.core.error_codes import TransientError
from yt_flashcards.core.http_utils import send, parse_json
from yt_flashcards.core.summarization import Summarizer
from yt_flashcards.core.transcription import require_api_key

logger = logging.getLogger(__name__)

_SENTENCE_END = re.compile(r'(?<=[.!?])\s+')


def sentences_to_lines(text: str) -> str:
    return '\n'.join(s.strip() for s in _SENTENCE_END.split(text.strip()) if s.strip())


class HuggingFaceSummarizer(Summarizer):
    name = "huggingface"
    # bart-large-cnn accepts 1024 tokens
    max_input_chars = 3500

    def __init__(self, api_key: str | None, model: str = HF_SUMMARY_MODEL,
                 api_base: str = HF_API_BASE):
        self.api_key = api_key
        self.url = f"{api_base}/{model}"

    def summarize(self, chunk_text: str) -> str:
        api_key = require_api_key(self.api_key, "Hugging Face")
        resp = send(
            "POST", self.url, "Hugging Face", ErrorCode.SUMMARIZATION_FAILED,
            headers={"Authorization": f"Bearer {api_key}"},
            json={"inputs": chunk_text, "options": {"wait_for_model": True}},
        )
        data = parse_json(resp, "Hugging Face", ErrorCode.SUMMARIZATION_FAILED)
        if isinstance(data, dict) and data.get("error"):
            raise TransientError(ErrorCode.SUMMARIZATION_FAILED,
                                 f"Hugging Face error: {str(data['error'])[:300]}")
        try:
            summary = data[0]["summary_text"]
        except (KeyError, IndexError, TypeError):
            raise TransientError(ErrorCode.SUMMARIZATION_FAILED,
                                 "Hugging Face response had no summary_text")
        return sentences_to_lines(summary or "")
