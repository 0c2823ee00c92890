"""
OpenAI chat-completions summarizer.
"""

import logging

from yt_flashcards.core.constants import ErrorCode, OPENAI_API_BASE, OPENAI_SUMMARY_MODEL
from yt_flashcards.core.error_codes import TransientError
from yt_flashcards.core.http_utils import send, parse_json
from yt_flashcards.core.summarization import Summarizer
from yt_flashcards.core.transcription import require_api_key

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a flashcard generator. Summarize the provided text into concise "
    "points suitable for flashcards. Write exactly one point per line and "
    "nothing else."
)


class OpenAISummarizer(Summarizer):
    name = "openai"
    # gpt-4 has an 8k token window; leave room for the prompt and the reply
    max_input_chars = 12000

    def __init__(self, api_key: str | None, model: str = OPENAI_SUMMARY_MODEL,
                 api_base: str = OPENAI_API_BASE):
        self.api_key = api_key
        self.model = model
        self.url = f"{api_base}/chat/completions"

    def summarize(self, chunk_text: str) -> str:
        api_key = require_api_key(self.api_key, "OpenAI")
        resp = send(
            "POST", self.url, "OpenAI", ErrorCode.SUMMARIZATION_FAILED,
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": chunk_text},
                ],
            },
        )
        data = parse_json(resp, "OpenAI", ErrorCode.SUMMARIZATION_FAILED)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise TransientError(ErrorCode.SUMMARIZATION_FAILED,
                                 "OpenAI response had no message content")
        return (content or "").strip()
