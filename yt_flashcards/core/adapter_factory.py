"""
Build the configured transcription and summarization adapters.
"""

import logging

from yt_flashcards.core.config import AppConfig
from yt_flashcards.core.constants import TranscriberName, SummarizerName
from yt_flashcards.core.security_utils import get_api_key
from yt_flashcards.core.summarize_huggingface import HuggingFaceSummarizer
from yt_flashcards.core.summarize_openai import OpenAISummarizer
from yt_flashcards.core.transcribe_assemblyai import AssemblyAITranscriber
from yt_flashcards.core.transcribe_deepgram import DeepgramTranscriber
from yt_flashcards.core.transcribe_huggingface import HuggingFaceTranscriber
from yt_flashcards.core.transcribe_whisper import WhisperTranscriber

logger = logging.getLogger(__name__)

# Which API key each adapter needs
TRANSCRIBER_SERVICE = {
    TranscriberName.WHISPER: "openai",
    TranscriberName.ASSEMBLYAI: "assemblyai",
    TranscriberName.HUGGINGFACE: "huggingface",
    TranscriberName.DEEPGRAM: "deepgram",
}
SUMMARIZER_SERVICE = {
    SummarizerName.OPENAI: "openai",
    SummarizerName.HUGGINGFACE: "huggingface",
}


def build_transcriber(config: AppConfig):
    name = config.transcriber
    api_key = get_api_key(TRANSCRIBER_SERVICE[name])
    logger.info("Transcriber: %s", name)
    if name == TranscriberName.ASSEMBLYAI:
        return AssemblyAITranscriber(api_key)
    if name == TranscriberName.HUGGINGFACE:
        return HuggingFaceTranscriber(api_key, model=config.get('hf_transcribe_model'))
    if name == TranscriberName.DEEPGRAM:
        return DeepgramTranscriber(api_key)
    return WhisperTranscriber(api_key, model=config.get('openai_transcribe_model'))


def build_summarizer(config: AppConfig):
    name = config.summarizer
    api_key = get_api_key(SUMMARIZER_SERVICE[name])
    logger.info("Summarizer: %s", name)
    if name == SummarizerName.HUGGINGFACE:
        return HuggingFaceSummarizer(api_key, model=config.get('hf_summary_model'))
    return OpenAISummarizer(api_key, model=config.get('openai_summary_model'))
