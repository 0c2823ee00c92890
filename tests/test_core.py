#!/usr/bin/env python3
"""
Unit tests for YT Flashcards core modules.
Tests cover: URL/video id parsing, security utils, error codes, config,
diagnostics, text chunking, flashcard parsing, database and message queue.
"""

import os
import sys
import json
import tempfile
from pathlib import Path
from unittest import mock

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import unittest

from yt_flashcards.core.constants import (
    JobStatus, ErrorCode, RETRYABLE_ERRORS, SUMMARY_CHUNK_CHARS, MIN_LEASE_SEC,
    TranscriberName, SummarizerName,
)
from yt_flashcards.core.url_parse import (
    extract_video_id, normalize_video_id, validate_owner_id,
)
from yt_flashcards.core.error_codes import (
    JobError, ValidationError, DuplicateError, NotFoundError, TransientError,
    ResourceError, is_retryable,
)
from yt_flashcards.core.config import AppConfig
from yt_flashcards.core.chunking_text import split_text
from yt_flashcards.core.merge import merge_summaries, parse_flashcards
from yt_flashcards.core.models_sqlite import Flashcard
from yt_flashcards.core.cleanup import cleanup_job_workspace, job_workspace
from yt_flashcards.core.security_utils import run_subprocess, get_api_key, mask_secret
from yt_flashcards.core.diagnostics import check_cookies_file, get_diagnostics


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestURLParsing(unittest.TestCase):
    """Test YouTube URL parsing and video id validation."""

    def test_standard_url(self):
        self.assertEqual(
            extract_video_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ"),
            "dQw4w9WgXcQ",
        )

    def test_short_url(self):
        self.assertEqual(
            extract_video_id("https://youtu.be/dQw4w9WgXcQ"),
            "dQw4w9WgXcQ",
        )

    def test_shorts_url(self):
        self.assertEqual(
            extract_video_id("https://www.youtube.com/shorts/dQw4w9WgXcQ"),
            "dQw4w9WgXcQ",
        )

    def test_url_with_params(self):
        self.assertEqual(
            extract_video_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=120"),
            "dQw4w9WgXcQ",
        )

    def test_invalid_url(self):
        self.assertIsNone(extract_video_id("https://www.google.com"))
        self.assertIsNone(extract_video_id("not a url"))
        self.assertIsNone(extract_video_id(""))

    def test_normalize_bare_id(self):
        self.assertEqual(normalize_video_id("abc123"), "abc123")
        self.assertEqual(normalize_video_id("  dQw4w9WgXcQ "), "dQw4w9WgXcQ")

    def test_normalize_url(self):
        self.assertEqual(normalize_video_id("https://youtu.be/dQw4w9WgXcQ"), "dQw4w9WgXcQ")

    def test_normalize_missing(self):
        for value in (None, "", "   "):
            with self.assertRaises(ValidationError) as ctx:
                normalize_video_id(value)
            self.assertEqual(ctx.exception.message, "Video ID is required")

    def test_normalize_malformed(self):
        with self.assertRaises(ValidationError):
            normalize_video_id("abc 123")
        with self.assertRaises(ValidationError):
            normalize_video_id("https://www.google.com/watch")

    def test_owner_id(self):
        self.assertEqual(validate_owner_id(" u1 "), "u1")
        with self.assertRaises(ValidationError):
            validate_owner_id("")
        with self.assertRaises(ValidationError):
            validate_owner_id("x" * 500)


class TestSecurityUtils(unittest.TestCase):
    """Test subprocess safety and API key handling."""

    def test_string_args_rejected(self):
        with self.assertRaises(TypeError):
            run_subprocess("yt-dlp --version")

    def test_shell_is_forced_off(self):
        with mock.patch("yt_flashcards.core.security_utils.subprocess.run") as run:
            run_subprocess(["echo", "hi"], shell=True)
        self.assertIs(run.call_args[1]["shell"], False)

    def test_api_key_from_environment(self):
        with mock.patch.dict(os.environ, {"OPENAI_API_KEY": "  sk-abc  "}, clear=True):
            self.assertEqual(get_api_key("openai"), "sk-abc")
            self.assertIsNone(get_api_key("assemblyai"))
            self.assertIsNone(get_api_key("unknown"))

    def test_mask_secret(self):
        self.assertEqual(mask_secret(None), "missing")
        self.assertEqual(mask_secret("short"), "set")
        masked = mask_secret("sk-1234567890abcd")
        self.assertTrue(masked.endswith("abcd)"))
        self.assertNotIn("1234567890", masked)


class TestDiagnostics(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.config = AppConfig(Path(self.tmpdir.name) / "config.json")
        self.config.set('cookies_path', str(Path(self.tmpdir.name) / "cookies.txt"))

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_cookies_file_check(self):
        self.assertFalse(check_cookies_file(self.config.cookies_path)["detected"])
        self.config.cookies_path.write_text("# Netscape HTTP Cookie File\n")
        info = check_cookies_file(self.config.cookies_path)
        self.assertTrue(info["detected"])
        self.assertIsNotNone(info["last_modified"])

    def test_report_masks_keys(self):
        env = {"OPENAI_API_KEY": "sk-1234567890abcd"}
        with mock.patch.dict(os.environ, env, clear=True), \
                mock.patch("yt_flashcards.core.diagnostics.run_subprocess_capture",
                           side_effect=FileNotFoundError()):
            report = get_diagnostics(self.config)
        self.assertEqual(report["ytdlp_version"], "Not installed")
        self.assertEqual(report["transcriber"]["name"], TranscriberName.WHISPER)
        self.assertNotIn("1234567890", json.dumps(report))
        self.assertEqual(report["summarizer"]["name"], SummarizerName.OPENAI)


class TestErrorCodes(unittest.TestCase):
    """Test error code handling."""

    def test_retryable_errors(self):
        self.assertTrue(is_retryable(ErrorCode.DOWNLOAD_FAILED))
        self.assertTrue(is_retryable(ErrorCode.TRANSCRIPTION_FAILED))
        self.assertTrue(is_retryable(ErrorCode.SUMMARIZATION_FAILED))
        self.assertTrue(is_retryable(ErrorCode.NETWORK_TRANSIENT))

    def test_non_retryable_errors(self):
        self.assertFalse(is_retryable(ErrorCode.INVALID_INPUT))
        self.assertFalse(is_retryable(ErrorCode.VIDEO_NOT_FOUND))
        self.assertFalse(is_retryable(ErrorCode.MISSING_API_KEY))

    def test_job_error_auto_retryable(self):
        self.assertTrue(JobError(ErrorCode.DOWNLOAD_FAILED, "test").retryable)
        self.assertFalse(JobError(ErrorCode.GEO_BLOCKED, "test").retryable)

    def test_taxonomy(self):
        self.assertFalse(ValidationError("bad").retryable)
        self.assertFalse(DuplicateError("dup").retryable)
        self.assertFalse(NotFoundError("gone").retryable)
        self.assertFalse(ResourceError("disk").retryable)
        self.assertTrue(TransientError(ErrorCode.NETWORK_TRANSIENT, "blip").retryable)
        self.assertEqual(NotFoundError("gone").code, ErrorCode.VIDEO_NOT_FOUND)
        self.assertIn(ErrorCode.TRANSCRIPTION_TIMEOUT, RETRYABLE_ERRORS)


class TestConfig(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = Path(self.tmpdir.name) / "config.json"

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_defaults(self):
        config = AppConfig(self.path)
        self.assertEqual(config.get('max_attempts'), 5)
        self.assertEqual(config.get('retry_backoff_sec'), 5.0)
        self.assertEqual(config.get('poll_interval_sec'), 5.0)
        self.assertEqual(config.get('summary_chunk_chars'), SUMMARY_CHUNK_CHARS)
        self.assertEqual(config.transcriber, TranscriberName.WHISPER)
        self.assertEqual(config.summarizer, SummarizerName.OPENAI)

    def test_clamps_saved_values(self):
        self.path.write_text(json.dumps({
            'max_attempts': 1000,
            'summary_chunk_chars': 10,
            'worker_count': "three",
            'transcriber': "carrier-pigeon",
        }))
        config = AppConfig(self.path)
        self.assertEqual(config.get('max_attempts'), 20)
        self.assertEqual(config.get('summary_chunk_chars'), 500)
        self.assertEqual(config.get('worker_count'), 1)
        self.assertEqual(config.transcriber, TranscriberName.WHISPER)

    def test_set_persists(self):
        config = AppConfig(self.path)
        config.set('summarizer', SummarizerName.HUGGINGFACE)
        config.set('retry_backoff_sec', "2.5")
        reloaded = AppConfig(self.path)
        self.assertEqual(reloaded.summarizer, SummarizerName.HUGGINGFACE)
        self.assertEqual(reloaded.get('retry_backoff_sec'), 2.5)

    def test_corrupt_file_uses_defaults(self):
        self.path.write_text("{not json")
        config = AppConfig(self.path)
        self.assertEqual(config.get('max_attempts'), 5)

    def test_visibility_outlives_poll_and_download(self):
        self.path.write_text(json.dumps({'visibility_timeout_sec': 60}))
        config = AppConfig(self.path)
        self.assertGreaterEqual(config.get('visibility_timeout_sec'),
                                config.get('poll_timeout_sec') + MIN_LEASE_SEC)

        config.set('poll_timeout_sec', 7200)
        self.assertEqual(config.get('visibility_timeout_sec'), 7200 + MIN_LEASE_SEC)
        config.set('visibility_timeout_sec', 120)
        self.assertEqual(config.get('visibility_timeout_sec'), 7200 + MIN_LEASE_SEC)
        self.assertEqual(AppConfig(self.path).get('visibility_timeout_sec'), 7200 + MIN_LEASE_SEC)


class TestChunking(unittest.TestCase):
    """Test character-based chunking."""

    def test_split_4000_chars(self):
        chunks = split_text("x" * 4000, 3500)
        self.assertEqual([len(c) for c in chunks], [3500, 500])

    def test_split_preserves_text(self):
        text = "The quick brown fox. Jumps over the lazy dog." * 10
        self.assertEqual("".join(split_text(text, 37)), text)

    def test_split_empty(self):
        self.assertEqual(split_text("", 100), [])

    def test_split_rejects_bad_size(self):
        with self.assertRaises(ValueError):
            split_text("abc", 0)


class TestFlashcardParsing(unittest.TestCase):

    def test_one_card_per_line(self):
        summary = "Point one\nPoint two\nPoint three"
        cards = parse_flashcards(summary)
        self.assertEqual(len(cards), len(summary.splitlines()))
        self.assertEqual(cards[0], Flashcard(content="Point one"))

    def test_blank_lines_dropped(self):
        cards = parse_flashcards("\n- first\n\n   \n- second\r\n")
        self.assertEqual([c.content for c in cards], ["- first", "- second"])

    def test_idempotent_on_well_formed_input(self):
        summary = "alpha\nbeta\ngamma"
        once = parse_flashcards(summary)
        twice = parse_flashcards("\n".join(c.content for c in once))
        self.assertEqual(once, twice)

    def test_merge_keeps_order(self):
        merged = merge_summaries(["c1 a\nc1 b", "c2 a", "c3 a\n"])
        self.assertEqual(merged, "c1 a\nc1 b\nc2 a\nc3 a")
        self.assertEqual([c.content for c in parse_flashcards(merged)],
                         ["c1 a", "c1 b", "c2 a", "c3 a"])


class TestCleanup(unittest.TestCase):

    def test_workspace_removed_on_exception(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            workspace = Path(tmpdir) / "job-1"
            with self.assertRaises(RuntimeError):
                with job_workspace(workspace) as ws:
                    (ws / "source.mp3").write_bytes(b"audio")
                    raise RuntimeError("boom")
            self.assertFalse(workspace.exists())

    def test_cleanup_missing_workspace_is_noop(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cleanup_job_workspace(Path(tmpdir) / "never-created")


class TestDatabase(unittest.TestCase):
    """Test SQLite database operations."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.tmpdir.name) / "test.db"
        from yt_flashcards.core.db_sqlite import Database
        self.db = Database(self.db_path)

    def tearDown(self):
        self.db.close()
        self.tmpdir.cleanup()

    def test_create_job(self):
        job = self.db.create_job("u1", "abc123")
        self.assertIsNotNone(job.id)
        self.assertEqual(job.status, JobStatus.PENDING)
        self.assertEqual(job.flashcards, [])
        self.assertIsNotNone(job.created_at)

    def test_duplicate_rejected(self):
        first = self.db.create_job("u1", "abc123")
        with self.assertRaises(DuplicateError) as ctx:
            self.db.create_job("u1", "abc123")
        self.assertEqual(ctx.exception.job_id, first.id)
        self.assertEqual(len(self.db.list_jobs("u1")), 1)

    def test_same_video_different_owner(self):
        self.db.create_job("u1", "abc123")
        self.db.create_job("u2", "abc123")
        self.assertEqual(len(self.db.list_jobs("u1")), 1)
        self.assertEqual(len(self.db.list_jobs("u2")), 1)

    def test_failed_job_is_reset(self):
        job = self.db.create_job("u1", "abc123")
        self.db.fail_job(job.id, ErrorCode.VIDEO_NOT_FOUND, "Video not found: abc123")
        again = self.db.create_job("u1", "abc123")
        self.assertEqual(again.id, job.id)
        self.assertEqual(again.status, JobStatus.PENDING)
        self.assertIsNone(again.error_detail)
        self.assertIsNone(again.error_code)

    def test_metadata_written_once(self):
        job = self.db.create_job("u1", "abc123")
        self.db.set_metadata(job.id, "Intro to X", "desc", "https://img/1.jpg")
        self.db.set_metadata(job.id, "Other title", "other", "https://img/2.jpg")
        fetched = self.db.get_job(job.id)
        self.assertEqual(fetched.title, "Intro to X")
        self.assertEqual(fetched.thumbnail_url, "https://img/1.jpg")

    def test_complete_job(self):
        job = self.db.create_job("u1", "abc123")
        cards = [Flashcard("one"), Flashcard("two"), Flashcard("three")]
        self.assertTrue(self.db.complete_job(job.id, cards, title="T"))
        fetched = self.db.get_job_by_key("u1", "abc123")
        self.assertEqual(fetched.status, JobStatus.COMPLETED)
        self.assertEqual([c.content for c in fetched.flashcards], ["one", "two", "three"])
        self.assertEqual(fetched.title, "T")
        self.assertIsNotNone(fetched.completed_at)

    def test_complete_deleted_job(self):
        job = self.db.create_job("u1", "abc123")
        self.db.delete_job("u1", "abc123")
        self.assertFalse(self.db.complete_job(job.id, [Flashcard("one")]))

    def test_list_newest_first(self):
        self.db.create_job("u1", "first")
        self.db.create_job("u1", "second")
        self.db.create_job("u2", "other")
        self.assertEqual([j.video_id for j in self.db.list_jobs("u1")], ["second", "first"])

    def test_search_case_insensitive(self):
        a = self.db.create_job("u1", "aaa")
        b = self.db.create_job("u1", "bbb")
        c = self.db.create_job("u2", "ccc")
        self.db.set_metadata(a.id, "Intro to Python", "", "")
        self.db.set_metadata(b.id, "Cooking basics", "", "")
        self.db.set_metadata(c.id, "Advanced PYTHON", "", "")
        results = self.db.search_jobs("u1", "python")
        self.assertEqual([j.video_id for j in results], ["aaa"])
        self.assertEqual(self.db.search_jobs("u1", "zzz"), [])

    def test_delete_job(self):
        job = self.db.create_job("u1", "abc123")
        self.db.complete_job(job.id, [Flashcard("one")])
        self.assertTrue(self.db.delete_job("u1", "abc123"))
        self.assertIsNone(self.db.get_job(job.id))
        self.assertFalse(self.db.delete_job("u1", "abc123"))
        count = self.db.conn.execute("SELECT COUNT(*) FROM flashcards").fetchone()[0]
        self.assertEqual(count, 0)

    def test_transaction_rolls_back(self):
        with self.assertRaises(RuntimeError):
            with self.db.transaction():
                self.db.create_job("u1", "abc123")
                raise RuntimeError("abort")
        self.assertIsNone(self.db.get_job_by_key("u1", "abc123"))


class TestMessageQueue(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        from yt_flashcards.core.db_sqlite import Database
        from yt_flashcards.core.message_queue import MessageQueue
        self.db = Database(Path(self.tmpdir.name) / "test.db")
        self.clock = FakeClock()
        self.queue = MessageQueue(self.db, clock=self.clock, visibility_timeout_sec=60)

    def tearDown(self):
        self.db.close()
        self.tmpdir.cleanup()

    def test_claim_and_ack(self):
        self.assertTrue(self.queue.enqueue("u1", "abc123"))
        message = self.queue.claim("w1")
        self.assertEqual((message.owner_id, message.video_id), ("u1", "abc123"))
        self.assertEqual(message.attempts, 1)
        self.assertEqual(message.claimed_by, "w1")
        self.assertIsNone(self.queue.claim("w2"))
        self.queue.ack(message)
        self.assertEqual(self.queue.pending_count(), 0)

    def test_one_message_per_key(self):
        self.assertTrue(self.queue.enqueue("u1", "abc123"))
        self.assertFalse(self.queue.enqueue("u1", "abc123"))
        self.assertEqual(self.queue.pending_count(), 1)

    def test_requeue_delay(self):
        self.queue.enqueue("u1", "abc123")
        message = self.queue.claim("w1")
        self.queue.requeue(message, 5.0)
        self.assertIsNone(self.queue.claim("w1"))
        self.clock.advance(4.9)
        self.assertIsNone(self.queue.claim("w1"))
        self.clock.advance(0.1)
        again = self.queue.claim("w1")
        self.assertEqual(again.id, message.id)
        self.assertEqual(again.attempts, 2)

    def test_stale_claim_is_reclaimed(self):
        self.queue.enqueue("u1", "abc123")
        self.queue.claim("w1")
        self.clock.advance(61)
        message = self.queue.claim("w2")
        self.assertIsNotNone(message)
        self.assertEqual(message.claimed_by, "w2")

    def test_fifo_by_availability(self):
        self.queue.enqueue("u1", "later", delay=10)
        self.queue.enqueue("u1", "now")
        self.assertEqual(self.queue.claim("w1").video_id, "now")
        self.assertIsNone(self.queue.claim("w1"))

    def test_touch_renews_claim(self):
        self.queue.enqueue("u1", "abc123")
        message = self.queue.claim("w1")
        self.clock.advance(30)
        self.assertTrue(self.queue.touch(message))
        self.clock.advance(31)
        self.assertIsNone(self.queue.claim("w2"))
        self.clock.advance(30)
        self.assertIsNotNone(self.queue.claim("w2"))

    def test_stale_owner_cannot_ack_or_requeue(self):
        self.queue.enqueue("u1", "abc123")
        stale = self.queue.claim("w1")
        self.clock.advance(61)
        current = self.queue.claim("w2")

        self.assertFalse(self.queue.touch(stale))
        self.assertFalse(self.queue.ack(stale))
        self.assertFalse(self.queue.requeue(stale, 0))
        self.assertEqual(self.queue.pending_count(), 1)
        self.assertIsNone(self.queue.claim("w3"))

        self.assertTrue(self.queue.ack(current))
        self.assertEqual(self.queue.pending_count(), 0)


if __name__ == "__main__":
    unittest.main()
