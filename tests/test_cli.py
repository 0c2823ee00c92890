#!/usr/bin/env python3
"""
Command-line smoke tests: import the entry point and run subcommands
against a throwaway app home.
"""

import io
import os
import sys
import json
import logging
import tempfile
import contextlib
from pathlib import Path
from unittest import mock

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import unittest

import main
from yt_flashcards.core.constants import ErrorCode, JobStatus


class TestCommandLine(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        home = Path(self.tmpdir.name)
        self.config_path = home / "config.json"
        self.config_path.write_text(json.dumps({
            'db_path': str(home / "app.db"),
            'workspace_dir': str(home / "jobs"),
        }))
        self._root_handlers = list(logging.getLogger().handlers)
        patches = [
            mock.patch.dict(os.environ, {"YT_FLASHCARDS_HOME": str(home)}),
            mock.patch("main.LOG_DIR", home / "logs"),
        ]
        for patch in patches:
            patch.start()
            self.addCleanup(patch.stop)

    def tearDown(self):
        root = logging.getLogger()
        for handler in list(root.handlers):
            if handler not in self._root_handlers:
                root.removeHandler(handler)
                handler.close()
        self.tmpdir.cleanup()

    def run_cli(self, *args):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main.main(["--config", str(self.config_path), *args])
        return code, json.loads(out.getvalue())

    def test_list_empty(self):
        code, output = self.run_cli("list", "--owner", "u1")
        self.assertEqual(code, 0)
        self.assertEqual(output, [])

    def test_submit_then_status(self):
        code, submitted = self.run_cli("submit", "--owner", "u1", "dQw4w9WgXcQ")
        self.assertEqual(code, 0)
        self.assertEqual(submitted["message"], "Flashcard generation started")

        code, output = self.run_cli("status", "--owner", "u1", "dQw4w9WgXcQ")
        self.assertEqual(code, 0)
        self.assertEqual(output["jobId"], submitted["jobId"])
        self.assertEqual(output["status"], JobStatus.PENDING)

        code, output = self.run_cli("list", "--owner", "u1", "--search", "")
        self.assertEqual(code, 0)
        self.assertEqual([r["videoId"] for r in output], ["dQw4w9WgXcQ"])

    def test_unknown_video_reports_error_code(self):
        code, output = self.run_cli("status", "--owner", "u1", "abc123")
        self.assertEqual(code, 2)
        self.assertEqual(output["code"], ErrorCode.RECORD_NOT_FOUND)

    def test_duplicate_submit_reports_error_code(self):
        self.run_cli("submit", "--owner", "u1", "abc123")
        code, output = self.run_cli("submit", "--owner", "u1", "abc123")
        self.assertEqual(code, 2)
        self.assertIn("code", output)


if __name__ == "__main__":
    unittest.main()
