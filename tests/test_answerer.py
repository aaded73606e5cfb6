"""Tests for answerer.py — prompt building, CLI mocking, error handling."""

import subprocess
from unittest.mock import MagicMock, patch

import fallback
from answerer import build_prompt, context_summary, generate_answer
from models import Snapshot


class TestBuildPrompt:
    def test_includes_page_context(self, snapshot):
        prompt = build_prompt("What is this?", snapshot.with_selection("Acme toolkit"))
        assert "- Title: Getting Started | Acme Docs" in prompt
        assert "- URL: https://acme.dev/docs/start" in prompt
        assert "H1: Getting Started, H2: Installation, H2: Configuration" in prompt
        assert 'button: "Sign up"' in prompt
        assert "- Forms: 0 form(s) detected" in prompt
        assert '- Selected Text: "Acme toolkit"' in prompt
        assert "User Question: What is this?" in prompt

    def test_empty_snapshot(self):
        prompt = build_prompt("Hi", Snapshot())
        assert "- Meta Description: None provided" in prompt
        assert "- Main Headings: None" in prompt
        assert "Selected Text" not in prompt


class TestContextSummary:
    def test_summary(self, snapshot):
        summary = context_summary(snapshot)
        assert summary.startswith("Title: Getting Started | Acme Docs | URL: ")
        assert "Headings: Getting Started, Installation, Configuration" in summary

    def test_empty(self):
        assert context_summary(Snapshot()) == ""


class TestGenerateAnswer:
    @patch("answerer.subprocess.run")
    def test_successful_answer(self, mock_run, snapshot):
        mock_run.return_value = MagicMock(returncode=0, stdout="  It is the Acme docs.\n", stderr="")
        assert generate_answer("What is this?", snapshot) == "It is the Acme docs."
        mock_run.assert_called_once()
        assert "User Question: What is this?" in mock_run.call_args.kwargs["input"]

    @patch("answerer.subprocess.run")
    def test_cli_timeout(self, mock_run, snapshot):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="claude", timeout=60)
        assert generate_answer("title?", snapshot) == fallback.answer("title?", snapshot)

    @patch("answerer.subprocess.run")
    def test_cli_not_found(self, mock_run, snapshot):
        mock_run.side_effect = FileNotFoundError()
        assert generate_answer("title?", snapshot) == fallback.answer("title?", snapshot)

    @patch("answerer.subprocess.run")
    def test_cli_nonzero_exit(self, mock_run, snapshot):
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="error")
        assert generate_answer("url?", snapshot) == fallback.answer("url?", snapshot)

    @patch("answerer.subprocess.run")
    def test_cli_empty_output(self, mock_run, snapshot):
        mock_run.return_value = MagicMock(returncode=0, stdout="   ", stderr="")
        assert generate_answer("url?", snapshot) == fallback.answer("url?", snapshot)
