"""Tests for Vidya CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from vidya.cli import app

runner = CliRunner()

CORPUS = """\
faq:
  - question: What are the library timings?
    answer: The library is open 8:00 A.M. to 10:00 P.M.
event:
  - title: Tech Fest
    description: Annual technical festival with hackathons and talks
"""


class TestCLICommands:
    """Test suite for CLI commands."""

    @pytest.fixture
    def corpus_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "corpus.yaml"
        path.write_text(CORPUS)
        return path

    def test_version_command(self) -> None:
        """Test version command."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "Vidya version" in result.stdout

    def test_info_command(self) -> None:
        """Test info command."""
        result = runner.invoke(app, ["info"])

        assert result.exit_code == 0
        assert "Vidya" in result.stdout
        assert "Working language: English" in result.stdout
        assert "Telugu" in result.stdout
        assert "Translation providers: model, google, libre" in result.stdout

    def test_help_command(self) -> None:
        """Test help command."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("chat", "ask", "translate", "detect", "version", "info"):
            assert command in result.stdout

    def test_detect_offline(self) -> None:
        """Script detection works without any provider."""
        result = runner.invoke(app, ["detect", "नमस्ते", "--offline"])

        assert result.exit_code == 0
        assert result.stdout.strip() == "hi (Hindi)"

    def test_ask_offline_answers_from_corpus(self, corpus_file: Path) -> None:
        result = runner.invoke(
            app,
            ["ask", "What are the library timings?", "--corpus", str(corpus_file), "--offline"],
        )

        assert result.exit_code == 0
        assert "8:00 A.M. to 10:00 P.M." in result.stdout
        assert "[Source: university FAQ]" in result.stdout

    def test_ask_json_output(self, corpus_file: Path) -> None:
        result = runner.invoke(
            app,
            ["ask", "What are the library timings?", "--corpus", str(corpus_file), "--offline", "--json"],
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["source_tag"] == "knowledge"
        assert payload["language"] == "en"
        assert "concern" not in payload

    @pytest.mark.parametrize(("enabled", "started"), [("true", True), ("false", False)])
    def test_chat_metrics_server_follows_config(
        self, corpus_file: Path, monkeypatch: pytest.MonkeyPatch, enabled: str, started: bool
    ) -> None:
        monkeypatch.setenv("VIDYA_METRICS_ENABLED", enabled)

        with patch("vidya.monitoring.metrics.start_metrics_server") as start:
            result = runner.invoke(
                app,
                ["chat", "--corpus", str(corpus_file), "--offline", "--metrics-port", "9109"],
                input="exit\n",
            )

        assert result.exit_code == 0
        assert start.called is started

    def test_ask_rejects_empty_message(self) -> None:
        result = runner.invoke(app, ["ask", "   ", "--offline"])

        assert result.exit_code == 2

    def test_missing_config_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["ask", "hello", "--config", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1

    def test_unknown_corpus_name(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("recipes:\n  - title: Biryani\n")

        result = runner.invoke(app, ["ask", "hello", "--corpus", str(path), "--offline"])

        assert result.exit_code == 1
