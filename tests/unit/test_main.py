"""Unit tests for the command line entry point."""

import logging
import sys
from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest

from linguavoice import main as app
from linguavoice.models.transcription import Language, TranscriptionResult


@pytest.mark.unit
class TestParser:

    def test_defaults(self):
        args = app.build_parser().parse_args([])

        assert args.config is None
        assert args.file is None
        assert args.language is None
        assert args.max_duration is None

    def test_options(self):
        args = app.build_parser().parse_args(
            ["--language", "Khmer", "--max-duration", "120", "--file", "clip.wav", "--log-level", "DEBUG"]
        )

        assert args.language == "Khmer"
        assert args.max_duration == 120
        assert args.file == "clip.wav"
        assert args.log_level == "DEBUG"

    def test_unknown_language_rejected(self):
        with pytest.raises(SystemExit):
            app.build_parser().parse_args(["--language", "Klingon"])


@pytest.mark.unit
class TestSetupLogging:

    def test_file_and_console_handlers(self, test_config, restore_root_logging):
        app.setup_logging(test_config, "DEBUG")

        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        file_handlers = [h for h in root_logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].level == logging.DEBUG
        console_handlers = [h for h in root_logger.handlers if not isinstance(h, logging.FileHandler)]
        assert [h.level for h in console_handlers] == [logging.WARNING]

    def test_console_output_disabled(self, test_config, restore_root_logging):
        test_config.set('logging.console_output', False)
        app.setup_logging(test_config, "INFO")

        assert all(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)


@pytest.mark.unit
class TestMain:

    def _run(self, monkeypatch, *argv):
        monkeypatch.setattr(sys, "argv", ["linguavoice", *argv])
        app.main()

    def test_file_mode_prints_transcript(self, monkeypatch, tmp_path, capsys, restore_root_logging):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GEMINI_API_KEY", "k")
        result = TranscriptionResult(
            text="[Unintelligible]", language=Language.KHMER, processing_time=0.1,
            timestamp=datetime.now(), service="test", mime_type="audio/wav",
        )
        transcribe = AsyncMock(return_value=result)

        with patch.object(app.GeminiBatchTranscriber, "transcribe_file", new=transcribe):
            self._run(monkeypatch, "--file", "clip.wav", "--language", "Khmer")

        assert "[Unintelligible]" in capsys.readouterr().out
        transcribe.assert_awaited_once_with("clip.wav", Language.KHMER)

    def test_missing_credential_exits(self, monkeypatch, tmp_path, restore_root_logging):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)

        with pytest.raises(SystemExit) as exc_info:
            self._run(monkeypatch, "--file", "clip.wav")
        assert exc_info.value.code == 1

    def test_invalid_max_duration_exits(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)

        with pytest.raises(SystemExit) as exc_info:
            self._run(monkeypatch, "--max-duration", "90")
        assert exc_info.value.code == 2
