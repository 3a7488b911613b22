"""
Tests for the reviewlens CLI.

Usage:
    pytest tests/test_cli.py -v
"""

import json
import logging
import sys

import pytest

from src.data.config import reset_settings
from src.orchestrator.cli import build_ai_config, load_input, main


RECORDS = [
    {"id": "r1", "rating": 5, "text": "Great latte", "timestamp": "2024-03-01T09:00:00Z"},
    {"id": "r2", "rating": 1, "text": "Rude barista", "timestamp": "2024-03-05T09:00:00Z"},
    {"id": "r3", "rating": "oops", "text": "?", "timestamp": "2024-03-06T09:00:00Z"},
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY", "AI_DEFAULT_PROVIDER"):
        monkeypatch.delenv(key, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    reset_settings()
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    reset_settings()


class TestLoadInput:

    def test_bare_list(self, tmp_path):
        path = tmp_path / "reviews.json"
        path.write_text(json.dumps(RECORDS))
        records, business = load_input(str(path))
        assert len(records) == 3
        assert business == {}

    def test_wrapped(self, tmp_path):
        path = tmp_path / "reviews.json"
        path.write_text(json.dumps({"business": {"name": "Blue Bean"}, "reviews": RECORDS}))
        records, business = load_input(str(path))
        assert business["name"] == "Blue Bean"

    def test_unsupported(self, tmp_path):
        path = tmp_path / "reviews.json"
        path.write_text("42")
        with pytest.raises(ValueError):
            load_input(str(path))


class TestBuildAIConfig:

    def test_missing_key_is_empty(self):
        config = build_ai_config("claude")
        assert config.api_key == ""
        assert config.resolved_model == "claude-sonnet-4-20250514"

    def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        reset_settings()
        assert build_ai_config("openai", "gpt-4o").api_key == "sk-env"


class TestAnalyzeCommand:

    def test_no_ai(self, tmp_path, capsys):
        path = tmp_path / "blue_bean.json"
        path.write_text(json.dumps(RECORDS))

        assert main(["analyze", str(path), "--type", "cafe", "--no-ai"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["status"] == "statistics_only"
        assert report["reviews_accepted"] == 2
        assert report["reviews_dropped"] == 1
        assert report["context"]["business_name"] == "blue_bean"
        assert report["context"]["business_type"] == "cafe"

    def test_missing_key_degrades(self, tmp_path, capsys):
        path = tmp_path / "reviews.json"
        path.write_text(json.dumps({"business": {"name": "Blue Bean"}, "reviews": RECORDS}))

        assert main(["analyze", str(path), "--provider", "gemini"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["status"] == "statistics_only"
        assert report["recommendations"][0]["error"] == "AuthError"
        assert report["context"]["business_name"] == "Blue Bean"

    def test_output_file(self, tmp_path):
        path = tmp_path / "reviews.json"
        path.write_text(json.dumps(RECORDS))
        out = tmp_path / "report.json"

        assert main(["analyze", str(path), "--no-ai", "-o", str(out)]) == 0
        assert json.loads(out.read_text())["reviews_accepted"] == 2

    def test_unreadable_input(self, tmp_path):
        assert main(["analyze", str(tmp_path / "missing.json"), "--no-ai"]) == 2


class TestTemplatesCommand:

    def test_json(self, capsys):
        assert main(["templates", "--json"]) == 0
        keys = json.loads(capsys.readouterr().out)
        assert len(keys) == 28
        assert {"business_type": "cafe", "task": "marketing"} in keys

    def test_no_command(self):
        assert main([]) == 1


class TestJSONFormatter:

    def test_extra_fields_promoted(self):
        from src.orchestrator.logging_config import JSONFormatter

        record = logging.LogRecord("src.ai.llm_client", logging.INFO, __file__, 1, "done", None, None)
        record.provider = "claude"
        record.attempt = 2
        entry = json.loads(JSONFormatter().format(record))
        assert entry["msg"] == "done"
        assert entry["provider"] == "claude"
        assert entry["attempt"] == 2
        assert "business" not in entry

    def test_exception_included(self):
        from src.orchestrator.logging_config import JSONFormatter

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestSetupLogging:

    def test_replaces_handlers(self):
        from src.orchestrator.logging_config import setup_logging

        setup_logging(level="debug")
        setup_logging(level="WARNING")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        from src.orchestrator.logging_config import setup_logging

        setup_logging(level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_json_file_handler(self, tmp_path):
        from src.orchestrator.logging_config import JSONFormatter, setup_logging

        log_file = tmp_path / "logs" / "reviewlens.log"
        setup_logging(json_output=True, log_file=str(log_file))
        handlers = logging.getLogger().handlers
        assert len(handlers) == 2
        assert all(isinstance(h.formatter, JSONFormatter) for h in handlers)
        assert log_file.parent.is_dir()
        for handler in handlers[1:]:
            handler.close()


class TestSettings:

    def test_empty_value_treated_as_unset(self, monkeypatch):
        from src.data.config import get_settings

        monkeypatch.setenv("AI_DEFAULT_PROVIDER", "")
        reset_settings()
        assert get_settings().ai.default_provider == "openai"

    def test_invalid_provider_rejected(self, monkeypatch):
        from src.data.config import get_settings

        monkeypatch.setenv("AI_DEFAULT_PROVIDER", "mistral")
        reset_settings()
        with pytest.raises(ValueError):
            get_settings()

    def test_available_providers(self, monkeypatch):
        from src.data.config import get_settings

        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        reset_settings()
        assert get_settings().ai.available_providers() == ["gemini"]
