from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import yaml

from spendtrack.cli import build_parser, main
from spendtrack.config import DEFAULT_API_PREFIX, load_settings
from spendtrack.logging import JsonAuditFormatter, setup_logger


def test_json_formatter_includes_request_fields():
    record = logging.LogRecord("spendtrack.server", logging.INFO, __file__, 1, "GET %s", ("/x",), None)
    record.method = "GET"
    record.path = "/api/v1/budgets"
    record.status_code = 200
    record.process_time_ms = 1.25
    payload = json.loads(JsonAuditFormatter().format(record))
    assert payload["message"] == "GET /x"
    assert payload["source"] == "spendtrack.server"
    assert payload["status_code"] == 200
    assert payload["process_time_ms"] == pytest.approx(1.25)
    assert payload["user_id"] is None


def test_setup_logger_is_idempotent(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    logger = setup_logger("spendtrack.tests.json", json_format=True, level="DEBUG")
    try:
        setup_logger("spendtrack.tests.json", json_format=True, level="DEBUG")
        assert len(logger.handlers) == 2
        logger.warning("budget overrun", extra={"user_id": "u-1"})
        for handler in logger.handlers:
            handler.flush()
        line = (tmp_path / "artifacts" / "logs" / "spendtrack.log").read_text(encoding="utf-8").strip()
        assert json.loads(line)["user_id"] == "u-1"
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_log_level_environment_wins(monkeypatch):
    monkeypatch.setenv("SPENDTRACK_LOG_LEVEL", "ERROR")
    logger = setup_logger("spendtrack.tests.level", level="DEBUG")
    try:
        assert logger.level == logging.ERROR
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)


def test_load_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.delenv("SPENDTRACK_DATABASE_URL", raising=False)
    monkeypatch.setenv("SPENDTRACK_DB_PATH", str(tmp_path / "db.sqlite"))
    monkeypatch.setenv("SPENDTRACK_CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("SPENDTRACK_SEED_ON_STARTUP", "no")
    monkeypatch.setenv("SPENDTRACK_API_PREFIX", "/api/v2/")
    settings = load_settings()
    assert settings.database_url == f"sqlite:///{tmp_path / 'db.sqlite'}"
    assert settings.cors_origins == ("https://a.example", "https://b.example")
    assert settings.seed_on_startup is False
    assert settings.api_prefix == "/api/v2"


def test_load_settings_defaults(monkeypatch):
    monkeypatch.setenv("SPENDTRACK_DATABASE_URL", "postgresql://localhost/spend")
    for name in ("SPENDTRACK_API_PREFIX", "SPENDTRACK_CORS_ORIGINS", "SPENDTRACK_SEED_ON_STARTUP"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.database_url == "postgresql://localhost/spend"
    assert settings.api_prefix == DEFAULT_API_PREFIX
    assert settings.cors_origins == ("*",)
    assert settings.seed_on_startup is True


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
    args = build_parser().parse_args(["--json-logs", "serve", "--port", "9000"])
    assert args.json_logs is True
    assert args.port == 9000
    assert args.host == "127.0.0.1"


def test_cli_seed_defaults(tmp_path: Path, capsys):
    path = tmp_path / "defaults.yaml"
    path.write_text(yaml.safe_dump({"categories": [{"name": "Cli Rent"}, {"name": "Cli Fun"}]}), encoding="utf-8")

    main(["seed-defaults", "--path", str(path)])
    assert "inserted=2" in capsys.readouterr().out
    main(["seed-defaults", "--path", str(path)])
    assert "inserted=0" in capsys.readouterr().out


def test_cli_init_db(capsys):
    main(["init-db"])
    assert "init-db status=ok" in capsys.readouterr().out
