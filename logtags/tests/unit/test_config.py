"""
Unit tests for environment-driven settings
"""

import os

from logtags.config import ExplorerSettings, load_settings


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("BATCH_SIZE", "MAX_BATCH_SIZE", "SCRIPT_TIMEOUT", "MEMOIZE_TAGS", "DEBUG", "LOG_LEVEL"):
        monkeypatch.delenv(f"LOGTAGS_{name}", raising=False)

    assert load_settings() == ExplorerSettings()


def test_environment_values(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOGTAGS_BATCH_SIZE", "16")
    monkeypatch.setenv("LOGTAGS_SCRIPT_TIMEOUT", "0")
    monkeypatch.setenv("LOGTAGS_MEMOIZE_TAGS", "no")
    monkeypatch.setenv("LOGTAGS_LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.batch_size == 16
    assert settings.script_timeout == 0.0
    assert settings.memoize_tags is False
    assert settings.log_level == "DEBUG"


def test_invalid_values_fall_back(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOGTAGS_MAX_BATCH_SIZE", "lots")
    monkeypatch.setenv("LOGTAGS_BATCH_SIZE", "-3")

    settings = load_settings()

    assert settings.max_batch_size == 1024
    assert settings.batch_size == 1


def test_overrides_win_unless_none(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOGTAGS_DEBUG", "true")

    assert load_settings(debug=None).debug is True
    assert load_settings(debug=False).debug is False


def test_dotenv_file(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LOGTAGS_MAX_BATCH_SIZE", raising=False)
    (tmp_path / ".env").write_text("LOGTAGS_MAX_BATCH_SIZE=256\n")

    try:
        assert load_settings().max_batch_size == 256
    finally:
        os.environ.pop("LOGTAGS_MAX_BATCH_SIZE", None)
