"""
tests/test_config.py

Configuration precedence and validation.
"""

from pathlib import Path

import pytest

from guestledger.config import DEFAULT_LEDGER_PATH, GuestLedgerConfig, load_config
from guestledger.core.exceptions import ConfigError


class TestConfig:

    def test_defaults(self):
        config = load_config(environ={})
        assert config.ledger_path == DEFAULT_LEDGER_PATH
        assert config.submission_timeout == 30.0
        assert config.key_path is None
        assert config.retain_history is True

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "guestledger.yaml"
        path.write_text(
            "ledger_path: data/book.jsonl\n"
            "submission_timeout: 5\n"
            "max_body_length: 280\n"
            "retain_history: no\n",
            encoding="utf-8",
        )
        config = load_config(path, environ={})
        assert config.ledger_path == Path("data/book.jsonl")
        assert config.submission_timeout == 5.0
        assert config.max_body_length == 280
        assert config.retain_history is False

    def test_env_overrides_yaml(self, tmp_path):
        path = tmp_path / "guestledger.yaml"
        path.write_text("submission_timeout: 5\n", encoding="utf-8")
        config = load_config(path, environ={"GUESTLEDGER_SUBMISSION_TIMEOUT": "12"})
        assert config.submission_timeout == 12.0

    def test_keyword_overrides_env(self):
        config = load_config(
            environ={"GUESTLEDGER_LEDGER_PATH": "env.jsonl"},
            ledger_path="cli.jsonl",
        )
        assert config.ledger_path == Path("cli.jsonl")

    def test_none_overrides_are_ignored(self):
        config = load_config(environ={}, ledger_path=None, log_level=None)
        assert config.ledger_path == DEFAULT_LEDGER_PATH

    def test_empty_yaml_is_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path, environ={}) == GuestLedgerConfig()

    @pytest.mark.parametrize("content", [
        "submission_timeout: 0\n",
        "submission_timeout: -1\n",
        "submission_timeout: soon\n",
        "settle_delay: -0.5\n",
        "log_level: LOUD\n",
        "retain_history: maybe\n",
        "unknown_key: 1\n",
        "- just\n- a list\n",
        "key: [unclosed\n",
    ])
    def test_invalid_config_raises(self, tmp_path, content):
        path = tmp_path / "bad.yaml"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path, environ={})

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "nope.yaml", environ={})
