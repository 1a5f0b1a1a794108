"""
guestledger configuration.

Sources, highest precedence first:
    1. keyword overrides passed to load_config()
    2. GUESTLEDGER_* environment variables
    3. a YAML file
    4. defaults below
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from guestledger.core.exceptions import ConfigError


DEFAULT_LEDGER_PATH = Path(".guestledger/ledger.jsonl")

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# env var -> config field
_ENV_VARS = {
    "GUESTLEDGER_LEDGER_PATH":       "ledger_path",
    "GUESTLEDGER_KEY_PATH":          "key_path",
    "GUESTLEDGER_SUBMISSION_TIMEOUT": "submission_timeout",
    "GUESTLEDGER_SETTLE_DELAY":      "settle_delay",
    "GUESTLEDGER_LOG_LEVEL":         "log_level",
}


@dataclass(frozen=True)
class GuestLedgerConfig:
    ledger_path:        Path = DEFAULT_LEDGER_PATH
    key_path:           Optional[Path] = None
    submission_timeout: float = 30.0
    settle_delay:       float = 0.0
    max_author_length:  Optional[int] = None
    max_body_length:    Optional[int] = None
    retain_history:     bool = True
    log_level:          str = "WARNING"

    def __post_init__(self) -> None:
        if self.submission_timeout is None or self.submission_timeout <= 0:
            raise ConfigError(
                "submission_timeout must be > 0",
                {"submission_timeout": self.submission_timeout},
            )
        if self.settle_delay is None or self.settle_delay < 0:
            raise ConfigError(
                "settle_delay must be >= 0",
                {"settle_delay": self.settle_delay},
            )
        for name in ("max_author_length", "max_body_length"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ConfigError(f"{name} must be >= 0", {name: value})
        if str(self.log_level).upper() not in _LOG_LEVELS:
            raise ConfigError(
                f"log_level must be one of {sorted(_LOG_LEVELS)}",
                {"log_level": self.log_level},
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GuestLedgerConfig":
        """Build a config from loosely typed values (YAML, env, CLI)."""
        known   = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError("unknown configuration keys", {"keys": unknown})
        return cls(**_coerce(data))

    @classmethod
    def from_yaml(cls, config_file: Path) -> "GuestLedgerConfig":
        """Load configuration from a YAML file."""
        return cls.from_dict(_read_yaml(config_file))

    def with_overrides(self, **overrides: Any) -> "GuestLedgerConfig":
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **_coerce(values)) if values else self


def load_config(
    config_file: Optional[Path] = None,
    environ:     Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> GuestLedgerConfig:
    """Merge defaults, an optional YAML file, environment and overrides."""
    environ = os.environ if environ is None else environ

    data: Dict[str, Any] = {}
    if config_file is not None:
        data.update(_read_yaml(config_file))

    for var, name in _ENV_VARS.items():
        if environ.get(var):
            data[name] = environ[var]

    return GuestLedgerConfig.from_dict(data).with_overrides(**overrides)


# ── Internal ──────────────────────────────────────────────────

def _read_yaml(config_file: Path) -> Dict[str, Any]:
    path = Path(config_file)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"cannot read config file: {exc}", {"path": str(path)}) from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML: {exc}", {"path": str(path)}) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("config file must contain a mapping", {"path": str(path)})
    return data


def _coerce(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    try:
        for name, value in data.items():
            if value is None:
                out[name] = None
            elif name in ("ledger_path", "key_path"):
                out[name] = Path(value)
            elif name in ("submission_timeout", "settle_delay"):
                out[name] = float(value)
            elif name in ("max_author_length", "max_body_length"):
                out[name] = int(value)
            elif name == "retain_history":
                out[name] = _as_bool(value)
            elif name == "log_level":
                out[name] = str(value).upper()
            else:
                out[name] = value
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid value for '{name}': {exc}", {name: value}) from exc
    return out


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")
