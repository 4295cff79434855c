"""Configuration for the scraper: defaults, validation and TOML persistence."""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import tomli_w

FLAG_LOG = "log"
FLAG_DEBUG = "debug"
FLAG_CONFIG = "config"
FLAG_CONCURRENCY = "concurrency"
FLAG_TIMEOUT = "timeout"
FLAG_VERBOSE = "verbose"
FLAG_RETRY = "retry"
FLAG_RETRY_DELAY = "retry-delay"
FLAG_RETRY_JITTER = "retry-jitter"
FLAG_BACKOFF = "backoff"
FLAG_FORCE = "force"
FLAG_SELECT = "select"
FLAG_PATTERN = "pattern"
FLAG_FORMAT = "format"
FLAG_QUIET = "quiet"
FLAG_HEADERS = "headers"

DEFAULT_CONFIG_PATH = "config.toml"

_CONFIG_DIR_MODE = 0o755
_NANOS_PER_SECOND = 1_000_000_000

_DURATION_UNITS = {
    "ns": Decimal(1),
    "us": Decimal(1_000),
    "\u00b5s": Decimal(1_000),
    "\u03bcs": Decimal(1_000),
    "ms": Decimal(1_000_000),
    "s": Decimal(_NANOS_PER_SECOND),
    "m": Decimal(60 * _NANOS_PER_SECOND),
    "h": Decimal(3600 * _NANOS_PER_SECOND),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|\u00b5s|\u03bcs|ms|s|m|h)")


class ConfigError(ValueError):
    """Raised when configuration cannot be read, parsed, written or validated."""


def parse_duration(text: str) -> float:
    """Parse a duration such as ``"1h30m"`` or ``"500ms"`` into seconds."""
    body = text
    sign = 1
    if body and body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return 0.0
    if not body:
        raise ConfigError(f'invalid duration "{text}"')

    total = Decimal(0)
    pos = 0
    while pos < len(body):
        match = _DURATION_PART.match(body, pos)
        if match is None:
            raise ConfigError(f'invalid duration "{text}"')
        try:
            total += Decimal(match[1]) * _DURATION_UNITS[match[2]]
        except InvalidOperation as exc:
            raise ConfigError(f'invalid duration "{text}"') from exc
        pos = match.end()
    return sign * float(total / _NANOS_PER_SECOND)


def _fraction(value: int, unit: int) -> str:
    whole, rest = divmod(value, unit)
    if not rest:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{rest:0{digits}d}".rstrip("0")


def format_duration(seconds: float) -> str:
    """Render seconds in the compact form accepted by :func:`parse_duration`."""
    nanos = round(seconds * _NANOS_PER_SECOND)
    if nanos == 0:
        return "0s"
    sign = "-" if nanos < 0 else ""
    nanos = abs(nanos)
    if nanos < 1_000:
        return f"{sign}{nanos}ns"
    if nanos < 1_000_000:
        return f"{sign}{_fraction(nanos, 1_000)}\u00b5s"
    if nanos < _NANOS_PER_SECOND:
        return f"{sign}{_fraction(nanos, 1_000_000)}ms"
    hours, rest = divmod(nanos, 3600 * _NANOS_PER_SECOND)
    minutes, rest = divmod(rest, 60 * _NANOS_PER_SECOND)
    secs = _fraction(rest, _NANOS_PER_SECOND) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}"
    if minutes:
        return f"{sign}{minutes}m{secs}"
    return sign + secs


def _table(data: dict, key: str) -> dict:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"{key}: expected a table, got {type(value).__name__}")
    return value


def _int(data: dict, key: str) -> int:
    value = data.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key}: expected an integer, got {type(value).__name__}")
    return value


def _bool(data: dict, key: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(f"{key}: expected a boolean, got {type(value).__name__}")
    return value


def _str(data: dict, key: str) -> str:
    value = data.get(key, "")
    if not isinstance(value, str):
        raise ConfigError(f"{key}: expected a string, got {type(value).__name__}")
    return value


def _str_list(data: dict, key: str) -> list[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{key}: expected a list of strings")
    return list(value)


def _duration(data: dict, key: str) -> float:
    value = data.get(key, 0)
    if isinstance(value, str):
        return parse_duration(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return value / _NANOS_PER_SECOND
    raise ConfigError(f"{key}: expected a duration, got {type(value).__name__}")


@dataclass
class BackoffConfig:
    """Exponential backoff settings; delays are in seconds."""

    base_delay: float = 0.0
    jitter: bool = False


@dataclass
class SelectorsConfig:
    """CSS selectors and regular expressions applied to responses."""

    select: list[str] = field(default_factory=list)
    pattern: list[str] = field(default_factory=list)


@dataclass
class DatabaseConfig:
    """Cache settings; expiration is in seconds."""

    expiration: float = 0.0


@dataclass
class Config:
    """All options that control a scraping run. Durations are in seconds."""

    concurrency: int = 0
    timeout: float = 0.0
    format: str = ""
    retry: int = 0
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    selectors: SelectorsConfig = field(default_factory=SelectorsConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    force: bool = False
    quiet: bool = False
    headers: bool = False

    def validate(self) -> None:
        """Raise :class:`ConfigError` listing every invalid value."""
        errors = []
        if self.concurrency <= 0:
            errors.append("concurrency must be greater than 0")
        if self.timeout <= 0:
            errors.append("timeout must be greater than 0")
        if self.format.lower() not in ("json", "text"):
            errors.append("format must be either 'json' or 'text'")
        if self.retry < 0:
            errors.append("retry count cannot be negative")
        if self.backoff.base_delay <= 0:
            errors.append("backoff base_delay must be greater than 0")
        if errors:
            raise ConfigError("configuration validation failed: " + ", ".join(errors))

    def to_dict(self) -> dict[str, Any]:
        """Return the TOML-shaped mapping of this configuration."""
        return {
            "concurrency": self.concurrency,
            "timeout": format_duration(self.timeout),
            "format": self.format,
            "retry": self.retry,
            "force": self.force,
            "quiet": self.quiet,
            "headers": self.headers,
            "backoff": {
                "base_delay": format_duration(self.backoff.base_delay),
                "jitter": self.backoff.jitter,
            },
            "selectors": {
                "select": list(self.selectors.select),
                "pattern": list(self.selectors.pattern),
            },
            "database": {"expiration": format_duration(self.database.expiration)},
        }

    def to_toml(self) -> str:
        """Serialise the configuration as a TOML document."""
        return tomli_w.dumps(self.to_dict())

    def __str__(self) -> str:
        return self.to_toml()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Build a configuration from a TOML mapping; missing keys take zero values."""
        backoff = _table(data, "backoff")
        selectors = _table(data, "selectors")
        database = _table(data, "database")
        return cls(
            concurrency=_int(data, "concurrency"),
            timeout=_duration(data, "timeout"),
            format=_str(data, "format"),
            retry=_int(data, "retry"),
            backoff=BackoffConfig(
                base_delay=_duration(backoff, "base_delay"),
                jitter=_bool(backoff, "jitter"),
            ),
            selectors=SelectorsConfig(
                select=_str_list(selectors, "select"),
                pattern=_str_list(selectors, "pattern"),
            ),
            database=DatabaseConfig(expiration=_duration(database, "expiration")),
            force=_bool(data, "force"),
            quiet=_bool(data, "quiet"),
            headers=_bool(data, "headers"),
        )


def defaults() -> Config:
    """Return the built-in default configuration."""
    return Config(
        concurrency=5,
        timeout=10.0,
        format="json",
        retry=3,
        backoff=BackoffConfig(base_delay=1.0, jitter=True),
        selectors=SelectorsConfig(select=[], pattern=[]),
        database=DatabaseConfig(expiration=24 * 3600.0),
        force=False,
        quiet=False,
        headers=False,
    )


class ConfigManager:
    """Loads and stores configuration files."""

    def __init__(self, config_path: str | Path) -> None:
        self.config_path = Path(config_path)

    @classmethod
    def default(cls) -> ConfigManager:
        return cls(DEFAULT_CONFIG_PATH)

    def load_defaults(self) -> Config:
        return defaults()

    def load_from_file(self, file_path: str | Path) -> Config:
        """Read a TOML configuration file."""
        try:
            raw = Path(file_path).read_bytes()
        except OSError as exc:
            raise ConfigError(f"failed to read config file: {exc}") from exc
        try:
            data = tomllib.loads(raw.decode("utf-8"))
            return Config.from_dict(data)
        except (UnicodeDecodeError, tomllib.TOMLDecodeError, ConfigError) as exc:
            raise ConfigError(f"failed to parse config file: {exc}") from exc

    def save(self, cfg: Config) -> None:
        """Write ``cfg`` to this manager's path, creating directories as needed."""
        parent = self.config_path.parent
        if str(parent) != ".":
            try:
                parent.mkdir(parents=True, exist_ok=True, mode=_CONFIG_DIR_MODE)
            except OSError as exc:
                raise ConfigError(f"failed to create config directory: {exc}") from exc
        document = cfg.to_toml()
        try:
            self.config_path.write_text(document, encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"failed to write config file: {exc}") from exc

    def init_defaults(self) -> None:
        """Write a file holding the default configuration."""
        self.save(defaults())