"""
Configuration for the Coda MCP server, read from environment variables.

A `.env` file in the working directory is honoured for local development.
"""
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_BASE_URL = "https://coda.io/apis/v1"
DEFAULT_MAX_POLL_ATTEMPTS = 30
DEFAULT_POLL_INTERVAL = 1.0


@dataclass(frozen=True)
class ExportSettings:
    """
    Polling budget for page exports.

    The worst-case wait is `max_poll_attempts * poll_interval` seconds.
    """
    max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self):
        if self.max_poll_attempts < 1:
            raise ConfigError(f"max_poll_attempts must be positive, got {self.max_poll_attempts}")
        if self.poll_interval < 0:
            raise ConfigError(f"poll_interval must not be negative, got {self.poll_interval}")

    @property
    def budget_seconds(self) -> float:
        return self.max_poll_attempts * self.poll_interval


@dataclass(frozen=True)
class Config:
    api_token: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    export: ExportSettings = field(default_factory=ExportSettings)

    def __repr__(self):
        return f"Config(api_token='[REDACTED]', base_url={self.base_url!r}, export={self.export!r})"

    @classmethod
    def from_env(cls, environ=None) -> "Config":
        """
        Build a Config from the process environment.

        Args:
            environ (Mapping, optional): Variables to read instead of os.environ.
                When omitted, a local .env file is loaded first.

        Raises:
            ConfigError: if no API token is set or a numeric value is invalid.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        api_token = environ.get("CODA_API_TOKEN") or environ.get("CODA_API_KEY")
        if not api_token:
            raise ConfigError("The CODA_API_TOKEN environment variable is not set.")

        base_url = (environ.get("CODA_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")

        export = ExportSettings(
            max_poll_attempts=_parse_number(
                environ, "CODA_EXPORT_MAX_POLL_ATTEMPTS", int, DEFAULT_MAX_POLL_ATTEMPTS
            ),
            poll_interval=_parse_number(
                environ, "CODA_EXPORT_POLL_INTERVAL", float, DEFAULT_POLL_INTERVAL
            ),
        )
        return cls(api_token=api_token, base_url=base_url, export=export)


def _parse_number(environ, name, kind, default):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
