"""Runtime configuration for procview."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace

import httpx

from procview.errors import ConfigError

DEFAULT_API_URL = "http://localhost:3002"
DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_MODEL = "phi"

ENV_PREFIX = "PROCVIEW_"


@dataclass(slots=True, frozen=True)
class DashboardConfig:
    """Addresses, timings and generation options for the dashboard."""

    api_url: str = DEFAULT_API_URL
    ollama_url: str = DEFAULT_OLLAMA_URL
    model: str = DEFAULT_MODEL
    refresh_interval: float = 10.0  # Seconds between background refreshes
    request_timeout: float = 5.0
    probe_timeout: float = 2.0
    inference_timeout: float = 60.0
    temperature: float = 0.7
    max_tokens: int = 256
    page_size: int = 10

    def __post_init__(self) -> None:
        # Frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "api_url", self.api_url.rstrip("/"))
        object.__setattr__(self, "ollama_url", self.ollama_url.rstrip("/"))
        _check_url("api_url", self.api_url)
        _check_url("ollama_url", self.ollama_url)
        if self.refresh_interval <= 0:
            raise ConfigError(f"refresh_interval must be positive, got {self.refresh_interval}")
        if self.page_size < 1:
            raise ConfigError(f"page_size must be at least 1, got {self.page_size}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "DashboardConfig":
        """
        Build a config from PROCVIEW_* environment variables.

        Unset variables keep their defaults.

        Raises:
            ConfigError: If a numeric variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        for name in ("api_url", "ollama_url", "model"):
            raw = env.get(ENV_PREFIX + name.upper())
            if raw:
                values[name] = raw

        for name, kind in (
            ("refresh_interval", float),
            ("request_timeout", float),
            ("temperature", float),
            ("max_tokens", int),
        ):
            raw = env.get(ENV_PREFIX + name.upper())
            if raw:
                values[name] = _parse_number(ENV_PREFIX + name.upper(), raw, kind)

        return cls(**values)

    def with_overrides(self, **overrides: object) -> "DashboardConfig":
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self


def _parse_number(name: str, raw: str, kind: type) -> float | int:
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigError(f"{name}={raw!r} is not a valid {kind.__name__}") from exc


def _check_url(name: str, value: str) -> None:
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as exc:
        raise ConfigError(f"{name}={value!r} is not a valid URL: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(f"{name}={value!r} must be an http(s) URL with a host")
