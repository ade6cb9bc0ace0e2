"""Configuration loading from YAML and environment.

Secrets (GitHub token, GitHub App private key) are taken from environment
variables or from files (Docker secrets). Never put real tokens in config
files committed to the repo.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _read_secret(env_key: str, file_env_key: str) -> str | None:
    """Read secret from env var or from file path in env (e.g. Docker
    secrets)."""
    value = _current_env.get(env_key)
    if value:
        return value.strip()
    file_path = _current_env.get(file_env_key)
    if file_path:
        return Path(file_path).read_text().strip()
    return None


# Injected by load_config so validators can read env/file
_current_env: dict[str, str] = {}


class GitHubConfig(BaseSettings):
    """GitHub API settings.

    Either a static token (used for every installation) or a GitHub App
    (app_id + private key, exchanged for per-installation tokens).
    """

    model_config = SettingsConfigDict(env_prefix="GITHUB_", extra="ignore")

    api_url: str = Field(default="https://api.github.com", description="API base URL")
    token: str | None = Field(default=None, description="PAT or app token; use env or secret file")
    app_id: int | None = Field(default=None, description="GitHub App id (enables installation tokens)")
    private_key_path: str | None = Field(default=None, description="Path to the GitHub App PEM key")
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    check_name: str = Field(default="freeze-status", description="Name of the check run created on PR heads")


class StoreConfig(BaseSettings):
    """Freeze store backend."""

    model_config = SettingsConfigDict(env_prefix="STORE_", extra="ignore")

    backend: str = Field(default="yaml", description="yaml or sqlite")
    path: str = Field(default=".freezebot", description="Directory (yaml) or database file (sqlite)")


class SchedulerConfig(BaseSettings):
    """Scheduler (activation / expiry polling) settings."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_", extra="ignore")

    enabled: bool = Field(default=True, description="Run the scheduler loop in the daemon")
    interval_seconds: int = Field(default=60, ge=1, description="Tick period in seconds")


class RefreshConfig(BaseSettings):
    """Check-run synchronization limits (concurrency, pacing, retries)."""

    model_config = SettingsConfigDict(env_prefix="REFRESH_", extra="ignore")

    max_concurrent_requests: int = Field(default=10, ge=1, description="Chunk size = max in-flight updates")
    batch_delay_ms: int = Field(default=100, ge=0, description="Pause between chunks")
    max_retries: int = Field(default=3, ge=0, description="Retries after the first failed attempt")
    base_retry_delay_ms: int = Field(default=1000, ge=0, description="Backoff base; doubles per attempt")
    repository_delay_ms: int = Field(default=100, ge=0, description="Pause between repositories in a sweep")


class FreezeConfig(BaseSettings):
    """Freeze defaults."""

    model_config = SettingsConfigDict(env_prefix="FREEZE_", extra="ignore")

    default_duration_minutes: int = Field(default=120, ge=1, description="Used when neither end nor duration")


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    http_level: str = Field(default="WARNING", description="Minimum level for urllib3 and requests loggers")


class AppConfig(BaseSettings):
    """Root application config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore")

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    freeze: FreezeConfig = Field(default_factory=FreezeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def github_token_resolved(self) -> str | None:
        """Resolve GitHub token from config, env or Docker secret file."""
        t = self.github.token
        if t and not t.startswith("${"):
            return t
        return _read_secret("GITHUB_TOKEN", "GITHUB_TOKEN_FILE")

    @property
    def github_private_key_resolved(self) -> str | None:
        """Resolve the GitHub App PEM key from path, env or Docker secret file."""
        if self.github.private_key_path:
            return Path(self.github.private_key_path).read_text()
        return _read_secret("GITHUB_PRIVATE_KEY", "GITHUB_PRIVATE_KEY_FILE")


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings with os.environ."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return _current_env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return _current_env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from YAML file and environment.

    Secrets: GITHUB_TOKEN or GITHUB_TOKEN_FILE, GITHUB_PRIVATE_KEY or
    GITHUB_PRIVATE_KEY_FILE.
    """
    global _current_env
    import os

    _current_env = dict(os.environ)

    path = config_path or Path("config.yaml")
    if not path.is_file():
        return AppConfig()

    raw = yaml.safe_load(path.read_text()) or {}
    raw = _substitute_env(raw)

    return AppConfig(
        github=GitHubConfig(**(raw.get("github") or {})),
        store=StoreConfig(**(raw.get("store") or {})),
        scheduler=SchedulerConfig(**(raw.get("scheduler") or {})),
        refresh=RefreshConfig(**(raw.get("refresh") or {})),
        freeze=FreezeConfig(**(raw.get("freeze") or {})),
        logging=LoggingConfig(**(raw.get("logging") or {})),
    )
