"""Logging from config and env.

The root logger takes logging.level and logging.format (env LOGGING_LEVEL,
LOGGING_FORMAT). The HTTP client loggers (urllib3, requests) are held at
logging.http_level (env LOGGING_HTTP_LEVEL), never below the root level.
"""

import logging

from freezebot.config import LoggingConfig

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
HTTP_LOGGERS = ("urllib3", "requests")

_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR")


def resolve_level(name: str | None, default: int = logging.INFO) -> int:
    """DEBUG/INFO/WARNING/ERROR to the logging constant; anything else to `default`."""
    name = (name or "").upper().strip()
    if name not in _LEVEL_NAMES:
        return default
    return logging.getLevelName(name)


class FreezeBotLogging:
    """Configures root and HTTP client loggers from LoggingConfig."""

    def __init__(self, config: LoggingConfig) -> None:
        self.level = resolve_level(config.level)
        self.http_level = max(self.level, resolve_level(config.http_level, logging.WARNING))
        self._format = config.format or DEFAULT_FORMAT

    def setup(self) -> None:
        logging.basicConfig(level=self.level, format=self._format, force=True)
        for name in HTTP_LOGGERS:
            logging.getLogger(name).setLevel(self.http_level)
        logging.getLogger("freezebot").debug(
            "Logging at %s (HTTP clients at %s)",
            logging.getLevelName(self.level),
            logging.getLevelName(self.http_level),
        )
