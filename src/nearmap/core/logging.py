"""
Logging configuration.

The packaged `logging.yaml` is the base; the effective level comes from an
explicit argument (CLI `--log-level`), else `app.log_level` (`NEARMAP_LOG_LEVEL`).

HTTP client loggers (IP sensor, remote region tables) stay at WARNING unless the
effective level is DEBUG, where request lines help diagnose sensor failures.
"""

from __future__ import annotations

import logging.config
from typing import Any

from nearmap.config.settings import get_logging_config, get_settings

HTTP_LOGGERS = ("httpx", "httpcore")


def build_logging_config(level: str | None = None) -> dict[str, Any]:
    config = get_logging_config()
    effective = (level or get_settings().app.log_level).upper()

    config.setdefault("root", {})["level"] = effective
    for handler in config.get("handlers", {}).values():
        if isinstance(handler, dict) and "level" in handler:
            handler["level"] = effective

    loggers = config.setdefault("loggers", {})
    for name in HTTP_LOGGERS:
        loggers.setdefault(name, {})["level"] = "DEBUG" if effective == "DEBUG" else "WARNING"
    return config


def configure_logging(level: str | None = None) -> None:
    logging.config.dictConfig(build_logging_config(level))
