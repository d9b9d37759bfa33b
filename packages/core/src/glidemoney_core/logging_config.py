"""structlog setup for applications embedding GlideMoney Core.

The core only emits events through ``structlog.get_logger()``; the host
application decides where they go. Call ``configure_logging`` once at
startup, or ``configure_from_config`` with a loaded ``GlideMoneyConfig``.
"""

import logging
from typing import Optional

import structlog

from glidemoney_core.config import GlideMoneyConfig


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog level filtering and rendering.

    Args:
        level: Minimum level to emit (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render JSON lines instead of the console format
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=False,
    )


def configure_from_config(config: Optional[GlideMoneyConfig] = None) -> GlideMoneyConfig:
    """Configure logging from settings and return the settings used."""
    config = config or GlideMoneyConfig()
    configure_logging(config.log_level, json_logs=config.json_logs)
    return config
