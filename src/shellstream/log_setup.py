"""Logging setup for applications embedding shellstream.

The library only creates module loggers; nothing is configured on import.
"""

from __future__ import annotations

import logging
import sys

from .config import Config, get_config

__all__ = ["configure_logging", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(config: Config | None = None) -> logging.Logger:
    """Attach a handler to the `shellstream` logger.

    With `log_debug` enabled, DEBUG records go to `config.log_file`;
    otherwise WARNING records go to stderr. Calling it again replaces the
    handler installed by the previous call.

    Args:
        config: Configuration (default: global config)

    Returns:
        The configured `shellstream` logger
    """
    config = config or get_config()
    package_logger = logging.getLogger("shellstream")

    for handler in list(package_logger.handlers):
        if getattr(handler, "_shellstream_handler", False):
            package_logger.removeHandler(handler)
            handler.close()

    handler: logging.Handler
    if config.log_debug and config.log_file:
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
        level = logging.DEBUG
    else:
        handler = logging.StreamHandler(sys.stderr)
        level = logging.WARNING

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._shellstream_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(handler)
    package_logger.setLevel(level)

    if config.log_debug and config.log_file:
        package_logger.debug(f"Debug logging to {config.log_file}: {config}")

    return package_logger
