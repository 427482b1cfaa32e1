# ==============================================================================
# Logging Setup
# ==============================================================================
"""
Process-wide logging configuration.

Library modules only ever call ``logging.getLogger(__name__)``; the entry
point (CLI or the hosting web server) calls ``configure_logging()`` once.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("urllib3", "geoip2")


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """
    Configure root logging.

    Args:
        level: Logging level name (e.g. "INFO", "DEBUG")
        log_file: Optional file to log to instead of stderr
    """
    handlers: list[logging.Handler] = (
        [logging.FileHandler(log_file)] if log_file else [logging.StreamHandler()]
    )
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
