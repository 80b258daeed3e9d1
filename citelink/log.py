"""
Logger configuration.

Modules log through `logging.getLogger(__name__)`; applications call
configure_logging() once at startup.
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Install a single stdout handler with an ISO timestamp format."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    root_logger.setLevel(level.upper())
    root_logger.addHandler(handler)

    # pdfminer is very chatty at DEBUG
    logging.getLogger("pdfminer").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

