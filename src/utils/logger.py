import logging
import os

from rich.console import Console
from rich.logging import RichHandler

from utils.config import settings


class PaddedNameFormatter(logging.Formatter):
    """Pads logger names to the longest one seen so far, so messages line up."""

    name_width = 14

    def format(self, record):
        PaddedNameFormatter.name_width = max(
            PaddedNameFormatter.name_width, len(record.name)
        )
        record.name = record.name.ljust(PaddedNameFormatter.name_width)
        return super().format(record)


def _build_handler(log_level: int) -> logging.Handler:
    # the TUI owns stdout, so never log there
    if settings.log_file:
        log_dir = os.path.dirname(settings.log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        handler.setFormatter(
            PaddedNameFormatter("%(asctime)s %(levelname)-8s [%(name)s]  %(message)s")
        )
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(PaddedNameFormatter("[%(name)s]  %(message)s"))
    handler.setLevel(log_level)
    return handler


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger wired to a RichHandler on stderr, or to a file handler
    when STOREFRONT_LOG_FILE is configured.
    """
    if name is None:
        name = "storefront"
    logger = logging.getLogger(name)
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logger.setLevel(log_level)

    if not logger.handlers:
        logger.addHandler(_build_handler(log_level))
        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized.")

    return logger
