import logging
import sys
from colorlog import ColoredFormatter

LOGGER_NAME = "socialauth"


def setup_logger(debug_mode: bool = False) -> logging.Logger:
    """
    Install the console handler on the package logger.

    Modules log through logging.getLogger(__name__), so everything under
    the socialauth package inherits this handler and level.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG if debug_mode else logging.INFO)

    formatter = ColoredFormatter(
        "%(log_color)s[%(levelname)s] %(name)s: %(message)s",
        log_colors={
            "DEBUG":    "cyan",
            "INFO":     "green",
            "WARNING":  "yellow",
            "ERROR":    "red",
            "CRITICAL": "red,bg_white",
        }
    )
    handler.setFormatter(formatter)

    if not logger.handlers:
        logger.addHandler(handler)

    if debug_mode:
        logger.debug("Debug mode is active.")
    return logger
