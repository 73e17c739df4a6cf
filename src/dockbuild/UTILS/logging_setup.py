"""
Logging configuration for the command line.
"""
import logging
import sys

PACKAGE_LOGGER = "dockbuild"


class _LevelPrefixFormatter(logging.Formatter):
    """Prints INFO lines verbatim and prefixes everything else with its level."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno == logging.INFO:
            return message
        return f"{record.levelname}: {message}"


def configure_logging(verbose: bool = False) -> logging.Logger:
    """
    Sends dockbuild log records to stderr.

    :param verbose: Also show DEBUG records, including engine build output.
    :return: The package logger.
    """
    log = logging.getLogger(PACKAGE_LOGGER)
    log.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(log.handlers):
        log.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_LevelPrefixFormatter("%(message)s"))
    log.addHandler(handler)
    log.propagate = False
    return log
