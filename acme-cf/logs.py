"""Terminal logging for acme-cf-setup.

Every status line goes through the standard :mod:`logging` module so
modules only need ``logger = logging.getLogger(__name__)``. `setup_logging`
installs one stderr handler producing timestamped, severity-tagged lines.
Captured acme.sh output is logged at DEBUG and only shows with ``--verbose``.
"""
import logging
import sys

CLI_FMT = "[%(levelname)s] %(asctime)s - %(message)s"
DATE_FMT = "%Y-%m-%d %H:%M:%S"

_HANDLER_NAME = "acme-cf-cli"


def setup_logging(verbose: bool = False, stream=None) -> logging.Handler:
    """Install (or replace) the CLI handler on the root logger.

    :param bool verbose: show DEBUG records, including acme.sh output
    :param stream: file object to write to, stderr by default
    :returns: the installed handler

    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(CLI_FMT, datefmt=DATE_FMT))
    level = logging.DEBUG if verbose else logging.INFO
    handler.setLevel(level)
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    return handler


def redact(secret: str, keep: int = 4) -> str:
    """Mask a secret for display, keeping at most ``keep`` leading characters."""
    if not secret:
        return ""
    if len(secret) <= keep * 2:
        return "****"
    return secret[:keep] + "****"
