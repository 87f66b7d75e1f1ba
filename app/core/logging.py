import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_handler = None


def configure_logging(level: str = "INFO") -> None:
    """
    Sets up the root logger once per process. Calling it again only
    adjusts the level, so building several apps (e.g. in tests) does not
    stack handlers.
    """
    global _handler

    root = logging.getLogger()
    root.setLevel(level.upper())

    if _handler is not None:
        return

    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(_handler)
