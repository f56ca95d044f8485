"""
Logging Configuration
=====================

The compiler logs through the standard ``logging`` module; every module
owns a ``logger = logging.getLogger(__name__)``. This module adds a TRACE
level below DEBUG for per-construct parser and emitter chatter, and maps
the CLI verbosity names onto logging levels.

| Verbosity | Level   | What you see                                |
|-----------|---------|---------------------------------------------|
| error     | ERROR   | failures only                               |
| debug     | DEBUG   | tokens, declarations, IR, backend commands  |
| trace     | TRACE   | every statement and expression lowered      |
"""

import logging

# Below logging.DEBUG (10)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOG_FORMAT = "%(levelname)s:%(filename)s:%(lineno)dL: %(message)s"

VERBOSITY_LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "debug": logging.DEBUG,
    "trace": TRACE,
}


def setup_logging(verbosity: str = "error") -> None:
    """
    Configure the root logger for the given verbosity name.

    Args:
        verbosity: One of "error", "debug", "trace"

    Raises:
        ValueError: If the verbosity name is unknown
    """
    try:
        level = VERBOSITY_LEVELS[verbosity.lower()]
    except KeyError:
        raise ValueError(f"unknown verbosity '{verbosity}'") from None

    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
