from __future__ import annotations

import logging

PACKAGE_LOGGER = "quantile_stacking"


def get_logger(name: str = PACKAGE_LOGGER, level: int = logging.INFO) -> logging.Logger:
    """Get a logger with a simple console handler on the package logger.

    The handler and level live only on the ``quantile_stacking`` logger; module
    loggers (``get_logger(__name__)``) inherit both, so raising the package
    level to DEBUG shows every module's debug lines. Handlers are only added
    once, so repeated calls on re-import are harmless.
    """
    root = logging.getLogger(PACKAGE_LOGGER)
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
        handler.setFormatter(logging.Formatter(fmt))
        root.addHandler(handler)
        root.setLevel(level)
        root.propagate = False

    if name == PACKAGE_LOGGER:
        return root
    return logging.getLogger(name)
