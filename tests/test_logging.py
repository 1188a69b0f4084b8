import logging

import numpy as np

from quantile_stacking.logging_utils import get_logger
from quantile_stacking.lp import build


class _Collect(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_module_loggers_inherit_from_package_logger():
    pkg = get_logger()
    lp_logger = get_logger("quantile_stacking.lp")

    assert pkg.name == "quantile_stacking"
    assert len(pkg.handlers) >= 1
    assert lp_logger.level == logging.NOTSET
    assert lp_logger.propagate
    assert not lp_logger.handlers

    old_level = pkg.level
    try:
        pkg.setLevel(logging.DEBUG)
        assert lp_logger.getEffectiveLevel() == logging.DEBUG
        pkg.setLevel(logging.WARNING)
        assert lp_logger.getEffectiveLevel() == logging.WARNING
    finally:
        pkg.setLevel(old_level)


def test_debug_lines_reach_package_handler():
    pkg = get_logger()
    collect = _Collect()
    old_level = pkg.level
    pkg.addHandler(collect)
    pkg.setLevel(logging.DEBUG)
    try:
        y = np.zeros(4)
        build(np.zeros((4, 2, 1)), y, [0.5])
    finally:
        pkg.removeHandler(collect)
        pkg.setLevel(old_level)

    built = [r for r in collect.records if r.name == "quantile_stacking.lp" and r.levelno == logging.DEBUG]
    assert any(r.getMessage().startswith("Built LP") for r in built)


def test_get_logger_adds_one_console_handler():
    get_logger("quantile_stacking.lp")
    get_logger("quantile_stacking.solver")
    pkg = get_logger()

    streams = [h for h in pkg.handlers if isinstance(h, logging.StreamHandler)]
    assert len(streams) == 1
    assert not pkg.propagate
