from __future__ import annotations

import logging

from memory_anchor.utils.log import ROOT_LOGGER, get_logger, setup_logging


def test_get_logger_is_namespaced_under_package():
    assert get_logger("memory_anchor.face.registry").name == "memory_anchor.face.registry"
    assert get_logger("face_scanner").name == "memory_anchor.face_scanner"
    assert get_logger(None).name == ROOT_LOGGER


def test_setup_logging_sets_level_and_installs_one_handler():
    root = logging.getLogger(ROOT_LOGGER)
    saved = (root.level, list(root.handlers), root.propagate)
    try:
        setup_logging(verbose=True)
        assert root.level == logging.DEBUG
        setup_logging(verbose=False)
        assert root.level == logging.INFO
        ours = [h for h in root.handlers if getattr(h, "_memory_anchor", False)]
        assert len(ours) == 1
        assert logging.getLogger("insightface").level == logging.WARNING
    finally:
        root.setLevel(saved[0])
        root.handlers[:] = saved[1]
        root.propagate = saved[2]
