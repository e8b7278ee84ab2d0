"""日志配置

库代码只通过 `get_logger` 取 logger，不在导入时配置 root handler；
命令行入口调用 `setup_logging` 决定级别与格式。
"""

import logging
import os

from contextlib import contextmanager

ROOT_LOGGER = "memory_anchor"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
# 扫描循环按周期写日志，时间只保留到秒
DATE_FORMAT = "%H:%M:%S"


def get_logger(name):
    """获取日志记录器

    Module names outside the package (e.g. the `face_scanner` script) are hung
    under `memory_anchor.` so one `setup_logging` call controls every logger.
    """
    name = str(name or ROOT_LOGGER)
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def setup_logging(verbose: bool = False, quiet_libraries: bool = True) -> logging.Logger:
    """配置包日志：INFO（verbose 时 DEBUG），并压低第三方库的噪声。

    Safe to call more than once; the handler is installed only on the first call.
    """
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    if not any(getattr(h, "_memory_anchor", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handler._memory_anchor = True
        root.addHandler(handler)
        root.propagate = False
    if quiet_libraries:
        for lib in ("insightface", "onnxruntime", "PIL"):
            logging.getLogger(lib).setLevel(logging.WARNING)
    return root


@contextmanager
def suppress_fds():
    """Redirect FD 1 and 2 to /dev/null for the duration of the block.

    InsightFace / ONNX Runtime print model-loading banners from C code, which
    sys.stdout/sys.stderr redirection does not catch.
    """
    devnull = os.open(os.devnull, os.O_RDWR)
    saved = (os.dup(1), os.dup(2))
    try:
        os.dup2(devnull, 1)
        os.dup2(devnull, 2)
        yield
    finally:
        for fd, old in zip((1, 2), saved):
            os.dup2(old, fd)
            os.close(old)
        os.close(devnull)
