"""
日志模块 (Logging)
=================

formharvest 与 app 下所有模块共用一个项目日志器树，根为 "formharvest"。
不在该命名空间下的名称（如 app.api）会被挂到根下面（formharvest.app.api），
这样 CLI 与收集器服务的日志也走同一个控制台处理器。

    from formharvest.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Stored session id=%d url=%s", session_id, url)

默认级别取自配置项 LOG_LEVEL，可用 set_level() 在运行时调整。
"""

import logging
import sys
from typing import Optional, Union

from formharvest.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROOT_LOGGER_NAME = "formharvest"

_handler: Optional[logging.Handler] = None

Level = Union[int, str]


def _coerce_level(level: Level) -> int:
    """把 "debug"/"INFO"/10 之类的输入转为 logging 级别；无法识别时为 INFO。"""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _project_name(name: str) -> str:
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return name
    return f"{ROOT_LOGGER_NAME}.{name}"


def _ensure_handler() -> logging.Logger:
    """首次调用时给项目根日志器挂上 stdout 处理器，之后直接返回根日志器。"""
    global _handler
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if _handler is not None:
        return root

    level = _coerce_level(get_settings().LOG_LEVEL)
    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    _handler.setLevel(level)

    root.addHandler(_handler)
    root.setLevel(level)
    root.propagate = False
    return root


def get_logger(name: str, level: Optional[Level] = None) -> logging.Logger:
    """
    返回项目日志器树中的日志器。

    参数:
        name: 通常是调用模块的 __name__
        level: 只作用于该日志器的级别（可选）
    """
    _ensure_handler()
    logger = logging.getLogger(_project_name(name))
    if level is not None:
        logger.setLevel(_coerce_level(level))
    return logger


def set_level(level: Level, logger_name: Optional[str] = None) -> None:
    """
    调整日志级别。

    不指定 logger_name 时同时调整根日志器和控制台处理器:
        set_level("DEBUG")
        set_level(logging.WARNING, "formharvest.sync")
    """
    numeric = _coerce_level(level)
    root = _ensure_handler()
    if logger_name:
        logging.getLogger(_project_name(logger_name)).setLevel(numeric)
        return
    root.setLevel(numeric)
    if _handler is not None:
        _handler.setLevel(numeric)
