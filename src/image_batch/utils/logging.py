"""日志配置：持久化文件与控制台各自独立的最低级别。"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

NANO = 5
logging.addLevelName(NANO, "NANO")

LOG_FORMAT = "%(asctime)s [%(threadName)s] %(levelname)s %(name)s: %(message)s"

LEVELS = {
    "nano": NANO,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}


def parse_level(value: Union[str, int]) -> int:
    """把 nano/debug/info/warn/error/fatal 解析为 logging 级别。"""

    if isinstance(value, int):
        return value
    try:
        return LEVELS[value.strip().lower()]
    except KeyError:
        raise ValueError(f"未知的日志级别: {value}") from None


def setup_logging(
    level: Union[str, int] = logging.INFO,
    *,
    log_file: Optional[Path] = None,
    file_level: Union[str, int] = logging.INFO,
) -> None:
    """初始化项目日志配置。

    日志文件无法打开时退化为仅输出到控制台，不终止进程。
    """

    console_level = parse_level(level)
    persistent_level = parse_level(file_level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    handlers: list[logging.Handler] = [console]

    open_error: Optional[OSError] = None
    if log_file is not None:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as exc:
            open_error = exc
        else:
            file_handler.setLevel(persistent_level)
            handlers.append(file_handler)

    logging.basicConfig(
        level=min(handler.level for handler in handlers),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    if open_error is not None:
        logging.getLogger(__name__).warning("无法打开日志文件 %s，仅输出到控制台: %s", log_file, open_error)
