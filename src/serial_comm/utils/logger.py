"""
日志记录模块
============

提供统一的日志记录功能，支持彩色输出和调用位置追踪。
"""

import datetime
import logging
import sys
from typing import Dict, Optional
from pathlib import Path

DEFAULT_LOGGER_NAME = "serial_comm"


class ColoredFormatter(logging.Formatter):
    """彩色日志格式化器"""

    # ANSI颜色代码
    COLORS = {
        "DEBUG": "\033[36m",  # 青色
        "INFO": "\033[0m",  # 默认色
        "WARNING": "\033[33m",  # 黄色
        "ERROR": "\033[31m",  # 红色
        "CRITICAL": "\033[35m",  # 紫色
        "RESET": "\033[0m",  # 重置
    }

    def format(self, record):
        """格式化日志记录"""
        # 调用位置
        caller_filename = Path(record.pathname).name
        caller_function = record.funcName
        caller_line = record.lineno

        # 毫秒精度时间戳
        now = datetime.datetime.fromtimestamp(record.created)
        milliseconds = now.microsecond // 1000
        timestamp = now.strftime(f"%Y-%m-%d %H:%M:%S.{milliseconds:03d}")

        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]

        return (
            f"{color}[{timestamp}] [{record.levelname}] {record.getMessage()} "
            f"[{caller_filename}.{caller_function}():{caller_line}]{reset}"
        )


# 已创建的日志器缓存
_loggers: Dict[str, logging.Logger] = {}


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    console_output: bool = True,
) -> logging.Logger:
    """
    设置日志器

    Args:
        name: 日志器名称
        level: 日志级别
        log_file: 日志文件路径，None表示不写入文件
        console_output: 是否输出到控制台

    Returns:
        配置好的日志器
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # 清除已有的处理器
    logger.handlers.clear()

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ColoredFormatter())
        logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    # 防止重复输出
    logger.propagate = False

    _loggers[name] = logger
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    获取日志器实例

    包内模块（serial_comm.*）直接复用根日志器的处理器，
    其他名称按需创建独立日志器。

    Args:
        name: 日志器名称

    Returns:
        日志器实例
    """
    if name in _loggers:
        return _loggers[name]

    if name.startswith(DEFAULT_LOGGER_NAME + "."):
        get_logger(DEFAULT_LOGGER_NAME)
        logger = logging.getLogger(name)
        logger.setLevel(logging.NOTSET)
        _loggers[name] = logger
        return logger

    return setup_logger(name)


def set_level(level: int, name: str = DEFAULT_LOGGER_NAME) -> None:
    """调整日志级别（CLI的 --verbose 使用）"""
    get_logger(name).setLevel(level)
