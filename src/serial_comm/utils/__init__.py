"""
工具模块
========

包含日志记录、时钟等工具功能。
"""

from .logger import get_logger, setup_logger, set_level
from .timing import Clock, monotonic_ms, elapsed_ms

__all__ = [
    "get_logger",
    "setup_logger",
    "set_level",
    "Clock",
    "monotonic_ms",
    "elapsed_ms",
]
