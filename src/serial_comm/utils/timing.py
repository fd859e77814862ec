"""单调毫秒时钟"""

import time
from typing import Callable

# 时钟类型：返回单调递增的毫秒数
Clock = Callable[[], int]


def monotonic_ms() -> int:
    """返回单调时钟的毫秒值，不受系统时间调整影响"""
    return int(time.monotonic() * 1000)


def elapsed_ms(start: int, now: int) -> int:
    """计算两个时间点的间隔（毫秒），时钟回退时返回0"""
    return max(0, now - start)
