"""
序列号管理模块
==============

发送序列号的分配与接收序列号的窗口判定，均为8位回绕运算。

接收策略（d 为回绕修正后的差值）：
- 1 <= d <= 10: 接受（允许最多9个连续丢包）
- d == 0: 重复帧，重发ACK但不再分发
- d < 0 或 d > 10: 拒绝，回复NAK
"""

from ..config.constants import (
    SequenceVerdict,
    SEQUENCE_MODULO,
    SEQUENCE_RESERVED,
    SEQUENCE_WRAP_THRESHOLD,
    SEQUENCE_WINDOW,
)


def next_tx_sequence(current: int) -> int:
    """
    计算下一个发送序列号

    模256递增，跳过保留值0。

    Args:
        current: 当前发送序列号

    Returns:
        下一个序列号（1-255）
    """
    seq = (current + 1) % SEQUENCE_MODULO
    if seq == SEQUENCE_RESERVED:
        seq = SEQUENCE_RESERVED + 1
    return seq


def sequence_delta(current: int, incoming: int) -> int:
    """
    计算回绕修正后的有符号序列号差值

    Args:
        current: 当前接收序列号
        incoming: 新收到的序列号

    Returns:
        incoming - current，|差值| > 128 时按 ±256 修正

    Examples:
        >>> sequence_delta(250, 3)
        9
        >>> sequence_delta(5, 4)
        -1
    """
    diff = incoming - current
    if diff > SEQUENCE_WRAP_THRESHOLD:
        diff -= SEQUENCE_MODULO
    elif diff < -SEQUENCE_WRAP_THRESHOLD:
        diff += SEQUENCE_MODULO
    return diff


def classify_rx_sequence(current: int, incoming: int) -> SequenceVerdict:
    """
    判定接收序列号是否落在接收窗口内

    Args:
        current: 当前接收序列号
        incoming: 新收到的序列号

    Returns:
        SequenceVerdict.ACCEPT / DUPLICATE / REJECT
    """
    diff = sequence_delta(current, incoming)
    if 1 <= diff <= SEQUENCE_WINDOW:
        return SequenceVerdict.ACCEPT
    if diff == 0:
        return SequenceVerdict.DUPLICATE
    return SequenceVerdict.REJECT


def accept_rx_sequence(current: int, incoming: int) -> bool:
    """接收序列号是否可以接受（仅ACCEPT为True）"""
    return classify_rx_sequence(current, incoming) is SequenceVerdict.ACCEPT
