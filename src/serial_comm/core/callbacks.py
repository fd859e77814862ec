"""
回调管理模块
============

每个通道一张固定容量的 命令 -> 回调 表。
"""

from typing import Callable, List, Optional, Tuple

from ..config.constants import MAX_CALLBACKS, TransactionState

# 普通命令回调: (command, data)
CommandCallback = Callable[[str, str], None]
# 发送失败回调: (command, data, reason)
FailCallback = Callable[[str, str, str], None]
# 状态变化回调: (old_state, new_state, retry_count)
StateChangeCallback = Callable[[TransactionState, TransactionState, int], None]


class CallbackTable:
    """固定容量的命令回调表，不支持注销"""

    def __init__(self, capacity: int = MAX_CALLBACKS):
        self.capacity = capacity
        self._slots: List[Optional[Tuple[str, CommandCallback]]] = [None] * capacity

    def register(self, cmd: str, callback: CommandCallback) -> bool:
        """
        注册命令回调

        已存在的命令覆盖原回调，新命令占用第一个空闲位置。

        Args:
            cmd: 命令字符串
            callback: 回调函数

        Returns:
            成功返回True，表已满返回False
        """
        index = self.find_index(cmd)
        if index >= 0:
            self._slots[index] = (cmd, callback)
            return True

        for i, slot in enumerate(self._slots):
            if slot is None:
                self._slots[i] = (cmd, callback)
                return True

        return False

    def find_index(self, cmd: str) -> int:
        """查找命令所在位置，未注册返回-1"""
        for i, slot in enumerate(self._slots):
            if slot is not None and slot[0] == cmd:
                return i
        return -1

    def get(self, cmd: str) -> Optional[CommandCallback]:
        """获取命令对应的回调"""
        index = self.find_index(cmd)
        if index < 0:
            return None
        return self._slots[index][1]  # type: ignore[index]

    @property
    def commands(self) -> List[str]:
        """已注册的命令列表（按位置）"""
        return [slot[0] for slot in self._slots if slot is not None]

    def __len__(self) -> int:
        return sum(1 for slot in self._slots if slot is not None)

    def __contains__(self, cmd: str) -> bool:
        return self.find_index(cmd) >= 0

    @property
    def is_full(self) -> bool:
        return len(self) >= self.capacity
