"""
通道注册表
==========

固定容量、只增不减的通道集合，按传输对象查找，按序号遍历。
"""

from typing import Any, Iterator, List, Optional

from ..config.constants import MAX_CHANNELS
from ..config.settings import ChannelConfig
from ..utils.logger import get_logger
from ..utils.timing import Clock, monotonic_ms
from .channel import ChannelInstance

logger = get_logger(__name__)


class ChannelRegistry:
    """通道注册表"""

    def __init__(self, capacity: int = MAX_CHANNELS, clock: Clock = monotonic_ms):
        self.capacity = capacity
        self._clock = clock
        self._channels: List[ChannelInstance] = []

    def find(self, transport: Any) -> Optional[ChannelInstance]:
        """
        按传输对象查找通道

        Args:
            transport: 传输对象

        Returns:
            找到的通道，未注册返回None
        """
        if transport is None:
            return None
        for channel in self._channels:
            if channel.transport == transport:
                return channel
        return None

    def register(
        self,
        transport: Any,
        config: Optional[ChannelConfig] = None,
        name: Optional[str] = None,
    ) -> Optional[ChannelInstance]:
        """
        注册传输对象（幂等）

        已注册时直接返回已有通道，不修改其配置。

        Args:
            transport: 传输对象
            config: 通道配置
            name: 日志名称

        Returns:
            通道实例，容量已满或参数无效时返回None
        """
        if transport is None:
            logger.error("传输对象为空，无法注册通道")
            return None

        existing = self.find(transport)
        if existing is not None:
            return existing

        if len(self._channels) >= self.capacity:
            logger.error(f"无法创建更多通道，已达上限: {self.capacity}")
            return None

        channel = ChannelInstance(transport, config=config, clock=self._clock, name=name)
        self._channels.append(channel)
        logger.info(f"为 {channel.name} 创建通道，通道总数: {len(self._channels)}")
        return channel

    def get_by_index(self, index: int) -> Optional[ChannelInstance]:
        """按序号获取通道"""
        if 0 <= index < len(self._channels):
            return self._channels[index]
        return None

    def clear(self) -> None:
        """清空注册表（仅用于库重新初始化）"""
        self._channels.clear()

    def __len__(self) -> int:
        return len(self._channels)

    def __iter__(self) -> Iterator[ChannelInstance]:
        return iter(list(self._channels))

    def __contains__(self, transport: Any) -> bool:
        return self.find(transport) is not None
