"""
通信服务
========

协议库的对外接口。CommService 持有通道注册表，由应用根对象创建并显式传递。

使用示例::

    service = CommService()
    service.add_channel(transport)
    service.register_command_callback(transport, "TEST", on_test)
    service.send_command(transport, "GET", "TEMP")
    while running:
        service.tick()          # 约1ms调用一次
"""

from typing import Any, Iterable, Optional

from .config.constants import (
    CommError,
    CMD_PING,
    CMD_PONG,
    PING_DATA,
    MAX_CHANNELS,
    STATE_NOT_FOUND,
)
from .config.settings import ChannelConfig
from .core.callbacks import CommandCallback, FailCallback, StateChangeCallback
from .core.channel import ChannelInstance, CommStats
from .core.dispatch import Dispatcher
from .core.frame_handler import FrameHandler
from .core.registry import ChannelRegistry
from .core.transaction import TransactionEngine
from .utils.logger import get_logger
from .utils.timing import Clock, monotonic_ms

logger = get_logger(__name__)


class CommService:
    """多通道通信服务"""

    def __init__(self, clock: Clock = monotonic_ms, max_channels: int = MAX_CHANNELS):
        """
        初始化通信服务

        Args:
            clock: 毫秒时钟，测试中可替换
            max_channels: 最大通道数
        """
        self._clock = clock
        self.registry = ChannelRegistry(capacity=max_channels, clock=clock)
        self.engine = TransactionEngine()
        self.dispatcher = Dispatcher(self.engine)

    def init(self) -> None:
        """重新初始化，清空所有通道"""
        self.registry.clear()
        logger.debug("通信服务已初始化")

    # ------------------------------------------------------------------
    # 通道管理
    # ------------------------------------------------------------------

    def add_channel(
        self,
        transport: Any,
        config: Optional[ChannelConfig] = None,
        name: Optional[str] = None,
    ) -> bool:
        """
        注册传输对象（幂等）

        Args:
            transport: 传输对象，需提供 send(data, timeout_ms) -> bool
            config: 通道配置（仅首次注册时生效）
            name: 日志名称

        Returns:
            注册成功或已注册返回True，容量已满返回False
        """
        existing = self.registry.find(transport)
        if existing is not None:
            return True

        channel = self.registry.register(transport, config=config, name=name)
        if channel is None:
            return False

        if channel.config.auto_pong:
            channel.handlers.register(CMD_PING, self._make_pong_handler(transport))
        return True

    def get_channel(self, transport: Any) -> Optional[ChannelInstance]:
        """获取传输对象对应的通道"""
        return self.registry.find(transport)

    @property
    def channel_count(self) -> int:
        return len(self.registry)

    def _require_channel(self, transport: Any) -> Optional[ChannelInstance]:
        channel = self.registry.find(transport)
        if channel is None:
            logger.error(f"未找到通道: {transport!r}")
        return channel

    # ------------------------------------------------------------------
    # 回调注册
    # ------------------------------------------------------------------

    def register_command_callback(
        self, transport: Any, cmd: str, callback: CommandCallback
    ) -> bool:
        """
        注册命令回调

        Returns:
            成功返回True；通道不存在、命令无效（空、超过16字符或含帧界定符）
            或回调表已满返回False
        """
        channel = self._require_channel(transport)
        if channel is None:
            return False

        if not FrameHandler.is_valid_command(cmd) or callback is None:
            channel.last_error = CommError.INVALID_PARAM
            return False

        if not channel.handlers.register(cmd, callback):
            channel.last_error = CommError.HANDLER_TABLE_FULL
            logger.warning(f"[{channel.name}] 回调表已满，无法注册: {cmd}")
            return False

        logger.debug(f"[{channel.name}] 注册回调: {cmd}")
        return True

    def register_fail_callback(self, transport: Any, callback: FailCallback) -> bool:
        """设置发送失败回调 (cmd, data, reason)"""
        channel = self._require_channel(transport)
        if channel is None:
            return False
        channel.fail_callback = callback
        return True

    def register_state_change_callback(
        self, transport: Any, callback: StateChangeCallback
    ) -> bool:
        """设置状态变化回调 (old_state, new_state, retry_count)"""
        channel = self._require_channel(transport)
        if channel is None:
            return False
        channel.state_change_callback = callback
        return True

    # ------------------------------------------------------------------
    # 发送与查询
    # ------------------------------------------------------------------

    def send_command(self, transport: Any, cmd: str, data: str = "") -> bool:
        """
        发送命令

        发送是同步的；完成结果通过ACK（状态回到IDLE）或失败回调异步得到。

        Returns:
            帧已发出返回True
        """
        channel = self._require_channel(transport)
        if channel is None:
            return False
        return self.engine.send(channel, cmd, data)

    def ping(self, transport: Any) -> bool:
        """发送PING测试连通性"""
        return self.send_command(transport, CMD_PING, PING_DATA)

    def is_ready(self, transport: Any) -> bool:
        """通道是否空闲"""
        channel = self.registry.find(transport)
        return channel is not None and channel.is_ready()

    def get_state_string(self, transport: Any) -> str:
        """通道状态名称，未注册返回 NOT_FOUND"""
        channel = self.registry.find(transport)
        if channel is None:
            return STATE_NOT_FOUND
        return channel.state.label

    def get_retry_count(self, transport: Any) -> int:
        """通道当前重试次数，未注册返回0"""
        channel = self.registry.find(transport)
        if channel is None:
            return 0
        return channel.retry_count

    def get_stats(self, transport: Any) -> Optional[CommStats]:
        """通道统计信息"""
        channel = self.registry.find(transport)
        if channel is None:
            return None
        return channel.stats

    def reset_channel(self, transport: Any) -> bool:
        """重置通道状态，保留回调和统计"""
        channel = self._require_channel(transport)
        if channel is None:
            return False
        channel.reset()
        return True

    # ------------------------------------------------------------------
    # 字节接收上下文
    # ------------------------------------------------------------------

    def on_byte_received(self, transport: Any, byte: int) -> None:
        """
        投递一个收到的字节（IO线程调用）

        只更新对应通道的解析器，不发送也不调用业务回调。
        """
        channel = self.registry.find(transport)
        if channel is None:
            return
        channel.parser.feed_byte(byte)

    def feed(self, transport: Any, data: Iterable[int]) -> None:
        """依次投递多个字节"""
        channel = self.registry.find(transport)
        if channel is None:
            return
        for byte in data:
            channel.parser.feed_byte(byte)

    def on_transport_error(self, transport: Any) -> None:
        """底层接收出错（如溢出）时放弃正在组装的帧"""
        channel = self.registry.find(transport)
        if channel is None:
            return
        logger.warning(f"[{channel.name}] 传输错误，重置解析状态")
        channel.parser.abort_frame()

    # ------------------------------------------------------------------
    # 周期处理
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """
        周期处理入口，需要以固定短周期（约1ms）调用

        依次检查ACK超时、帧组装超时，然后处理已完成的帧。
        """
        for index in range(len(self.registry)):
            channel = self.registry.get_by_index(index)
            if channel is None:
                continue
            self._tick_channel(channel)

    def _tick_channel(self, channel: ChannelInstance) -> None:
        now = self._clock()

        self.engine.check_timeout(channel, now)

        if channel.parser.is_frame_timeout(now):
            logger.debug(f"[{channel.name}] 帧接收超时，重置解析状态")
            channel.parser.abort_frame()
            channel.stats.rx_error += 1

        frame = channel.parser.take_frame()
        if frame is not None:
            self.dispatcher.handle_frame(channel, frame)

    def _make_pong_handler(self, transport: Any) -> CommandCallback:
        def on_ping(cmd: str, data: str) -> None:
            if not self.send_command(transport, CMD_PONG, data):
                logger.warning(f"PONG发送失败: {transport!r}")

        return on_ping
