"""
通道实例模块
============

保存单个传输通道的全部协议状态：解析器、事务状态、序列号、
重试计数、截止时间、回调表和统计信息。
"""

from dataclasses import dataclass, asdict
from typing import Any, Optional

from ..config.constants import TransactionState, ParseState, CommError
from ..config.settings import ChannelConfig
from ..utils.logger import get_logger
from ..utils.timing import Clock, monotonic_ms
from .callbacks import CallbackTable, FailCallback, StateChangeCallback
from .frame_handler import FrameParser

logger = get_logger(__name__)


@dataclass
class CommStats:
    """通道统计信息"""

    # 发送统计
    tx_count: int = 0  # 发送命令总数
    tx_success: int = 0  # 收到ACK的命令数
    tx_failed: int = 0  # 重试耗尽的命令数
    tx_retry: int = 0  # 重传次数
    tx_timeout: int = 0  # ACK超时次数（含NAK触发）

    # 接收统计
    rx_count: int = 0  # 取走的完整帧数
    rx_success: int = 0  # 成功分发的命令帧数
    rx_error: int = 0  # 帧组装超时次数
    rx_crc_error: int = 0  # 校验失败次数
    rx_frame_error: int = 0  # 控制帧格式错误次数
    rx_seq_error: int = 0  # 序列号错误（重复或越界）次数

    # 往返延迟（毫秒）
    min_delay_ms: Optional[int] = None
    max_delay_ms: int = 0
    total_delay_ms: int = 0

    # PING
    ping_count: int = 0
    ping_success: int = 0

    @property
    def avg_delay_ms(self) -> float:
        """平均往返延迟"""
        if self.tx_success == 0:
            return 0.0
        return self.total_delay_ms / self.tx_success

    def record_round_trip(self, delay_ms: int) -> None:
        """记录一次成功事务的往返延迟"""
        self.tx_success += 1
        self.total_delay_ms += delay_ms
        if self.min_delay_ms is None or delay_ms < self.min_delay_ms:
            self.min_delay_ms = delay_ms
        if delay_ms > self.max_delay_ms:
            self.max_delay_ms = delay_ms

    def to_dict(self) -> dict:
        """转换为字典，包含平均延迟"""
        result = asdict(self)
        result["avg_delay_ms"] = self.avg_delay_ms
        return result


class ChannelInstance:
    """
    通道实例

    每个注册的传输对象对应一个实例，实例只会被重置，不会被删除。
    """

    def __init__(
        self,
        transport: Any,
        config: Optional[ChannelConfig] = None,
        clock: Clock = monotonic_ms,
        name: Optional[str] = None,
    ):
        """
        初始化通道实例

        Args:
            transport: 传输对象（同时作为通道的查找键）
            config: 通道配置
            clock: 毫秒时钟
            name: 日志中显示的名称
        """
        self.transport = transport
        self.config = config or ChannelConfig()
        self.name = name or repr(transport)
        self._clock = clock

        self.parser = FrameParser(clock=clock, frame_timeout_ms=self.config.frame_timeout_ms)
        self.handlers = CallbackTable()
        self.fail_callback: Optional[FailCallback] = None
        self.state_change_callback: Optional[StateChangeCallback] = None
        self.stats = CommStats()

        self._init_protocol_state()

    def _init_protocol_state(self) -> None:
        """初始化事务与序列号状态"""
        self.state = TransactionState.IDLE
        self.tx_sequence = 0
        self.rx_sequence = 0
        self.expected_ack_seq = 0
        self.current_sequence = 0
        self.retry_count = 0
        self.last_send_time = 0
        self.ack_deadline = 0

        # 当前发送任务，用于重试和失败回调
        self.current_cmd = ""
        self.current_data = ""
        self.tx_buffer = b""

        self.last_error = CommError.NONE

    @property
    def max_retry(self) -> int:
        return self.config.max_retry

    @property
    def parse_state(self) -> ParseState:
        return self.parser.state

    @property
    def frame_deadline(self) -> int:
        return self.parser.frame_deadline

    @property
    def frame_ready(self) -> bool:
        return self.parser.frame_ready

    def now(self) -> int:
        """当前毫秒时间"""
        return self._clock()

    def is_ready(self) -> bool:
        """是否可以发送新命令"""
        return self.state == TransactionState.IDLE

    def set_state(self, new_state: TransactionState) -> None:
        """
        切换事务状态，状态实际变化时调用状态变化回调

        Args:
            new_state: 新状态
        """
        old_state = self.state
        if old_state == new_state:
            return

        logger.debug(f"[{self.name}] 状态变更: {old_state.label} -> {new_state.label}")
        self.state = new_state

        if self.state_change_callback is not None:
            try:
                self.state_change_callback(old_state, new_state, self.retry_count)
            except Exception as e:
                logger.error(f"[{self.name}] 状态变化回调异常: {e}")

    def reset(self) -> None:
        """
        重置通道

        恢复IDLE状态并清空序列号和解析器，保留配置、回调和统计信息。
        """
        self._init_protocol_state()
        self.parser.reset()
        logger.info(f"[{self.name}] 通道已重置")

    def __repr__(self) -> str:
        return (
            f"ChannelInstance({self.name}, state={self.state.label}, "
            f"tx_seq={self.tx_sequence}, rx_seq={self.rx_sequence}, "
            f"retry={self.retry_count}/{self.max_retry})"
        )
