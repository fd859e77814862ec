"""
事务状态机模块
==============

驱动单个通道的 发送 -> 等待ACK -> 重试/失败 流程。

状态转换：
- IDLE --send--> WAIT_ACK（传输层确认发送成功后才切换）
- WAIT_ACK --ACK(seq == expected)--> IDLE
- WAIT_ACK --NAK(seq == expected)--> 等同于立即超时
- WAIT_ACK --超时--> 重试次数未满则用相同序列号重发，否则调用失败回调并回到IDLE
"""

from ..config.constants import (
    TransactionState,
    CommError,
    CMD_PING,
    FAIL_REASON_TIMEOUT,
)
from ..utils.logger import get_logger
from ..utils.timing import elapsed_ms
from .channel import ChannelInstance
from .frame_handler import FrameHandler, build_command_frame
from .transport import transmit

logger = get_logger(__name__)


class TransactionEngine:
    """通道事务状态机"""

    def send(self, channel: ChannelInstance, cmd: str, data: str) -> bool:
        """
        发送命令并进入等待ACK状态

        Args:
            channel: 通道实例
            cmd: 命令字符串
            data: 数据字符串

        Returns:
            发送成功返回True；通道忙、参数无效或发送失败返回False
        """
        if not channel.is_ready():
            logger.debug(f"[{channel.name}] 通道忙({channel.state.label})，无法发送 {cmd}")
            return False

        if not FrameHandler.is_valid_command(cmd) or not FrameHandler.is_valid_data(data):
            logger.error(f"[{channel.name}] 命令或数据无效: {cmd!r}:{data!r}")
            channel.last_error = CommError.INVALID_PARAM
            return False

        # 保存当前命令，用于重试和失败回调
        channel.current_cmd = cmd
        channel.current_data = data
        channel.retry_count = 0

        frame = build_command_frame(channel, cmd, data)
        if frame is None:
            return False
        channel.tx_buffer = frame

        if not transmit(
            channel.transport, frame, channel.config.send_timeout_ms, name=channel.name
        ):
            logger.error(f"[{channel.name}] 发送失败: {frame!r}")
            channel.last_error = CommError.TRANSPORT_ERROR
            return False

        channel.stats.tx_count += 1
        if cmd == CMD_PING:
            channel.stats.ping_count += 1

        self._arm_ack_deadline(channel)
        channel.set_state(TransactionState.WAIT_ACK)
        logger.debug(f"[{channel.name}] 已发送: {frame.decode('ascii')}")
        return True

    def is_ack_timeout(self, channel: ChannelInstance, now: int) -> bool:
        """等待ACK是否超时"""
        return channel.state == TransactionState.WAIT_ACK and now >= channel.ack_deadline

    def check_timeout(self, channel: ChannelInstance, now: int) -> bool:
        """
        检查并处理ACK超时

        Returns:
            发生超时返回True
        """
        if not self.is_ack_timeout(channel, now):
            return False
        self.handle_timeout(channel)
        return True

    def handle_ack(self, channel: ChannelInstance, ack_seq: int) -> bool:
        """
        处理ACK

        Args:
            channel: 通道实例
            ack_seq: ACK确认的序列号

        Returns:
            ACK与当前事务匹配返回True
        """
        if (
            channel.state != TransactionState.WAIT_ACK
            or ack_seq != channel.expected_ack_seq
        ):
            logger.debug(
                f"[{channel.name}] ACK不匹配: ack_seq={ack_seq:02X}, "
                f"expected={channel.expected_ack_seq:02X}, state={channel.state.label}"
            )
            return False

        delay = elapsed_ms(channel.last_send_time, channel.now())
        channel.set_state(TransactionState.IDLE)
        channel.retry_count = 0

        channel.stats.record_round_trip(delay)
        if channel.current_cmd == CMD_PING:
            channel.stats.ping_success += 1

        logger.debug(f"[{channel.name}] 收到ACK: seq={ack_seq:02X}, 延迟={delay}ms")
        return True

    def handle_nak(self, channel: ChannelInstance, nak_seq: int) -> bool:
        """
        处理NAK，匹配当前事务时立即进入重试流程

        Returns:
            NAK与当前事务匹配返回True
        """
        if (
            channel.state != TransactionState.WAIT_ACK
            or nak_seq != channel.expected_ack_seq
        ):
            logger.debug(f"[{channel.name}] 忽略不匹配的NAK: seq={nak_seq:02X}")
            return False

        logger.debug(f"[{channel.name}] 收到NAK否认，seq={nak_seq:02X}")
        self.handle_timeout(channel)
        return True

    def handle_timeout(self, channel: ChannelInstance) -> None:
        """
        处理超时：重试或放弃

        重试时沿用原序列号，先尝试非阻塞发送再回退到阻塞发送。
        重发失败时截止时间不刷新，下一次tick会继续消耗重试次数。
        """
        channel.stats.tx_timeout += 1
        channel.last_error = CommError.TIMEOUT
        logger.debug(f"[{channel.name}] 超时发生，重试次数: {channel.retry_count}")

        if channel.retry_count < channel.max_retry:
            channel.retry_count += 1
            channel.stats.tx_retry += 1
            logger.debug(f"[{channel.name}] 开始第{channel.retry_count}次重试")

            frame = build_command_frame(
                channel, channel.current_cmd, channel.current_data
            )
            if frame is not None:
                channel.tx_buffer = frame

            if transmit(
                channel.transport,
                channel.tx_buffer,
                channel.config.send_timeout_ms,
                fast_path=True,
                name=channel.name,
            ):
                self._arm_ack_deadline(channel)
                channel.set_state(TransactionState.WAIT_ACK)
            else:
                logger.error(f"[{channel.name}] 重试发送失败")
                channel.last_error = CommError.TRANSPORT_ERROR
            return

        logger.error(
            f"通信失败: {channel.name}, 命令 {channel.current_cmd}:{channel.current_data}, "
            f"重试 {channel.max_retry} 次后放弃"
        )
        channel.last_error = CommError.RETRIES_EXHAUSTED
        channel.stats.tx_failed += 1

        if channel.fail_callback is not None:
            try:
                channel.fail_callback(
                    channel.current_cmd, channel.current_data, FAIL_REASON_TIMEOUT
                )
            except Exception as e:
                logger.error(f"[{channel.name}] 失败回调异常: {e}")

        channel.set_state(TransactionState.IDLE)
        channel.retry_count = 0

    def _arm_ack_deadline(self, channel: ChannelInstance) -> None:
        now = channel.now()
        channel.last_send_time = now
        channel.ack_deadline = now + channel.config.ack_timeout_for(len(channel.tx_buffer))
