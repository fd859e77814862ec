"""
帧分发模块
==========

只在tick上下文中运行：处理已完成的帧，回复ACK/NAK，调用命令回调。
"""

from ..config.constants import (
    TransactionState,
    SequenceVerdict,
    CommError,
    CMD_ACK,
    CMD_NAK,
    NAK_REASON_SEQ_ERROR,
)
from ..utils.logger import get_logger
from .channel import ChannelInstance
from .frame_handler import Frame, build_ack_frame, build_nak_frame
from .sequence import classify_rx_sequence
from .transaction import TransactionEngine
from .transport import transmit

logger = get_logger(__name__)


class Dispatcher:
    """帧分发器"""

    def __init__(self, engine: TransactionEngine):
        self.engine = engine

    def handle_frame(self, channel: ChannelInstance, frame: Frame) -> None:
        """
        处理一个完整帧

        Args:
            channel: 通道实例
            frame: 解析器交出的帧
        """
        channel.stats.rx_count += 1

        if not frame.is_valid:
            channel.stats.rx_crc_error += 1
            channel.last_error = CommError.CRC_MISMATCH
            logger.debug(f"[{channel.name}] CRC校验失败，丢弃: {frame}")
            return

        if frame.command == CMD_ACK:
            ack_seq = frame.target_sequence()
            if ack_seq is None:
                channel.stats.rx_frame_error += 1
                logger.debug(f"[{channel.name}] ACK数据格式错误: {frame.data!r}")
                return
            self.engine.handle_ack(channel, ack_seq)
            return

        if frame.command == CMD_NAK:
            nak_seq = frame.target_sequence()
            if nak_seq is None:
                channel.stats.rx_frame_error += 1
                logger.debug(f"[{channel.name}] NAK数据格式错误: {frame.data!r}")
                return
            self.engine.handle_nak(channel, nak_seq)
            return

        # 防回环：自己发出的帧被回显时不当作对端命令
        if (
            channel.state == TransactionState.WAIT_ACK
            and frame.sequence == channel.expected_ack_seq
        ):
            logger.debug(
                f"[{channel.name}] 防回环: 忽略seq={frame.sequence:02X}的{frame.command}帧"
            )
            return

        verdict = classify_rx_sequence(channel.rx_sequence, frame.sequence)

        if verdict is SequenceVerdict.ACCEPT:
            channel.rx_sequence = frame.sequence
            self.send_ack(channel, frame.sequence)
            channel.stats.rx_success += 1
            self._call_handler(channel, frame)

        elif verdict is SequenceVerdict.DUPLICATE:
            # 重发ACK，不更新序列号也不调用回调
            channel.stats.rx_seq_error += 1
            logger.debug(f"[{channel.name}] 重复序列号，重发ACK: {frame.sequence:02X}")
            self.send_ack(channel, frame.sequence)

        else:
            channel.stats.rx_seq_error += 1
            channel.last_error = CommError.SEQUENCE_ERROR
            logger.debug(
                f"[{channel.name}] 序列号错误，发送NAK: "
                f"{channel.rx_sequence:02X} -> {frame.sequence:02X}"
            )
            self.send_nak(channel, frame.sequence, NAK_REASON_SEQ_ERROR)

    def send_ack(self, channel: ChannelInstance, ack_seq: int) -> bool:
        """发送ACK帧"""
        frame = build_ack_frame(channel, ack_seq)
        if frame is None:
            return False
        if not transmit(
            channel.transport,
            frame,
            channel.config.control_send_timeout_ms,
            name=channel.name,
        ):
            logger.error(f"[{channel.name}] ACK发送失败: seq={ack_seq:02X}")
            channel.last_error = CommError.TRANSPORT_ERROR
            return False
        return True

    def send_nak(self, channel: ChannelInstance, nak_seq: int, reason: str) -> bool:
        """发送NAK帧，reason只记录在本地日志"""
        frame = build_nak_frame(channel, nak_seq, reason)
        if frame is None:
            return False
        if not transmit(
            channel.transport,
            frame,
            channel.config.control_send_timeout_ms,
            name=channel.name,
        ):
            logger.error(f"[{channel.name}] NAK发送失败: seq={nak_seq:02X}")
            channel.last_error = CommError.TRANSPORT_ERROR
            return False
        return True

    def _call_handler(self, channel: ChannelInstance, frame: Frame) -> bool:
        callback = channel.handlers.get(frame.command)
        if callback is None:
            logger.debug(f"[{channel.name}] 忽略未注册命令: {frame.command}")
            return False

        try:
            callback(frame.command, frame.data)
        except Exception as e:
            logger.error(f"[{channel.name}] 命令回调异常 {frame.command}: {e}")
            return False

        logger.debug(f"[{channel.name}] 执行回调: {frame.command} -> {frame.data}")
        return True
