"""
数据帧处理模块
==============

负责通信帧的封装和逐字节解析。

数据帧格式（ASCII）：| '{' | CMD | ':' | DATA | '#' | SEQ(2位HEX) | '#' | CRC(2位HEX) | '}' |

- CMD: 命令，最长16字符
- DATA: 数据，最长64字符
- SEQ: 序列号，两位大写十六进制
- CRC: CRC-8，覆盖 '{' 之后到SEQ为止的全部内容
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..config.constants import (
    ParseState,
    CommError,
    FRAME_START,
    FRAME_END,
    CMD_DATA_SEPARATOR,
    FIELD_SEPARATOR,
    FRAME_METACHARACTERS,
    CONTROL_COMMANDS,
    CMD_ACK,
    CMD_NAK,
    CONTROL_FRAME_SEQUENCE,
    MAX_CMD_LENGTH,
    MAX_DATA_LENGTH,
    HEX_FIELD_LENGTH,
    RX_BUFFER_SIZE,
    TX_BUFFER_SIZE,
    FRAME_TIMEOUT_MS,
)
from ..utils.logger import get_logger
from ..utils.timing import Clock, monotonic_ms
from .checksum import calculate_crc8, verify_crc8
from .sequence import next_tx_sequence

if TYPE_CHECKING:
    from .channel import ChannelInstance

logger = get_logger(__name__)

_HEX_DIGITS = frozenset(b"0123456789ABCDEFabcdef")


@dataclass
class Frame:
    """解析得到或即将编码的数据帧"""

    command: str
    data: str = ""
    sequence: int = 0
    checksum: int = 0
    is_valid: bool = True

    @property
    def is_control(self) -> bool:
        """是否为控制帧（ACK/NAK）"""
        return self.command in CONTROL_COMMANDS

    def content(self) -> bytes:
        """参与校验的规范内容: cmd:data#SEQ"""
        return f"{self.command}:{self.data}#{self.sequence:02X}".encode("latin-1")

    def target_sequence(self) -> Optional[int]:
        """
        解析控制帧数据字段中的目标序列号

        Returns:
            目标序列号，数据字段不是两位十六进制时返回None
        """
        return _parse_hex(self.data.encode("latin-1"))

    def __str__(self) -> str:
        return (
            f"{{{self.command}:{self.data}#{self.sequence:02X}#{self.checksum:02X}}}"
        )


def _parse_hex(field: bytes) -> Optional[int]:
    """解析两位十六进制字段"""
    if len(field) != HEX_FIELD_LENGTH or any(b not in _HEX_DIGITS for b in field):
        return None
    return int(field, 16)


def _is_valid_field(value: str, max_length: int, allow_empty: bool) -> bool:
    """检查字段是否可安全写入帧：长度受限、可打印ASCII、不含帧界定符"""
    if not isinstance(value, str):
        return False
    if len(value) > max_length or (not value and not allow_empty):
        return False
    return all(
        0x20 <= ord(ch) <= 0x7E and ch not in FRAME_METACHARACTERS for ch in value
    )


class FrameParser:
    """
    逐字节帧解析器

    运行在字节接收上下文（IO线程）中：只修改自身的解析状态和待处理帧，
    完成一帧后置位 frame_ready。frame_ready 由 tick 上下文通过
    take_frame() 读取并清除；置位期间到达的字节全部丢弃。
    """

    def __init__(
        self,
        clock: Clock = monotonic_ms,
        frame_timeout_ms: int = FRAME_TIMEOUT_MS,
        buffer_size: int = RX_BUFFER_SIZE,
    ):
        """
        初始化解析器

        Args:
            clock: 毫秒时钟
            frame_timeout_ms: 帧组装超时（毫秒）
            buffer_size: 接收暂存缓冲区大小
        """
        self._clock = clock
        self.frame_timeout_ms = frame_timeout_ms

        # 字段暂存缓冲区
        self.rx_buffer = bytearray(buffer_size)
        self.rx_index = 0

        self.state = ParseState.IDLE
        self.frame_deadline = 0

        # 当前帧已完成的字段
        self._cmd = b""
        self._data = b""
        self._sequence = 0

        # 生产者/消费者交接
        self.pending_frame: Optional[Frame] = None
        self.frame_ready = False

        # 统计信息
        self.bytes_dropped = 0
        self.frames_aborted = 0
        self.last_error = CommError.NONE

    def feed(self, data: bytes) -> None:
        """依次解析多个字节"""
        for byte in data:
            self.feed_byte(byte)

    def feed_byte(self, byte: int) -> None:
        """
        解析一个字节

        Args:
            byte: 收到的字节值（0-255）
        """
        if self.frame_ready:
            # 上一帧尚未被取走，丢弃
            self.bytes_dropped += 1
            return

        state = self.state

        if state == ParseState.IDLE:
            if byte == FRAME_START:
                self._start_frame()
            return

        if byte == FRAME_START:
            # 帧内出现起始符，按新帧重新同步
            self._start_frame()
            return

        if state == ParseState.CMD:
            if byte == CMD_DATA_SEPARATOR:
                if self.rx_index == 0:
                    self._abort("空命令")
                    return
                self._cmd = bytes(self.rx_buffer[: self.rx_index])
                self._next_field(ParseState.DATA)
            elif byte in (FIELD_SEPARATOR, FRAME_END) or self.rx_index >= MAX_CMD_LENGTH:
                self._abort("命令字段错误")
            else:
                self._store(byte)

        elif state == ParseState.DATA:
            if byte == FIELD_SEPARATOR:
                self._data = bytes(self.rx_buffer[: self.rx_index])
                self._next_field(ParseState.SEQ)
            elif (
                byte in (CMD_DATA_SEPARATOR, FRAME_END)
                or self.rx_index >= MAX_DATA_LENGTH
            ):
                self._abort("数据字段错误")
            else:
                self._store(byte)

        elif state == ParseState.SEQ:
            if byte == FIELD_SEPARATOR:
                sequence = _parse_hex(bytes(self.rx_buffer[: self.rx_index]))
                if sequence is None:
                    self._abort("序列号格式错误")
                    return
                self._sequence = sequence
                self._next_field(ParseState.CRC)
            elif byte not in _HEX_DIGITS or self.rx_index >= HEX_FIELD_LENGTH:
                self._abort("序列号格式错误")
            else:
                self._store(byte)

        elif state == ParseState.CRC:
            if byte == FRAME_END:
                checksum = _parse_hex(bytes(self.rx_buffer[: self.rx_index]))
                if checksum is None:
                    self._abort("校验字段格式错误")
                    return
                self._complete_frame(checksum)
            elif byte not in _HEX_DIGITS or self.rx_index >= HEX_FIELD_LENGTH:
                self._abort("校验字段格式错误")
            else:
                self._store(byte)

        else:
            self._abort("未知解析状态")

    def take_frame(self) -> Optional[Frame]:
        """
        取走已完成的帧（仅在tick上下文调用）

        Returns:
            已完成的帧（可能校验失败），没有新帧时返回None
        """
        if not self.frame_ready:
            return None
        frame = self.pending_frame
        self.pending_frame = None
        # 最后清除标志，之后解析器才会继续写入
        self.frame_ready = False
        return frame

    def is_frame_timeout(self, now: int) -> bool:
        """帧组装是否超时"""
        return self.state != ParseState.IDLE and now >= self.frame_deadline

    def abort_frame(self) -> None:
        """放弃正在组装的帧，回到IDLE"""
        self.state = ParseState.IDLE
        self.rx_index = 0

    def reset(self) -> None:
        """完全复位解析器，包括未取走的帧"""
        self.abort_frame()
        self._clear_fields()
        self.pending_frame = None
        self.frame_ready = False

    def _start_frame(self) -> None:
        self.state = ParseState.CMD
        self.rx_index = 0
        self.frame_deadline = self._clock() + self.frame_timeout_ms
        self._clear_fields()

    def _clear_fields(self) -> None:
        self._cmd = b""
        self._data = b""
        self._sequence = 0

    def _next_field(self, state: ParseState) -> None:
        self.state = state
        self.rx_index = 0

    def _store(self, byte: int) -> None:
        if self.rx_index >= len(self.rx_buffer):
            self._abort("接收缓冲区溢出")
            return
        self.rx_buffer[self.rx_index] = byte
        self.rx_index += 1

    def _abort(self, reason: str) -> None:
        # 未通过校验的帧不回复NAK，直接丢弃
        self.frames_aborted += 1
        self.last_error = CommError.FRAME_FORMAT
        logger.debug(f"帧解析中止: {reason}")
        self.state = ParseState.IDLE
        self.rx_index = 0

    def _complete_frame(self, checksum: int) -> None:
        frame = Frame(
            command=self._cmd.decode("latin-1"),
            data=self._data.decode("latin-1"),
            sequence=self._sequence,
            checksum=checksum,
        )
        frame.is_valid = verify_crc8(frame.content(), checksum)
        if not frame.is_valid:
            self.last_error = CommError.CRC_MISMATCH

        self.pending_frame = frame
        self.state = ParseState.IDLE
        self.rx_index = 0
        self.frame_ready = True


class FrameHandler:
    """数据帧编解码器"""

    @staticmethod
    def is_valid_command(cmd: str) -> bool:
        """命令是否合法（非空、不超长、不含界定符）"""
        return _is_valid_field(cmd, MAX_CMD_LENGTH, allow_empty=False)

    @staticmethod
    def is_valid_data(data: str) -> bool:
        """数据是否合法（可为空、不超长、不含界定符）"""
        return _is_valid_field(data, MAX_DATA_LENGTH, allow_empty=True)

    @staticmethod
    def pack_frame(cmd: str, data: str, sequence: int) -> Optional[bytes]:
        """
        将命令、数据和序列号打包成数据帧

        Args:
            cmd: 命令字符串
            data: 数据字符串
            sequence: 序列号（0-255）

        Returns:
            打包后的数据帧，失败时返回None

        Examples:
            >>> FrameHandler.pack_frame("GET", "TEMP", 1)[:12]
            b'{GET:TEMP#01'
        """
        if not FrameHandler.is_valid_command(cmd):
            logger.error(f"命令无效或过长: {cmd!r}")
            return None
        if not FrameHandler.is_valid_data(data):
            logger.error(f"数据无效或过长: {data!r}")
            return None
        if not 0 <= sequence <= 0xFF:
            logger.error(f"序列号超出范围: {sequence}")
            return None

        content = f"{cmd}:{data}#{sequence:02X}".encode("ascii")
        crc = calculate_crc8(content)
        frame = bytes([FRAME_START]) + content + f"#{crc:02X}}}".encode("ascii")

        if len(frame) > TX_BUFFER_SIZE:
            logger.error(f"帧长度超出发送缓冲区: {len(frame)} > {TX_BUFFER_SIZE}")
            return None

        return frame

    @staticmethod
    def pack_control_frame(cmd: str, target_sequence: int) -> Optional[bytes]:
        """
        打包控制帧（ACK/NAK）

        控制帧的序列号字段固定为00，不占用发送序列号。

        Args:
            cmd: CMD_ACK 或 CMD_NAK
            target_sequence: 被确认/否认的序列号

        Returns:
            打包后的数据帧，失败时返回None
        """
        if cmd not in CONTROL_COMMANDS:
            logger.error(f"不是控制命令: {cmd}")
            return None
        if not 0 <= target_sequence <= 0xFF:
            logger.error(f"目标序列号超出范围: {target_sequence}")
            return None
        return FrameHandler.pack_frame(
            cmd, f"{target_sequence:02X}", CONTROL_FRAME_SEQUENCE
        )

    @staticmethod
    def unpack_frame(frame_data: bytes) -> Optional[Frame]:
        """
        解析一段完整的数据帧

        Args:
            frame_data: 接收到的原始字节

        Returns:
            解析得到的帧（通过 is_valid 表示校验结果），
            没有完整帧时返回None
        """
        parser = FrameParser(clock=lambda: 0)
        parser.feed(frame_data)
        return parser.take_frame()


def build_command_frame(
    channel: "ChannelInstance", cmd: str, data: str
) -> Optional[bytes]:
    """
    为通道构建命令帧

    重试时（retry_count > 0）沿用上次的序列号，否则分配新序列号。
    成功后 expected_ack_seq 设为本帧序列号。

    Args:
        channel: 通道实例
        cmd: 命令字符串
        data: 数据字符串

    Returns:
        数据帧，失败时返回None
    """
    if not FrameHandler.is_valid_command(cmd) or not FrameHandler.is_valid_data(data):
        logger.debug(f"[{channel.name}] 帧构建失败: 命令或数据无效")
        channel.last_error = CommError.INVALID_PARAM
        return None

    if channel.retry_count > 0:
        sequence = channel.current_sequence
    else:
        sequence = next_tx_sequence(channel.tx_sequence)
        channel.tx_sequence = sequence
        channel.current_sequence = sequence

    frame = FrameHandler.pack_frame(cmd, data, sequence)
    if frame is None:
        channel.last_error = CommError.BUFFER_OVERFLOW
        return None

    channel.expected_ack_seq = sequence
    logger.debug(f"[{channel.name}] 设置expected_ack_seq={sequence:02X}")
    return frame


def build_ack_frame(channel: "ChannelInstance", ack_seq: int) -> Optional[bytes]:
    """构建ACK帧: {ACK:SS#00#CC}"""
    frame = FrameHandler.pack_control_frame(CMD_ACK, ack_seq)
    if frame is None:
        channel.last_error = CommError.INVALID_PARAM
    return frame


def build_nak_frame(
    channel: "ChannelInstance", nak_seq: int, reason: str
) -> Optional[bytes]:
    """
    构建NAK帧: {NAK:SS#00#CC}

    拒绝原因不编码到帧中，仅用于本地日志。
    """
    frame = FrameHandler.pack_control_frame(CMD_NAK, nak_seq)
    if frame is None:
        channel.last_error = CommError.INVALID_PARAM
        return None
    logger.debug(f"[{channel.name}] 构建NAK: seq={nak_seq:02X} (原因: {reason})")
    return frame
