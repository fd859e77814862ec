"""
系统常量定义
============

定义帧格式、缓冲区上限、超时参数以及协议中使用的各种枚举。

帧格式（ASCII）: {CMD:DATA#SEQ#CRC}
"""

from enum import Enum, IntEnum
from typing import Final


class TransactionState(IntEnum):
    """通信事务状态枚举"""

    IDLE = 0  # 空闲，可以发送新命令
    SENDING = 1  # 保留: 发送中（当前实现直接进入WAIT_ACK）
    WAIT_ACK = 2  # 等待ACK确认
    RETRY = 3  # 保留: 重试中（重试期间状态保持WAIT_ACK）
    RECEIVING = 4  # 保留: 接收中（接收由FrameParser独立跟踪）
    PROCESSING = 5  # 保留: 处理中（处理在tick中同步完成）
    ERROR = 6  # 错误状态

    @property
    def label(self) -> str:
        """状态名称字符串"""
        return self.name


class ParseState(IntEnum):
    """帧解析状态枚举"""

    IDLE = 0  # 等待帧起始符 '{'
    CMD = 1  # 解析命令字段
    DATA = 2  # 解析数据字段
    SEQ = 3  # 解析序列号字段
    CRC = 4  # 解析校验字段
    ERROR = 5  # 保留值，帧格式错误通过 last_error 报告并直接回到IDLE


class SequenceVerdict(Enum):
    """接收序列号判定结果"""

    ACCEPT = "accept"  # 在接收窗口内
    DUPLICATE = "duplicate"  # 重复帧，重发ACK
    REJECT = "reject"  # 倒退或跳跃过大，回复NAK


class CommError(IntEnum):
    """诊断用错误码"""

    NONE = 0
    INVALID_PARAM = 1  # 参数无效或超长
    CHANNEL_NOT_FOUND = 2  # 未找到通道
    BUFFER_OVERFLOW = 3  # 编码缓冲区溢出
    CRC_MISMATCH = 4  # 校验失败
    FRAME_FORMAT = 5  # 帧格式错误
    SEQUENCE_ERROR = 6  # 序列号错误
    TIMEOUT = 7  # 等待ACK超时
    RETRIES_EXHAUSTED = 8  # 重试次数耗尽
    HANDLER_TABLE_FULL = 9  # 回调表已满
    TRANSPORT_ERROR = 10  # 底层发送失败


# 帧界定符
FRAME_START: Final[int] = ord("{")
FRAME_END: Final[int] = ord("}")
CMD_DATA_SEPARATOR: Final[int] = ord(":")
FIELD_SEPARATOR: Final[int] = ord("#")
FRAME_METACHARACTERS: Final[frozenset] = frozenset("{}:#")

# 保留命令
CMD_ACK: Final[str] = "ACK"
CMD_NAK: Final[str] = "NAK"
CMD_PING: Final[str] = "PING"
CMD_PONG: Final[str] = "PONG"
CONTROL_COMMANDS: Final[frozenset] = frozenset({CMD_ACK, CMD_NAK})
PING_DATA: Final[str] = "TEST"

# 控制帧（ACK/NAK）固定使用的序列号，不占用发送计数器
CONTROL_FRAME_SEQUENCE: Final[int] = 0

# 容量与长度限制
MAX_CHANNELS: Final[int] = 8  # 最大通道数
RX_BUFFER_SIZE: Final[int] = 256  # 接收暂存缓冲区(字节)
TX_BUFFER_SIZE: Final[int] = 128  # 发送帧缓冲区(字节)
MAX_CALLBACKS: Final[int] = 8  # 每个通道最多注册的命令回调
MAX_CMD_LENGTH: Final[int] = 16  # 命令最大长度
MAX_DATA_LENGTH: Final[int] = 64  # 数据最大长度
HEX_FIELD_LENGTH: Final[int] = 2  # 序列号/校验字段固定为2位十六进制

# 序列号
SEQUENCE_MODULO: Final[int] = 256
SEQUENCE_RESERVED: Final[int] = 0  # 发送序列号跳过0
SEQUENCE_WRAP_THRESHOLD: Final[int] = 128
SEQUENCE_WINDOW: Final[int] = 10  # 最多容忍9个连续丢包

# 超时与重试默认值
DEFAULT_ACK_TIMEOUT_BASE_MS: Final[int] = 200  # ACK等待基础超时(毫秒)
DEFAULT_ACK_TIMEOUT_PER_BYTE_MS: Final[int] = 1  # 每字节追加超时(毫秒)
DEFAULT_MAX_RETRY: Final[int] = 3  # 默认最大重试次数
FRAME_TIMEOUT_MS: Final[int] = 100  # 帧组装超时(毫秒)
DEFAULT_SEND_TIMEOUT_MS: Final[int] = 1000  # 命令帧发送超时(毫秒)
DEFAULT_CONTROL_SEND_TIMEOUT_MS: Final[int] = 500  # ACK/NAK发送超时(毫秒)
DEFAULT_TICK_INTERVAL: Final[float] = 0.001  # tick周期(秒)

# 失败原因
FAIL_REASON_TIMEOUT: Final[str] = "timeout"
NAK_REASON_SEQ_ERROR: Final[str] = "SEQ_ERROR"

# 串口默认值
DEFAULT_BAUDRATE: Final[int] = 115200
DEFAULT_TIMEOUT: Final[float] = 0.01  # 读超时(秒)，保持IO线程响应
DEFAULT_WRITE_TIMEOUT: Final[float] = 1.0  # 写超时(秒)

# 查询失败时的默认状态字符串
STATE_NOT_FOUND: Final[str] = "NOT_FOUND"
