"""
配置管理
========

提供串口和通道相关的配置类。
"""

from dataclasses import dataclass
from typing import Optional
import serial

from .constants import (
    DEFAULT_BAUDRATE,
    DEFAULT_TIMEOUT,
    DEFAULT_WRITE_TIMEOUT,
    DEFAULT_MAX_RETRY,
    DEFAULT_ACK_TIMEOUT_BASE_MS,
    DEFAULT_ACK_TIMEOUT_PER_BYTE_MS,
    DEFAULT_SEND_TIMEOUT_MS,
    DEFAULT_CONTROL_SEND_TIMEOUT_MS,
    FRAME_TIMEOUT_MS,
)


@dataclass
class SerialConfig:
    """串口配置类"""

    port: str  # 串口号
    baudrate: int = DEFAULT_BAUDRATE  # 波特率
    bytesize: int = serial.EIGHTBITS  # 数据位
    parity: str = serial.PARITY_NONE  # 校验位
    stopbits: float = serial.STOPBITS_ONE  # 停止位
    timeout: float = DEFAULT_TIMEOUT  # 读超时时间
    write_timeout: float = DEFAULT_WRITE_TIMEOUT  # 写超时时间

    def to_serial_kwargs(self) -> dict:
        """转换为serial.Serial的参数字典"""
        return {
            "port": self.port,
            "baudrate": self.baudrate,
            "bytesize": self.bytesize,
            "parity": self.parity,
            "stopbits": self.stopbits,
            "timeout": self.timeout,
            "write_timeout": self.write_timeout,
        }


@dataclass
class ChannelConfig:
    """通道（协议实例）配置类"""

    max_retry: int = DEFAULT_MAX_RETRY  # 最大重试次数
    ack_timeout_base_ms: int = DEFAULT_ACK_TIMEOUT_BASE_MS  # ACK等待基础超时
    ack_timeout_per_byte_ms: int = DEFAULT_ACK_TIMEOUT_PER_BYTE_MS  # 每字节追加
    ack_timeout_ms: Optional[int] = None  # 固定ACK超时，设置后覆盖按字节计算
    frame_timeout_ms: int = FRAME_TIMEOUT_MS  # 帧组装超时
    send_timeout_ms: int = DEFAULT_SEND_TIMEOUT_MS  # 命令帧发送超时
    control_send_timeout_ms: int = DEFAULT_CONTROL_SEND_TIMEOUT_MS  # ACK/NAK发送超时
    auto_pong: bool = False  # 是否自动回复PING

    def __post_init__(self):
        """参数验证"""
        if not 0 <= self.max_retry <= 255:
            raise ValueError("max_retry必须在0到255之间")
        if self.ack_timeout_base_ms <= 0:
            raise ValueError("ack_timeout_base_ms必须大于0")
        if self.ack_timeout_per_byte_ms < 0:
            raise ValueError("ack_timeout_per_byte_ms不能为负数")
        if self.ack_timeout_ms is not None and self.ack_timeout_ms <= 0:
            raise ValueError("ack_timeout_ms必须大于0")
        if self.frame_timeout_ms <= 0:
            raise ValueError("frame_timeout_ms必须大于0")
        if self.send_timeout_ms <= 0 or self.control_send_timeout_ms <= 0:
            raise ValueError("发送超时必须大于0")

    def ack_timeout_for(self, frame_length: int) -> int:
        """
        计算指定长度帧的ACK等待超时

        Args:
            frame_length: 已发送帧的字节数

        Returns:
            超时时间（毫秒）
        """
        if self.ack_timeout_ms is not None:
            return self.ack_timeout_ms
        return self.ack_timeout_base_ms + self.ack_timeout_per_byte_ms * frame_length
