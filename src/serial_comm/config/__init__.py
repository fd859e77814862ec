"""
配置模块
=======

包含协议常量定义和配置管理功能。
"""

from .constants import *
from .settings import *

__all__ = [
    # 常量
    "TransactionState",
    "ParseState",
    "SequenceVerdict",
    "CommError",
    "CMD_ACK",
    "CMD_NAK",
    "CMD_PING",
    "CMD_PONG",
    "MAX_CHANNELS",
    "MAX_CALLBACKS",
    "MAX_CMD_LENGTH",
    "MAX_DATA_LENGTH",
    "RX_BUFFER_SIZE",
    "TX_BUFFER_SIZE",
    "FRAME_TIMEOUT_MS",
    "DEFAULT_MAX_RETRY",
    # 配置
    "SerialConfig",
    "ChannelConfig",
]
