"""
串口通信协议库
==============

基于串口的可靠帧式命令/应答协议，支持多个通道同时工作。

主要功能：
- 帧编解码与CRC-8校验
- 每通道序列号管理，重复/丢包检测
- 发送/确认/重试事务状态机
- 按命令注册的回调分发

帧格式: {CMD:DATA#SEQ#CRC}

作者: lanford
版本: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "lanford"
__email__ = ""
__description__ = "基于串口的帧式命令/应答通信协议"

# 导出主要类
from .service import CommService
from .config.settings import SerialConfig, ChannelConfig
from .config.constants import TransactionState, CommError
from .core.frame_handler import Frame, FrameHandler
from .core.serial_manager import SerialManager
from .core.io_thread import IoThread

__all__ = [
    "CommService",
    "SerialConfig",
    "ChannelConfig",
    "TransactionState",
    "CommError",
    "Frame",
    "FrameHandler",
    "SerialManager",
    "IoThread",
]
