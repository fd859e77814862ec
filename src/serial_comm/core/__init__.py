"""
核心模块
========

包含校验算法、序列号管理、帧编解码、通道状态机、分发和串口管理等核心功能。
"""

from .checksum import calculate_crc8, verify_crc8
from .sequence import next_tx_sequence, classify_rx_sequence, sequence_delta
from .frame_handler import Frame, FrameParser, FrameHandler
from .callbacks import CallbackTable
from .channel import ChannelInstance, CommStats
from .registry import ChannelRegistry
from .transaction import TransactionEngine
from .dispatch import Dispatcher
from .transport import Transport
from .serial_manager import SerialManager
from .io_thread import IoThread

__all__ = [
    "calculate_crc8",
    "verify_crc8",
    "next_tx_sequence",
    "classify_rx_sequence",
    "sequence_delta",
    "Frame",
    "FrameParser",
    "FrameHandler",
    "CallbackTable",
    "ChannelInstance",
    "CommStats",
    "ChannelRegistry",
    "TransactionEngine",
    "Dispatcher",
    "Transport",
    "SerialManager",
    "IoThread",
]
