"""
串口管理模块
============

基于pyserial的传输实现：打开/关闭串口、有界超时发送、非阻塞快速发送、读取。
"""

import serial
from serial.tools import list_ports
from typing import List, Optional, Dict
from contextlib import contextmanager

from ..config.settings import SerialConfig
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SerialManager:
    """串口管理器"""

    def __init__(self, config: SerialConfig):
        """
        初始化串口管理器

        Args:
            config: 串口配置对象
        """
        self.config = config
        self._port: Optional[serial.Serial] = None

    @property
    def port(self) -> Optional[serial.Serial]:
        """获取串口对象"""
        return self._port

    @property
    def is_open(self) -> bool:
        """检查串口是否已打开"""
        return self._port is not None and self._port.is_open

    def open(self) -> bool:
        """
        打开串口连接

        Returns:
            成功返回True，失败返回False
        """
        try:
            if self.is_open:
                logger.warning(f"串口 {self.config.port} 已经打开")
                return True

            self._port = serial.Serial(**self.config.to_serial_kwargs())

            logger.info(f"成功打开串口 {self.config.port} @ {self.config.baudrate}")
            return True

        except Exception as e:
            logger.error(f"打开串口失败: {e}")
            self._port = None
            return False

    def close(self) -> None:
        """关闭串口连接"""
        try:
            if self._port and self._port.is_open:
                self._port.close()
                logger.info(f"已关闭串口 {self.config.port}")
        except Exception as e:
            logger.error(f"关闭串口失败: {e}")
        finally:
            self._port = None

    def send(self, data: bytes, timeout_ms: int) -> bool:
        """
        阻塞发送，最长等待 timeout_ms

        Args:
            data: 要发送的字节数据
            timeout_ms: 发送超时（毫秒）

        Returns:
            全部写出返回True，超时或失败返回False
        """
        return self._write(data, timeout_ms / 1000.0) == len(data)

    def send_nowait(self, data: bytes) -> int:
        """
        非阻塞发送，只写入输出缓冲区当前能容纳的部分

        Args:
            data: 要发送的字节数据

        Returns:
            实际写出的字节数，可能小于 len(data)；失败返回0
        """
        return self._write(data, 0)

    def _write(self, data: bytes, write_timeout: float) -> int:
        try:
            if not self.is_open:
                logger.error("串口未打开，无法写入数据")
                return 0

            # 只有超时变化时才重新配置串口
            if self._port.write_timeout != write_timeout:
                self._port.write_timeout = write_timeout

            return self._port.write(data) or 0

        except serial.SerialTimeoutException:
            logger.warning(f"写入超时({write_timeout}s): {len(data)} 字节")
            return 0
        except Exception as e:
            logger.error(f"写入数据失败: {e}")
            return 0

    def read(self, size: int) -> bytes:
        """
        从串口读取数据，最多 size 字节

        Args:
            size: 要读取的字节数

        Returns:
            读取到的数据，串口未打开时返回空bytes

        Raises:
            serial.SerialException: 读取出错（如断开、溢出），由IO线程处理
        """
        if not self.is_open:
            logger.error("串口未打开，无法读取数据")
            return b""

        try:
            return self._port.read(size)
        except serial.SerialException as e:
            logger.error(f"读取数据失败: {e}")
            raise

    @contextmanager
    def connection(self):
        """
        上下文管理器，自动管理串口连接

        Examples:
            >>> config = SerialConfig(port='COM1')
            >>> manager = SerialManager(config)
            >>> with manager.connection():
            ...     pass
        """
        try:
            if not self.open():
                raise RuntimeError(f"无法打开串口 {self.config.port}")
            yield self
        finally:
            self.close()

    @staticmethod
    def list_available_ports() -> List[Dict[str, str]]:
        """
        获取系统可用的串口列表

        Returns:
            串口信息列表，每个元素包含device、description、hwid字段
        """
        try:
            ports = []
            for port_info in list_ports.comports():
                ports.append(
                    {
                        "device": port_info.device,
                        "description": port_info.description or "未知设备",
                        "hwid": port_info.hwid or "未知硬件ID",
                    }
                )
            return ports
        except Exception as e:
            logger.error(f"获取串口列表失败: {e}")
            return []

    def __enter__(self):
        """支持with语句"""
        if not self.open():
            raise RuntimeError(f"无法打开串口 {self.config.port}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支持with语句"""
        self.close()

    def __repr__(self) -> str:
        return f"SerialManager({self.config.port})"
