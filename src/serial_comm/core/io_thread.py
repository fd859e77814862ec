"""
IO线程模块
==========

后台读取串口，把收到的每个字节交给帧解析器（字节接收上下文）。
协议处理仍由调用方周期性执行 CommService.tick()。
"""

import threading
import time
from typing import Callable, Optional

from ..core.serial_manager import SerialManager
from ..utils.logger import get_logger

logger = get_logger(__name__)

# 每个字节的投递回调
ByteCallback = Callable[[int], None]


class IoThread:
    """
    IO线程类

    负责独立的串口数据读取，逐字节投递给解析器，不做发送也不调用业务回调。
    """

    def __init__(
        self,
        serial_manager: SerialManager,
        on_byte: ByteCallback,
        on_error: Optional[Callable[[], None]] = None,
        read_size: int = 256,
    ):
        """
        初始化IO线程

        Args:
            serial_manager: 串口管理器
            on_byte: 字节投递回调
            on_error: 读取异常时的回调（用于复位解析器）
            read_size: 单次读取的最大字节数
        """
        self.serial_manager = serial_manager
        self.on_byte = on_byte
        self.on_error = on_error
        self.read_size = read_size

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._running = False

        # 统计信息
        self.bytes_received = 0
        self.read_errors = 0
        self.delivery_errors = 0

    def start(self) -> bool:
        """
        启动IO线程

        Returns:
            启动成功返回True，失败返回False
        """
        if self._running:
            logger.warning("IO线程已经在运行")
            return True

        if not self.serial_manager.is_open:
            logger.error("串口未打开，无法启动IO线程")
            return False

        try:
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._io_loop, daemon=True)
            self._thread.start()
            self._running = True

            logger.info("IO线程已启动")
            return True

        except Exception as e:
            logger.error(f"启动IO线程失败: {e}")
            return False

    def stop(self, timeout: float = 2.0) -> bool:
        """
        停止IO线程

        Args:
            timeout: 等待线程结束的超时时间(秒)

        Returns:
            停止成功返回True，超时返回False
        """
        if not self._running:
            return True

        logger.info("正在停止IO线程...")
        self._stop_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout)

            if self._thread.is_alive():
                logger.warning(f"IO线程未在{timeout}秒内结束")
                return False

        self._running = False
        logger.info("IO线程已停止")
        return True

    @property
    def is_running(self) -> bool:
        """检查IO线程是否在运行"""
        return self._running and self._thread is not None and self._thread.is_alive()

    def get_statistics(self) -> dict:
        """
        获取IO线程统计信息

        Returns:
            包含统计信息的字典
        """
        return {
            "running": self.is_running,
            "bytes_received": self.bytes_received,
            "read_errors": self.read_errors,
            "delivery_errors": self.delivery_errors,
        }

    def _io_loop(self) -> None:
        """IO线程主循环"""
        logger.debug("IO线程开始运行")

        while not self._stop_event.is_set():
            try:
                data = self.serial_manager.read(self.read_size)
            except Exception as e:
                self.read_errors += 1
                logger.error(f"IO线程读取异常: {e}")
                if self.on_error is not None:
                    self.on_error()
                time.sleep(0.01)  # 错误时稍长等待
                continue

            if not data:
                # 避免忙循环，但保持响应性
                time.sleep(0.001)
                continue

            self.bytes_received += len(data)
            for byte in data:
                self._deliver(byte)

        logger.debug("IO线程已结束")

    def _deliver(self, byte: int) -> None:
        try:
            self.on_byte(byte)
        except Exception as e:
            self.delivery_errors += 1
            logger.error(f"字节投递异常: {e}")

    def __enter__(self):
        """支持with语句"""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支持with语句"""
        self.stop()
