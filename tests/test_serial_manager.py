#!/usr/bin/env python3
"""
串口管理器测试
==============

这个文件测试 serial_comm.core.serial_manager 模块。

由于串口测试涉及硬件设备，使用mock对象模拟 serial.Serial 的行为。
"""

from unittest.mock import MagicMock, patch

import pytest
import serial

from serial_comm.config.settings import SerialConfig
from serial_comm.core.serial_manager import SerialManager
from serial_comm.core.transport import Transport, transmit


@pytest.fixture
def mock_port():
    """已打开的模拟串口"""
    port = MagicMock()
    port.is_open = True
    port.write_timeout = 1.0
    port.write.side_effect = lambda data: len(data)
    return port


@pytest.fixture
def manager(mock_port):
    """已打开串口的管理器"""
    with patch("serial.Serial", return_value=mock_port):
        manager = SerialManager(SerialConfig(port="COM1"))
        assert manager.open() is True
    return manager


class TestOpenClose:
    """测试串口打开和关闭"""

    def test_init(self):
        config = SerialConfig(port="COM1", baudrate=9600)
        manager = SerialManager(config)

        assert manager.config == config
        assert manager.port is None
        assert manager.is_open is False

    @patch("serial.Serial")
    def test_open_success(self, mock_serial_class):
        mock_serial_instance = MagicMock()
        mock_serial_instance.is_open = True
        mock_serial_class.return_value = mock_serial_instance

        config = SerialConfig(port="COM1", baudrate=9600)
        manager = SerialManager(config)

        assert manager.open() is True
        assert manager.is_open is True
        mock_serial_class.assert_called_once_with(**config.to_serial_kwargs())

    @patch("serial.Serial")
    def test_open_failure(self, mock_serial_class):
        """串口打开异常时返回False"""
        mock_serial_class.side_effect = serial.SerialException("端口不存在")

        manager = SerialManager(SerialConfig(port="COM99"))

        assert manager.open() is False
        assert manager.port is None

    def test_close(self, manager, mock_port):
        manager.close()

        mock_port.close.assert_called_once()
        assert manager.port is None

    @patch("serial.Serial")
    def test_context_manager(self, mock_serial_class):
        mock_serial_instance = MagicMock()
        mock_serial_instance.is_open = True
        mock_serial_class.return_value = mock_serial_instance

        with SerialManager(SerialConfig(port="COM1")) as manager:
            assert manager.is_open is True

        mock_serial_instance.close.assert_called_once()

    @patch("serial.Serial")
    def test_connection_open_failure(self, mock_serial_class):
        mock_serial_class.side_effect = serial.SerialException("busy")
        manager = SerialManager(SerialConfig(port="COM1"))

        with pytest.raises(RuntimeError):
            with manager.connection():
                pass


class TestSend:
    """测试发送接口"""

    def test_satisfies_transport(self):
        assert isinstance(SerialManager(SerialConfig(port="COM1")), Transport)

    def test_send_with_timeout(self, manager, mock_port):
        """send 按毫秒超时设置写超时"""
        assert manager.send(b"{A:#01#00}", 500) is True

        assert mock_port.write_timeout == 0.5
        mock_port.write.assert_called_once_with(b"{A:#01#00}")

    def test_send_nowait(self, manager, mock_port):
        """send_nowait 使用0写超时（非阻塞），返回写出的字节数"""
        assert manager.send_nowait(b"data") == 4
        assert mock_port.write_timeout == 0

    def test_send_nowait_partial(self, manager, mock_port):
        """输出缓冲区只容纳一部分时返回实际写出数"""
        mock_port.write.side_effect = lambda data: min(len(data), 5)
        assert manager.send_nowait(b"{GET:TEMP#01#AB}") == 5

    def test_send_nowait_when_closed(self):
        manager = SerialManager(SerialConfig(port="COM1"))
        assert manager.send_nowait(b"data") == 0

    def test_write_timeout(self, manager, mock_port):
        mock_port.write.side_effect = serial.SerialTimeoutException("Write timeout")
        assert manager.send(b"data", 100) is False

    def test_partial_write(self, manager, mock_port):
        mock_port.write.side_effect = lambda data: len(data) - 1
        assert manager.send(b"data", 100) is False

    def test_send_when_closed(self):
        manager = SerialManager(SerialConfig(port="COM1"))
        assert manager.send(b"data", 100) is False


class TestFastPathTransmit:
    """测试重试快速路径经过串口时的线上字节"""

    def test_partial_nowait_not_duplicated(self, manager, mock_port):
        """非阻塞只写出前5字节时，阻塞发送只补齐剩余部分"""
        wire = bytearray()

        def fake_write(data):
            accepted = data[:5] if mock_port.write_timeout == 0 else data
            wire.extend(accepted)
            return len(accepted)

        mock_port.write.side_effect = fake_write
        frame = b"{GET:TEMP#01#AB}"

        assert transmit(manager, frame, 1000, fast_path=True) is True
        assert bytes(wire) == frame

    def test_nowait_complete(self, manager, mock_port):
        wire = bytearray()
        mock_port.write.side_effect = lambda data: wire.extend(data) or len(data)

        assert transmit(manager, b"{A:#01#00}", 1000, fast_path=True) is True
        assert bytes(wire) == b"{A:#01#00}"
        assert mock_port.write.call_count == 1


class TestRead:
    """测试读取接口"""

    def test_read(self, manager, mock_port):
        mock_port.read.return_value = b"{ACK"
        assert manager.read(256) == b"{ACK"
        mock_port.read.assert_called_once_with(256)

    def test_read_when_closed(self):
        manager = SerialManager(SerialConfig(port="COM1"))
        assert manager.read(10) == b""

    def test_read_exception_propagates(self, manager, mock_port):
        """读取异常交给IO线程处理"""
        mock_port.read.side_effect = serial.SerialException("设备断开")
        with pytest.raises(serial.SerialException):
            manager.read(10)


class TestListPorts:
    """测试串口枚举"""

    @patch("serial.tools.list_ports.comports")
    def test_list_available_ports(self, mock_comports):
        port_info = MagicMock()
        port_info.device = "COM3"
        port_info.description = "USB Serial"
        port_info.hwid = "USB VID:PID=1A86:7523"
        mock_comports.return_value = [port_info]

        ports = SerialManager.list_available_ports()

        assert ports == [
            {"device": "COM3", "description": "USB Serial", "hwid": "USB VID:PID=1A86:7523"}
        ]

    @patch("serial.tools.list_ports.comports")
    def test_list_ports_error(self, mock_comports):
        mock_comports.side_effect = OSError("denied")
        assert SerialManager.list_available_ports() == []
