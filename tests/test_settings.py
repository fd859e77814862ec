#!/usr/bin/env python3
"""
配置管理测试
============

测试 SerialConfig 和 ChannelConfig 的默认值、转换和参数验证。
"""

import pytest
import serial

from serial_comm.config.settings import ChannelConfig, SerialConfig


class TestSerialConfig:
    """测试串口配置"""

    def test_defaults(self):
        config = SerialConfig(port="COM1")

        assert config.baudrate == 115200
        assert config.bytesize == serial.EIGHTBITS
        assert config.parity == serial.PARITY_NONE
        assert config.stopbits == serial.STOPBITS_ONE

    def test_to_serial_kwargs(self):
        """转换结果可以直接传给 serial.Serial"""
        config = SerialConfig(port="/dev/ttyUSB0", baudrate=9600, timeout=0.5)
        kwargs = config.to_serial_kwargs()

        assert kwargs["port"] == "/dev/ttyUSB0"
        assert kwargs["baudrate"] == 9600
        assert kwargs["timeout"] == 0.5
        assert "write_timeout" in kwargs


class TestChannelConfig:
    """测试通道配置"""

    def test_defaults(self):
        config = ChannelConfig()

        assert config.max_retry == 3
        assert config.frame_timeout_ms == 100
        assert config.ack_timeout_ms is None
        assert config.auto_pong is False

    def test_ack_timeout_by_frame_length(self):
        """默认ACK超时 = 200ms + 每字节1ms"""
        config = ChannelConfig()
        assert config.ack_timeout_for(0) == 200
        assert config.ack_timeout_for(16) == 216
        assert config.ack_timeout_for(128) == 328

    def test_ack_timeout_override(self):
        config = ChannelConfig(ack_timeout_ms=50)
        assert config.ack_timeout_for(100) == 50

    def test_zero_retry_allowed(self):
        assert ChannelConfig(max_retry=0).max_retry == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_retry": -1},
            {"max_retry": 256},
            {"ack_timeout_base_ms": 0},
            {"ack_timeout_per_byte_ms": -1},
            {"ack_timeout_ms": 0},
            {"frame_timeout_ms": 0},
            {"send_timeout_ms": 0},
            {"control_send_timeout_ms": -5},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ChannelConfig(**kwargs)
