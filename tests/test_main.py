#!/usr/bin/env python3
"""
命令行入口测试
==============

测试 python -m serial_comm 的参数解析和子命令执行。
"""

from unittest.mock import MagicMock, patch

import pytest

from serial_comm import __main__ as cli
from serial_comm.core.frame_handler import FrameHandler
from serial_comm.service import CommService


class AutoAckTransport:
    """收到命令帧后立即让对端回复ACK的传输对象"""

    def __init__(self, reply: bool = True):
        self.service = None
        self.reply = reply
        self.sent = []
        self.closed = False

    def send(self, data: bytes, timeout_ms: int) -> bool:
        self.sent.append(data)
        if self.reply:
            frame = FrameHandler.unpack_frame(data)
            self.service.feed(self, FrameHandler.pack_control_frame("ACK", frame.sequence))
        return True

    def close(self) -> None:
        self.closed = True


def fake_open_channel(transport):
    """替换 _open_channel，返回使用假传输的服务"""

    def _open(port, baudrate, channel_config):
        service = CommService()
        transport.service = service
        service.add_channel(transport, channel_config, name=port)
        return transport, service, MagicMock()

    return _open


class TestCreateParser:
    """测试参数解析"""

    def test_send_arguments(self):
        parser = cli.create_parser()
        args = parser.parse_args(
            ["send", "--port", "COM3", "--cmd", "GET", "--data", "TEMP", "--retries", "5"]
        )

        assert args.command == "send"
        assert args.port == "COM3"
        assert args.cmd == "GET"
        assert args.data == "TEMP"
        assert args.retries == 5
        assert args.baudrate == 115200
        assert args.ack_timeout is None

    def test_listen_arguments(self):
        parser = cli.create_parser()
        args = parser.parse_args(
            ["listen", "--port", "COM4", "--cmd", "LED", "--cmd", "TEMP", "--auto-pong"]
        )

        assert args.cmd == ["LED", "TEMP"]
        assert args.auto_pong is True
        assert args.duration is None

    def test_send_requires_cmd(self):
        parser = cli.create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["send", "--port", "COM3"])


class TestMain:
    """测试主函数"""

    def test_no_command_prints_help(self, capsys):
        cli.main([])
        assert "serial_comm" in capsys.readouterr().out

    @patch("serial_comm.__main__.SerialManager.list_available_ports")
    def test_ports(self, mock_list, capsys):
        mock_list.return_value = [
            {"device": "COM3", "description": "USB Serial", "hwid": "x"}
        ]

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["ports"])

        assert exc_info.value.code == 0
        assert "COM3 - USB Serial" in capsys.readouterr().out

    @patch("serial_comm.__main__.SerialManager.open", return_value=False)
    def test_send_open_failure(self, mock_open):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["send", "--port", "COM99", "--cmd", "GET"])
        assert exc_info.value.code == 1

    def test_invalid_config_exit_code(self):
        """非法参数（重试次数越界）返回2"""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["send", "--port", "COM3", "--cmd", "GET", "--retries", "999"])
        assert exc_info.value.code == 2

    def test_send_acknowledged(self, capsys):
        transport = AutoAckTransport()

        with patch.object(cli, "_open_channel", side_effect=fake_open_channel(transport)):
            with pytest.raises(SystemExit) as exc_info:
                cli.main(["send", "--port", "COM3", "--cmd", "GET", "--data", "TEMP"])

        assert exc_info.value.code == 0
        assert transport.sent[0].startswith(b"{GET:TEMP#01#")
        assert transport.closed is True
        assert "已确认" in capsys.readouterr().out

    def test_send_not_acknowledged(self, capsys):
        transport = AutoAckTransport(reply=False)

        with patch.object(cli, "_open_channel", side_effect=fake_open_channel(transport)):
            with pytest.raises(SystemExit) as exc_info:
                cli.main(
                    [
                        "send", "--port", "COM3", "--cmd", "GET",
                        "--retries", "1", "--ack-timeout", "10", "--wait", "2",
                    ]
                )

        assert exc_info.value.code == 1
        assert len(transport.sent) == 2
        assert "timeout" in capsys.readouterr().out


class TestRunTickLoop:
    """测试tick循环"""

    def test_stops_on_condition(self):
        service = MagicMock()
        cli.run_tick_loop(service, lambda: service.tick.call_count >= 3, 5.0)
        assert service.tick.call_count == 3

    def test_stops_on_duration(self):
        service = MagicMock()
        cli.run_tick_loop(service, lambda: False, 0.02)
        assert service.tick.call_count >= 1
