#!/usr/bin/env python3
"""
串口通信协议工具 - 模块CLI入口
==============================

支持通过 python -m serial_comm 调用
"""

import argparse
import functools
import logging
import sys
import time
from typing import Callable, List, Optional

from .config.constants import DEFAULT_BAUDRATE, DEFAULT_MAX_RETRY, DEFAULT_TICK_INTERVAL
from .config.settings import ChannelConfig, SerialConfig
from .core.io_thread import IoThread
from .core.serial_manager import SerialManager
from .service import CommService
from .utils.logger import get_logger, set_level

logger = get_logger(__name__)

# 版本信息
VERSION = "1.0.0"
PROGRAM_NAME = "串口通信协议工具"


def create_parser() -> argparse.ArgumentParser:
    """创建命令行参数解析器"""
    parser = argparse.ArgumentParser(
        prog="serial_comm",
        description=f"{PROGRAM_NAME} v{VERSION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
使用示例：
  # 列出可用串口
  python -m serial_comm ports

  # 发送命令并等待ACK
  python -m serial_comm send --port COM3 --cmd GET --data TEMP

  # 监听并打印收到的命令
  python -m serial_comm listen --port /dev/ttyUSB0 --cmd TEST --cmd LED --auto-pong
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"{PROGRAM_NAME} v{VERSION}"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")

    subparsers = parser.add_subparsers(dest="command", help="可用命令")

    subparsers.add_parser("ports", help="列出可用串口")

    send_parser = subparsers.add_parser("send", help="发送一条命令并等待确认")
    send_parser.add_argument("--port", required=True, help="串口号（如 COM1, /dev/ttyUSB0）")
    send_parser.add_argument("--cmd", required=True, help="命令（最长16字符）")
    send_parser.add_argument("--data", default="", help="数据（最长64字符）")
    send_parser.add_argument(
        "--baudrate", type=int, default=DEFAULT_BAUDRATE, help="波特率（默认115200）"
    )
    send_parser.add_argument(
        "--retries", type=int, default=DEFAULT_MAX_RETRY, help="最大重试次数（默认3）"
    )
    send_parser.add_argument(
        "--ack-timeout", type=int, default=None, help="固定ACK超时(毫秒)，默认按帧长计算"
    )
    send_parser.add_argument(
        "--wait", type=float, default=5.0, help="最长等待时间(秒，默认5)"
    )

    listen_parser = subparsers.add_parser("listen", help="监听并打印收到的命令")
    listen_parser.add_argument("--port", required=True, help="串口号（如 COM2, /dev/ttyUSB1）")
    listen_parser.add_argument(
        "--baudrate", type=int, default=DEFAULT_BAUDRATE, help="波特率（默认115200）"
    )
    listen_parser.add_argument(
        "--cmd", action="append", default=[], help="要打印的命令，可重复指定"
    )
    listen_parser.add_argument(
        "--duration", type=float, default=None, help="监听时长(秒)，默认一直运行"
    )
    listen_parser.add_argument("--auto-pong", action="store_true", help="自动回复PING")

    return parser


def run_tick_loop(
    service: CommService,
    stop: Callable[[], bool],
    duration: Optional[float],
    interval: float = DEFAULT_TICK_INTERVAL,
) -> None:
    """
    周期调用 tick，直到 stop() 为真或超过 duration 秒

    Args:
        service: 通信服务
        stop: 结束条件
        duration: 最长运行时间，None表示不限
        interval: tick周期(秒)
    """
    deadline = None if duration is None else time.monotonic() + duration
    while deadline is None or time.monotonic() < deadline:
        service.tick()
        if stop():
            return
        time.sleep(interval)


def _open_channel(
    port: str, baudrate: int, channel_config: ChannelConfig
) -> Optional[tuple]:
    """打开串口并注册通道，返回 (manager, service, io_thread)"""
    manager = SerialManager(SerialConfig(port=port, baudrate=baudrate))
    if not manager.open():
        return None

    service = CommService()
    service.add_channel(manager, channel_config, name=port)
    io_thread = IoThread(
        manager,
        functools.partial(service.on_byte_received, manager),
        on_error=functools.partial(service.on_transport_error, manager),
    )
    return manager, service, io_thread


def run_ports() -> bool:
    """打印系统可用的串口信息"""
    ports = SerialManager.list_available_ports()

    if not ports:
        print("没有找到可用的串口。")
        return True

    print("可用的串口：")
    for port in ports:
        print(f"  {port['device']} - {port['description']}")
    return True


def run_send(args: argparse.Namespace) -> bool:
    """发送一条命令，等待ACK或失败"""
    channel_config = ChannelConfig(max_retry=args.retries, ack_timeout_ms=args.ack_timeout)
    opened = _open_channel(args.port, args.baudrate, channel_config)
    if opened is None:
        return False
    manager, service, io_thread = opened

    failures: List[str] = []
    service.register_fail_callback(
        manager, lambda cmd, data, reason: failures.append(reason)
    )

    try:
        with io_thread:
            if not service.send_command(manager, args.cmd, args.data):
                print(f"❌ 命令发送失败: {args.cmd}:{args.data}")
                return False

            run_tick_loop(
                service,
                lambda: bool(failures) or service.is_ready(manager),
                args.wait,
            )
    finally:
        manager.close()

    if failures:
        print(f"❌ 命令未被确认: {args.cmd}:{args.data} ({failures[0]})")
        return False
    if not service.is_ready(manager):
        print(f"⏱️ 等待确认超时: {args.cmd}:{args.data}")
        return False

    stats = service.get_stats(manager)
    delay = stats.max_delay_ms if stats is not None else 0
    print(f"✅ 已确认: {args.cmd}:{args.data} (往返 {delay}ms)")
    return True


def run_listen(args: argparse.Namespace) -> bool:
    """监听命令并打印"""
    channel_config = ChannelConfig(auto_pong=args.auto_pong)
    opened = _open_channel(args.port, args.baudrate, channel_config)
    if opened is None:
        return False
    manager, service, io_thread = opened

    def on_command(cmd: str, data: str) -> None:
        print(f"📥 {cmd}:{data}")

    for name in args.cmd:
        if not service.register_command_callback(manager, name, on_command):
            print(f"⚠️ 无法注册命令: {name}")

    print(f"👂 正在监听 {args.port}，按 Ctrl+C 退出")
    try:
        with io_thread:
            run_tick_loop(service, lambda: False, args.duration)
    finally:
        manager.close()

    stats = service.get_stats(manager)
    if stats is not None:
        print(
            f"统计: 接收 {stats.rx_count} 帧, 分发 {stats.rx_success}, "
            f"校验错误 {stats.rx_crc_error}, 序列号错误 {stats.rx_seq_error}"
        )
    return True


def main(argv: Optional[List[str]] = None):
    """主函数"""
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return

        if args.verbose:
            set_level(logging.DEBUG)

        if args.command == "ports":
            success = run_ports()
        elif args.command == "send":
            success = run_send(args)
        else:
            success = run_listen(args)

        sys.exit(0 if success else 1)

    except KeyboardInterrupt:
        print("\n\n👋 用户中断程序，退出")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"参数错误: {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
