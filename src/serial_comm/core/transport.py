"""
传输接口定义
============

协议层对底层传输的最小要求。SerialManager 是基于pyserial的实现，
测试中可以使用任意满足该接口的对象。

可选的 send_nowait(data) -> int 用于重试快速路径，返回实际写出的字节数。
"""

from typing import Any, Optional, Protocol, runtime_checkable

from ..utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class Transport(Protocol):
    """有界超时的同步发送接口"""

    def send(self, data: bytes, timeout_ms: int) -> bool:
        """发送全部数据，timeout_ms 内完成返回True"""
        ...


def transmit(
    transport: Any,
    data: bytes,
    timeout_ms: int,
    fast_path: bool = False,
    name: Optional[str] = None,
) -> bool:
    """
    通过传输对象发送一帧

    fast_path 为True且传输对象提供 send_nowait 时先尝试非阻塞发送，
    未写完的剩余部分再用阻塞发送补齐，已写出的字节不会重发。

    Args:
        transport: 传输对象
        data: 帧数据
        timeout_ms: 阻塞发送超时（毫秒）
        fast_path: 是否尝试非阻塞发送
        name: 日志名称

    Returns:
        发送成功返回True，失败返回False
    """
    try:
        if fast_path:
            send_nowait = getattr(transport, "send_nowait", None)
            if send_nowait is not None:
                written = send_nowait(data)
                if written >= len(data):
                    return True
                if written > 0:
                    data = data[written:]
                logger.debug(
                    f"[{name}] 非阻塞发送写出 {written} 字节，剩余 {len(data)} 字节阻塞发送"
                )
        return bool(transport.send(data, timeout_ms))
    except Exception as e:
        logger.error(f"[{name}] 发送异常: {e}")
        return False
