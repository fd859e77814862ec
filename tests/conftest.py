"""
公共测试夹具
============

提供手动推进的时钟和记录发送内容的假传输对象。
"""

import pytest

from serial_comm.service import CommService


class ManualClock:
    """手动推进的毫秒时钟"""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeTransport:
    """记录所有发送帧的传输对象，可模拟发送失败"""

    def __init__(self, name: str = "FAKE"):
        self.name = name
        self.sent = []
        self.fail = False

    def send(self, data: bytes, timeout_ms: int) -> bool:
        if self.fail:
            return False
        self.sent.append(bytes(data))
        return True

    def __repr__(self) -> str:
        return f"FakeTransport({self.name})"


@pytest.fixture
def clock():
    """从0开始的手动时钟"""
    return ManualClock()


@pytest.fixture
def transport():
    """假传输对象"""
    return FakeTransport()


@pytest.fixture
def service(clock):
    """使用手动时钟的通信服务"""
    return CommService(clock=clock)


@pytest.fixture
def channel(service, transport):
    """已注册到服务中的通道"""
    assert service.add_channel(transport)
    return service.get_channel(transport)
