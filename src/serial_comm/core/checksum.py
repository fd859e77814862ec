"""
校验算法模块
============

提供帧校验使用的CRC-8算法（多项式0x07，初值0x00，不反转，无结果异或）。
"""

from typing import List

CRC8_POLYNOMIAL = 0x07


def _build_crc8_table(polynomial: int = CRC8_POLYNOMIAL) -> List[int]:
    """生成256项CRC-8查找表"""
    table = []
    for value in range(256):
        crc = value
        for _ in range(8):
            if crc & 0x80:
                crc = ((crc << 1) ^ polynomial) & 0xFF
            else:
                crc = (crc << 1) & 0xFF
        table.append(crc)
    return table


CRC8_TABLE = _build_crc8_table()


def calculate_crc8(data: bytes) -> int:
    """
    计算数据的CRC-8校验值

    采用查表法，逐字节处理。

    Args:
        data: 需要计算校验的字节数据

    Returns:
        校验值，8位无符号整数

    Raises:
        TypeError: 当输入不是bytes类型时抛出

    Examples:
        >>> calculate_crc8(b'123456789')
        244
        >>> calculate_crc8(b'')
        0
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("输入数据必须是bytes类型")

    crc = 0
    for byte in data:
        crc = CRC8_TABLE[crc ^ byte]
    return crc


def verify_crc8(data: bytes, expected: int) -> bool:
    """
    校验数据的CRC-8值是否与期望值一致

    Args:
        data: 参与校验的字节数据
        expected: 期望的校验值

    Returns:
        一致返回True，否则返回False
    """
    return calculate_crc8(data) == expected
