# src/sourcon_core/protocols/__init__.py
"""
Source RCON 协议层 (Protocol Layer)

本包负责协议数据包的纯粹编码 (Encode) 与解码 (Decode)。

- 不包含任何 socket 操作或网络 I/O。
- 不包含任何状态管理 (State)。
- 不依赖于 client 或 network 层。
"""

from . import constants
from .packet import (
    Packet,
    PacketType,
    decode_packet,
    encode_packet,
    split_frame,
)

# 公共 API
__all__ = [
    "constants",
    "Packet",
    "PacketType",
    "encode_packet",
    "decode_packet",
    "split_frame",
]
