# File: src/sourcon_core/protocols/packet.py
"""
Source RCON 封包编解码器 (Packet Codec)

负责 Packet 对象与线上字节流之间的相互转换。
本模块是无状态的 (Stateless)，不包含任何 socket 操作或网络 I/O。

线上格式 (全部为 int32 小端序):
    size(4) | id(4) | type(4) | body(UTF-8) | 0x00 0x00
其中 size 不包含自身的 4 字节，恒等于 len(body) + 10。
"""

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from ..exceptions import (
    MalformedPacketBodyError,
    MalformedPacketHeaderError,
    ProtocolError,
    UnknownPacketTypeError,
)
from . import constants

logger = logging.getLogger(__name__)

_HEADER = struct.Struct("<iii")
_SIZE = struct.Struct("<i")

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class PacketType(Enum):
    """RCON 包类型 (封闭集合)。

    EXEC 与 AUTH_RESPONSE 在线上共用类型码 2，仅凭类型码无法区分。
    解码时统一解释为 AUTH_RESPONSE，因为正常的服务器从不向客户端发送 EXEC。
    """

    AUTH = "auth"
    EXEC = "exec"
    AUTH_RESPONSE = "auth_response"
    RESPONSE = "response"

    @property
    def code(self) -> int:
        """线上类型码。"""
        return _TYPE_TO_CODE[self]

    @classmethod
    def from_code(cls, code: int) -> "PacketType":
        """根据线上类型码解析包类型。

        Raises:
            UnknownPacketTypeError: 类型码不在 {0, 2, 3} 之内。
        """
        try:
            return _CODE_TO_TYPE[code]
        except KeyError:
            raise UnknownPacketTypeError(code) from None


_TYPE_TO_CODE = {
    PacketType.AUTH: constants.TypeCode.SERVERDATA_AUTH,
    PacketType.EXEC: constants.TypeCode.SERVERDATA_EXECCOMMAND,
    PacketType.AUTH_RESPONSE: constants.TypeCode.SERVERDATA_AUTH_RESPONSE,
    PacketType.RESPONSE: constants.TypeCode.SERVERDATA_RESPONSE_VALUE,
}

# 类型码 2 只映射到 AUTH_RESPONSE
_CODE_TO_TYPE = {
    constants.TypeCode.SERVERDATA_AUTH: PacketType.AUTH,
    constants.TypeCode.SERVERDATA_AUTH_RESPONSE: PacketType.AUTH_RESPONSE,
    constants.TypeCode.SERVERDATA_RESPONSE_VALUE: PacketType.RESPONSE,
}


@dataclass(frozen=True)
class Packet:
    """单个 RCON 数据包。

    Attributes:
        id: 发送方选定的 int32 包 ID，服务器会在响应中原样回显。
        type: 包类型。
        body: 文本负载。None 表示无包体，与空字符串在线上编码完全相同。
    """

    id: int
    type: PacketType
    body: Optional[str] = None

    def __post_init__(self) -> None:
        if not _INT32_MIN <= self.id <= _INT32_MAX:
            raise ProtocolError(f"包 ID 超出 int32 范围: {self.id}")

    @property
    def body_bytes(self) -> bytes:
        """包体的 UTF-8 编码 (无包体时为空)。"""
        if not self.body:
            return b""
        return self.body.encode(constants.BODY_ENCODING)

    @property
    def size(self) -> int:
        """size 字段的值：包体字节长度 + 10。"""
        return len(self.body_bytes) + constants.BASE_PACKET_SIZE

    def pack(self) -> bytes:
        """编码为线上字节流，等价于 encode_packet(self)。"""
        return encode_packet(self)

    @classmethod
    def unpack(cls, data: bytes) -> "Packet":
        """从字节流解码，等价于 decode_packet(data)。"""
        return decode_packet(data)


def encode_packet(packet: Packet) -> bytes:
    """将 Packet 编码为线上字节流。

    结构: Size(4B) + ID(4B) + Type(4B) + Body + 0x00(包体结束) + 0x00(包结束)

    Args:
        packet: 待编码的数据包。

    Returns:
        bytes: 完整的线上字节流，长度为 size + 4。
    """
    body = packet.body_bytes
    return (
        _HEADER.pack(packet.size, packet.id, packet.type.code)
        + body
        + constants.TERMINATOR
    )


def decode_packet(data: bytes) -> Packet:
    """从 (可能带有多余尾部的) 缓冲区解码一个数据包。

    声明的包体之后的字节一律忽略，因为接收端使用固定大小的读缓冲。

    Args:
        data: 以 size 字段开头的字节缓冲区。

    Returns:
        Packet: 解码后的数据包。size 为 10 时 body 为 None。

    Raises:
        MalformedPacketHeaderError: 字节不足以解析包头，或 size 字段非法。
        UnknownPacketTypeError: 类型码未知。
        MalformedPacketBodyError: 包体不是合法的 UTF-8。
    """
    if len(data) < constants.HEADER_LEN:
        raise MalformedPacketHeaderError(
            f"包头长度不足: 需要 {constants.HEADER_LEN} 字节，实际 {len(data)} 字节"
        )

    size, packet_id, type_code = _HEADER.unpack_from(data, 0)

    body_length = size - constants.BASE_PACKET_SIZE
    if body_length < 0:
        raise MalformedPacketHeaderError(f"size 字段非法: {size}")

    available = len(data) - constants.BODY_OFFSET
    if body_length > available:
        raise MalformedPacketHeaderError(
            f"size 字段与数据不符: 声明包体 {body_length} 字节，实际可用 {available} 字节"
        )

    packet_type = PacketType.from_code(type_code)

    body: Optional[str] = None
    if body_length > 0:
        raw = bytes(data[constants.BODY_OFFSET : constants.BODY_OFFSET + body_length])
        try:
            body = raw.decode(constants.BODY_ENCODING)
        except UnicodeDecodeError as e:
            raise MalformedPacketBodyError(f"包体不是合法的 UTF-8: {e}") from e

    return Packet(id=packet_id, type=packet_type, body=body)


def split_frame(buffer: bytes) -> Tuple[Optional[bytes], bytes]:
    """从累积的流数据中切出一个完整的包。

    TCP 可能把多个包合并到一次读取中，也可能把一个包拆开，
    因此读取方需要按 size 字段切帧，剩余部分留待下次使用。

    Args:
        buffer: 已接收但尚未解码的字节。

    Returns:
        (frame, rest): frame 为完整的一个包 (含 size 字段)，数据不足时为 None。

    Raises:
        MalformedPacketHeaderError: size 字段小于 10 或大于 4096。
    """
    if len(buffer) < constants.SIZE_FIELD_LEN:
        return None, buffer

    (size,) = _SIZE.unpack_from(buffer, 0)
    if size < constants.BASE_PACKET_SIZE or size > constants.MAX_PACKET_SIZE:
        raise MalformedPacketHeaderError(
            f"size 字段超出范围 [{constants.BASE_PACKET_SIZE}, {constants.MAX_PACKET_SIZE}]: {size}"
        )

    total = constants.SIZE_FIELD_LEN + size
    if len(buffer) < total:
        return None, buffer

    return bytes(buffer[:total]), bytes(buffer[total:])
