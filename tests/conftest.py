# tests/conftest.py
import asyncio
import sys
from collections import deque
from pathlib import Path

import pytest

# 确保 src 目录在 sys.path 中
src_path = Path(__file__).resolve().parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from sourcon_core.config import RconConfig
from sourcon_core.protocols import Packet, PacketType, decode_packet, split_frame


class FakeStream:
    """内存中的双工字节流，实现 ByteStream 能力。

    - feed() 放入“服务器”发来的数据，每次 feed 对应一次 try_read 可读到的块。
    - written 记录客户端写出的全部字节。
    - would_block_reads / would_block_writes 用于模拟瞬时的 would-block。
    - write_limit 限制单次 try_write 写入的字节数，模拟部分写。
    """

    def __init__(self, *chunks: bytes) -> None:
        self.incoming: deque[bytes] = deque(chunks)
        self.written = bytearray()
        self.closed = False
        self.eof = False
        self.would_block_reads = 0
        self.would_block_writes = 0
        self.write_limit: int | None = None
        self.read_error: OSError | None = None
        self.write_error: OSError | None = None
        self._ready = asyncio.Event()

    def feed(self, *chunks: bytes) -> None:
        self.incoming.extend(chunks)
        self._ready.set()

    def feed_eof(self) -> None:
        self.eof = True
        self._ready.set()

    async def readable(self) -> None:
        while not self.incoming and not self.eof and self.read_error is None:
            self._ready.clear()
            await self._ready.wait()

    def try_read(self, max_bytes: int) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        if self.would_block_reads:
            self.would_block_reads -= 1
            raise BlockingIOError
        if not self.incoming:
            if self.eof:
                return b""
            raise BlockingIOError
        chunk = self.incoming.popleft()
        if len(chunk) > max_bytes:
            self.incoming.appendleft(chunk[max_bytes:])
            chunk = chunk[:max_bytes]
        return chunk

    async def writable(self) -> None:
        return None

    def try_write(self, data: bytes) -> int:
        if self.write_error is not None:
            raise self.write_error
        if self.would_block_writes:
            self.would_block_writes -= 1
            raise BlockingIOError
        n = len(data) if self.write_limit is None else min(len(data), self.write_limit)
        self.written += data[:n]
        return n

    def close(self) -> None:
        self.closed = True

    def sent_packets(self) -> list[Packet]:
        """把客户端写出的字节重新切分并解码为数据包列表。"""
        packets = []
        rest = bytes(self.written)
        while rest:
            frame, rest = split_frame(rest)
            assert frame is not None, "客户端写出了不完整的数据包"
            packets.append(decode_packet(frame))
        return packets


def reply(packet_id: int, body: str | None = None, ptype=PacketType.RESPONSE) -> bytes:
    """构造一个服务器应答包的字节流"""
    return Packet(packet_id, ptype, body).pack()


def auth_ok_replies() -> bytes:
    """认证成功时服务器的典型应答: 空 RESPONSE + AUTH_RESPONSE(1) + 追踪包回显(2)"""
    return (
        reply(1, None, PacketType.RESPONSE)
        + reply(1, None, PacketType.AUTH_RESPONSE)
        + reply(2, None, PacketType.RESPONSE)
    )


@pytest.fixture
def fake_stream():
    return FakeStream()


@pytest.fixture
def stream_factory(fake_stream):
    """返回 (factory, calls)：factory 总是交出同一个 fake_stream 并记录连接参数"""
    calls = []

    async def factory(host: str, port: int) -> FakeStream:
        calls.append((host, port))
        return fake_stream

    return factory, calls


@pytest.fixture
def valid_config():
    """
    [Fixture] 返回一个合法的 RconConfig 对象。
    """
    return RconConfig(
        host="127.0.0.1",
        port=27015,
        password="secret",
        timeout=5.0,
        bind_ip="127.0.0.1",
        listen_port=27015,
    )
