# src/sourcon_core/network.py
"""
Source RCON 核心库 - 网络模块 (Network) [Asyncio Edition]

封装 TCP Socket 的连接、发送和接收逻辑。
该模块屏蔽了底层 Socket 的复杂性，向会话层提供以 Packet 为单位的收发接口。

传输层被抽象为最小的字节流能力 (ByteStream)：
等待可读/可写 + 非阻塞读写 (可能抛出 BlockingIOError)。
会话逻辑因此与具体传输实现无关，测试中可以替换为内存双工流。
"""

import asyncio
import logging
import socket
from typing import Optional, Protocol

from .exceptions import ReceiveError, SendError, UnreachableHostError
from .protocols import Packet, constants, decode_packet, split_frame

logger = logging.getLogger(__name__)

# 瞬时的 would-block 状态，等待就绪后重试，不视为错误
_WOULD_BLOCK = (BlockingIOError, InterruptedError)


class ByteStream(Protocol):
    """最小字节流能力 (read-some / write-some + would-block 信号)。"""

    async def readable(self) -> None:
        """等待直到流 (可能) 可读。"""
        ...

    def try_read(self, max_bytes: int) -> bytes:
        """非阻塞读取至多 max_bytes 字节。EOF 时返回 b""，无数据时抛出 BlockingIOError。"""
        ...

    async def writable(self) -> None:
        """等待直到流 (可能) 可写。"""
        ...

    def try_write(self, data: bytes) -> int:
        """非阻塞写入，返回实际写入的字节数。缓冲区满时抛出 BlockingIOError。"""
        ...

    def close(self) -> None:
        ...


def _wake(fut: "asyncio.Future[None]") -> None:
    if not fut.done():
        fut.set_result(None)


class SocketStream:
    """基于非阻塞 TCP socket 的 ByteStream 实现。

    就绪等待通过 loop.add_reader / add_writer 完成，不做忙等。
    """

    def __init__(self, sock: socket.socket) -> None:
        sock.setblocking(False)
        self.sock = sock

    @property
    def peername(self) -> str:
        try:
            host, port = self.sock.getpeername()[:2]
            return f"{host}:{port}"
        except OSError:
            return "<closed>"

    async def readable(self) -> None:
        await self._wait(write=False)

    async def writable(self) -> None:
        await self._wait(write=True)

    def try_read(self, max_bytes: int) -> bytes:
        return self.sock.recv(max_bytes)

    def try_write(self, data: bytes) -> int:
        return self.sock.send(data)

    def close(self) -> None:
        if self.sock.fileno() != -1:
            self.sock.close()
            logger.debug("TCP Socket 已关闭")

    async def _wait(self, write: bool) -> None:
        loop = asyncio.get_running_loop()
        fd = self.sock.fileno()
        if fd == -1:
            raise OSError("Socket 已关闭")

        fut: asyncio.Future[None] = loop.create_future()
        if write:
            loop.add_writer(fd, _wake, fut)
        else:
            loop.add_reader(fd, _wake, fut)
        try:
            await fut
        finally:
            if write:
                loop.remove_writer(fd)
            else:
                loop.remove_reader(fd)


async def open_stream(host: str, port: int) -> SocketStream:
    """解析地址并建立 TCP 连接。

    依次尝试 getaddrinfo 返回的每个地址，全部失败时抛出 UnreachableHostError。

    Raises:
        UnreachableHostError: DNS 解析失败或所有地址都无法连接。
    """
    loop = asyncio.get_running_loop()

    try:
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except OSError as e:
        raise UnreachableHostError(f"无法解析主机 {host}:{port}: {e}") from e

    last_exc: Optional[OSError] = None
    for family, sock_type, proto, _, addr in infos:
        sock = socket.socket(family, sock_type, proto)
        sock.setblocking(False)
        try:
            await loop.sock_connect(sock, addr)
        except OSError as e:
            sock.close()
            last_exc = e
            logger.debug(f"连接 {addr} 失败: {e}")
            continue
        except BaseException:
            # 取消或超时时不能泄露 socket
            sock.close()
            raise

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        logger.debug(f"TCP 连接已建立: {addr}")
        return SocketStream(sock)

    raise UnreachableHostError(f"无法连接到 {host}:{port}: {last_exc}") from last_exc


class NetworkClient:
    """
    在 ByteStream 之上提供以 Packet 为单位的收发。

    接收端按 size 字段切帧：TCP 合并到一次读取中的多个包会被保留，
    被拆开的包会继续读取直到完整。
    """

    def __init__(self, stream: ByteStream) -> None:
        self.stream = stream
        self._buffer = b""

    async def send(self, data: bytes) -> None:
        """完整写出 data，would-block 时等待可写后重试。

        Raises:
            SendError: Socket 写入失败。
        """
        view = memoryview(data)
        while view:
            try:
                await self.stream.writable()
                written = self.stream.try_write(view.tobytes())
            except _WOULD_BLOCK:
                continue
            except OSError as e:
                raise SendError(f"发送失败: {e}") from e
            view = view[written:]

    async def send_packet(self, packet: Packet) -> None:
        logger.debug(f"发送包 id={packet.id} type={packet.type.name}")
        await self.send(packet.pack())

    async def receive_packet(self) -> Packet:
        """读取下一个完整的数据包。

        Raises:
            ReceiveError: Socket 读取失败或对端关闭连接。
            ProtocolError: 收到的数据无法解码。
        """
        while True:
            frame, self._buffer = split_frame(self._buffer)
            if frame is not None:
                packet = decode_packet(frame)
                logger.debug(f"收到包 id={packet.id} type={packet.type.name}")
                return packet

            try:
                await self.stream.readable()
                chunk = self.stream.try_read(constants.MAX_PACKET_SIZE)
            except _WOULD_BLOCK:
                continue
            except OSError as e:
                raise ReceiveError(f"接收错误: {e}") from e

            if not chunk:
                raise ReceiveError("连接已被对端关闭")
            self._buffer += chunk

    def close(self) -> None:
        """关闭底层流"""
        self.stream.close()
        self._buffer = b""
