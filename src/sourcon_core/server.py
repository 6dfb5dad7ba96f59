# src/sourcon_core/server.py
"""
Source RCON 核心库 - 入站监听器 (Inbound Listener)

接受 TCP 连接，读取一个固定大小的缓冲区并交给解码器，
再把解码结果 (Packet 或 RconError) 转交给调用方提供的回调。

这是一个诊断/抓包用途的入口：不执行认证握手，也不做多包重组，
不是一个符合协议的 RCON 服务器。
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional, Union

from .config import DEFAULT_BIND_IP, RconConfig
from .exceptions import NetworkError, ReceiveError, RconError
from .protocols import Packet, PacketType, constants, decode_packet

logger = logging.getLogger(__name__)

PacketResult = Union[Packet, RconError]
PacketHandler = Callable[[PacketResult], Union[Any, Awaitable[Any]]]


class RconListener:
    """最小化的入站监听器。"""

    def __init__(
        self,
        handler: PacketHandler,
        bind_ip: str = DEFAULT_BIND_IP,
        port: int = constants.DEFAULT_PORT,
    ) -> None:
        """
        Args:
            handler: 每个连接的解码结果都会传给它，可以是同步函数或协程函数。
            bind_ip: 绑定地址。
            port: 绑定端口，0 表示由系统分配。
        """
        self.handler = handler
        self.bind_ip = bind_ip
        self.port = port
        self._server: Optional[asyncio.AbstractServer] = None

    @classmethod
    def from_config(cls, handler: PacketHandler, config: RconConfig) -> "RconListener":
        return cls(handler, bind_ip=config.bind_ip, port=config.listen_port)

    @property
    def sockets(self) -> list:
        if self._server is None:
            return []
        return list(self._server.sockets)

    async def start(self) -> None:
        """绑定端口并开始接受连接。

        Raises:
            NetworkError: 端口绑定失败。
        """
        sample = Packet(1, PacketType.EXEC, "hello world")
        logger.info(f"示例数据包: {sample.pack().hex()}")

        try:
            self._server = await asyncio.start_server(
                self._on_connection, self.bind_ip, self.port
            )
        except OSError as e:
            raise NetworkError(f"端口绑定失败 {self.bind_ip}:{self.port}: {e}") from e

        for sock in self._server.sockets:
            addr = sock.getsockname()
            logger.info(f"监听器已启动: {addr[0]}:{addr[1]}")

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        assert self._server is not None
        await self._server.serve_forever()

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            logger.info("监听器已关闭")

    async def __aenter__(self) -> "RconListener":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _on_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer = writer.get_extra_info("peername")
        logger.info(f"接受连接: {peer}")
        try:
            result = await self.process(reader)
            await self._dispatch(result)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug(f"关闭连接异常: {e}")

    @staticmethod
    async def process(reader: asyncio.StreamReader) -> PacketResult:
        """读取至多一个接收缓冲区并解码。错误以 RconError 形式返回，不向外抛出。"""
        try:
            buf = await reader.read(constants.MAX_PACKET_SIZE)
        except OSError as e:
            return ReceiveError(f"接收错误: {e}")

        try:
            return decode_packet(buf)
        except RconError as e:
            return e

    async def _dispatch(self, result: PacketResult) -> None:
        try:
            outcome = self.handler(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"回调执行异常: {e}")


async def start_listener(
    handler: PacketHandler,
    bind_ip: str = DEFAULT_BIND_IP,
    port: int = constants.DEFAULT_PORT,
) -> RconListener:
    """创建并启动监听器的快捷函数。"""
    listener = RconListener(handler, bind_ip=bind_ip, port=port)
    await listener.start()
    return listener
