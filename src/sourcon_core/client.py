# File: src/sourcon_core/client.py
"""
Source RCON 客户端会话 (Client Session)

职责：
1. 连接管理：建立 TCP 连接并完成认证握手。
2. 命令执行：发送命令 + 追踪包，按到达顺序收集响应直到追踪包回显。
3. 状态维护：分配包 ID，在出错后将会话标记为不可用。

协议本身不提供“响应结束”标记，服务器可能把一条命令的输出拆成多个包。
因此每条命令之后紧跟一个空的追踪包：服务器按请求顺序应答，
当追踪包的 ID 被回显时，之前收到的所有包就是该命令的完整输出。
若传输层不保证顺序，重组结果是未定义的，本模块不做校验。
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Optional

from .config import DEFAULT_TIMEOUT, RconConfig, parse_address
from .exceptions import (
    AuthError,
    RconError,
    RconTimeoutError,
    StateError,
)
from .network import ByteStream, NetworkClient, open_stream
from .protocols import Packet, PacketType, constants
from .state import SessionState, SessionStatus

logger = logging.getLogger(__name__)

StreamFactory = Callable[[str, int], Awaitable[ByteStream]]


@dataclass(frozen=True)
class Response:
    """由一个或多个响应包拼接而成的命令输出。

    Attributes:
        text: 按接收顺序拼接的包体文本。
        packets: 参与拼接的响应包数量。
    """

    text: str
    packets: int = 0

    def body(self) -> str:
        return self.text

    def __str__(self) -> str:
        return self.text


class ClientBuilder:
    """带超时设置的连接构造器。

    Example:
        client = await RconClient.with_timeout(5.0).connect("localhost:27015", "secret")
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        stream_factory: Optional[StreamFactory] = None,
    ) -> None:
        """
        Args:
            timeout: connect 与之后每条 command 的总时限 (秒)。
            stream_factory: 建立字节流的协程函数，默认为 TCP 连接。
        """
        self.timeout = timeout
        self.stream_factory: StreamFactory = stream_factory or open_stream

    async def connect(self, host: str, password: str) -> "RconClient":
        """连接并认证 RCON 服务器。

        打开连接和完整的认证握手共享同一个时限，超时后连接被丢弃。

        Args:
            host: "addr:port" 或 "addr" (默认端口 27015)。
            password: RCON 密码。

        Returns:
            RconClient: 已认证、可以发送命令的客户端。

        Raises:
            UnreachableHostError: 无法建立连接。
            AuthError: 服务器拒绝认证。
            RconTimeoutError: 超出时限。
            NetworkError / ProtocolError: 握手期间的 I/O 或解码错误。
        """
        addr, port = parse_address(host)
        state = SessionState()
        net_client: Optional[NetworkClient] = None

        async def _open_and_auth() -> None:
            nonlocal net_client
            stream = await self.stream_factory(addr, port)
            net_client = NetworkClient(stream)
            logger.debug(f"已打开到 {addr}:{port} 的连接，开始认证")
            state.status = SessionStatus.AUTHENTICATING
            await RconClient._auth(password, net_client)

        try:
            await asyncio.wait_for(_open_and_auth(), timeout=self.timeout)
        except asyncio.TimeoutError:
            self._abandon(net_client, state, "连接超时")
            raise RconTimeoutError(f"连接 {addr}:{port} 超时 ({self.timeout}s)") from None
        except BaseException as e:
            self._abandon(net_client, state, str(e))
            raise

        state.status = SessionStatus.READY
        logger.info(f"已连接并认证: {addr}:{port}")
        return RconClient(net_client, timeout=self.timeout, state=state)

    @staticmethod
    def _abandon(
        net_client: Optional[NetworkClient], state: SessionState, reason: str
    ) -> None:
        state.status = SessionStatus.DISCONNECTED
        state.last_error = reason
        if net_client is not None:
            net_client.close()


class RconClient:
    """Source RCON 异步客户端。

    通过 connect() 建立连接并认证。单个客户端同一时刻只允许一条命令在途，
    多个协程共享时需要外部加锁。

    Example:
        async with await RconClient.connect("localhost:27015", "secret") as client:
            response = await client.command("echo hi")
            print(response.body())
    """

    def __init__(
        self,
        net_client: NetworkClient,
        timeout: float = DEFAULT_TIMEOUT,
        state: Optional[SessionState] = None,
    ) -> None:
        self.net_client = net_client
        self.timeout = timeout
        self._state = state or SessionState(status=SessionStatus.READY)

    @staticmethod
    def with_timeout(timeout: float) -> ClientBuilder:
        """为新客户端指定超时，返回构造器。"""
        return ClientBuilder(timeout)

    @classmethod
    async def connect(
        cls, host: str, password: str, timeout: float = DEFAULT_TIMEOUT
    ) -> "RconClient":
        """连接并认证 RCON 服务器。参见 ClientBuilder.connect。"""
        return await ClientBuilder(timeout).connect(host, password)

    @classmethod
    async def from_config(cls, config: RconConfig) -> "RconClient":
        """使用 RconConfig 中的地址、密码和超时建立连接。"""
        return await ClientBuilder(config.timeout).connect(
            config.address, config.password
        )

    @property
    def state(self) -> SessionState:
        """获取当前会话状态的只读副本。"""
        return replace(self._state)

    @property
    def is_usable(self) -> bool:
        return self._state.is_usable

    async def command(self, command: str) -> Response:
        """执行一条 RCON 命令。

        响应被拆成多个包时会按接收顺序拼接。
        任何 I/O、协议错误或超时都会使会话进入 BROKEN 状态，之后必须重新连接。

        Raises:
            StateError: 会话已关闭、已损坏，或上一条命令尚未完成。
            RconTimeoutError: 超出时限。
            NetworkError / ProtocolError: 收发或解码失败。
        """
        if self._state.status is SessionStatus.BUSY:
            raise StateError("上一条命令尚未完成，不支持并发调用 command")
        if not self._state.is_usable:
            raise StateError(f"会话不可用 ({self._state.status.name})，请重新连接")

        self._state.status = SessionStatus.BUSY
        try:
            response = await asyncio.wait_for(
                self._execute(command), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            self._mark_broken("命令超时")
            raise RconTimeoutError(f"命令执行超时 ({self.timeout}s)") from None
        except RconError as e:
            self._mark_broken(str(e))
            raise
        except BaseException:
            self._mark_broken("命令被取消")
            raise

        self._state.status = SessionStatus.READY
        return response

    async def close(self) -> None:
        """关闭连接"""
        if self._state.status is not SessionStatus.CLOSED:
            self.net_client.close()
            self._state.status = SessionStatus.CLOSED
            logger.debug("RCON 会话已关闭")

    async def __aenter__(self) -> "RconClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _execute(self, command: str) -> Response:
        command_packet = self._create_packet(command)
        tracking_packet = self._create_packet("")

        await self.net_client.send_packet(command_packet)
        await self.net_client.send_packet(tracking_packet)

        parts: list[str] = []
        while True:
            packet = await self.net_client.receive_packet()
            if packet.id == tracking_packet.id:
                logger.debug(f"收到追踪包 id={packet.id}，响应完成")
                break
            parts.append(packet.body or "")

        return Response(text="".join(parts), packets=len(parts))

    def _create_packet(self, body: str) -> Packet:
        return Packet(self._state.allocate_id(), PacketType.EXEC, body)

    def _mark_broken(self, reason: str) -> None:
        self._state.status = SessionStatus.BROKEN
        self._state.last_error = reason
        logger.error(f"命令执行失败，会话已不可用: {reason}")

    @staticmethod
    async def _auth(password: str, net_client: NetworkClient) -> None:
        """认证握手。

        认证包之后立即发送一个空的追踪包：认证失败的信号本身也是一个
        难以区分的空响应，只有追踪包的回显能确定握手已经结束。

        Raises:
            AuthError: 收到 id = -1 的响应。
        """
        auth_packet = Packet(constants.AUTH_PACKET_ID, PacketType.AUTH, password)
        tracking_packet = Packet(constants.AUTH_TRACKING_PACKET_ID, PacketType.EXEC, "")

        await net_client.send_packet(auth_packet)
        await net_client.send_packet(tracking_packet)

        while True:
            packet = await net_client.receive_packet()
            if packet.id == constants.AUTH_FAILED_ID:
                raise AuthError()
            if packet.id == tracking_packet.id:
                logger.debug("收到认证追踪包，握手完成")
                return


async def connect(
    host: str, password: str, timeout: float = DEFAULT_TIMEOUT
) -> RconClient:
    """连接并认证 RCON 服务器的快捷函数。"""
    return await RconClient.connect(host, password, timeout)
