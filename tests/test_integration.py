# tests/test_integration.py
"""
端到端测试: 在本地启动一个最小的 Source RCON 服务器，
通过真实 TCP 连接验证握手与多包响应重组。
"""

import asyncio
import struct

import pytest
import pytest_asyncio

from sourcon_core import AuthError, RconClient, UnreachableHostError

PASSWORD = "secret"
# 服务器输出按 4 个字符切片，模拟 srcds 把长输出拆成多个包
CHUNK = 4


def _packet(pkt_id: int, type_code: int, body: bytes = b"") -> bytes:
    return struct.pack("<iii", len(body) + 10, pkt_id, type_code) + body + b"\x00\x00"


class MiniRconServer:
    """仅用于测试的 RCON 服务器，行为参照 srcds。"""

    def __init__(self) -> None:
        self.server: asyncio.AbstractServer | None = None
        self.commands: list[str] = []

    async def start(self) -> int:
        self.server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        return self.server.sockets[0].getsockname()[1]

    async def close(self) -> None:
        if self.server:
            self.server.close()
            await self.server.wait_closed()

    async def _handle(self, reader, writer):
        authed = False
        try:
            while True:
                size_bytes = await reader.readexactly(4)
                (size,) = struct.unpack("<i", size_bytes)
                rest = await reader.readexactly(size)
                pkt_id, type_code = struct.unpack_from("<ii", rest, 0)
                body = rest[8:-2].decode("utf-8")

                if type_code == 3:
                    authed = body == PASSWORD
                    writer.write(_packet(pkt_id, 0))
                    writer.write(_packet(pkt_id if authed else -1, 2))
                elif type_code == 2 and authed:
                    self.commands.append(body)
                    output = self._run(body)
                    if not output:
                        writer.write(_packet(pkt_id, 0))
                    # 按字符切片，保证每个包体都是完整的 UTF-8
                    for i in range(0, len(output), CHUNK):
                        chunk = output[i : i + CHUNK].encode("utf-8")
                        writer.write(_packet(pkt_id, 0, chunk))
                else:
                    break
                await writer.drain()
        except asyncio.IncompleteReadError:
            pass
        finally:
            writer.close()

    @staticmethod
    def _run(command: str) -> str:
        if command.startswith("echo "):
            return command[5:]
        if command == "status":
            return "hostname: test\nplayers : 0 humans\n"
        return ""


@pytest_asyncio.fixture
async def rcon_server():
    server = MiniRconServer()
    port = await server.start()
    yield server, port
    await server.close()


@pytest.mark.asyncio
async def test_end_to_end_session(rcon_server):
    server, port = rcon_server

    async with await RconClient.connect(f"127.0.0.1:{port}", PASSWORD, timeout=2.0) as client:
        status = await client.command("status")
        echo = await client.command("echo 你好, world")
        empty = await client.command("")

    assert status.body() == "hostname: test\nplayers : 0 humans\n"
    assert status.packets > 1
    assert echo.body() == "你好, world"
    assert empty.body() == ""
    # 追踪包 (空命令) 也会被服务器当作命令处理
    assert server.commands == ["", "status", "", "echo 你好, world", "", "", ""]


@pytest.mark.asyncio
async def test_end_to_end_wrong_password(rcon_server):
    _, port = rcon_server

    with pytest.raises(AuthError):
        await RconClient.connect(f"127.0.0.1:{port}", "wrong", timeout=2.0)


@pytest.mark.asyncio
async def test_end_to_end_unreachable(rcon_server):
    server, port = rcon_server
    await server.close()

    with pytest.raises(UnreachableHostError):
        await RconClient.connect(f"127.0.0.1:{port}", PASSWORD, timeout=2.0)
