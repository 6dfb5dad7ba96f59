# src/sourcon_core/cli.py
"""
sourcon 命令行入口。

子命令:
    exec    连接服务器并依次执行命令，输出响应。
    shell   交互式控制台，逐行读取命令直到 EOF 或 exit。
    listen  启动入站监听器，记录收到的每个数据包 (诊断用途)。

配置优先级: 命令行参数 > --config 指定的 TOML > 环境变量 (.env 会先被加载)。
"""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from . import __version__
from .client import RconClient
from .config import (
    DEFAULT_BIND_IP,
    RconConfig,
    create_config_from_dict,
    read_env_config,
    read_toml_config,
)
from .exceptions import ConfigError, RconError
from .protocols.constants import DEFAULT_PORT
from .server import PacketResult, RconListener

logger = logging.getLogger("SourconCLI")

EXIT_OK = 0
EXIT_RCON_ERROR = 1
EXIT_CONFIG_ERROR = 2

_SHELL_EXIT_WORDS = ("exit", "quit")


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_env_file(env_path: Optional[Path] = None) -> None:
    """加载 .env 文件。优先使用指定路径，其次为当前工作目录。"""
    path = env_path or Path.cwd() / ".env"
    if path.exists():
        load_dotenv(dotenv_path=path, override=False)
        logger.debug(f"已加载配置文件: {path}")
    elif env_path is not None:
        logger.warning(f"未找到 .env 文件: {path}")


def resolve_config(args: argparse.Namespace) -> RconConfig:
    """合并环境变量、TOML 与命令行参数，生成客户端配置。

    Raises:
        ConfigError: 字段缺失或无效。
    """
    raw: dict[str, Any] = read_env_config()

    if args.config:
        raw.update(read_toml_config(Path(args.config), args.profile))

    overrides = {
        "host": args.host,
        "password": args.password,
        "timeout": args.timeout,
    }
    raw.update({k: v for k, v in overrides.items() if v is not None})

    return create_config_from_dict(raw)


def resolve_listen_address(args: argparse.Namespace) -> tuple[str, int]:
    """监听器地址：命令行参数优先，其次为 RCON_BIND_IP / RCON_LISTEN_PORT。"""
    env = read_env_config()
    bind_ip = args.bind or env.get("bind_ip", DEFAULT_BIND_IP)
    raw_port = args.port if args.port is not None else env.get("listen_port", DEFAULT_PORT)

    try:
        port = int(raw_port)
    except ValueError:
        raise ConfigError(f"端口格式无效 'listen_port': {raw_port}") from None
    # 0 表示由系统分配
    if not 0 <= port < 65536:
        raise ConfigError(f"端口超出范围 'listen_port': {port}")
    return bind_ip, port


async def run_exec(config: RconConfig, commands: list[str]) -> int:
    async with await RconClient.from_config(config) as client:
        for command in commands:
            response = await client.command(command)
            text = response.body()
            print(text, end="" if text.endswith("\n") else "\n")
    return EXIT_OK


async def run_shell(config: RconConfig) -> int:
    async with await RconClient.from_config(config) as client:
        print(f"已连接到 {config.address}，输入 exit 退出。")
        while True:
            try:
                line = await asyncio.to_thread(input, "rcon> ")
            except EOFError:
                print()
                break

            line = line.strip()
            if not line:
                continue
            if line.lower() in _SHELL_EXIT_WORDS:
                break

            response = await client.command(line)
            print(response.body())
    return EXIT_OK


def _log_packet(result: PacketResult) -> None:
    if isinstance(result, RconError):
        logger.error(f"解码失败: {result}")
    else:
        logger.info(
            f"收到数据包 id={result.id} type={result.type.name} body={result.body!r}"
        )


async def run_listen(bind_ip: str, port: int) -> int:
    listener = RconListener(_log_packet, bind_ip=bind_ip, port=port)
    try:
        await listener.serve_forever()
    finally:
        await listener.close()
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="sourcon", description="Source RCON 客户端")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    p.add_argument("--env-file", help=".env 文件路径 (默认: 当前目录下的 .env)")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_connection_args(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--host", help="服务器地址 host[:port] (RCON_HOST)")
        sp.add_argument("--password", help="RCON 密码 (RCON_PASSWORD)")
        sp.add_argument("--timeout", type=float, help="超时秒数 (RCON_TIMEOUT)")
        sp.add_argument("--config", help="TOML 配置文件")
        sp.add_argument("--profile", default="default", help="TOML 中的 profile 名")

    pe = sub.add_parser("exec", help="执行一条或多条命令")
    add_connection_args(pe)
    pe.add_argument("commands", nargs="+", metavar="COMMAND")

    ps = sub.add_parser("shell", help="交互式控制台")
    add_connection_args(ps)

    pl = sub.add_parser("listen", help="启动入站监听器 (诊断用途)")
    pl.add_argument("--bind", help="绑定地址 (RCON_BIND_IP，默认 127.0.0.1)")
    pl.add_argument("--port", type=int, help="绑定端口 (RCON_LISTEN_PORT，默认 27015)")

    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    load_env_file(Path(args.env_file) if args.env_file else None)

    try:
        if args.cmd == "listen":
            bind_ip, port = resolve_listen_address(args)
            return asyncio.run(run_listen(bind_ip, port))

        config = resolve_config(args)
        logger.debug(f"配置加载完成: {config!r}")

        if args.cmd == "exec":
            return asyncio.run(run_exec(config, args.commands))
        return asyncio.run(run_shell(config))

    except ConfigError as ce:
        logger.error(f"配置错误: {ce}")
        return EXIT_CONFIG_ERROR
    except RconError as e:
        logger.error(f"RCON 错误: {e}")
        return EXIT_RCON_ERROR
    except KeyboardInterrupt:
        logger.info("收到用户中断信号 (Ctrl+C)，退出。")
        return EXIT_OK
