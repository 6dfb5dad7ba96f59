"""
Source RCON 核心库 - 配置模块

负责配置的加载、解析与强类型转换。
支持从 TOML 文件、环境变量或字典中加载配置。
"""

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Tuple

from .exceptions import ConfigError
from .protocols.constants import DEFAULT_PORT

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_BIND_IP = "127.0.0.1"


@dataclass(frozen=True)
class RconConfig:
    """RconClient / RconListener 的强类型配置对象。

    所有字段均为只读 (frozen=True)，确保配置在运行时不可变。

    Attributes:
        host: RCON 服务器地址 (主机名或 IP)。
        port: RCON 服务器端口 (Source 默认为 27015)。
        password: RCON 密码。
        timeout: connect / command 的总时限 (秒)。
        bind_ip: 监听器绑定的本地地址。
        listen_port: 监听器绑定的本地端口。
    """

    host: str
    port: int
    password: str
    timeout: float = DEFAULT_TIMEOUT
    bind_ip: str = DEFAULT_BIND_IP
    listen_port: int = DEFAULT_PORT

    @property
    def address(self) -> str:
        """服务器地址，形如 host:port。"""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def __repr__(self) -> str:
        """
        覆盖默认的 repr，隐藏密码字段，防止日志泄露敏感信息。
        """
        return (
            f"<{self.__class__.__name__} "
            f"server={self.host}:{self.port}, "
            f"password='******', "
            f"timeout={self.timeout}, "
            f"listen={self.bind_ip}:{self.listen_port}>"
        )


def parse_address(address: str, default_port: int = DEFAULT_PORT) -> Tuple[str, int]:
    """将 "host:port" 或 "host" 拆分为 (host, port)。

    支持 "[::1]:27015" 形式的 IPv6 地址。

    Raises:
        ConfigError: 主机为空或端口不是合法整数。
    """
    address = address.strip()
    host, port_str = address, ""

    if address.startswith("["):
        end = address.find("]")
        if end == -1:
            raise ConfigError(f"地址格式无效: {address}")
        host = address[1:end]
        rest = address[end + 1 :]
        if rest.startswith(":"):
            port_str = rest[1:]
    elif address.count(":") == 1:
        host, port_str = address.split(":")

    if not host:
        raise ConfigError(f"地址缺少主机部分: {address!r}")

    if not port_str:
        return host, default_port

    try:
        port = int(port_str)
    except ValueError:
        raise ConfigError(f"端口格式无效: {port_str}") from None
    if not 0 < port < 65536:
        raise ConfigError(f"端口超出范围: {port}")
    return host, port


def create_config_from_dict(raw_data: dict[str, Any]) -> RconConfig:
    """通用工厂：将字典转换为强类型配置对象。

    负责字段的清洗、默认值注入和类型转换。

    Args:
        raw_data: 原始配置字典 (来自 TOML 或 Env)。host 可以直接携带端口。

    Returns:
        RconConfig: 验证并转换后的配置对象。

    Raises:
        ConfigError: 当必要字段缺失或格式错误时抛出。
    """
    try:

        def _req(key: str) -> Any:
            """获取必要字段，缺失则报错"""
            if key not in raw_data or raw_data[key] in (None, ""):
                raise ConfigError(f"配置缺失: 缺少必要字段 '{key}'")
            return raw_data[key]

        def _to_port(key: str, default: int) -> int:
            val = raw_data.get(key, default)
            try:
                port = int(val)
            except (TypeError, ValueError):
                raise ConfigError(f"端口格式无效 '{key}': {val}") from None
            if not 0 < port < 65536:
                raise ConfigError(f"端口超出范围 '{key}': {port}")
            return port

        def _to_timeout(key: str) -> float:
            val = raw_data.get(key, DEFAULT_TIMEOUT)
            try:
                seconds = float(val)
            except (TypeError, ValueError):
                raise ConfigError(f"超时格式无效 '{key}': {val}") from None
            if seconds <= 0:
                raise ConfigError(f"超时必须为正数 '{key}': {seconds}")
            return seconds

        default_port = _to_port("port", DEFAULT_PORT)
        host, port = parse_address(str(_req("host")), default_port)

        return RconConfig(
            host=host,
            port=port,
            password=str(_req("password")),
            timeout=_to_timeout("timeout"),
            bind_ip=str(raw_data.get("bind_ip", DEFAULT_BIND_IP)),
            listen_port=_to_port("listen_port", DEFAULT_PORT),
        )

    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(f"配置生成失败: {e}") from e


def read_toml_config(file_path: Path, profile: str = "default") -> dict[str, Any]:
    """读取 TOML 文件中的原始配置字典。

    支持多层级查找策略:
    1. [profile.xxx]: 优先查找指定的 profile 块。
    2. [rcon]: 单服务器配置块。
    3. Root: 兼容根目录直接配置。

    Raises:
        ConfigError: 文件读取失败或 Profile 不存在。
    """
    if not file_path.exists():
        raise ConfigError(f"配置文件未找到: {file_path}")

    try:
        with open(file_path, "rb") as f:
            data = tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"读取 TOML 失败: {e}") from e

    if "profile" in data:
        if profile not in data["profile"]:
            raise ConfigError(f"未找到预设: [profile.{profile}]")
        return dict(data["profile"][profile])

    if "rcon" in data:
        if profile != "default":
            logger.warning(f"配置仅包含 [rcon] 节，忽略 profile='{profile}'。")
        return dict(data["rcon"])

    return dict(data)


def load_config_from_toml(file_path: Path, profile: str = "default") -> RconConfig:
    """从 TOML 文件加载配置。

    Args:
        file_path: TOML 文件路径。
        profile: 配置预设名。默认为 "default"。

    Returns:
        RconConfig: 配置对象。

    Raises:
        ConfigError: 文件读取失败、Profile 不存在或字段无效。
    """
    return create_config_from_dict(read_toml_config(file_path, profile))


# 字段映射表 (Config Field -> Env Suffix)
ENV_MAP = {
    "host": "HOST",
    "port": "PORT",
    "password": "PASSWORD",
    "timeout": "TIMEOUT",
    "bind_ip": "BIND_IP",
    "listen_port": "LISTEN_PORT",
}


def read_env_config() -> dict[str, Any]:
    """收集所有 `RCON_` 前缀的环境变量，返回原始配置字典 (可能为空)。"""
    raw_data = {}
    for cfg_key, env_suffix in ENV_MAP.items():
        val = os.environ.get(f"RCON_{env_suffix}")
        if val is not None:
            raw_data[cfg_key] = val
    return raw_data


def load_config_from_env() -> RconConfig:
    """从环境变量加载配置 (Docker/Cloud Friendly)。

    例如: `RCON_PASSWORD` -> `password`，`RCON_HOST` -> `host`。

    Returns:
        RconConfig: 配置对象。

    Raises:
        ConfigError: 未检测到任何相关环境变量，或字段不完整。
    """
    raw_data = read_env_config()
    if not raw_data:
        raise ConfigError("未检测到 RCON_ 前缀的环境变量")

    return create_config_from_dict(raw_data)
