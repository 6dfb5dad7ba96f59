# src/sourcon_core/__init__.py
"""
sourcon-core v0.1.0
纯 Python 异步实现的 Source RCON 协议核心库。
"""

# 暴露客户端会话
from .client import ClientBuilder, RconClient, Response, connect

# 暴露核心配置
from .config import (
    RconConfig,
    create_config_from_dict,
    load_config_from_env,
    load_config_from_toml,
)

# 暴露异常体系 (方便上层 try-except)
from .exceptions import (
    AuthError,
    ConfigError,
    MalformedPacketBodyError,
    MalformedPacketHeaderError,
    NetworkError,
    ProtocolError,
    RconError,
    RconTimeoutError,
    ReceiveError,
    SendError,
    StateError,
    UnknownPacketTypeError,
    UnreachableHostError,
)
from .protocols import Packet, PacketType, decode_packet, encode_packet
from .server import RconListener, start_listener
from .state import SessionState, SessionStatus

__version__ = "0.1.0"

__all__ = [
    "RconClient",
    "ClientBuilder",
    "Response",
    "connect",
    "RconListener",
    "start_listener",
    "Packet",
    "PacketType",
    "encode_packet",
    "decode_packet",
    "RconConfig",
    "SessionState",
    "SessionStatus",
    "create_config_from_dict",
    "load_config_from_env",
    "load_config_from_toml",
    "RconError",
    "ConfigError",
    "NetworkError",
    "UnreachableHostError",
    "SendError",
    "ReceiveError",
    "RconTimeoutError",
    "ProtocolError",
    "MalformedPacketHeaderError",
    "MalformedPacketBodyError",
    "UnknownPacketTypeError",
    "AuthError",
    "StateError",
]
