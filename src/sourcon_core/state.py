# File: src/sourcon_core/state.py
"""
Source RCON 核心库 - 状态模块

负责定义和存储单个会话的易变状态。
本模块不包含业务逻辑，仅作为数据容器供 RconClient 读写。
"""

from dataclasses import dataclass
from enum import Enum, auto

from .protocols.constants import FIRST_COMMAND_ID_BASE


class SessionStatus(Enum):
    """会话的生命周期状态枚举。

    状态流转示意:
    DISCONNECTED -> AUTHENTICATING -> READY <-> BUSY
                          |             |        |
                          v             v        v
                     DISCONNECTED     CLOSED   BROKEN
    """

    DISCONNECTED = auto()
    """初始状态，尚未建立连接。握手失败也回到此状态。"""

    AUTHENTICATING = auto()
    """TCP 已连接，正在执行认证握手。"""

    READY = auto()
    """认证完成，可以发送命令。"""

    BUSY = auto()
    """正在等待某条命令的响应。"""

    BROKEN = auto()
    """命令执行中发生 I/O 或协议错误，ID 对应关系已不可信。终止态。"""

    CLOSED = auto()
    """调用方主动关闭了会话。终止态。"""


@dataclass
class SessionState:
    """存储单个 RCON 会话的易变状态数据。

    该对象是非持久化的，每次重新连接都会创建新的实例。

    Attributes:
        next_packet_id: 最近一次分配的包 ID。分配时先自增再使用，
            因此第一个命令包的 ID 为 101。
        status: 当前会话状态。
        last_error: 最近一次发生的错误信息描述。
    """

    next_packet_id: int = FIRST_COMMAND_ID_BASE
    status: SessionStatus = SessionStatus.DISCONNECTED
    last_error: str = ""

    def allocate_id(self) -> int:
        """分配下一个包 ID。"""
        self.next_packet_id += 1
        return self.next_packet_id

    @property
    def is_usable(self) -> bool:
        """会话是否可以发送新命令。"""
        return self.status is SessionStatus.READY
