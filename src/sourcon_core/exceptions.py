# File: src/sourcon_core/exceptions.py
"""
Source RCON 核心库 - 异常体系 (Exceptions)

定义库内统一使用的异常类，以便上层应用（如 CLI/Bot）能进行精细的错误处理。
"""


class RconError(Exception):
    """sourcon-core 所有内部异常的基类。

    上层应用可以通过捕获此异常来处理所有由 sourcon-core 抛出的已知错误。
    """

    pass


class ConfigError(RconError):
    """配置加载或校验失败。

    触发场景:
    1. 缺少必要字段 (如 host/password)。
    2. 字段格式错误 (如端口不是整数、超时为负数)。
    3. 找不到配置文件或环境变量。
    """

    pass


class NetworkError(RconError):
    """网络层面的错误 (I/O 级别)。

    注意: 库内部不会自动重连，是否重试由上层决定。
    """

    pass


class UnreachableHostError(NetworkError):
    """无法建立到服务器的 TCP 连接 (DNS 失败、拒绝连接等)。"""

    pass


class SendError(NetworkError):
    """写入 Socket 时发生错误 (瞬时的 would-block 不算在内)。"""

    pass


class ReceiveError(NetworkError):
    """读取 Socket 时发生错误，或对端关闭了连接。"""

    pass


class RconTimeoutError(NetworkError):
    """connect 或 command 超出了配置的总时限。

    超时后会话的 ID 对应关系已不可信，必须重新连接。
    """

    pass


class ProtocolError(RconError):
    """协议解析错误 (逻辑级别)。"""

    pass


class MalformedPacketHeaderError(ProtocolError):
    """包头损坏：字节不足以解析 size/id/type，或 size 字段与数据不符。"""

    pass


class MalformedPacketBodyError(ProtocolError):
    """包体不是合法的 ASCII/UTF-8 文本。"""

    pass


class UnknownPacketTypeError(ProtocolError):
    """收到未知的包类型代码。"""

    def __init__(self, type_code: int) -> None:
        super().__init__(f"未知的 RCON 包类型: {type_code}")
        self.type_code = type_code


class AuthError(RconError):
    """认证被拒绝。

    服务器以 id = -1 的响应包明确表示密码错误。
    这通常意味着不可恢复的配置错误，需要用户干预。
    """

    def __init__(self, message: str = "RCON 密码错误，服务器拒绝认证") -> None:
        super().__init__(message)


class StateError(RconError):
    """状态机错误 (FSM Violation)。

    触发场景:
    1. 在会话已关闭或已损坏 (BROKEN) 后继续发送命令。
    2. 上一条命令尚未完成时并发调用 command。
    """

    pass
