# src/sourcon_core/protocols/constants.py
"""
Source RCON 协议常量表 (Constants)

仅定义协议的结构性常量（如类型码、偏移量、保留 ID）。
"""


# =========================================================================
# 包类型码 (Type Codes)
# =========================================================================
class TypeCode:
    """协议包头部的 Type 字段定义"""

    SERVERDATA_AUTH = 3  # 认证请求 (Client -> Server)
    SERVERDATA_EXECCOMMAND = 2  # 执行命令 (Client -> Server)
    SERVERDATA_AUTH_RESPONSE = 2  # 认证应答 (Server -> Client)，与 EXEC 同码
    SERVERDATA_RESPONSE_VALUE = 0  # 命令输出 (Server -> Client)


# =========================================================================
# 结构偏移量 (Offsets & Structure)
# =========================================================================
SIZE_FIELD_LEN = 4
HEADER_LEN = 12  # size + id + type
ID_OFFSET = 4
TYPE_OFFSET = 8
BODY_OFFSET = 12

# size 字段 = body 长度 + id(4) + type(4) + 两个 0x00 结束符
BASE_PACKET_SIZE = 10
TERMINATOR = b"\x00\x00"

# 单个数据包 size 字段的上限，同时也是每次 recv 的缓冲大小
MAX_PACKET_SIZE = 4096

BODY_ENCODING = "utf-8"

# =========================================================================
# 会话保留 ID (Reserved IDs)
# =========================================================================
AUTH_PACKET_ID = 1
AUTH_TRACKING_PACKET_ID = 2
AUTH_FAILED_ID = -1  # 服务器以该 ID 表示密码错误

# 1-100 保留给认证握手，命令 ID 从 101 开始
FIRST_COMMAND_ID_BASE = 100

DEFAULT_PORT = 27015
