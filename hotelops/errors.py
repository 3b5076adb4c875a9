"""
错误分类
服务层抛出这些异常，路由层统一映射为 HTTP 响应。
全部继承 ValueError，保持 `except ValueError` 的既有调用方式可用。
"""
from typing import Optional


class HotelOpsError(ValueError):
    """业务错误基类"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(HotelOpsError):
    """实体 ID 无法解析"""

    status_code = 404


class WrongState(HotelOpsError):
    """当前状态不允许该操作，expected 为期望的状态"""

    status_code = 409

    def __init__(self, message: str, expected: Optional[str] = None):
        super().__init__(message)
        self.expected = expected


class InvalidTransition(WrongState):
    """房态转换不被允许"""


class RoomUnavailable(WrongState):
    """房间当前无法入住"""


class ConcurrentUpdate(WrongState):
    """记录已被并发操作修改（版本号不一致）"""


class ValidationError(HotelOpsError):
    """输入格式错误或超出枚举范围"""

    status_code = 400


class Unauthorized(HotelOpsError):
    """操作人所属酒店与目标实体不一致"""

    status_code = 403


class TransientStoreFailure(HotelOpsError):
    """存储 I/O 失败或超时，调用方应退避重试"""

    status_code = 503
