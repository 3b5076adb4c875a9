"""
酒店范围校验与枚举输入转换
"""
from enum import Enum
from typing import Type, TypeVar

from hotelops.errors import Unauthorized, ValidationError

E = TypeVar("E", bound=Enum)


def ensure_same_hotel(entity_hotel_id: int, hotel_id: int, label: str) -> None:
    """实体不属于当前酒店时拒绝访问"""
    if entity_hotel_id != hotel_id:
        raise Unauthorized(f"无权访问其他酒店的{label}")


def coerce_enum(enum_cls: Type[E], value, label: str) -> E:
    """把字符串转换为枚举，超出范围抛出 ValidationError"""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"无效的{label}: {value}（可选值: {allowed}）")
