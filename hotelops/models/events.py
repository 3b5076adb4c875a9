"""
实时变更事件定义
服务层提交事务后发布行级变更，供看板订阅
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any

from hotelops.models.ontology import utcnow


class EventType(str, Enum):
    """事件类型枚举（每张可订阅的表一个频道）"""
    ROOMS_CHANGED = "rooms.changed"
    BOOKINGS_CHANGED = "bookings.changed"
    TASKS_CHANGED = "tasks.changed"
    SERVICE_REQUESTS_CHANGED = "service_requests.changed"
    ACTIVITY_LOG_CHANGED = "activity_log.changed"

    @classmethod
    def for_table(cls, table: str) -> "EventType":
        """根据表名获取频道"""
        return cls(f"{table}.changed")


class ChangeType(str, Enum):
    """行变更类型"""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


SUBSCRIBABLE_TABLES = ("rooms", "bookings", "tasks", "service_requests", "activity_log")


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result = asdict(self)
        # 处理 datetime 序列化
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
        return result


@dataclass
class RowChangedData(BaseEventData):
    """行变更事件数据"""
    table: str = ""
    change_type: str = ChangeType.UPDATE.value
    hotel_id: Optional[int] = None
    row: Dict[str, Any] = field(default_factory=dict)
