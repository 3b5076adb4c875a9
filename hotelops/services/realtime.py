"""
实时变更订阅
按表 + 酒店 ID 订阅行级 INSERT/UPDATE/DELETE，看板据此刷新而无需轮询。
本模块不维护自己的分发机制，只是事件总线之上的一层过滤。
"""
from typing import Any, Callable, Dict, Optional
import logging

from hotelops.errors import ValidationError
from hotelops.models.events import EventType, ChangeType, RowChangedData, SUBSCRIBABLE_TABLES
from hotelops.models.ontology import utcnow
from hotelops.services.event_bus import Event, EventBus, event_bus

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Dict[str, Any]], None]


def build_change_event(table: str, row: Dict[str, Any], hotel_id: Optional[int],
                       change_type: ChangeType = ChangeType.UPDATE,
                       source: str = "") -> Event:
    """构造行变更事件"""
    return Event(
        event_type=EventType.for_table(table).value,
        timestamp=utcnow(),
        data=RowChangedData(
            table=table,
            change_type=change_type.value,
            hotel_id=hotel_id,
            row=row,
        ).to_dict(),
        source=source,
    )


class Subscription:
    """订阅句柄"""

    def __init__(self, bus: EventBus, event_type: str, handler: Callable[[Event], None]):
        self._bus = bus
        self._event_type = event_type
        self._handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._bus.unsubscribe(self._event_type, self._handler)
            self.active = False


class ChangeFeed:
    """按酒店过滤的变更订阅接口"""

    def __init__(self, bus: EventBus = None):
        self._bus = bus or event_bus

    def subscribe(self, table: str, hotel_id: int, callback: ChangeCallback) -> Subscription:
        """
        订阅某张表在指定酒店范围内的变更

        Args:
            table: rooms / bookings / tasks / service_requests / activity_log
            hotel_id: 只接收该酒店的变更
            callback: 接收 {"table", "change_type", "hotel_id", "row", "timestamp"}
        """
        if table not in SUBSCRIBABLE_TABLES:
            raise ValidationError(f"不支持订阅的表: {table}")

        event_type = EventType.for_table(table).value

        def deliver_change(event: Event) -> None:
            if event.data.get("hotel_id") != hotel_id:
                return
            callback(event.data)

        deliver_change.__name__ = f"deliver_{table}_hotel_{hotel_id}"
        self._bus.subscribe(event_type, deliver_change)
        logger.info(f"Realtime subscription opened: {table} (hotel {hotel_id})")
        return Subscription(self._bus, event_type, deliver_change)


# 全局实例
change_feed = ChangeFeed()
