"""
操作日志服务
只追加记录。写日志失败只记录错误，绝不影响触发它的主操作
"""
from typing import Callable, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from hotelops.config import settings
from hotelops.models.ontology import ActivityLog, User, utcnow
from hotelops.models.events import ChangeType
from hotelops.services.event_bus import event_bus, Event
from hotelops.services.realtime import build_change_event

logger = logging.getLogger(__name__)


class ActivityLogService:
    """操作日志服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish

    def append(self, hotel_id: int, action_type: str, description: str,
               actor_id: Optional[int] = None,
               related_room_id: Optional[int] = None,
               related_booking_id: Optional[int] = None) -> Optional[ActivityLog]:
        """
        追加一条操作日志

        在主操作提交之后调用，自行提交；失败时回滚本条日志并返回 None
        """
        try:
            entry = self._insert(
                hotel_id=hotel_id,
                user_id=actor_id,
                action_type=action_type,
                description=description,
                related_room_id=related_room_id,
                related_booking_id=related_booking_id,
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to append activity log '{action_type}' for hotel {hotel_id}: {e}",
                         exc_info=True)
            return None

        self._publish_event(build_change_event(
            "activity_log", entry.as_row(), hotel_id, ChangeType.INSERT, source="activity_log_service"
        ))
        return entry

    def _insert(self, **values) -> ActivityLog:
        entry = ActivityLog(timestamp=utcnow(), **values)
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def recent(self, hotel_id: int, limit: Optional[int] = None) -> List[Tuple[ActivityLog, Optional[str]]]:
        """
        获取最近的操作日志（时间倒序），附带操作人姓名

        Returns:
            [(日志, 操作人姓名或 None)]，最多 limit 条
        """
        limit = settings.ACTIVITY_FEED_LIMIT if limit is None else max(0, limit)
        rows = self.db.query(ActivityLog, User.name).outerjoin(
            User, ActivityLog.user_id == User.id
        ).filter(
            ActivityLog.hotel_id == hotel_id
        ).order_by(
            ActivityLog.timestamp.desc(), ActivityLog.id.desc()
        ).limit(limit).all()
        return [(entry, actor_name) for entry, actor_name in rows]
