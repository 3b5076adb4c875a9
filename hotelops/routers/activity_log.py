"""
操作日志路由
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from hotelops.config import settings
from hotelops.database import get_db
from hotelops.models.ontology import User
from hotelops.models.schemas import ActivityLogResponse
from hotelops.services.activity_log_service import ActivityLogService
from hotelops.security.auth import get_current_user

router = APIRouter(prefix="/activity-log", tags=["操作日志"])


@router.get("", response_model=List[ActivityLogResponse])
def list_recent_activity(
    limit: int = Query(settings.ACTIVITY_FEED_LIMIT, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """最近操作（时间倒序）"""
    entries = ActivityLogService(db).recent(current_user.hotel_id, limit)
    return [
        ActivityLogResponse(
            id=entry.id,
            hotel_id=entry.hotel_id,
            user_id=entry.user_id,
            actor_name=actor_name,
            action_type=entry.action_type,
            description=entry.description,
            related_room_id=entry.related_room_id,
            related_booking_id=entry.related_booking_id,
            timestamp=entry.timestamp,
        )
        for entry, actor_name in entries
    ]
