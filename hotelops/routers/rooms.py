"""
房间管理路由
房态登记：列表、统计、手动改房态
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from hotelops.database import get_db
from hotelops.models.ontology import User
from hotelops.models.schemas import RoomCreate, RoomResponse, RoomStatusUpdate
from hotelops.services.room_service import RoomService
from hotelops.security.auth import get_current_user, require_manager, require_staff

router = APIRouter(prefix="/rooms", tags=["房间管理"])


@router.get("", response_model=List[RoomResponse])
def list_rooms(
    status_filter: Optional[str] = Query(None, alias="status"),
    floor: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """房间列表（按房间号排序，附带当前住客）"""
    return RoomService(db).list_rooms_with_guests(current_user.hotel_id, status_filter, floor)


@router.get("/status-counts")
def get_status_counts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """按房态统计"""
    return RoomService(db).status_counts(current_user.hotel_id)


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取房间详情"""
    return RoomService(db).get_room_with_guest(current_user.hotel_id, room_id)


@router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
def create_room(
    data: RoomCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """创建房间（仅经理）"""
    return RoomService(db).create_room(current_user.hotel_id, data)


@router.patch("/{room_id}/status", response_model=RoomResponse)
def update_room_status(
    room_id: int,
    data: RoomStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """手动更新房态"""
    service = RoomService(db)
    service.set_status(current_user.hotel_id, room_id, data.status, actor_id=current_user.id)
    return service.get_room_with_guest(current_user.hotel_id, room_id)
