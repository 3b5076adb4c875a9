"""
预订路由
创建、入住、退房、取消
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from hotelops.database import get_db
from hotelops.models.ontology import User
from hotelops.models.schemas import BookingCreate, BookingResponse
from hotelops.services.booking_service import BookingService
from hotelops.security.auth import get_current_user, require_front_desk

router = APIRouter(prefix="/bookings", tags=["预订管理"])


@router.get("", response_model=List[BookingResponse])
def list_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """预订列表"""
    return BookingService(db).list_bookings(current_user.hotel_id, status_filter)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_front_desk)
):
    """创建预订"""
    return BookingService(db).create_booking(current_user.hotel_id, data, actor_id=current_user.id)


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取预订详情"""
    return BookingService(db).get_booking(current_user.hotel_id, booking_id)


@router.post("/{booking_id}/check-in", response_model=BookingResponse)
def check_in(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_front_desk)
):
    """办理入住"""
    return BookingService(db).check_in(current_user.hotel_id, booking_id, actor_id=current_user.id)


@router.post("/{booking_id}/check-out", response_model=BookingResponse)
def check_out(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_front_desk)
):
    """办理退房（房间进入待清洁）"""
    return BookingService(db).check_out(current_user.hotel_id, booking_id, actor_id=current_user.id)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_front_desk)
):
    """取消预订"""
    return BookingService(db).cancel_booking(current_user.hotel_id, booking_id, actor_id=current_user.id)
