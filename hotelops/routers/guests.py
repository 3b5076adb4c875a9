"""
客人管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from hotelops.database import get_db
from hotelops.models.ontology import User
from hotelops.models.schemas import (
    GuestCreate, GuestResponse, GuestListItem, BookingResponse, CurrentStayResponse
)
from hotelops.services.booking_service import BookingService
from hotelops.services.guest_service import GuestService
from hotelops.security.auth import get_current_user, require_front_desk

router = APIRouter(prefix="/guests", tags=["客人管理"])


@router.get("", response_model=List[GuestListItem])
def list_guests(
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """客人列表（支持姓名/邮箱/电话搜索）"""
    return GuestService(db).list_guests(current_user.hotel_id, search)


@router.post("", response_model=GuestResponse, status_code=status.HTTP_201_CREATED)
def create_guest(
    data: GuestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_front_desk)
):
    """创建客人"""
    return GuestService(db).create_guest(current_user.hotel_id, data)


@router.get("/{guest_id}", response_model=GuestResponse)
def get_guest(
    guest_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return GuestService(db).get_guest(current_user.hotel_id, guest_id)


@router.get("/{guest_id}/bookings", response_model=List[BookingResponse])
def get_guest_bookings(
    guest_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """客人的全部预订"""
    guest = GuestService(db).get_guest(current_user.hotel_id, guest_id)
    return BookingService(db).get_guest_bookings(guest.id)


@router.get("/{guest_id}/current-stay", response_model=CurrentStayResponse)
def get_current_stay(
    guest_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """客人当前在住 / 即将入住的预订"""
    guest = GuestService(db).get_guest(current_user.hotel_id, guest_id)
    stay = BookingService(db).current_stay(guest.id)
    return {'active': stay.active, 'upcoming': stay.upcoming}
