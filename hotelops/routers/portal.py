"""
客人门户路由
客人凭访问码换取的 token 访问；只能操作自己的预订与服务请求
"""
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from hotelops.database import get_db
from hotelops.errors import NotFound, WrongState
from hotelops.models.ontology import Guest, BookingStatus
from hotelops.models.schemas import (
    PortalOverview, BookingResponse, ServiceRequestCreate, ServiceRequestResponse
)
from hotelops.services.booking_service import BookingService
from hotelops.services.task_service import TaskService
from hotelops.security.auth import get_current_guest

router = APIRouter(prefix="/portal", tags=["客人门户"])


@router.get("/me", response_model=PortalOverview)
def get_overview(
    db: Session = Depends(get_db),
    guest: Guest = Depends(get_current_guest)
):
    """门户首页：在住 / 即将入住 / 今日可入住的预订与服务请求"""
    booking_service = BookingService(db)
    stay = booking_service.current_stay(guest.id)
    return {
        'guest': guest,
        'active': stay.active,
        'upcoming': stay.upcoming,
        'arrival': booking_service.arrival_for_guest(guest.id),
        'service_requests': TaskService(db).get_guest_requests(guest.id),
    }


@router.post("/check-in", response_model=BookingResponse)
def self_check_in(
    db: Session = Depends(get_db),
    guest: Guest = Depends(get_current_guest)
):
    """客人自助入住（时间窗内的 confirmed 预订）"""
    service = BookingService(db)
    booking = service.arrival_for_guest(guest.id)
    if booking is None:
        raise NotFound("当前没有可办理入住的预订")
    return service.check_in(booking.hotel_id, booking.id)


@router.post("/check-out", response_model=BookingResponse)
def self_check_out(
    db: Session = Depends(get_db),
    guest: Guest = Depends(get_current_guest)
):
    """客人自助退房"""
    service = BookingService(db)
    active = service.current_stay(guest.id).active
    if active is None:
        raise WrongState("当前没有在住的预订", expected=BookingStatus.CHECKED_IN.value)
    return service.check_out(active.hotel_id, active.id)


@router.get("/service-requests", response_model=List[ServiceRequestResponse])
def list_my_requests(
    db: Session = Depends(get_db),
    guest: Guest = Depends(get_current_guest)
):
    return TaskService(db).get_guest_requests(guest.id)


@router.post("/service-requests", response_model=ServiceRequestResponse,
             status_code=status.HTTP_201_CREATED)
def create_service_request(
    data: ServiceRequestCreate,
    db: Session = Depends(get_db),
    guest: Guest = Depends(get_current_guest)
):
    """在住期间提交服务请求（房间取当前在住预订的房间）"""
    active = BookingService(db).current_stay(guest.id).active
    if active is None:
        raise WrongState("只有在住期间可以提交服务请求", expected=BookingStatus.CHECKED_IN.value)
    return TaskService(db).create_service_request(
        guest_id=guest.id,
        booking_id=active.id,
        room_id=active.room_id,
        hotel_id=active.hotel_id,
        request_type=data.request_type,
        priority=data.priority,
        description=data.description,
    )
