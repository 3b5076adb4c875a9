"""
酒店设置路由
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hotelops.database import get_db
from hotelops.models.ontology import User
from hotelops.models.schemas import HotelResponse, HotelUpdate, UserResponse, StaffCreate
from hotelops.services.hotel_service import HotelService
from hotelops.security.auth import get_current_user, require_manager

router = APIRouter(prefix="/hotels", tags=["酒店设置"])


@router.get("/me", response_model=HotelResponse)
def get_my_hotel(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """当前用户所属酒店"""
    return HotelService(db).get_hotel(current_user.hotel_id)


@router.put("/me", response_model=HotelResponse)
def update_my_hotel(
    data: HotelUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """更新酒店信息（仅经理）"""
    return HotelService(db).update_hotel(current_user.hotel_id, data)


@router.get("/me/staff", response_model=List[UserResponse])
def list_staff(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """本酒店员工列表"""
    return HotelService(db).list_users(current_user.hotel_id)


@router.post("/me/staff", response_model=UserResponse, status_code=201)
def create_staff(
    data: StaffCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """添加员工账号"""
    return HotelService(db).create_user(
        current_user.hotel_id, data.name, data.email, data.password, data.role
    )
