"""
认证路由
员工注册 / 登录，客人访问码登录
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from hotelops.database import get_db
from hotelops.models.ontology import User
from hotelops.models.schemas import (
    LoginRequest, LoginResponse, SignupRequest, UserResponse, ProfileUpdate,
    GuestLoginRequest, GuestLoginResponse
)
from hotelops.services.guest_service import GuestService
from hotelops.services.hotel_service import HotelService
from hotelops.security.auth import get_current_user, create_guest_token

router = APIRouter(prefix="/auth", tags=["认证"])


@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """员工登录"""
    result = HotelService(db).authenticate(data.email, data.password)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="邮箱或密码错误"
        )
    return result


@router.post("/signup", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
def signup(data: SignupRequest, db: Session = Depends(get_db)):
    """注册酒店及经理账号"""
    return HotelService(db).signup(data)


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """获取当前用户信息"""
    return HotelService(db).user_profile(current_user)


@router.put("/me", response_model=UserResponse)
def update_current_user(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """修改个人资料"""
    service = HotelService(db)
    user = service.update_profile(current_user, data.name)
    return service.user_profile(user)


@router.post("/guest-login", response_model=GuestLoginResponse)
def guest_login(data: GuestLoginRequest, db: Session = Depends(get_db)):
    """客人凭访问码登录门户"""
    guest = GuestService(db).find_guest_by_code(data.code)
    token, expires_at = create_guest_token(guest.id)
    return GuestLoginResponse(
        access_token=token,
        guest_id=guest.id,
        guest_code=guest.access_code,
        name=guest.name,
        expires_at=expires_at,
    )
