"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from hotelops.models.ontology import (
    RoomStatus, RoomCategory, BookingStatus, TaskType, TaskPriority, TaskStatus,
    ServiceRequestType, ServiceRequestPriority, ServiceRequestStatus, StaffRole
)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


# ============== 认证 Schemas ==============

class LoginRequest(BaseModel):
    email: str = Field(..., max_length=120)
    password: str


class SignupRequest(BaseModel):
    hotel_name: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=120)
    password: str = Field(..., min_length=6)


class UserResponse(BaseModel):
    id: int
    hotel_id: int
    name: str
    email: str
    role: StaffRole
    is_active: bool
    hotel_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class ProfileUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class StaffCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=120)
    password: str = Field(..., min_length=6)
    role: StaffRole = StaffRole.RECEPTIONIST


class GuestLoginRequest(BaseModel):
    code: str = Field(..., max_length=20)


class GuestLoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    guest_id: int
    guest_code: str
    name: str
    expires_at: datetime


# ============== 酒店 Schemas ==============

class HotelResponse(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class HotelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=30)


# ============== 房间 Schemas ==============

class RoomBase(BaseModel):
    room_number: str = Field(..., max_length=10)
    room_type: RoomCategory = RoomCategory.STANDARD
    floor: int
    rate: Decimal = Field(default=0, ge=0)


class RoomCreate(RoomBase):
    pass


class RoomResponse(RoomBase):
    id: int
    hotel_id: int
    status: RoomStatus
    updated_at: Optional[datetime] = None
    current_guest: Optional[str] = None
    current_checkout: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class RoomStatusUpdate(BaseModel):
    status: str


# ============== 客人 Schemas ==============

class GuestCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=120)
    phone: Optional[str] = Field(None, max_length=30)
    access_code: Optional[str] = Field(None, max_length=6)


class GuestResponse(BaseModel):
    id: int
    hotel_id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class GuestListItem(GuestResponse):
    """员工端客人列表，附带在住状态"""
    stay_status: str
    booking_count: int = 0


# ============== 预订 Schemas ==============

class BookingCreate(BaseModel):
    guest_id: int
    room_id: int
    check_in: datetime
    check_out: datetime
    total_amount: Decimal = Field(default=0)
    guest_count: int = Field(default=1)

    @field_validator("check_in", "check_out")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return _to_naive_utc(v)


class BookingResponse(BaseModel):
    id: int
    hotel_id: int
    guest_id: int
    room_id: int
    check_in: datetime
    check_out: datetime
    status: BookingStatus
    total_amount: Decimal
    guest_count: int
    room_number: Optional[str] = None
    guest_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def attach_names(cls, data):
        # ORM 对象：带出房间号与客人姓名
        if hasattr(data, "room") and hasattr(data, "guest"):
            return {
                **{c.key: getattr(data, c.key) for c in data.__table__.columns},
                "room_number": data.room.room_number if data.room else None,
                "guest_name": data.guest.name if data.guest else None,
            }
        return data


class CurrentStayResponse(BaseModel):
    active: Optional[BookingResponse] = None
    upcoming: Optional[BookingResponse] = None


# ============== 任务 Schemas ==============

class TaskCreate(BaseModel):
    room_id: int
    task_type: TaskType
    priority: TaskPriority = TaskPriority.NORMAL
    description: Optional[str] = None


class TaskResponse(BaseModel):
    id: int
    hotel_id: int
    room_id: int
    task_type: TaskType
    priority: TaskPriority
    status: TaskStatus
    description: Optional[str] = None
    service_request_id: Optional[int] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# ============== 服务请求 Schemas ==============

class ServiceRequestCreate(BaseModel):
    # 类型与优先级以字符串接收，由服务层校验并返回统一的 ValidationError
    request_type: str
    priority: str = ServiceRequestPriority.NORMAL.value
    description: Optional[str] = Field(None, max_length=1000)


class ServiceRequestResponse(BaseModel):
    id: int
    guest_id: int
    booking_id: int
    room_id: int
    request_type: ServiceRequestType
    priority: ServiceRequestPriority
    status: ServiceRequestStatus
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# ============== 操作日志 Schemas ==============

class ActivityLogResponse(BaseModel):
    id: int
    hotel_id: int
    user_id: Optional[int] = None
    actor_name: Optional[str] = None
    action_type: str
    description: str
    related_room_id: Optional[int] = None
    related_booking_id: Optional[int] = None
    timestamp: datetime
    model_config = ConfigDict(from_attributes=True)


# ============== 客人门户 Schemas ==============

class PortalOverview(BaseModel):
    guest: GuestResponse
    active: Optional[BookingResponse] = None
    upcoming: Optional[BookingResponse] = None
    arrival: Optional[BookingResponse] = None
    service_requests: List[ServiceRequestResponse] = []
