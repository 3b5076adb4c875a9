"""
业务实体定义
所有实体按 hotel_id 分区：每个查询、每次修改都必须携带并校验酒店 ID
"""
from datetime import datetime, date, UTC
from decimal import Decimal
from enum import Enum
from typing import Any, Dict
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Enum as SQLEnum,
    Boolean, Numeric, CheckConstraint, UniqueConstraint, Index, text
)
from sqlalchemy.orm import relationship
from hotelops.database import Base


def utcnow() -> datetime:
    """当前 UTC 时间（naive，与数据库存储格式一致）"""
    return datetime.now(UTC).replace(tzinfo=None)


# ============== 枚举定义 ==============

class RoomStatus(str, Enum):
    """房间状态枚举"""
    AVAILABLE = "available"        # 空闲可售
    OCCUPIED = "occupied"          # 入住中
    CLEANING = "cleaning"          # 待清洁
    MAINTENANCE = "maintenance"    # 维修中


class RoomCategory(str, Enum):
    """房型类别"""
    STANDARD = "standard"
    DELUXE = "deluxe"
    SUITE = "suite"


class BookingStatus(str, Enum):
    """预订状态枚举"""
    CONFIRMED = "confirmed"        # 已确认
    CHECKED_IN = "checked_in"      # 已入住
    CHECKED_OUT = "checked_out"    # 已退房（终态）
    CANCELLED = "cancelled"        # 已取消（终态）


class TaskType(str, Enum):
    """任务类型"""
    CLEANING = "cleaning"          # 清洁
    MAINTENANCE = "maintenance"    # 维修


class TaskPriority(str, Enum):
    """任务优先级"""
    NORMAL = "normal"
    HIGH = "high"


class TaskStatus(str, Enum):
    """任务状态"""
    PENDING = "pending"            # 待处理
    COMPLETED = "completed"        # 已完成


class ServiceRequestType(str, Enum):
    """客人服务请求类型"""
    HOUSEKEEPING = "housekeeping"  # 客房清洁
    AMENITIES = "amenities"        # 用品（毛巾、饮用水）
    ROOM_SERVICE = "room_service"  # 送餐服务
    MAINTENANCE = "maintenance"    # 维修
    OTHER = "other"                # 其他


class ServiceRequestPriority(str, Enum):
    """服务请求优先级"""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class ServiceRequestStatus(str, Enum):
    """服务请求状态"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class StaffRole(str, Enum):
    """员工角色"""
    MANAGER = "manager"            # 经理
    RECEPTIONIST = "receptionist"  # 前台
    CLEANER = "cleaner"            # 清洁员


class RowMixin:
    """行序列化：实时推送给订阅者的行结构"""

    def as_row(self) -> Dict[str, Any]:
        row = {}
        for column in self.__table__.columns:
            if column.name == "password_hash":
                continue
            value = getattr(self, column.key)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, (datetime, date)):
                value = value.isoformat()
            elif isinstance(value, Decimal):
                value = float(value)
            row[column.name] = value
        return row


# ============== 实体定义 ==============

class Hotel(RowMixin, Base):
    """
    酒店对象
    所有数据的分区键
    """
    __tablename__ = "hotels"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    address = Column(Text)
    phone = Column(String(30))
    created_at = Column(DateTime, default=utcnow)

    rooms = relationship("Room", back_populates="hotel")
    users = relationship("User", back_populates="hotel")


class User(RowMixin, Base):
    """
    员工账号
    登录后身份服务给出 user id 以及所属酒店、角色
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(120), unique=True, nullable=False)
    password_hash = Column(String(200), nullable=False)
    role = Column(SQLEnum(StaffRole), default=StaffRole.RECEPTIONIST, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    hotel = relationship("Hotel", back_populates="users")


class Room(RowMixin, Base):
    """
    房间对象
    房态只能通过 RoomService 的状态转换修改；version_id 为乐观锁版本号
    """
    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("hotel_id", "room_number", name="uq_rooms_hotel_room_number"),
        CheckConstraint("rate >= 0", name="ck_rooms_rate_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    room_number = Column(String(10), nullable=False)
    room_type = Column(SQLEnum(RoomCategory), default=RoomCategory.STANDARD, nullable=False)
    floor = Column(Integer, nullable=False)
    rate = Column(Numeric(10, 2), default=0, nullable=False)  # 每晚房价
    status = Column(SQLEnum(RoomStatus), default=RoomStatus.AVAILABLE, nullable=False)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    hotel = relationship("Hotel", back_populates="rooms")
    bookings = relationship("Booking", back_populates="room")
    tasks = relationship("Task", back_populates="room")


class Guest(RowMixin, Base):
    """
    客人对象
    access_code 为客人门户使用的 6 位数字码（由外部发放）
    """
    __tablename__ = "guests"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(120))
    phone = Column(String(30))
    access_code = Column(String(6), unique=True, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    bookings = relationship("Booking", back_populates="guest")


class Booking(RowMixin, Base):
    """
    预订对象
    状态流转：confirmed → checked_in → checked_out；confirmed → cancelled
    同一房间同一时刻至多一个 checked_in 预订（部分唯一索引保证）
    """
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("check_out > check_in", name="ck_bookings_date_range"),
        CheckConstraint("total_amount >= 0", name="ck_bookings_amount_non_negative"),
        Index(
            "uq_bookings_room_checked_in", "room_id", unique=True,
            sqlite_where=text(f"status = '{BookingStatus.CHECKED_IN.name}'"),
            postgresql_where=text(f"status = '{BookingStatus.CHECKED_IN.name}'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    check_in = Column(DateTime, nullable=False)
    check_out = Column(DateTime, nullable=False)
    status = Column(SQLEnum(BookingStatus), default=BookingStatus.CONFIRMED, nullable=False)
    total_amount = Column(Numeric(10, 2), default=0, nullable=False)
    guest_count = Column(Integer, default=1, nullable=False)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    guest = relationship("Guest", back_populates="bookings")
    room = relationship("Room", back_populates="bookings")


class Task(RowMixin, Base):
    """
    任务对象
    清洁/维修工单；service_request_id 为空表示由房态变更产生
    """
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    task_type = Column(SQLEnum(TaskType), nullable=False)
    priority = Column(SQLEnum(TaskPriority), default=TaskPriority.NORMAL, nullable=False)
    status = Column(SQLEnum(TaskStatus), default=TaskStatus.PENDING, nullable=False)
    description = Column(Text)
    service_request_id = Column(Integer, ForeignKey("service_requests.id"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    completed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime)

    room = relationship("Room", back_populates="tasks")
    service_request = relationship("ServiceRequest", back_populates="tasks")

    @property
    def from_room_status(self) -> bool:
        """是否由房态变更（而非客人请求）产生"""
        return self.service_request_id is None


class ServiceRequest(RowMixin, Base):
    """
    客人服务请求
    存储上不直接关联酒店，酒店范围通过房间的 hotel_id 关联得到
    """
    __tablename__ = "service_requests"

    id = Column(Integer, primary_key=True, index=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    request_type = Column(SQLEnum(ServiceRequestType), nullable=False)
    priority = Column(SQLEnum(ServiceRequestPriority), default=ServiceRequestPriority.NORMAL, nullable=False)
    status = Column(SQLEnum(ServiceRequestStatus), default=ServiceRequestStatus.PENDING, nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    guest = relationship("Guest")
    booking = relationship("Booking")
    room = relationship("Room")
    tasks = relationship("Task", back_populates="service_request")


class ActivityLog(RowMixin, Base):
    """
    操作日志
    只追加，不修改、不删除
    """
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action_type = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    related_room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    related_booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    timestamp = Column(DateTime, default=utcnow, index=True)

    user = relationship("User")
