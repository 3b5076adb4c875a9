"""
Pytest 配置和共享 fixtures
"""
import os

# 应用启动时的 init_db 不在工作目录留下数据库文件
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from datetime import timedelta
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from hotelops.database import Base, get_db
from hotelops.models import ontology  # noqa
from hotelops.models.ontology import (
    Hotel, User, StaffRole, Room, RoomStatus, RoomCategory, Guest, Booking, BookingStatus, utcnow
)
from hotelops.security.auth import get_password_hash, create_access_token, create_guest_token
from hotelops.services.event_bus import event_bus
from hotelops.main import app


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clean_event_bus():
    """每个测试前后清空事件总线"""
    event_bus.clear_subscribers()
    event_bus.clear_history()
    yield
    event_bus.clear_subscribers()
    event_bus.clear_history()


@pytest.fixture
def published():
    """收集服务层发布的事件（替代全局事件总线）"""
    return []


# ============== 酒店与账号 ==============

@pytest.fixture
def hotel(db_session):
    """测试酒店"""
    hotel = Hotel(name="Seaside Inn", address="1 Beach Road", phone="555-0100")
    db_session.add(hotel)
    db_session.commit()
    db_session.refresh(hotel)
    return hotel


@pytest.fixture
def other_hotel(db_session):
    """另一家酒店（用于跨酒店访问测试）"""
    hotel = Hotel(name="Mountain Lodge")
    db_session.add(hotel)
    db_session.commit()
    db_session.refresh(hotel)
    return hotel


def _make_user(db_session, hotel, email, name, role):
    user = User(
        hotel_id=hotel.id,
        email=email,
        name=name,
        password_hash=get_password_hash("123456"),
        role=role,
        is_active=True
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def manager(db_session, hotel):
    return _make_user(db_session, hotel, "manager@seaside.test", "Maria Manager", StaffRole.MANAGER)


@pytest.fixture
def receptionist(db_session, hotel):
    return _make_user(db_session, hotel, "front@seaside.test", "Rita Reception", StaffRole.RECEPTIONIST)


@pytest.fixture
def cleaner(db_session, hotel):
    return _make_user(db_session, hotel, "clean@seaside.test", "Carl Cleaner", StaffRole.CLEANER)


@pytest.fixture
def other_manager(db_session, other_hotel):
    return _make_user(db_session, other_hotel, "manager@lodge.test", "Otto Other", StaffRole.MANAGER)


def _headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role, user.hotel_id)}"}


@pytest.fixture
def manager_auth_headers(manager):
    """返回经理认证的请求头"""
    return _headers(manager)


@pytest.fixture
def receptionist_auth_headers(receptionist):
    """返回前台认证的请求头"""
    return _headers(receptionist)


@pytest.fixture
def cleaner_auth_headers(cleaner):
    """返回清洁员认证的请求头"""
    return _headers(cleaner)


@pytest.fixture
def other_auth_headers(other_manager):
    return _headers(other_manager)


# ============== 房间 ==============

def _make_room(db_session, hotel, number, floor, room_type, rate, status=RoomStatus.AVAILABLE):
    room = Room(
        hotel_id=hotel.id,
        room_number=number,
        floor=floor,
        room_type=room_type,
        rate=Decimal(rate),
        status=status
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def room_101(db_session, hotel):
    return _make_room(db_session, hotel, "101", 1, RoomCategory.STANDARD, "100.00")


@pytest.fixture
def room_102(db_session, hotel):
    return _make_room(db_session, hotel, "102", 1, RoomCategory.DELUXE, "180.00")


@pytest.fixture
def room_201(db_session, hotel):
    return _make_room(db_session, hotel, "201", 2, RoomCategory.SUITE, "300.00")


@pytest.fixture
def other_room(db_session, other_hotel):
    return _make_room(db_session, other_hotel, "101", 1, RoomCategory.STANDARD, "90.00")


# ============== 客人与预订 ==============

@pytest.fixture
def guest(db_session, hotel):
    guest = Guest(
        hotel_id=hotel.id,
        name="Alice Guest",
        email="alice@example.com",
        phone="555-0142",
        access_code="000042"
    )
    db_session.add(guest)
    db_session.commit()
    db_session.refresh(guest)
    return guest


@pytest.fixture
def second_guest(db_session, hotel):
    guest = Guest(hotel_id=hotel.id, name="Bob Traveller", email="bob@example.com", access_code="123456")
    db_session.add(guest)
    db_session.commit()
    db_session.refresh(guest)
    return guest


def make_booking(db_session, guest, room, start_offset_days, nights,
                 status=BookingStatus.CONFIRMED, total_amount="200.00"):
    """以当前时间为基准创建预订"""
    check_in = utcnow() + timedelta(days=start_offset_days)
    booking = Booking(
        hotel_id=room.hotel_id,
        guest_id=guest.id,
        room_id=room.id,
        check_in=check_in,
        check_out=check_in + timedelta(days=nights),
        status=status,
        total_amount=Decimal(total_amount),
        guest_count=1
    )
    db_session.add(booking)
    db_session.commit()
    db_session.refresh(booking)
    return booking


@pytest.fixture
def arrival_booking(db_session, guest, room_101):
    """今天可入住的 confirmed 预订（时间窗包含当前时间）"""
    return make_booking(db_session, guest, room_101, start_offset_days=-0.5, nights=2)


@pytest.fixture
def checked_in_booking(db_session, guest, room_101):
    """在住预订（房间为 occupied）"""
    booking = make_booking(db_session, guest, room_101, start_offset_days=-1, nights=3,
                           status=BookingStatus.CHECKED_IN)
    room_101.status = RoomStatus.OCCUPIED
    db_session.commit()
    db_session.refresh(room_101)
    return booking


@pytest.fixture
def guest_headers(guest):
    token, _ = create_guest_token(guest.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def booking_factory(db_session):
    """按需创建预订：booking_factory(guest, room, start_offset_days, nights, status=...)"""
    def factory(guest, room, start_offset_days, nights, **kwargs):
        return make_booking(db_session, guest, room, start_offset_days, nights, **kwargs)
    return factory
