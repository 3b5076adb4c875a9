"""
并发修改测试
两个会话共享同一个文件数据库，模拟两个前台同时操作
"""
import pytest
from datetime import timedelta
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

from hotelops.database import Base
from hotelops.errors import ConcurrentUpdate, RoomUnavailable, TransientStoreFailure, WrongState
from hotelops.models.ontology import (
    ActivityLog, Hotel, Room, RoomStatus, Guest, Booking, BookingStatus, Task, utcnow
)
from hotelops.services.booking_service import BookingService
from hotelops.services.room_service import RoomService


def _noop(event):
    pass


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 1}
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def seeded(session_factory):
    """一家酒店、一个房间、两位客人各一个今日可入住的预订"""
    db = session_factory()
    hotel = Hotel(name="Race Hotel")
    db.add(hotel)
    db.flush()
    room = Room(hotel_id=hotel.id, room_number="101", floor=1, rate=Decimal("100"))
    db.add(room)
    db.flush()

    bookings = []
    for name in ("First", "Second"):
        guest = Guest(hotel_id=hotel.id, name=name)
        db.add(guest)
        db.flush()
        start = utcnow() - timedelta(hours=2)
        booking = Booking(hotel_id=hotel.id, guest_id=guest.id, room_id=room.id,
                          check_in=start, check_out=start + timedelta(days=1))
        db.add(booking)
        bookings.append(booking)
    db.commit()

    ids = {"hotel": hotel.id, "room": room.id, "bookings": [b.id for b in bookings]}
    db.close()
    return ids


class TestConcurrentCheckIn:

    def test_second_check_in_sees_occupied_room(self, session_factory, seeded):
        first, second = session_factory(), session_factory()
        try:
            BookingService(first, _noop).check_in(seeded["hotel"], seeded["bookings"][0])

            with pytest.raises(RoomUnavailable):
                BookingService(second, _noop).check_in(seeded["hotel"], seeded["bookings"][1])
        finally:
            first.close()
            second.close()

    def test_second_check_in_loses_at_commit(self, session_factory, seeded, monkeypatch):
        first, second = session_factory(), session_factory()
        try:
            # 第二个会话先读到房间（available, version 1）并一直持有
            held_room = second.get(Room, seeded["room"])
            assert held_room.status == RoomStatus.AVAILABLE

            BookingService(first, _noop).check_in(seeded["hotel"], seeded["bookings"][0])

            loser = BookingService(second, _noop)
            # 读取在住预订发生在对方提交之前
            monkeypatch.setattr(loser.room_service, "checked_in_booking", lambda room_id: None)
            with pytest.raises(RoomUnavailable):
                loser.check_in(seeded["hotel"], seeded["bookings"][1])
        finally:
            first.close()
            second.close()

        check = session_factory()
        statuses = [check.get(Booking, bid).status for bid in seeded["bookings"]]
        assert statuses == [BookingStatus.CHECKED_IN, BookingStatus.CONFIRMED]
        room = check.get(Room, seeded["room"])
        assert room.status == RoomStatus.OCCUPIED
        assert room.version_id == 2
        check.close()

    def test_same_booking_checked_in_twice(self, session_factory, seeded):
        booking_id = seeded["bookings"][0]
        first, second = session_factory(), session_factory()
        try:
            held_booking = second.get(Booking, booking_id)
            held_room = second.get(Room, seeded["room"])
            assert held_booking.status == BookingStatus.CONFIRMED
            assert held_room.status == RoomStatus.AVAILABLE

            BookingService(first, _noop).check_in(seeded["hotel"], booking_id)
            booking = BookingService(second, _noop).check_in(seeded["hotel"], booking_id)

            assert booking.status == BookingStatus.CHECKED_IN
        finally:
            first.close()
            second.close()

        check = session_factory()
        assert check.get(Room, seeded["room"]).status == RoomStatus.OCCUPIED
        assert [e.action_type for e in check.query(ActivityLog).all()] == ["guest_checked_in"]
        check.close()

    def test_same_booking_checked_out_twice(self, session_factory, seeded):
        booking_id = seeded["bookings"][0]
        setup = session_factory()
        BookingService(setup, _noop).check_in(seeded["hotel"], booking_id)
        setup.close()

        first, second = session_factory(), session_factory()
        try:
            held_booking = second.get(Booking, booking_id)
            held_room = second.get(Room, seeded["room"])
            assert held_booking.status == BookingStatus.CHECKED_IN
            assert held_room.status == RoomStatus.OCCUPIED

            BookingService(first, _noop).check_out(seeded["hotel"], booking_id)
            booking = BookingService(second, _noop).check_out(seeded["hotel"], booking_id)

            assert booking.status == BookingStatus.CHECKED_OUT
        finally:
            first.close()
            second.close()

        check = session_factory()
        assert check.get(Room, seeded["room"]).status == RoomStatus.CLEANING
        assert check.query(Task).count() == 1
        assert check.query(ActivityLog).filter(ActivityLog.action_type == "guest_checked_out").count() == 1
        check.close()

    def test_store_rejects_second_checked_in_booking(self, session_factory, seeded):
        db = session_factory()
        for booking_id in seeded["bookings"]:
            db.get(Booking, booking_id).status = BookingStatus.CHECKED_IN
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()
        db.close()


class TestConcurrentRoomStatus:

    def test_stale_room_write_rejected(self, session_factory, seeded):
        first, second = session_factory(), session_factory()
        try:
            held_room = second.get(Room, seeded["room"])
            assert held_room.version_id == 1

            RoomService(first, _noop).set_status(seeded["hotel"], seeded["room"], "maintenance")

            with pytest.raises(ConcurrentUpdate) as exc:
                RoomService(second, _noop).set_status(seeded["hotel"], seeded["room"], "cleaning")
            assert isinstance(exc.value, WrongState)
        finally:
            first.close()
            second.close()

        check = session_factory()
        room = check.get(Room, seeded["room"])
        assert room.status == RoomStatus.MAINTENANCE
        assert room.version_id == 2
        check.close()

    def test_store_failure_is_transient(self, session_factory, seeded, monkeypatch):
        db = session_factory()

        def failing_commit():
            raise OperationalError("UPDATE rooms", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "commit", failing_commit)
        with pytest.raises(TransientStoreFailure):
            RoomService(db, _noop).set_status(seeded["hotel"], seeded["room"], "cleaning")
        db.close()

        check = session_factory()
        assert check.get(Room, seeded["room"]).status == RoomStatus.AVAILABLE
        check.close()
