"""
Tests for hotelops/services/hotel_service.py and hotelops/services/report_service.py
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from hotelops.errors import ValidationError
from hotelops.models.ontology import Booking, BookingStatus, Hotel, StaffRole, User
from hotelops.models.schemas import SignupRequest, HotelUpdate
from hotelops.security.auth import decode_token
from hotelops.services.hotel_service import HotelService
from hotelops.services.report_service import ReportService
from hotelops.services.task_service import TaskService


def _noop(event):
    pass


class TestSignupAndLogin:

    def test_signup_creates_hotel_and_manager(self, db_session):
        result = HotelService(db_session).signup(SignupRequest(
            hotel_name="Harbor Hotel", name="Hana", email="Hana@Harbor.test", password="secret1"
        ))

        user = db_session.query(User).one()
        assert user.role == StaffRole.MANAGER
        assert user.email == "hana@harbor.test"
        assert db_session.query(Hotel).one().name == "Harbor Hotel"
        assert result['user']['hotel_name'] == "Harbor Hotel"

        payload = decode_token(result['access_token'])
        assert payload['hotel_id'] == user.hotel_id
        assert payload['role'] == "manager"

    def test_duplicate_email(self, db_session, manager):
        with pytest.raises(ValidationError):
            HotelService(db_session).signup(SignupRequest(
                hotel_name="Copy", name="X", email="manager@seaside.test", password="secret1"
            ))

    def test_authenticate(self, db_session, manager):
        service = HotelService(db_session)
        assert service.authenticate("manager@seaside.test", "123456")['user']['id'] == manager.id
        assert service.authenticate("manager@seaside.test", "wrong") is None
        assert service.authenticate("nobody@seaside.test", "123456") is None

    def test_inactive_user(self, db_session, manager):
        manager.is_active = False
        db_session.commit()
        with pytest.raises(ValidationError):
            HotelService(db_session).authenticate("manager@seaside.test", "123456")

    def test_inactive_user_wrong_password_looks_like_bad_credentials(self, db_session, manager):
        manager.is_active = False
        db_session.commit()
        assert HotelService(db_session).authenticate("manager@seaside.test", "wrong") is None

    def test_update_hotel(self, db_session, hotel):
        updated = HotelService(db_session).update_hotel(hotel.id, HotelUpdate(phone="555-0199"))
        assert updated.phone == "555-0199"
        assert updated.name == "Seaside Inn"


class TestReports:

    def test_dashboard(self, db_session, hotel, room_101, room_102, room_201, checked_in_booking):
        TaskService(db_session, _noop).mark_room(hotel.id, room_102.id, "cleaning")

        stats = ReportService(db_session).get_dashboard_stats(hotel.id)
        assert stats['total_rooms'] == 3
        assert stats['occupied'] == 1
        assert stats['occupancy_rate'] == 33
        assert stats['pending_tasks'] == 1
        assert stats['status_counts']['cleaning'] == 1
        assert stats['today_revenue'] == Decimal("100.00")

    def test_dashboard_empty_hotel(self, db_session, hotel):
        stats = ReportService(db_session).get_dashboard_stats(hotel.id)
        assert stats['total_rooms'] == 0
        assert stats['occupancy_rate'] == 0

    def _book(self, db_session, guest, room, check_in, amount, status=BookingStatus.CONFIRMED):
        booking = Booking(
            hotel_id=room.hotel_id, guest_id=guest.id, room_id=room.id,
            check_in=check_in, check_out=check_in + timedelta(days=2),
            status=status, total_amount=Decimal(amount), guest_count=1
        )
        db_session.add(booking)
        db_session.commit()
        return booking

    def test_monthly_analytics(self, db_session, hotel, guest, room_101, room_201):
        now = datetime(2024, 6, 15, 12, 0)
        self._book(db_session, guest, room_101, datetime(2024, 6, 2), "200.00")
        self._book(db_session, guest, room_201, datetime(2024, 6, 30, 22), "600.00",
                   status=BookingStatus.CHECKED_OUT)
        self._book(db_session, guest, room_201, datetime(2024, 6, 10), "999.00",
                   status=BookingStatus.CANCELLED)
        self._book(db_session, guest, room_101, datetime(2024, 7, 1), "50.00")

        report = ReportService(db_session).get_monthly_analytics(hotel.id, now=now)
        assert report['month'] == "2024-06"
        assert report['booking_count'] == 2
        assert report['total_revenue'] == Decimal("800.00")
        assert report['average_rate'] == Decimal("200.00")
        assert report['active_guests'] == 1
        assert report['occupancy_rate'] == 0
        assert report['revenue_by_type']['standard'] == Decimal("250.00")
        assert report['revenue_by_type']['suite'] == Decimal("600.00")
        assert report['revenue_by_type']['deluxe'] == Decimal("0")
