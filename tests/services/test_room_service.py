"""
Tests for hotelops/services/room_service.py
Covers: set_status, status_counts, list_rooms, list_rooms_with_guests,
        get_room_with_guest, create_room
"""
import pytest
from decimal import Decimal

from hotelops.errors import InvalidTransition, NotFound, Unauthorized, ValidationError
from hotelops.models.ontology import ActivityLog, Room, RoomStatus, RoomCategory
from hotelops.models.schemas import RoomCreate
from hotelops.services.room_service import RoomService


def _noop(event):
    pass


class TestSetStatus:

    def test_available_to_cleaning_logs_once(self, db_session, hotel, manager, room_101):
        service = RoomService(db_session, _noop)
        room = service.set_status(hotel.id, room_101.id, "cleaning", actor_id=manager.id)

        assert room.status == RoomStatus.CLEANING
        entries = db_session.query(ActivityLog).all()
        assert len(entries) == 1
        assert entries[0].action_type == "room_status_changed"
        assert entries[0].description == "Room 101 status changed from available to cleaning"
        assert entries[0].user_id == manager.id
        assert entries[0].related_room_id == room_101.id

    def test_cleaning_to_available(self, db_session, hotel, room_101):
        service = RoomService(db_session, _noop)
        service.set_status(hotel.id, room_101.id, RoomStatus.CLEANING)
        room = service.set_status(hotel.id, room_101.id, RoomStatus.AVAILABLE)
        assert room.status == RoomStatus.AVAILABLE

    def test_same_status_is_noop(self, db_session, hotel, room_101):
        service = RoomService(db_session, _noop)
        room = service.set_status(hotel.id, room_101.id, "available")
        assert room.status == RoomStatus.AVAILABLE
        assert db_session.query(ActivityLog).count() == 0

    def test_publishes_room_and_log_changes(self, db_session, hotel, room_101, published):
        RoomService(db_session, published.append).set_status(hotel.id, room_101.id, "maintenance")

        tables = [e.data["table"] for e in published]
        assert tables == ["rooms", "activity_log"]
        assert published[0].data["row"]["status"] == "maintenance"
        assert published[0].data["hotel_id"] == hotel.id

    def test_occupied_cannot_be_set_manually(self, db_session, hotel, room_101):
        with pytest.raises(InvalidTransition) as exc:
            RoomService(db_session, _noop).set_status(hotel.id, room_101.id, "occupied")
        assert exc.value.expected == "available"
        db_session.refresh(room_101)
        assert room_101.status == RoomStatus.AVAILABLE

    @pytest.mark.parametrize("target", ["available", "cleaning", "maintenance"])
    def test_checked_in_room_requires_checkout(self, db_session, hotel, room_101,
                                                checked_in_booking, target):
        with pytest.raises(InvalidTransition) as exc:
            RoomService(db_session, _noop).set_status(hotel.id, room_101.id, target)
        assert exc.value.expected == "no checked_in booking"
        db_session.refresh(room_101)
        assert room_101.status == RoomStatus.OCCUPIED
        assert db_session.query(ActivityLog).count() == 0

    def test_unknown_room(self, db_session, hotel):
        with pytest.raises(NotFound):
            RoomService(db_session, _noop).set_status(hotel.id, 9999, "cleaning")

    def test_other_hotel_room(self, db_session, hotel, other_room):
        with pytest.raises(Unauthorized):
            RoomService(db_session, _noop).set_status(hotel.id, other_room.id, "cleaning")

    def test_unknown_status(self, db_session, hotel, room_101):
        with pytest.raises(ValidationError):
            RoomService(db_session, _noop).set_status(hotel.id, room_101.id, "dirty")

    def test_errors_are_value_errors(self, db_session, hotel):
        with pytest.raises(ValueError):
            RoomService(db_session, _noop).set_status(hotel.id, 9999, "cleaning")


class TestQueries:

    def test_list_ordered_by_room_number(self, db_session, hotel, room_201, room_101, room_102):
        rooms = RoomService(db_session, _noop).list_rooms(hotel.id)
        assert [r.room_number for r in rooms] == ["101", "102", "201"]

    def test_list_filters(self, db_session, hotel, room_101, room_102, room_201):
        service = RoomService(db_session, _noop)
        service.set_status(hotel.id, room_102.id, "maintenance")

        assert [r.room_number for r in service.list_rooms(hotel.id, floor=2)] == ["201"]
        assert [r.room_number for r in service.list_rooms(hotel.id, status="maintenance")] == ["102"]

    def test_list_is_hotel_scoped(self, db_session, hotel, room_101, other_room):
        rooms = RoomService(db_session, _noop).list_rooms(hotel.id)
        assert [r.id for r in rooms] == [room_101.id]

    def test_status_counts(self, db_session, hotel, room_101, room_102, room_201):
        service = RoomService(db_session, _noop)
        service.set_status(hotel.id, room_201.id, "cleaning")

        assert service.status_counts(hotel.id) == {
            'all': 3, 'available': 2, 'occupied': 0, 'cleaning': 1, 'maintenance': 0
        }

    def test_current_guest_derived_from_checked_in_booking(self, db_session, hotel, room_101,
                                                          room_102, checked_in_booking):
        rooms = RoomService(db_session, _noop).list_rooms_with_guests(hotel.id)
        by_number = {r['room_number']: r for r in rooms}

        assert by_number["101"]['current_guest'] == "Alice Guest"
        assert by_number["101"]['current_checkout'] == checked_in_booking.check_out
        assert by_number["102"]['current_guest'] is None

    def test_get_room_with_guest(self, db_session, hotel, room_101, checked_in_booking):
        detail = RoomService(db_session, _noop).get_room_with_guest(hotel.id, room_101.id)
        assert detail['status'] == RoomStatus.OCCUPIED
        assert detail['current_guest'] == "Alice Guest"


class TestCreateRoom:

    def test_create(self, db_session, hotel, published):
        room = RoomService(db_session, published.append).create_room(
            hotel.id, RoomCreate(room_number="301", floor=3, room_type=RoomCategory.SUITE, rate=Decimal("250"))
        )
        assert room.status == RoomStatus.AVAILABLE
        assert room.version_id == 1
        assert published[0].data["change_type"] == "INSERT"

    def test_duplicate_number_rejected(self, db_session, hotel, room_101):
        with pytest.raises(ValidationError):
            RoomService(db_session, _noop).create_room(hotel.id, RoomCreate(room_number="101", floor=1))

    def test_same_number_in_other_hotel_allowed(self, db_session, hotel, other_room):
        room = RoomService(db_session, _noop).create_room(hotel.id, RoomCreate(room_number="101", floor=1))
        assert room.hotel_id == hotel.id
        assert db_session.query(Room).count() == 2
