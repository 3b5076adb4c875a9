"""
房间服务 - 房态登记
房态的唯一修改入口：校验转换、记录操作日志、发布实时变更
"""
from typing import Callable, Dict, List, Optional, Union
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hotelops.database import transaction
from hotelops.errors import InvalidTransition, NotFound, ValidationError
from hotelops.models.events import ChangeType
from hotelops.models.ontology import Room, RoomStatus, Booking, BookingStatus, Guest
from hotelops.models.schemas import RoomCreate
from hotelops.services.activity_log_service import ActivityLogService
from hotelops.services.event_bus import event_bus, Event
from hotelops.services.realtime import build_change_event
from hotelops.services.scoping import coerce_enum, ensure_same_hotel
from hotelops.services.state_machine import ROOM_MACHINE

logger = logging.getLogger(__name__)


class RoomService:
    """房间服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish
        self.activity_log = ActivityLogService(db, self._publish_event)

    # ============== 查询 ==============

    def get_room(self, hotel_id: int, room_id: int) -> Room:
        """获取单个房间（校验酒店范围）"""
        room = self.db.query(Room).filter(Room.id == room_id).first()
        if not room:
            raise NotFound("房间不存在")
        ensure_same_hotel(room.hotel_id, hotel_id, "房间")
        return room

    def list_rooms(self, hotel_id: int, status: Optional[Union[RoomStatus, str]] = None,
                   floor: Optional[int] = None) -> List[Room]:
        """获取房间列表，按房间号升序"""
        query = self.db.query(Room).filter(Room.hotel_id == hotel_id)

        if status is not None:
            query = query.filter(Room.status == coerce_enum(RoomStatus, status, "房间状态"))
        if floor is not None:
            query = query.filter(Room.floor == floor)

        return query.order_by(Room.room_number.asc()).all()

    def status_counts(self, hotel_id: int) -> Dict[str, int]:
        """按状态统计房间数量"""
        rooms = self.list_rooms(hotel_id)
        counts = {'all': len(rooms)}
        for status in RoomStatus:
            counts[status.value] = 0
        for room in rooms:
            counts[room.status.value] += 1
        return counts

    def checked_in_booking(self, room_id: int) -> Optional[Booking]:
        """房间当前处于 checked_in 的预订"""
        return self.db.query(Booking).filter(
            Booking.room_id == room_id,
            Booking.status == BookingStatus.CHECKED_IN
        ).order_by(Booking.id).first()

    def list_rooms_with_guests(self, hotel_id: int, status=None, floor=None) -> List[dict]:
        """房间列表，附带当前住客（由 checked_in 预订推导，不单独存储）"""
        rooms = self.list_rooms(hotel_id, status, floor)
        if not rooms:
            return []

        stays = self.db.query(Booking.room_id, Booking.check_out, Guest.name).join(
            Guest, Booking.guest_id == Guest.id
        ).filter(
            Booking.status == BookingStatus.CHECKED_IN,
            Booking.room_id.in_([r.id for r in rooms])
        ).all()
        current = {room_id: (check_out, name) for room_id, check_out, name in stays}

        return [self._room_detail(room, current.get(room.id)) for room in rooms]

    def get_room_with_guest(self, hotel_id: int, room_id: int) -> dict:
        """获取房间及当前住客信息"""
        room = self.get_room(hotel_id, room_id)
        booking = self.checked_in_booking(room.id)
        stay = (booking.check_out, booking.guest.name) if booking else None
        return self._room_detail(room, stay)

    @staticmethod
    def _room_detail(room: Room, stay) -> dict:
        return {
            'id': room.id,
            'hotel_id': room.hotel_id,
            'room_number': room.room_number,
            'room_type': room.room_type,
            'floor': room.floor,
            'rate': room.rate,
            'status': room.status,
            'updated_at': room.updated_at,
            'current_guest': stay[1] if stay else None,
            'current_checkout': stay[0] if stay else None,
        }

    # ============== 创建（酒店初始化） ==============

    def create_room(self, hotel_id: int, data: RoomCreate) -> Room:
        """创建房间"""
        exists = self.db.query(Room).filter(
            Room.hotel_id == hotel_id,
            Room.room_number == data.room_number
        ).first()
        if exists:
            raise ValidationError(f"房间号 '{data.room_number}' 已存在")

        room = Room(hotel_id=hotel_id, status=RoomStatus.AVAILABLE, **data.model_dump())
        try:
            with transaction(self.db):
                self.db.add(room)
        except IntegrityError:
            raise ValidationError(f"房间号 '{data.room_number}' 已存在")
        self.db.refresh(room)

        self.publish_room(room, ChangeType.INSERT)
        return room

    # ============== 房态变更 ==============

    def set_status(self, hotel_id: int, room_id: int, new_status: Union[RoomStatus, str],
                   actor_id: Optional[int] = None) -> Room:
        """
        手动更新房态

        业务规则：
        - occupied 只能通过入住产生
        - 有 checked_in 预订的房间必须先退房，不能直接改为其他状态
        - 状态未变化时不记录日志
        """
        new_status = coerce_enum(RoomStatus, new_status, "房间状态")
        room = self.get_room(hotel_id, room_id)

        if room.status == new_status:
            return room

        if self.checked_in_booking(room.id):
            logger.warning(f"Room {room.room_number} has a checked-in booking, refusing '{new_status.value}'")
            raise InvalidTransition(
                "入住中的房间不能手动更改状态，请通过退房操作",
                expected="no checked_in booking"
            )

        with transaction(self.db):
            old_status = self.apply_status(room, new_status, trigger="manual")

        self.db.refresh(room)
        logger.info(f"Room {room.room_number} status {old_status.value} -> {new_status.value}")

        self.publish_room(room)
        self.activity_log.append(
            hotel_id=room.hotel_id,
            action_type="room_status_changed",
            description=f"Room {room.room_number} status changed from {old_status.value} to {new_status.value}",
            actor_id=actor_id,
            related_room_id=room.id,
        )
        return room

    def apply_status(self, room: Room, new_status: RoomStatus, trigger: str) -> RoomStatus:
        """
        在调用方事务内修改房态（不提交、不记日志）

        Returns:
            原房态
        """
        ROOM_MACHINE.validate(room.status, new_status, trigger, error_class=InvalidTransition)
        old_status = room.status
        room.status = new_status
        return old_status

    def publish_room(self, room: Room, change_type: ChangeType = ChangeType.UPDATE) -> None:
        """发布房间行变更"""
        self._publish_event(build_change_event(
            "rooms", room.as_row(), room.hotel_id, change_type, source="room_service"
        ))
