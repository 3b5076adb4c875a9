"""
预订服务 - 预订生命周期
在住/即将入住由 (预订列表, 当前时间) 推导，不单独存储；
入住、退房与房态变更在同一事务内完成
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Union
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hotelops.database import transaction
from hotelops.errors import (
    ConcurrentUpdate, NotFound, RoomUnavailable, ValidationError
)
from hotelops.models.events import ChangeType
from hotelops.models.ontology import (
    Booking, BookingStatus, Guest, RoomStatus, TaskType, TaskPriority, utcnow
)
from hotelops.models.schemas import BookingCreate
from hotelops.services.activity_log_service import ActivityLogService
from hotelops.services.event_bus import event_bus, Event
from hotelops.services.realtime import build_change_event
from hotelops.services.room_service import RoomService
from hotelops.services.scoping import coerce_enum, ensure_same_hotel
from hotelops.services.state_machine import BOOKING_MACHINE
from hotelops.services.task_service import TaskService

logger = logging.getLogger(__name__)


# ============== 推导（纯函数） ==============

@dataclass
class BookingClassification:
    """客人预订分类结果：至多一个在住、至多一个即将入住"""
    active: Optional[Booking] = None
    upcoming: Optional[Booking] = None


def _in_window(booking: Booking, now: datetime) -> bool:
    return booking.check_in <= now <= booking.check_out


def _earliest(bookings: List[Booking]) -> Optional[Booking]:
    if not bookings:
        return None
    return min(bookings, key=lambda b: (b.check_in, b.id))


def classify_bookings(bookings: Iterable[Booking], now: datetime) -> BookingClassification:
    """
    分类客人的预订

    - active：status 为 checked_in 且 check_in <= now <= check_out
      （confirmed 但未入住的预订即使在时间窗内也不算在住）
    - upcoming：没有 active 时，check_in > now 的 confirmed 预订中最早的一个，
      同一时间取 id 最小者
    """
    bookings = list(bookings)

    in_house = [b for b in bookings if b.status == BookingStatus.CHECKED_IN and _in_window(b, now)]
    if len(in_house) > 1:
        logger.warning(
            f"Guest has {len(in_house)} checked-in bookings overlapping {now.isoformat()}: "
            f"{sorted(b.id for b in in_house)}"
        )
    active = _earliest(in_house)
    if active is not None:
        return BookingClassification(active=active)

    future = [b for b in bookings if b.status == BookingStatus.CONFIRMED and b.check_in > now]
    return BookingClassification(upcoming=_earliest(future))


def arrival_booking(bookings: Iterable[Booking], now: datetime) -> Optional[Booking]:
    """时间窗包含 now、尚未入住的 confirmed 预订（客人自助入住用）"""
    return _earliest([
        b for b in bookings if b.status == BookingStatus.CONFIRMED and _in_window(b, now)
    ])


def guest_stay_status(bookings: Iterable[Booking], now: datetime) -> str:
    """员工端客人列表的在住标记：checked_in / arriving_today / upcoming / past_guest"""
    bookings = list(bookings)
    if classify_bookings(bookings, now).active is not None:
        return "checked_in"
    if arrival_booking(bookings, now) is not None:
        return "arriving_today"
    if any(b.status == BookingStatus.CONFIRMED and b.check_in > now for b in bookings):
        return "upcoming"
    return "past_guest"


class BookingService:
    """预订服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish
        self.room_service = RoomService(db, self._publish_event)
        self.task_service = TaskService(db, self._publish_event)
        self.activity_log = ActivityLogService(db, self._publish_event)

    # ============== 查询 ==============

    def get_booking(self, hotel_id: int, booking_id: int) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFound("预订不存在")
        ensure_same_hotel(booking.hotel_id, hotel_id, "预订")
        return booking

    def list_bookings(self, hotel_id: int,
                      status: Optional[Union[BookingStatus, str]] = None) -> List[Booking]:
        """预订列表（入住时间倒序）"""
        query = self.db.query(Booking).filter(Booking.hotel_id == hotel_id)
        if status is not None:
            query = query.filter(Booking.status == coerce_enum(BookingStatus, status, "预订状态"))
        return query.order_by(Booking.check_in.desc(), Booking.id.desc()).all()

    def get_guest_bookings(self, guest_id: int) -> List[Booking]:
        return self.db.query(Booking).filter(
            Booking.guest_id == guest_id
        ).order_by(Booking.check_in, Booking.id).all()

    def current_stay(self, guest_id: int, now: Optional[datetime] = None) -> BookingClassification:
        """客人当前的在住 / 即将入住预订"""
        return classify_bookings(self.get_guest_bookings(guest_id), now or utcnow())

    def arrival_for_guest(self, guest_id: int, now: Optional[datetime] = None) -> Optional[Booking]:
        return arrival_booking(self.get_guest_bookings(guest_id), now or utcnow())

    # ============== 创建 ==============

    def create_booking(self, hotel_id: int, data: BookingCreate,
                       actor_id: Optional[int] = None) -> Booking:
        """
        创建预订
        业务规则：
        - 退房时间必须晚于入住时间
        - 金额不能为负，入住人数至少 1
        - 客人与房间必须属于本酒店
        """
        if data.check_out <= data.check_in:
            raise ValidationError("退房时间必须晚于入住时间")
        if data.total_amount < Decimal("0"):
            raise ValidationError("订单金额不能为负数")
        if data.guest_count < 1:
            raise ValidationError("入住人数至少为 1")

        guest = self.db.query(Guest).filter(Guest.id == data.guest_id).first()
        if not guest:
            raise NotFound("客人不存在")
        ensure_same_hotel(guest.hotel_id, hotel_id, "客人")
        room = self.room_service.get_room(hotel_id, data.room_id)

        with transaction(self.db):
            booking = Booking(
                hotel_id=hotel_id,
                guest_id=guest.id,
                room_id=room.id,
                check_in=data.check_in,
                check_out=data.check_out,
                status=BookingStatus.CONFIRMED,
                total_amount=data.total_amount,
                guest_count=data.guest_count,
            )
            self.db.add(booking)

        self.db.refresh(booking)
        logger.info(f"Booking {booking.id} created for guest {guest.id}, room {room.room_number}")

        self.publish_booking(booking, ChangeType.INSERT)
        self.activity_log.append(
            hotel_id=hotel_id,
            action_type="booking_created",
            description=f"Booking created for {guest.name} in room {room.room_number}",
            actor_id=actor_id,
            related_room_id=room.id,
            related_booking_id=booking.id,
        )
        return booking

    # ============== 入住 ==============

    def check_in(self, hotel_id: int, booking_id: int, actor_id: Optional[int] = None) -> Booking:
        """
        办理入住
        业务规则：
        - 预订必须为 confirmed（已入住的预订直接返回）
        - 房间必须为 available，且没有其他 checked_in 预订
        - 预订 -> checked_in 与房间 -> occupied 同一事务提交
        """
        booking = self.get_booking(hotel_id, booking_id)
        if booking.status == BookingStatus.CHECKED_IN:
            return booking

        BOOKING_MACHINE.validate(booking.status, BookingStatus.CHECKED_IN)

        room = booking.room
        if room.status != RoomStatus.AVAILABLE:
            if self._settled_as(booking, BookingStatus.CHECKED_IN):
                return booking
            raise RoomUnavailable(
                f"房间 {room.room_number} 状态为 {room.status.value}，无法入住",
                expected=RoomStatus.AVAILABLE.value,
            )
        occupant = self.room_service.checked_in_booking(room.id)
        if occupant is not None and occupant.id != booking.id:
            raise RoomUnavailable(
                f"房间 {room.room_number} 已有在住预订",
                expected=RoomStatus.AVAILABLE.value,
            )

        try:
            with transaction(self.db):
                booking.status = BookingStatus.CHECKED_IN
                self.room_service.apply_status(room, RoomStatus.OCCUPIED, trigger="check_in")
        except (ConcurrentUpdate, IntegrityError) as e:
            if self._settled_as(booking, BookingStatus.CHECKED_IN):
                return booking
            logger.warning(f"Check-in of booking {booking_id} lost a race for room {room.id}: {e}")
            raise RoomUnavailable(
                "房间已被其他操作占用，请刷新后重试",
                expected=RoomStatus.AVAILABLE.value,
            ) from e

        self.db.refresh(booking)
        self.db.refresh(room)
        logger.info(f"Booking {booking.id} checked in, room {room.room_number} occupied")

        self.publish_booking(booking)
        self.room_service.publish_room(room)
        self.activity_log.append(
            hotel_id=hotel_id,
            action_type="guest_checked_in",
            description=f"{booking.guest.name} checked in to room {room.room_number}",
            actor_id=actor_id,
            related_room_id=room.id,
            related_booking_id=booking.id,
        )
        return booking

    # ============== 退房 ==============

    def check_out(self, hotel_id: int, booking_id: int, actor_id: Optional[int] = None) -> Booking:
        """
        办理退房
        业务规则：
        - 预订必须为 checked_in（已退房的预订直接返回）
        - 房间进入 cleaning（不会直接变为 available），并生成清洁工单
        - 预订、房态、工单同一事务提交
        """
        booking = self.get_booking(hotel_id, booking_id)
        if booking.status == BookingStatus.CHECKED_OUT:
            return booking

        BOOKING_MACHINE.validate(booking.status, BookingStatus.CHECKED_OUT)

        room = booking.room
        try:
            with transaction(self.db):
                booking.status = BookingStatus.CHECKED_OUT
                if room.status == RoomStatus.OCCUPIED:
                    self.room_service.apply_status(room, RoomStatus.CLEANING, trigger="check_out")
                elif room.status != RoomStatus.CLEANING:
                    logger.warning(f"Room {room.room_number} was {room.status.value} at checkout of booking {booking.id}")
                    self.room_service.apply_status(room, RoomStatus.CLEANING, trigger="manual")
                task = self.task_service.add_task(
                    hotel_id, room.id, TaskType.CLEANING, TaskPriority.NORMAL,
                    f"Checkout cleaning for room {room.room_number}", actor_id,
                )
        except ConcurrentUpdate:
            if self._settled_as(booking, BookingStatus.CHECKED_OUT):
                return booking
            raise

        self.db.refresh(booking)
        self.db.refresh(room)
        self.db.refresh(task)
        logger.info(f"Booking {booking.id} checked out, room {room.room_number} queued for cleaning")

        self.publish_booking(booking)
        self.room_service.publish_room(room)
        self.task_service.publish_task(task, ChangeType.INSERT)
        self.activity_log.append(
            hotel_id=hotel_id,
            action_type="guest_checked_out",
            description=f"{booking.guest.name} checked out of room {room.room_number}",
            actor_id=actor_id,
            related_room_id=room.id,
            related_booking_id=booking.id,
        )
        return booking

    # ============== 取消 ==============

    def cancel_booking(self, hotel_id: int, booking_id: int, actor_id: Optional[int] = None) -> Booking:
        """取消预订（仅 confirmed 可取消）"""
        booking = self.get_booking(hotel_id, booking_id)
        if booking.status == BookingStatus.CANCELLED:
            return booking

        with transaction(self.db):
            BOOKING_MACHINE.validate(booking.status, BookingStatus.CANCELLED)
            booking.status = BookingStatus.CANCELLED

        self.db.refresh(booking)
        self.publish_booking(booking)
        self.activity_log.append(
            hotel_id=hotel_id,
            action_type="booking_cancelled",
            description=f"Booking {booking.id} for {booking.guest.name} cancelled",
            actor_id=actor_id,
            related_room_id=booking.room_id,
            related_booking_id=booking.id,
        )
        return booking

    def _settled_as(self, booking: Booking, status: BookingStatus) -> bool:
        """重新读取预订：并发的同一操作已先提交时，以已提交的结果为准"""
        self.db.refresh(booking)
        if booking.status == status:
            logger.info(f"Booking {booking.id} already {status.value} by a concurrent request")
            return True
        return False

    def publish_booking(self, booking: Booking, change_type: ChangeType = ChangeType.UPDATE) -> None:
        self._publish_event(build_change_event(
            "bookings", booking.as_row(), booking.hotel_id, change_type, source="booking_service"
        ))

