"""
客人服务
客人资料与门户访问码识别
"""
from typing import List, Optional
import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hotelops.config import settings
from hotelops.database import transaction
from hotelops.errors import NotFound, ValidationError
from hotelops.models.ontology import Guest, Booking, utcnow
from hotelops.models.schemas import GuestCreate
from hotelops.services.booking_service import guest_stay_status
from hotelops.services.scoping import ensure_same_hotel

logger = logging.getLogger(__name__)


def normalize_access_code(code: Optional[str]) -> str:
    """
    规范化访问码：去空白、只允许数字、不足位数左侧补零

    >>> normalize_access_code(" 42 ")
    '000042'
    """
    length = settings.ACCESS_CODE_LENGTH
    value = (code or "").strip()
    if not value or not value.isdigit():
        raise ValidationError("访问码必须为数字")
    if len(value) > length:
        raise ValidationError(f"访问码最多 {length} 位")
    return value.zfill(length)


class GuestService:
    """客人服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_guest(self, hotel_id: int, guest_id: int) -> Guest:
        guest = self.db.query(Guest).filter(Guest.id == guest_id).first()
        if not guest:
            raise NotFound("客人不存在")
        ensure_same_hotel(guest.hotel_id, hotel_id, "客人")
        return guest

    def find_guest_by_code(self, code: str) -> Guest:
        """根据门户访问码查找客人"""
        normalized = normalize_access_code(code)
        guest = self.db.query(Guest).filter(Guest.access_code == normalized).first()
        if not guest:
            logger.info(f"Guest lookup failed for access code ending {normalized[-2:]}")
            raise NotFound("访问码无效")
        return guest

    def list_guests(self, hotel_id: int, search: Optional[str] = None) -> List[dict]:
        """
        客人列表（姓名 / 邮箱 / 电话模糊搜索，不区分大小写），附带在住标记
        """
        query = self.db.query(Guest).filter(Guest.hotel_id == hotel_id)

        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Guest.name.ilike(pattern),
                    Guest.email.ilike(pattern),
                    Guest.phone.ilike(pattern)
                )
            )

        guests = query.order_by(Guest.created_at.desc(), Guest.id.desc()).all()
        if not guests:
            return []

        bookings = self.db.query(Booking).filter(
            Booking.guest_id.in_([g.id for g in guests])
        ).all()
        by_guest = {}
        for booking in bookings:
            by_guest.setdefault(booking.guest_id, []).append(booking)

        now = utcnow()
        return [
            {
                'id': g.id,
                'hotel_id': g.hotel_id,
                'name': g.name,
                'email': g.email,
                'phone': g.phone,
                'created_at': g.created_at,
                'stay_status': guest_stay_status(by_guest.get(g.id, []), now),
                'booking_count': len(by_guest.get(g.id, [])),
            }
            for g in guests
        ]

    def create_guest(self, hotel_id: int, data: GuestCreate) -> Guest:
        """创建客人，访问码可选（提供时规范化并校验唯一）"""
        values = data.model_dump()
        if values.get("access_code"):
            values["access_code"] = normalize_access_code(values["access_code"])
            taken = self.db.query(Guest).filter(Guest.access_code == values["access_code"]).first()
            if taken:
                raise ValidationError("访问码已被使用")
        else:
            values["access_code"] = None

        guest = Guest(hotel_id=hotel_id, **values)
        try:
            with transaction(self.db):
                self.db.add(guest)
        except IntegrityError:
            raise ValidationError("访问码已被使用")
        self.db.refresh(guest)
        logger.info(f"Guest {guest.id} created in hotel {hotel_id}")
        return guest
