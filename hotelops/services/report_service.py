"""
报表服务
仪表盘与月度经营统计（已取消的预订不计入营收）
"""
from calendar import monthrange
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy import func
from hotelops.models.ontology import (
    Room, RoomStatus, RoomCategory, Booking, BookingStatus, Task, TaskStatus, utcnow
)


class ReportService:
    """报表服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_dashboard_stats(self, hotel_id: int) -> dict:
        """获取仪表盘统计数据"""
        rooms = self.db.query(Room).filter(Room.hotel_id == hotel_id).all()
        total_rooms = len(rooms)

        status_counts = {s.value: 0 for s in RoomStatus}
        for room in rooms:
            status_counts[room.status.value] += 1
        occupied = status_counts[RoomStatus.OCCUPIED.value]

        occupancy_rate = (occupied / total_rooms * 100) if total_rooms > 0 else 0

        pending_tasks = self.db.query(Task).filter(
            Task.hotel_id == hotel_id,
            Task.status == TaskStatus.PENDING
        ).count()

        # 今日营收：在住房间的房价合计
        today_revenue = sum(
            (r.rate for r in rooms if r.status == RoomStatus.OCCUPIED), Decimal('0')
        )

        return {
            'total_rooms': total_rooms,
            'occupied': occupied,
            'occupancy_rate': round(occupancy_rate),
            'pending_tasks': pending_tasks,
            'status_counts': status_counts,
            'today_revenue': today_revenue
        }

    def get_monthly_analytics(self, hotel_id: int, now: Optional[datetime] = None) -> dict:
        """本月经营分析（按入住时间落在本月的预订统计）"""
        now = now or utcnow()
        month_start = datetime(now.year, now.month, 1)
        last_day = monthrange(now.year, now.month)[1]
        month_end = datetime(now.year, now.month, last_day, 23, 59, 59, 999999)

        rooms = self.db.query(Room).filter(Room.hotel_id == hotel_id).all()
        month_bookings = self.db.query(Booking).filter(
            Booking.hotel_id == hotel_id,
            Booking.status != BookingStatus.CANCELLED,
            Booking.check_in >= month_start,
            Booking.check_in <= month_end
        ).all()

        total_revenue = sum((b.total_amount for b in month_bookings), Decimal('0'))
        average_rate = (
            sum((r.rate for r in rooms), Decimal('0')) / len(rooms) if rooms else Decimal('0')
        )
        occupied = len([r for r in rooms if r.status == RoomStatus.OCCUPIED])
        occupancy_rate = (occupied / len(rooms) * 100) if rooms else 0
        active_guests = len([
            b for b in month_bookings
            if b.status in (BookingStatus.CHECKED_IN, BookingStatus.CONFIRMED)
        ])

        # 按房型统计全部（未取消）预订的营收
        revenue_rows = self.db.query(Room.room_type, func.sum(Booking.total_amount)).join(
            Booking, Booking.room_id == Room.id
        ).filter(
            Room.hotel_id == hotel_id,
            Booking.status != BookingStatus.CANCELLED
        ).group_by(Room.room_type).all()
        revenue_by_type = {c.value: Decimal('0') for c in RoomCategory}
        for room_type, revenue in revenue_rows:
            revenue_by_type[room_type.value] = Decimal(str(revenue or 0))

        return {
            'month': month_start.strftime('%Y-%m'),
            'booking_count': len(month_bookings),
            'total_revenue': total_revenue,
            'average_rate': round(average_rate, 2),
            'occupied_rooms': occupied,
            'total_rooms': len(rooms),
            'occupancy_rate': round(occupancy_rate, 1),
            'active_guests': active_guests,
            'revenue_by_type': revenue_by_type
        }
