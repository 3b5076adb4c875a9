# Business Services
from hotelops.services.room_service import RoomService
from hotelops.services.task_service import TaskService
from hotelops.services.booking_service import BookingService
from hotelops.services.activity_log_service import ActivityLogService
from hotelops.services.guest_service import GuestService
from hotelops.services.hotel_service import HotelService
from hotelops.services.report_service import ReportService

__all__ = [
    'RoomService', 'TaskService', 'BookingService', 'ActivityLogService',
    'GuestService', 'HotelService', 'ReportService'
]
