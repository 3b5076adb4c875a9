# Domain Models
from hotelops.models.ontology import (
    Hotel, User, Room, Guest, Booking, Task, ServiceRequest, ActivityLog
)

__all__ = [
    'Hotel', 'User', 'Room', 'Guest', 'Booking', 'Task',
    'ServiceRequest', 'ActivityLog'
]
