# API Routers
from hotelops.routers import (
    auth, hotels, rooms, bookings, guests, tasks, service_requests,
    activity_log, portal, reports, realtime
)

__all__ = [
    'auth', 'hotels', 'rooms', 'bookings', 'guests', 'tasks', 'service_requests',
    'activity_log', 'portal', 'reports', 'realtime'
]
