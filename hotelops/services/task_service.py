"""
任务服务 - 清洁/维修工单与客人服务请求队列
服务请求和它派生的工单在同一事务内写入；房态产生的工单完成后房间恢复可售
"""
from typing import Callable, Dict, List, Optional, Union
import logging

from sqlalchemy.orm import Session

from hotelops.database import transaction
from hotelops.errors import NotFound, ValidationError, WrongState
from hotelops.models.events import ChangeType
from hotelops.models.ontology import (
    Task, TaskType, TaskPriority, TaskStatus, Room, RoomStatus,
    Booking, BookingStatus, Guest,
    ServiceRequest, ServiceRequestType, ServiceRequestPriority, ServiceRequestStatus,
    utcnow
)
from hotelops.services.activity_log_service import ActivityLogService
from hotelops.services.event_bus import event_bus, Event
from hotelops.services.realtime import build_change_event
from hotelops.services.room_service import RoomService
from hotelops.services.scoping import coerce_enum, ensure_same_hotel
from hotelops.services.state_machine import TASK_MACHINE, SERVICE_REQUEST_MACHINE

logger = logging.getLogger(__name__)

# 服务请求类型的展示名称（用于工单描述与日志）
REQUEST_TYPE_LABELS = {
    ServiceRequestType.HOUSEKEEPING: "Room Cleaning",
    ServiceRequestType.AMENITIES: "Amenities (Towels, Water)",
    ServiceRequestType.ROOM_SERVICE: "Room Service",
    ServiceRequestType.MAINTENANCE: "Maintenance",
    ServiceRequestType.OTHER: "Other",
}

# 房态工单：任务类型 -> 房间对应状态
ROOM_STATUS_FOR_TASK = {
    TaskType.CLEANING: RoomStatus.CLEANING,
    TaskType.MAINTENANCE: RoomStatus.MAINTENANCE,
}


def task_type_for_request(request_type: ServiceRequestType) -> TaskType:
    """housekeeping 派清洁工单，其余类型派维修工单"""
    if request_type == ServiceRequestType.HOUSEKEEPING:
        return TaskType.CLEANING
    return TaskType.MAINTENANCE


def task_priority_for_request(priority: ServiceRequestPriority) -> TaskPriority:
    """urgent / high 映射为 high，其余为 normal"""
    if priority in (ServiceRequestPriority.URGENT, ServiceRequestPriority.HIGH):
        return TaskPriority.HIGH
    return TaskPriority.NORMAL


class TaskService:
    """任务与服务请求服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish
        self.room_service = RoomService(db, self._publish_event)
        self.activity_log = ActivityLogService(db, self._publish_event)

    # ============== 任务查询 ==============

    def get_task(self, hotel_id: int, task_id: int) -> Task:
        task = self.db.query(Task).filter(Task.id == task_id).first()
        if not task:
            raise NotFound("任务不存在")
        ensure_same_hotel(task.hotel_id, hotel_id, "任务")
        return task

    def get_tasks(self, hotel_id: int, status: Optional[Union[TaskStatus, str]] = None,
                  task_type: Optional[Union[TaskType, str]] = None,
                  room_id: Optional[int] = None) -> List[Task]:
        """获取任务列表（高优先级在前，同优先级先创建的在前）"""
        query = self.db.query(Task).filter(Task.hotel_id == hotel_id)

        if status is not None:
            query = query.filter(Task.status == coerce_enum(TaskStatus, status, "任务状态"))
        if task_type is not None:
            query = query.filter(Task.task_type == coerce_enum(TaskType, task_type, "任务类型"))
        if room_id is not None:
            query = query.filter(Task.room_id == room_id)

        tasks = query.order_by(Task.created_at, Task.id).all()
        return sorted(tasks, key=lambda t: t.priority != TaskPriority.HIGH)

    def pending_tasks(self, hotel_id: int) -> List[Task]:
        return self.get_tasks(hotel_id, status=TaskStatus.PENDING)

    def task_summary(self, hotel_id: int) -> Dict[str, int]:
        """待处理任务统计"""
        tasks = self.pending_tasks(hotel_id)
        return {
            'total': len(tasks),
            'cleaning': len([t for t in tasks if t.task_type == TaskType.CLEANING]),
            'maintenance': len([t for t in tasks if t.task_type == TaskType.MAINTENANCE]),
            'high_priority': len([t for t in tasks if t.priority == TaskPriority.HIGH]),
        }

    # ============== 任务创建 ==============

    def create_task(self, hotel_id: int, room_id: int, task_type: Union[TaskType, str],
                    priority: Union[TaskPriority, str] = TaskPriority.NORMAL,
                    description: Optional[str] = None, actor_id: Optional[int] = None,
                    service_request_id: Optional[int] = None) -> Task:
        """创建任务"""
        with transaction(self.db):
            task = self.add_task(hotel_id, room_id, task_type, priority, description,
                                 actor_id, service_request_id)
        self.db.refresh(task)
        self.publish_task(task, ChangeType.INSERT)
        return task

    def add_task(self, hotel_id: int, room_id: int, task_type, priority, description,
                 actor_id: Optional[int] = None, service_request_id: Optional[int] = None) -> Task:
        """在调用方事务内加入任务（不提交）"""
        task_type = coerce_enum(TaskType, task_type, "任务类型")
        priority = coerce_enum(TaskPriority, priority, "任务优先级")
        room = self.room_service.get_room(hotel_id, room_id)

        task = Task(
            hotel_id=hotel_id,
            room_id=room.id,
            task_type=task_type,
            priority=priority,
            status=TaskStatus.PENDING,
            description=description,
            service_request_id=service_request_id,
            created_by=actor_id,
            created_at=utcnow(),
        )
        self.db.add(task)
        self.db.flush()
        return task

    def create_from_request(self, request: ServiceRequest, hotel_id: int) -> Task:
        """由服务请求派生工单（在调用方事务内）"""
        label = REQUEST_TYPE_LABELS[request.request_type]
        details = request.description if request.description and request.description != _NO_DETAILS else ""
        return self.add_task(
            hotel_id=hotel_id,
            room_id=request.room_id,
            task_type=task_type_for_request(request.request_type),
            priority=task_priority_for_request(request.priority),
            description=f"Guest Request: {label}" + (f" - {details}" if details else ""),
            service_request_id=request.id,
        )

    def mark_room(self, hotel_id: int, room_id: int, task_type: Union[TaskType, str],
                  priority: Union[TaskPriority, str] = TaskPriority.NORMAL,
                  description: Optional[str] = None, actor_id: Optional[int] = None) -> Task:
        """
        标记房间待清洁/维修并生成工单

        房态变更与工单在同一事务内完成
        """
        task_type = coerce_enum(TaskType, task_type, "任务类型")
        room = self.room_service.get_room(hotel_id, room_id)
        target = ROOM_STATUS_FOR_TASK[task_type]

        if room.status != target and self.room_service.checked_in_booking(room.id):
            raise WrongState("入住中的房间不能手动更改状态，请通过退房操作",
                             expected="no checked_in booking")

        with transaction(self.db):
            old_status = room.status
            if room.status != target:
                self.room_service.apply_status(room, target, trigger="manual")
            task = self.add_task(
                hotel_id, room.id, task_type, priority,
                description or f"{task_type.value.capitalize()} required for room {room.room_number}",
                actor_id,
            )

        self.db.refresh(task)
        self.db.refresh(room)
        self.publish_task(task, ChangeType.INSERT)
        if old_status != room.status:
            self.room_service.publish_room(room)
            self.activity_log.append(
                hotel_id=hotel_id,
                action_type="room_status_changed",
                description=f"Room {room.room_number} status changed from {old_status.value} to {room.status.value}",
                actor_id=actor_id,
                related_room_id=room.id,
            )
        return task

    # ============== 任务完成 ==============

    def complete_task(self, hotel_id: int, task_id: int, actor_id: Optional[int] = None) -> Task:
        """
        完成任务
        业务联动：房态产生的清洁/维修工单完成后，房间恢复为 available
        （仅当房间仍处于对应状态）
        """
        task = self.get_task(hotel_id, task_id)
        if task.status == TaskStatus.COMPLETED:
            return task

        room = task.room
        room_released = False
        with transaction(self.db):
            TASK_MACHINE.validate(task.status, TaskStatus.COMPLETED)
            task.status = TaskStatus.COMPLETED
            task.completed_at = utcnow()
            task.completed_by = actor_id

            if task.from_room_status and room.status == ROOM_STATUS_FOR_TASK[task.task_type]:
                self.room_service.apply_status(room, RoomStatus.AVAILABLE, trigger="manual")
                room_released = True

        self.db.refresh(task)
        logger.info(f"Task {task.id} ({task.task_type.value}) completed for room {room.room_number}")

        self.publish_task(task)
        if room_released:
            self.db.refresh(room)
            self.room_service.publish_room(room)

        if task.from_room_status:
            kind = "Cleaning" if task.task_type == TaskType.CLEANING else "Maintenance"
            action_type = f"{task.task_type.value}_completed"
            description = f"{kind} completed for room {room.room_number}"
        else:
            action_type = "service_task_completed"
            description = f"Guest request task completed for room {room.room_number}"
        self.activity_log.append(
            hotel_id=hotel_id,
            action_type=action_type,
            description=description,
            actor_id=actor_id,
            related_room_id=room.id,
        )
        return task

    # ============== 服务请求 ==============

    def create_service_request(self, guest_id: int, booking_id: int, room_id: int, hotel_id: int,
                               request_type: Union[ServiceRequestType, str],
                               priority: Union[ServiceRequestPriority, str] = ServiceRequestPriority.NORMAL,
                               description: Optional[str] = None) -> ServiceRequest:
        """
        客人提交服务请求
        业务规则：
        - 类型/优先级必须在枚举范围内（校验失败不写入任何数据）
        - 预订必须属于该客人、处于 checked_in，且房间与请求房间一致
        - 请求与派生工单在同一事务内写入
        """
        request_type = coerce_enum(ServiceRequestType, request_type, "服务类型")
        priority = coerce_enum(ServiceRequestPriority, priority, "优先级")

        guest = self.db.query(Guest).filter(Guest.id == guest_id).first()
        if not guest:
            raise NotFound("客人不存在")
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking or booking.guest_id != guest.id:
            raise NotFound("预订不存在")
        room = self.room_service.get_room(hotel_id, room_id)

        now = utcnow()
        if booking.status != BookingStatus.CHECKED_IN or not booking.check_in <= now <= booking.check_out:
            raise WrongState("只有在住期间可以提交服务请求", expected=BookingStatus.CHECKED_IN.value)
        if booking.room_id != room.id:
            raise ValidationError("服务请求的房间与当前入住房间不一致")

        text = (description or "").strip() or _NO_DETAILS
        with transaction(self.db):
            request = ServiceRequest(
                guest_id=guest.id,
                booking_id=booking.id,
                room_id=room.id,
                request_type=request_type,
                priority=priority,
                status=ServiceRequestStatus.PENDING,
                description=text,
                created_at=utcnow(),
            )
            self.db.add(request)
            self.db.flush()
            task = self.create_from_request(request, hotel_id)

        self.db.refresh(request)
        self.db.refresh(task)
        logger.info(f"Service request {request.id} ({request_type.value}) created, task {task.id}")

        self.publish_request(request, hotel_id, ChangeType.INSERT)
        self.publish_task(task, ChangeType.INSERT)
        self.activity_log.append(
            hotel_id=hotel_id,
            action_type="service_request",
            description=f"Service request: {REQUEST_TYPE_LABELS[request_type]} (Room {room.room_number})",
            related_room_id=room.id,
            related_booking_id=booking.id,
        )
        return request

    def get_service_request(self, hotel_id: int, request_id: int) -> ServiceRequest:
        request = self.db.query(ServiceRequest).filter(ServiceRequest.id == request_id).first()
        if not request:
            raise NotFound("服务请求不存在")
        ensure_same_hotel(request.room.hotel_id, hotel_id, "服务请求")
        return request

    def list_service_requests(self, hotel_id: int,
                              status: Union[ServiceRequestStatus, str]) -> List[ServiceRequest]:
        """按状态列出本酒店的服务请求（通过房间关联酒店）"""
        status = coerce_enum(ServiceRequestStatus, status, "服务请求状态")
        return self.db.query(ServiceRequest).join(
            Room, ServiceRequest.room_id == Room.id
        ).filter(
            Room.hotel_id == hotel_id,
            ServiceRequest.status == status
        ).order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc()).all()

    def pending(self, hotel_id: int) -> List[ServiceRequest]:
        return self.list_service_requests(hotel_id, ServiceRequestStatus.PENDING)

    def in_progress(self, hotel_id: int) -> List[ServiceRequest]:
        return self.list_service_requests(hotel_id, ServiceRequestStatus.IN_PROGRESS)

    def get_guest_requests(self, guest_id: int) -> List[ServiceRequest]:
        """客人自己的服务请求（最新在前）"""
        return self.db.query(ServiceRequest).filter(
            ServiceRequest.guest_id == guest_id
        ).order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc()).all()

    def start_service_request(self, hotel_id: int, request_id: int) -> ServiceRequest:
        """开始处理：pending -> in_progress"""
        return self._transition_request(hotel_id, request_id, ServiceRequestStatus.IN_PROGRESS)

    def complete_service_request(self, hotel_id: int, request_id: int,
                                 actor_id: Optional[int] = None) -> ServiceRequest:
        """完成服务请求（已完成的请求直接返回）"""
        request = self.get_service_request(hotel_id, request_id)
        if request.status == ServiceRequestStatus.COMPLETED:
            return request

        request = self._transition_request(hotel_id, request_id, ServiceRequestStatus.COMPLETED)
        self.activity_log.append(
            hotel_id=hotel_id,
            action_type="service_request_completed",
            description=f"Service request completed: {REQUEST_TYPE_LABELS[request.request_type]} "
                        f"(Room {request.room.room_number})",
            actor_id=actor_id,
            related_room_id=request.room_id,
            related_booking_id=request.booking_id,
        )
        return request

    def cancel_service_request(self, hotel_id: int, request_id: int,
                               actor_id: Optional[int] = None) -> ServiceRequest:
        """取消服务请求：pending -> cancelled"""
        request = self.get_service_request(hotel_id, request_id)
        if request.status == ServiceRequestStatus.CANCELLED:
            return request

        request = self._transition_request(hotel_id, request_id, ServiceRequestStatus.CANCELLED)
        self.activity_log.append(
            hotel_id=hotel_id,
            action_type="service_request_cancelled",
            description=f"Service request cancelled: {REQUEST_TYPE_LABELS[request.request_type]} "
                        f"(Room {request.room.room_number})",
            actor_id=actor_id,
            related_room_id=request.room_id,
            related_booking_id=request.booking_id,
        )
        return request

    def _transition_request(self, hotel_id: int, request_id: int,
                            target: ServiceRequestStatus) -> ServiceRequest:
        request = self.get_service_request(hotel_id, request_id)
        with transaction(self.db):
            SERVICE_REQUEST_MACHINE.validate(request.status, target)
            request.status = target
        self.db.refresh(request)
        self.publish_request(request, hotel_id)
        return request

    # ============== 实时推送 ==============

    def publish_task(self, task: Task, change_type: ChangeType = ChangeType.UPDATE) -> None:
        self._publish_event(build_change_event(
            "tasks", task.as_row(), task.hotel_id, change_type, source="task_service"
        ))

    def publish_request(self, request: ServiceRequest, hotel_id: int,
                        change_type: ChangeType = ChangeType.UPDATE) -> None:
        self._publish_event(build_change_event(
            "service_requests", request.as_row(), hotel_id, change_type, source="task_service"
        ))


_NO_DETAILS = "No additional details"
