"""
任务管理路由
清洁 / 维修工单
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from hotelops.database import get_db
from hotelops.models.ontology import User
from hotelops.models.schemas import TaskCreate, TaskResponse
from hotelops.services.task_service import TaskService
from hotelops.security.auth import get_current_user, require_staff

router = APIRouter(prefix="/tasks", tags=["任务管理"])


@router.get("", response_model=List[TaskResponse])
def list_tasks(
    status_filter: Optional[str] = Query(None, alias="status"),
    task_type: Optional[str] = None,
    room_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """任务列表（高优先级在前）"""
    return TaskService(db).get_tasks(current_user.hotel_id, status_filter, task_type, room_id)


@router.get("/pending", response_model=List[TaskResponse])
def list_pending_tasks(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """待处理任务"""
    return TaskService(db).pending_tasks(current_user.hotel_id)


@router.get("/summary")
def get_task_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """待处理任务统计"""
    return TaskService(db).task_summary(current_user.hotel_id)


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def mark_room(
    data: TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """标记房间待清洁 / 维修并生成工单"""
    return TaskService(db).mark_room(
        current_user.hotel_id, data.room_id, data.task_type, data.priority,
        data.description, actor_id=current_user.id
    )


@router.post("/{task_id}/complete", response_model=TaskResponse)
def complete_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """完成任务"""
    return TaskService(db).complete_task(current_user.hotel_id, task_id, actor_id=current_user.id)
