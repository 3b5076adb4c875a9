"""
服务请求路由（员工端）
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from hotelops.database import get_db
from hotelops.models.ontology import User
from hotelops.models.schemas import ServiceRequestResponse
from hotelops.services.task_service import TaskService
from hotelops.security.auth import get_current_user, require_staff

router = APIRouter(prefix="/service-requests", tags=["服务请求"])


@router.get("", response_model=List[ServiceRequestResponse])
def list_service_requests(
    status_filter: str = Query("pending", alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """按状态列出服务请求（默认待处理）"""
    return TaskService(db).list_service_requests(current_user.hotel_id, status_filter)


@router.post("/{request_id}/start", response_model=ServiceRequestResponse)
def start_service_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return TaskService(db).start_service_request(current_user.hotel_id, request_id)


@router.post("/{request_id}/complete", response_model=ServiceRequestResponse)
def complete_service_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return TaskService(db).complete_service_request(
        current_user.hotel_id, request_id, actor_id=current_user.id
    )


@router.post("/{request_id}/cancel", response_model=ServiceRequestResponse)
def cancel_service_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return TaskService(db).cancel_service_request(
        current_user.hotel_id, request_id, actor_id=current_user.id
    )
