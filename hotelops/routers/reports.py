"""
报表路由
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hotelops.database import get_db
from hotelops.models.ontology import User
from hotelops.services.report_service import ReportService
from hotelops.security.auth import get_current_user, require_manager

router = APIRouter(prefix="/reports", tags=["统计报表"])


@router.get("/dashboard")
def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """仪表盘统计"""
    return ReportService(db).get_dashboard_stats(current_user.hotel_id)


@router.get("/analytics")
def get_analytics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """本月经营分析（仅经理）"""
    return ReportService(db).get_monthly_analytics(current_user.hotel_id)
