"""
Admin notification endpoints: targeted sends, broadcasts and send stats.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from toeic_api.core.auth_dependency import require_admin
from toeic_api.db.session import get_db
from toeic_api.db.models.user import User
from toeic_api.schemas.notifications import (
    ActivityReportBroadcast,
    ActivityReportRequest,
    FeatureAnnouncementBroadcast,
    FeatureAnnouncementRequest,
    MaintenanceBroadcast,
    MaintenanceRequest,
    NotificationRequest,
    SecurityAlertBroadcast,
    SecurityAlertRequest,
)
from toeic_api.services import notification_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _send(event_type: str, request: NotificationRequest, db: Session, admin: User) -> dict:
    recipients = notification_service.resolve_recipients(db, request.recipients, request.user_ids)
    if not recipients:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid recipients found")

    logger.info(f"Notification requested: type={event_type}, admin_id={admin.id}, recipients={len(recipients)}")
    result = notification_service.send_notifications(event_type, request.payload(), recipients)
    return {"success": True, "data": result}


def _broadcast(event_type: str, request: NotificationRequest, db: Session, admin: User) -> dict:
    recipients = notification_service.get_broadcast_recipients(db)
    if not recipients:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid recipients found")

    logger.info(f"Notification broadcast: type={event_type}, admin_id={admin.id}, recipients={len(recipients)}")
    result = notification_service.send_notifications(event_type, request.payload(), recipients)
    return {"success": True, "data": result}


# ============================================
# Targeted sends
# ============================================

@router.post("/security-alert")
def send_security_alert(request: SecurityAlertRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _send("security-alert", request, db, admin)


@router.post("/maintenance")
def send_maintenance(request: MaintenanceRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _send("maintenance", request, db, admin)


@router.post("/activity-report")
def send_activity_report(request: ActivityReportRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _send("activity-report", request, db, admin)


@router.post("/feature-announcement")
def send_feature_announcement(
    request: FeatureAnnouncementRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _send("feature-announcement", request, db, admin)


# ============================================
# Broadcasts (all active, verified users)
# ============================================

@router.post("/broadcast/security-alert")
def broadcast_security_alert(
    request: SecurityAlertBroadcast,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _broadcast("security-alert", request, db, admin)


@router.post("/broadcast/maintenance")
def broadcast_maintenance(request: MaintenanceBroadcast, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _broadcast("maintenance", request, db, admin)


@router.post("/broadcast/activity-report")
def broadcast_activity_report(
    request: ActivityReportBroadcast,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _broadcast("activity-report", request, db, admin)


@router.post("/broadcast/feature-announcement")
def broadcast_feature_announcement(
    request: FeatureAnnouncementBroadcast,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _broadcast("feature-announcement", request, db, admin)


@router.get("/stats")
def notification_stats(admin: User = Depends(require_admin)):
    return {"success": True, "data": notification_service.stats.snapshot()}
