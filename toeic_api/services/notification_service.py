"""
Notification email dispatch: recipient resolution, rendering, batch send and
per-process send statistics.
"""
import logging
import threading
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from toeic_api.db.models.user import User
from toeic_api.services.email_service import send_email
from toeic_api.services.email_templates import (
    render_activity_report,
    render_feature_announcement,
    render_maintenance,
    render_security_alert,
)

logger = logging.getLogger(__name__)

BROADCAST_MAX_RECIPIENTS = 1000

RENDERERS: Dict[str, Callable[[Optional[str], Dict[str, Any]], Tuple[str, str, str]]] = {
    "security-alert": lambda name, p: render_security_alert(name, p["alert_type"], p.get("details")),
    "maintenance": lambda name, p: render_maintenance(
        name, p["maintenance_type"], p["start_time"], p.get("end_time"), p.get("description")
    ),
    "activity-report": lambda name, p: render_activity_report(name, p["report_type"], p.get("activity_data") or {}),
    "feature-announcement": lambda name, p: render_feature_announcement(
        name, p["announcement_type"], p["title"], p.get("features") or []
    ),
}
EVENT_TYPES = tuple(RENDERERS)


class NotificationStats:
    """Send counters since process start."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sent = Counter()
        self._failed = Counter()
        self.started_at = datetime.utcnow()

    def record(self, event_type: str, success: bool) -> None:
        with self._lock:
            (self._sent if success else self._failed)[event_type] += 1

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            by_type = {
                event_type: {"sent": self._sent[event_type], "failed": self._failed[event_type]}
                for event_type in EVENT_TYPES
            }
            return {
                "since": self.started_at.isoformat(),
                "totalSent": sum(self._sent.values()),
                "totalFailed": sum(self._failed.values()),
                "byType": by_type,
            }

    def reset(self) -> None:
        with self._lock:
            self._sent.clear()
            self._failed.clear()
            self.started_at = datetime.utcnow()


stats = NotificationStats()


def _eligible_users(db: Session):
    return db.query(User).filter(User.email_verified.is_(True), User.is_active.is_(True))


def resolve_recipients(
    db: Session,
    recipients: Optional[List[str]] = None,
    user_ids: Optional[List[int]] = None,
) -> List[Tuple[str, Optional[str]]]:
    """
    (email, name) pairs to send to.

    user_ids only resolve to active, verified users. Explicit addresses are
    used as given. The result is de-duplicated case-insensitively, first
    occurrence wins.
    """
    resolved: List[Tuple[str, Optional[str]]] = []
    seen = set()

    def _add(email: str, name: Optional[str]) -> None:
        key = email.strip().lower()
        if key and key not in seen:
            seen.add(key)
            resolved.append((email.strip(), name))

    if user_ids:
        for user in _eligible_users(db).filter(User.id.in_(user_ids)).order_by(User.id).all():
            _add(user.email, user.name)

    if recipients:
        known = {
            user.email.lower(): user.name
            for user in db.query(User).filter(User.email.in_(recipients)).all()
        }
        for email in recipients:
            _add(email, known.get(email.lower()))

    return resolved


def get_broadcast_recipients(db: Session, limit: int = BROADCAST_MAX_RECIPIENTS) -> List[Tuple[str, Optional[str]]]:
    users = _eligible_users(db).order_by(User.id).limit(limit).all()
    return [(user.email, user.name) for user in users]


def send_notifications(event_type: str, payload: Dict[str, Any], recipients: List[Tuple[str, Optional[str]]]) -> Dict[str, Any]:
    """
    Render and send one email per recipient.

    A failed recipient does not stop the batch.
    """
    render = RENDERERS[event_type]
    results = []
    for email, name in recipients:
        subject, html, text = render(name, payload)
        result = send_email(email, subject, html, text)
        stats.record(event_type, result.success)
        entry = {"email": email, "success": result.success}
        if result.message_id:
            entry["messageId"] = result.message_id
        if result.error:
            entry["error"] = result.error
        results.append(entry)

    success_count = sum(1 for r in results if r["success"])
    logger.info(
        f"Notifications sent: type={event_type}, recipients={len(results)}, "
        f"success={success_count}, failed={len(results) - success_count}"
    )
    return {
        "successCount": success_count,
        "failureCount": len(results) - success_count,
        "results": results,
    }
