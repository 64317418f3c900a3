"""
Admin endpoints for database maintenance and user roles.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from toeic_api.core.auth_dependency import require_admin
from toeic_api.db import schema_patches
from toeic_api.db.session import get_db
from toeic_api.db.models.user import User
from toeic_api.schemas.auth import RoleUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/database/patch")
def apply_database_patches(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """
    Apply the built-in schema patches.

    Safe to call repeatedly: present columns and indexes are skipped.
    """
    reports = schema_patches.apply_all(db.get_bind())
    failed = sum(report.count(schema_patches.FAILED) for report in reports)
    logger.info(f"Schema patches applied by admin: admin_id={admin.id}, patches={len(reports)}, failed_steps={failed}")
    return {
        "success": failed == 0,
        "data": {"patches": [report.to_dict() for report in reports], "failedSteps": failed},
    }


@router.get("/database/status")
def database_status(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    engine = db.get_bind()
    missing = schema_patches.missing_columns(engine)
    return {
        "success": True,
        "data": {
            "ledger": schema_patches.ledger(engine),
            "missingColumns": missing,
            "upToDate": not any(missing.values()),
        },
    }


@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: int,
    request: RoleUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.id == admin.id and request.role != "admin":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot remove your own admin role")

    user.role = request.role
    db.commit()
    db.refresh(user)

    logger.info(f"User role changed: user_id={user_id}, role={request.role}, by_admin_id={admin.id}")
    return {"success": True, "data": user.to_public_dict()}
