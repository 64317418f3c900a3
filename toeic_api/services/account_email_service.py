"""
Email verification codes and password reset tokens.

Secrets are random, mailed once and stored only as SHA-256 digests in
email_tokens. A verification code allows EMAIL_VERIFICATION_MAX_ATTEMPTS
guesses before it is burned; a reset token works once.
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from toeic_api.core import config
from toeic_api.core.errors import AccountTokenError
from toeic_api.core.security import hash_password
from toeic_api.db.models.email_token import EmailToken
from toeic_api.db.models.user import User
from toeic_api.services import email_service
from toeic_api.services.email_templates import (
    render_password_reset,
    render_security_alert,
    render_verification_code,
    render_welcome,
)

logger = logging.getLogger(__name__)

EMAIL_VERIFICATION = "email_verification"
PASSWORD_RESET = "password_reset"
RESET_TOKEN_LENGTH = 64


def _digest(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def _live_tokens(db: Session, user_id: int, purpose: str, now: datetime):
    return db.query(EmailToken).filter(
        EmailToken.user_id == user_id,
        EmailToken.purpose == purpose,
        EmailToken.used_at.is_(None),
        EmailToken.expires_at > now,
    )


def _retire_tokens(db: Session, user_id: int, purpose: str, now: datetime) -> None:
    _live_tokens(db, user_id, purpose, now).update({EmailToken.used_at: now}, synchronize_session=False)


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


# ============================================
# Email verification
# ============================================

def send_verification_code(
    db: Session,
    user: User,
    now: datetime = None,
    enforce_cooldown: bool = False,
) -> email_service.EmailResult:
    """
    Issue a new 6-digit code, replacing any live one, and mail it.

    With enforce_cooldown, a code issued less than
    EMAIL_VERIFICATION_RESEND_SECONDS ago is kept and AccountTokenError is
    raised instead.
    """
    now = now or datetime.utcnow()
    if user.email_verified:
        raise AccountTokenError("Email is already verified", "ALREADY_VERIFIED")

    if enforce_cooldown:
        latest = _live_tokens(db, user.id, EMAIL_VERIFICATION, now).order_by(EmailToken.created_at.desc()).first()
        if latest and (now - latest.created_at).total_seconds() < config.EMAIL_VERIFICATION_RESEND_SECONDS:
            raise AccountTokenError(
                "A verification code was sent recently. Check your inbox or try again later",
                "CODE_STILL_VALID",
            )

    _retire_tokens(db, user.id, EMAIL_VERIFICATION, now)
    code = str(secrets.randbelow(900000) + 100000)
    db.add(EmailToken(
        user_id=user.id,
        purpose=EMAIL_VERIFICATION,
        token_hash=_digest(code),
        expires_at=now + timedelta(minutes=config.EMAIL_VERIFICATION_CODE_MINUTES),
        created_at=now,
    ))
    db.commit()

    subject, html, text = render_verification_code(user.name, code, config.EMAIL_VERIFICATION_CODE_MINUTES)
    result = email_service.send_email(user.email, subject, html, text)
    if result.success:
        logger.info(f"Verification code sent: user_id={user.id}")
    else:
        logger.warning(f"Verification code not delivered: user_id={user.id}, error={result.error}")
    return result


def verify_email(db: Session, email: str, code: str, now: datetime = None) -> User:
    """Mark the user verified when the code matches. Raises AccountTokenError otherwise."""
    now = now or datetime.utcnow()
    user = find_user_by_email(db, email)
    if user is None:
        raise AccountTokenError("Verification code not found or expired", "CODE_NOT_FOUND")
    if user.email_verified:
        raise AccountTokenError("Email is already verified", "ALREADY_VERIFIED")

    token = _live_tokens(db, user.id, EMAIL_VERIFICATION, now).order_by(EmailToken.created_at.desc()).first()
    if token is None:
        raise AccountTokenError("Verification code not found or expired", "CODE_NOT_FOUND")

    if token.attempts >= config.EMAIL_VERIFICATION_MAX_ATTEMPTS:
        token.used_at = now
        db.commit()
        raise AccountTokenError("Too many attempts, please request a new code", "TOO_MANY_ATTEMPTS")

    token.attempts += 1
    if not secrets.compare_digest(token.token_hash, _digest(code.strip())):
        remaining = max(0, config.EMAIL_VERIFICATION_MAX_ATTEMPTS - token.attempts)
        db.commit()
        logger.info(f"Verification code rejected: user_id={user.id}, remaining_attempts={remaining}")
        raise AccountTokenError("Invalid verification code", "INVALID_CODE", remaining_attempts=remaining)

    token.used_at = now
    user.email_verified = True
    db.commit()
    db.refresh(user)
    logger.info(f"Email verified: user_id={user.id}")

    subject, html, text = render_welcome(user.name)
    email_service.send_email(user.email, subject, html, text)
    return user


# ============================================
# Password reset
# ============================================

def request_password_reset(db: Session, email: str, now: datetime = None) -> None:
    """
    Mail a single-use reset link.

    Unknown or disabled accounts return silently so the endpoint does not
    reveal which addresses are registered.
    """
    now = now or datetime.utcnow()
    user = find_user_by_email(db, email)
    if user is None or not user.is_active:
        logger.info("Password reset requested for an unknown or disabled account")
        return
    if not user.email_verified:
        raise AccountTokenError("Please verify your email address first", "EMAIL_NOT_VERIFIED")
    if _live_tokens(db, user.id, PASSWORD_RESET, now).count() >= config.PASSWORD_RESET_MAX_ACTIVE:
        raise AccountTokenError(
            "Too many reset requests, please try again later",
            "TOO_MANY_RESET_REQUESTS",
            status_code=429,
        )

    token = secrets.token_hex(RESET_TOKEN_LENGTH // 2)
    db.add(EmailToken(
        user_id=user.id,
        purpose=PASSWORD_RESET,
        token_hash=_digest(token),
        expires_at=now + timedelta(minutes=config.PASSWORD_RESET_TOKEN_MINUTES),
        created_at=now,
    ))
    db.commit()

    reset_url = f"{config.FRONTEND_URL}/reset-password?token={token}"
    subject, html, text = render_password_reset(user.name, reset_url, config.PASSWORD_RESET_TOKEN_MINUTES)
    result = email_service.send_email(user.email, subject, html, text)
    logger.info(f"Password reset requested: user_id={user.id}, delivered={result.success}")


def check_reset_token(db: Session, token: str, now: datetime = None) -> EmailToken:
    now = now or datetime.utcnow()
    if not token or len(token) != RESET_TOKEN_LENGTH:
        raise AccountTokenError("Invalid reset link", "INVALID_TOKEN")

    row = db.query(EmailToken).filter(
        EmailToken.purpose == PASSWORD_RESET,
        EmailToken.token_hash == _digest(token),
    ).first()
    if row is None:
        raise AccountTokenError("Invalid reset link", "INVALID_TOKEN")
    if row.used_at is not None:
        raise AccountTokenError("This reset link has already been used", "TOKEN_USED")
    if row.expires_at <= now:
        raise AccountTokenError("This reset link has expired, please request a new one", "TOKEN_EXPIRED")
    return row


def reset_password(
    db: Session,
    token: str,
    new_password: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    now: datetime = None,
) -> User:
    """Set a new password and retire every outstanding reset link for the user."""
    now = now or datetime.utcnow()
    row = check_reset_token(db, token, now)
    user = db.query(User).filter(User.id == row.user_id).first()
    if user is None or not user.is_active:
        raise AccountTokenError("Invalid reset link", "INVALID_TOKEN")

    user.password_hash = hash_password(new_password)
    _retire_tokens(db, user.id, PASSWORD_RESET, now)
    db.commit()
    db.refresh(user)
    logger.info(f"Password reset completed: user_id={user.id}")

    subject, html, text = render_security_alert(
        user.name,
        "password_change",
        {"time": now.strftime("%Y-%m-%d %H:%M UTC"), "ipAddress": ip_address, "userAgent": user_agent},
    )
    email_service.send_email(user.email, subject, html, text)
    return user
