import logging
from datetime import datetime
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from toeic_api.core import config
from toeic_api.core.auth_dependency import get_current_user
from toeic_api.core.errors import AccountTokenError
from toeic_api.core.rate_limit import get_client_ip
from toeic_api.core.security import hash_password, verify_password, create_access_token
from toeic_api.db.session import get_db
from toeic_api.db.models.user import User
from toeic_api.schemas.auth import (
    EmailOnlyRequest,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    ResetPasswordRequest,
    ResetTokenRequest,
    VerifyEmailRequest,
)
from toeic_api.services import account_email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"


def _auth_payload(user: User) -> dict:
    return {"user": user.to_public_dict(), "token": create_access_token({"sub": str(user.id)})}


def _token_error(e: AccountTokenError) -> HTTPException:
    detail = {"error": str(e), "errorCode": e.error_code}
    if e.remaining_attempts is not None:
        detail["remainingAttempts"] = e.remaining_attempts
    return HTTPException(status_code=e.status_code, detail=detail)


# ✅ REGISTRATION
@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    email = request.email.lower()
    existing_user = db.query(User).filter(func.lower(User.email) == email).first()
    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=email,
        name=request.name.strip(),
        password_hash=hash_password(request.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"User registered: user_id={user.id}")
    email_result = account_email_service.send_verification_code(db, user)

    data = {**_auth_payload(user), "needsVerification": True}
    if not email_result.success:
        data["emailError"] = True
        return {
            "success": True,
            "data": data,
            "message": "Registration successful, but the verification email could not be sent. Request a new code later",
        }
    return {"success": True, "data": data, "message": "Registration successful. Check your inbox for the verification code"}


# ✅ LOGIN (JSON body; token subject is the user id)
@router.post("/login")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(func.lower(User.email) == request.email.lower()).first()

    if not user or not verify_password(request.password, user.password_hash):
        logger.info("Login failed: bad credentials")
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")

    user.last_login_at = datetime.utcnow()
    db.commit()
    db.refresh(user)

    logger.info(f"User logged in: user_id={user.id}")
    return {"success": True, "data": _auth_payload(user), "message": "Login successful"}


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user)):
    return {"success": True, "data": current_user.to_public_dict()}


@router.put("/me")
def update_me(
    request: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if request.name is not None:
        current_user.name = request.name.strip()
    db.commit()
    db.refresh(current_user)
    return {"success": True, "data": current_user.to_public_dict(), "message": "Profile updated"}


# ✅ GOOGLE OAUTH ENTRY POINT (callback handled by the frontend)
@router.get("/google")
def google_login():
    if not config.GOOGLE_CLIENT_ID:
        raise HTTPException(status_code=503, detail="Google OAuth is not configured")

    params = {
        "client_id": config.GOOGLE_CLIENT_ID,
        "redirect_uri": config.GOOGLE_CALLBACK_URL,
        "response_type": "code",
        "scope": "openid email profile",
        "access_type": "offline",
        "prompt": "select_account",
    }
    return {"success": True, "data": {"url": f"{GOOGLE_AUTH_URL}?{urlencode(params)}"}}


# ============================================
# ✅ EMAIL VERIFICATION
# ============================================

@router.post("/verify-email")
def verify_email(request: VerifyEmailRequest, db: Session = Depends(get_db)):
    try:
        user = account_email_service.verify_email(db, request.email, request.code)
    except AccountTokenError as e:
        raise _token_error(e)
    return {"success": True, "data": _auth_payload(user), "message": "Email verified"}


@router.post("/resend-verification")
def resend_verification(request: EmailOnlyRequest, db: Session = Depends(get_db)):
    user = account_email_service.find_user_by_email(db, request.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    try:
        result = account_email_service.send_verification_code(db, user, enforce_cooldown=True)
    except AccountTokenError as e:
        raise _token_error(e)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Verification email could not be sent")
    return {"success": True, "message": "Verification code sent"}


# ============================================
# ✅ PASSWORD RESET
# ============================================

@router.post("/request-password-reset")
def request_password_reset(request: EmailOnlyRequest, db: Session = Depends(get_db)):
    try:
        account_email_service.request_password_reset(db, request.email)
    except AccountTokenError as e:
        raise _token_error(e)
    return {"success": True, "message": "If that email is registered, a reset link has been sent"}


@router.post("/verify-reset-token")
def verify_reset_token(request: ResetTokenRequest, db: Session = Depends(get_db)):
    try:
        row = account_email_service.check_reset_token(db, request.token)
    except AccountTokenError as e:
        raise _token_error(e)
    user = db.query(User).filter(User.id == row.user_id).first()
    return {"success": True, "data": {"email": user.email, "userName": user.name}}


@router.post("/reset-password")
def reset_password(request: ResetPasswordRequest, http_request: Request, db: Session = Depends(get_db)):
    try:
        account_email_service.reset_password(
            db,
            request.token,
            request.new_password,
            ip_address=get_client_ip(http_request),
            user_agent=http_request.headers.get("User-Agent"),
        )
    except AccountTokenError as e:
        raise _token_error(e)
    return {"success": True, "message": "Password reset. You can now sign in with the new password"}
