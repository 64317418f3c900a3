"""
Pydantic schemas for authentication endpoints.
"""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    """Request schema for user registration."""
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., description="User's password (6-72 bytes)")
    name: str = Field(..., min_length=1, max_length=100, description="Display name")

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        """Validate password length in bytes (bcrypt limit is 72 bytes)."""
        password_bytes = v.encode("utf-8")
        if len(password_bytes) > 72:
            raise ValueError("Password too long (bcrypt limit 72 bytes)")
        if len(password_bytes) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "email": "learner@example.com",
                "password": "SecurePass123",
                "name": "Aiko"
            }
        }


class LoginRequest(BaseModel):
    """Request schema for user login."""
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, max_length=128, description="User's password")

    class Config:
        json_schema_extra = {
            "example": {
                "email": "learner@example.com",
                "password": "SecurePass123"
            }
        }


class ProfileUpdateRequest(BaseModel):
    """Request schema for updating the current user's profile."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class RoleUpdateRequest(BaseModel):
    """Request schema for changing a user's role."""
    role: str = Field(..., pattern="^(user|admin)$")


class VerifyEmailRequest(BaseModel):
    """Request schema for confirming an email address with the mailed code."""
    email: EmailStr
    code: str = Field(..., pattern=r"^\d{6}$", description="6-digit code from the verification email")


class EmailOnlyRequest(BaseModel):
    """Request schema for endpoints that only need an address."""
    email: EmailStr


class ResetTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=128)


class ResetPasswordRequest(BaseModel):
    """Request schema for setting a new password from a reset link."""
    token: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., alias="newPassword", description="New password (8-72 bytes)")

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        password_bytes = v.encode("utf-8")
        if len(password_bytes) > 72:
            raise ValueError("Password too long (bcrypt limit 72 bytes)")
        if len(password_bytes) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v

    class Config:
        populate_by_name = True
