"""
StackQA Backend — Authentication Schemas
=========================================

What:  Request bodies for sign-up / sign-in and the session payloads returned
       to the client.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    """Sign-up form: name, email, password."""
    name: str = Field(min_length=1, max_length=100, description="Display name")
    email: EmailStr = Field(description="Login email (stored lower-cased)")
    password: str = Field(min_length=6, max_length=128, description="At least 6 characters")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Name must not be blank")
        return stripped


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class SessionUser(BaseModel):
    """
    What:  The signed-in user as seen by themselves (includes email).
    Who:   Returned by login/register and GET /api/auth/session.
    """
    id: uuid.UUID
    name: str
    email: str
    avatar_url: str
    created_at: datetime
    reputation: int

    model_config = {"from_attributes": True}


class SessionToken(BaseModel):
    """
    Bearer token for subsequent requests.

    The client sends it back as `Authorization: Bearer <access_token>`.
    """
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Seconds until the token expires")
    user: SessionUser


class SessionResponse(BaseModel):
    """Current session state: a user, or null for anonymous callers."""
    user: Optional[SessionUser] = None
