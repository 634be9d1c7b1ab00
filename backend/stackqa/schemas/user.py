"""
StackQA Backend — User Profile Schemas
=======================================

What:  Payloads for /users/:userId — the profile card with stats and the two
       tabs (authored questions, answered questions).
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, HttpUrl, field_validator


class UserStats(BaseModel):
    reputation: int
    questions: int
    answers: int


class UserProfileResponse(BaseModel):
    """Public profile. Email is deliberately absent."""
    id: uuid.UUID
    name: str
    avatar_url: str = Field(description="Avatar image URL (128px variant)")
    created_at: datetime
    member_since: str = Field(description="e.g. 'March 2024'")
    stats: UserStats


class ProfileContentItem(BaseModel):
    """
    One row in a profile tab.

    value/label read as "3 answers" on the questions tab and "12 votes" on the
    answers tab. date is the question's creation date on the questions tab and
    the user's answer date on the answers tab.
    """
    question_id: uuid.UUID
    title: str
    value: int
    label: str
    date: datetime


class ProfileContentResponse(BaseModel):
    user_id: uuid.UUID
    items: List[ProfileContentItem]
    total_count: int


class ProfileUpdate(BaseModel):
    """Self-service profile edit. Omitted fields are left unchanged."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    avatar_url: Optional[HttpUrl] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        stripped = v.strip()
        if not stripped:
            raise ValueError("Name must not be blank")
        return stripped
