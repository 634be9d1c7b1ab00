"""
StackQA Backend — Answer, Vote and Accept Schemas
==================================================

What:  Payloads for the question-detail answer list and the two mutations on
       answers: voting and acceptance.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from stackqa.models.enums import VoteAction, VoteIntent
from stackqa.schemas.common import AuthorSummary


class AnswerCreate(BaseModel):
    """Rich-text answer body. Sanitized server-side before storage."""
    content: str = Field(min_length=1, max_length=50_000, description="Answer HTML")


class AnswerResponse(BaseModel):
    """
    What:  One answer as rendered on the question page.

    viewer_intent is the calling viewer's local vote state for this answer
    (always "none" for anonymous callers).
    """
    id: uuid.UUID
    question_id: uuid.UUID
    content: str
    votes: int
    is_accepted: bool
    created_at: datetime
    author: Optional[AuthorSummary] = Field(
        default=None,
        description="Null when the author's profile could not be loaded",
    )
    viewer_intent: VoteIntent = VoteIntent.NONE


class AnswerListResponse(BaseModel):
    """Answers for one question in display order (accepted, votes, age)."""
    question_id: uuid.UUID
    answers: List[AnswerResponse]
    total_count: int


class VoteRequest(BaseModel):
    action: VoteAction = Field(description="'upvote' or 'downvote'")


class VoteResponse(BaseModel):
    """
    Result of one vote transition.

    votes is the authoritative counter returned by the store after the
    atomic increment, not a client-side computation.
    """
    answer_id: uuid.UUID
    votes: int
    intent: VoteIntent
    delta: int = Field(description="Increment that was applied to the shared counter")


class AcceptResponse(BaseModel):
    """Answers of the question after the acceptance moved."""
    question_id: uuid.UUID
    accepted_answer_id: uuid.UUID
    answers: List[AnswerResponse]
