"""
StackQA Backend — Question Schemas
===================================

What:  Payloads for the home list, the ask-question form and the question
       detail page.

Design note:
    QuestionListItem carries answer_count and vote_total straight from the
    question row. A page of n questions is one query, not 1 + n.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from stackqa.schemas.answer import AnswerResponse
from stackqa.schemas.common import AuthorSummary


class QuestionCreate(BaseModel):
    """
    Ask-question form.

    Tags are normalized server-side (trimmed, de-duplicated case-sensitively,
    first occurrence wins) before the count limit is applied.
    """
    title: str = Field(min_length=1, max_length=300)
    description: str = Field(min_length=1, max_length=100_000, description="Question HTML")
    tags: List[str] = Field(min_length=1, max_length=50, description="Tag strings")


class QuestionListItem(BaseModel):
    """One row of the question list."""
    id: uuid.UUID
    title: str
    excerpt: str = Field(description="Plain-text start of the description")
    tags: List[str]
    views: int
    answer_count: int
    vote_total: int
    created_at: datetime
    author: Optional[AuthorSummary] = None


class QuestionListResponse(BaseModel):
    """
    Paginated question list (newest first).

    next_cursor is the created_at of the last item; pass it back as
    ?cursor= to get the following page.
    """
    questions: List[QuestionListItem]
    total_count: int
    next_cursor: Optional[str] = None
    has_more: bool


class QuestionResponse(BaseModel):
    """Full question as stored, with its author card."""
    id: uuid.UUID
    title: str
    description: str
    tags: List[str]
    author_id: uuid.UUID
    views: int
    answer_count: int
    vote_total: int
    created_at: datetime
    author: Optional[AuthorSummary] = None


class QuestionDetailResponse(BaseModel):
    """Question page payload: the question plus its answers in display order."""
    question: QuestionResponse
    answers: List[AnswerResponse]
