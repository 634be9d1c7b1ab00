"""
StackQA Backend — Question SQLAlchemy Model
============================================

What:  ORM model for the `questions` table.
Who:   QuestionService (create, list, detail, views), AnswerService and
       VoteService (denormalized counters), UserService (profile tabs).

Denormalized counters:
    answer_count and vote_total are maintained in the same transaction as the
    answer insert or vote increment that changes them, always as
    server-evaluated increments (`col = col + :delta`). The question list
    reads them directly instead of querying answers per row.

Lifecycle:
    1. Created once by its author (views = answer_count = vote_total = 0)
    2. Afterwards only field-level patched: views +1, counters ±delta
    3. Never deleted
"""

import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import ARRAY, UUID, TIMESTAMP

from stackqa.database import Base


class Question(Base):
    """
    A question with rich-text description and up to five tags.

    Query Patterns:
        - Home list: ORDER BY created_at DESC LIMIT n   → idx_questions_created_at
        - Tag filter: WHERE :tag = ANY(tags)             → idx_questions_tags (GIN)
        - Profile tab: WHERE author_id = :uid            → idx_questions_author_id
    """

    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    title: Mapped[str] = mapped_column(String(300), nullable=False)

    # Sanitized HTML (see services/sanitizer.py); never stored raw
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Ordered, de-duplicated, case-sensitive
    tags: Mapped[List[str]] = mapped_column(
        ARRAY(String(100)),
        nullable=False,
        default=list,
        server_default=text("'{}'"),
    )

    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )

    # Only ever incremented
    views: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    answer_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    # Sum of votes over this question's answers; may be negative
    vote_total: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_questions_created_at", created_at.desc()),
        Index("idx_questions_author_id", "author_id"),
        Index("idx_questions_tags", "tags", postgresql_using="gin"),
    )

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, title='{self.title[:30]}', views={self.views})>"
