"""
StackQA Backend — Answer SQLAlchemy Model
==========================================

What:  ORM model for the `answers` table.
Who:   AnswerService (post, list, accept), VoteService (vote counter),
       UserService (answered-questions tab).

Invariants:
    - votes has no lower or upper bound and is only changed by atomic
      increments (`votes = votes + :delta`).
    - At most one answer per question has is_accepted set. The accept
      transition updates every affected row of a question in one statement
      while holding the question row lock.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP

from stackqa.database import Base


class Answer(Base):
    """An answer to one question."""

    __tablename__ = "answers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    # Sanitized HTML
    content: Mapped[str] = mapped_column(Text, nullable=False)

    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )

    question_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("questions.id"),
        nullable=False,
    )

    votes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    is_accepted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_answers_question_created", "question_id", "created_at"),
        Index("idx_answers_author_id", "author_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Answer(id={self.id}, question_id={self.question_id}, "
            f"votes={self.votes}, accepted={self.is_accepted})>"
        )
