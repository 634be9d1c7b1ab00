"""
StackQA Backend — User SQLAlchemy Model
========================================

What:  ORM model for the `users` table: identity (email + password hash) and
       the public profile shown next to every question and answer.
Who:   AuthService (register/login), UserService (profiles), UserCache loader.

Table notes:
    - email is stored lower-cased and is unique; registration relies on the
      unique index to settle concurrent sign-ups with the same address.
    - reputation is an integer with monotonic intent; nothing enforces it.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP

from stackqa.database import Base

AVATAR_URL_TEMPLATE = "https://picsum.photos/seed/{seed}/{size}/{size}"


def default_avatar_url(user_id: uuid.UUID, size: int = 40) -> str:
    """Deterministic placeholder avatar for a freshly registered user."""
    return AVATAR_URL_TEMPLATE.format(seed=user_id, size=size)


class User(Base):
    """A registered participant. Never deleted."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Lower-cased login email",
    )

    # passlib bcrypt hash; never serialized
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    avatar_url: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    reputation: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    __table_args__ = (
        Index("uq_users_email", "email", unique=True),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name='{self.name}')>"
