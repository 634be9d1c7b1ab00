"""Enumerations shared by models, schemas and services."""

from enum import Enum


class VoteIntent(str, Enum):
    """A viewer's current local vote state for one answer."""
    NONE = "none"
    UP = "up"
    DOWN = "down"

    def __str__(self) -> str:
        return self.value


class VoteAction(str, Enum):
    """What the viewer clicked."""
    UPVOTE = "upvote"
    DOWNVOTE = "downvote"

    def __str__(self) -> str:
        return self.value


class NotificationType(str, Enum):
    NEW_ANSWER = "NEW_ANSWER"
    MENTION = "MENTION"
    COMMENT = "COMMENT"
    OTHER = "OTHER"

    def __str__(self) -> str:
        return self.value
