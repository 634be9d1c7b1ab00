# Models package init
"""
StackQA Backend — ORM Models
=============================

Importing this package registers every table on `Base.metadata`, which both
the application and Alembic's --autogenerate rely on.

Tables:
    - users      (user.py)      identity + public profile
    - questions  (question.py)  questions with denormalized answer/vote counters
    - answers    (answer.py)    answers with vote counter and acceptance flag
"""

from stackqa.models.user import User
from stackqa.models.question import Question
from stackqa.models.answer import Answer

__all__ = ["User", "Question", "Answer"]
