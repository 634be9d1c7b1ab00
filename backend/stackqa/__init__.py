"""
StackQA Backend — Application Package Initializer
=================================================

What: Marks the `stackqa` directory as a Python package.
Who:  Imported by uvicorn (`stackqa.main:app`), Alembic, and pytest.

Architecture Note:
    The service follows a layered layout:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (votes, answers, users)  │  ← Business rules, authorization
    ├──────────────────┬──────────────────┤
    │ Models & Schemas │  Live hub/cache  │  ← ORM + Pydantic, in-process state
    ├──────────────────┴──────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes never touch SQL; services never touch HTTP objects.
"""

__version__ = "1.0.0"
