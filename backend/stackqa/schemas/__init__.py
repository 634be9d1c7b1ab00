# Schemas package init
"""
StackQA Backend — Pydantic Schemas
===================================

API contracts, kept separate from the ORM models so that storage-only fields
(password hashes) can never leak into a response.

    - common.py         error, health, author summary
    - auth.py           register/login payloads, session token
    - question.py       question list/detail payloads
    - answer.py         answer payloads, vote and accept payloads
    - user.py           profile and profile tabs
    - notification.py   placeholder notifications
"""
