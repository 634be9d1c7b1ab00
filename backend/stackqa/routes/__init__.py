# Routes package init
"""
StackQA Backend — API Routes Package
=====================================

Route Inventory:
    - auth.py:           /api/auth/register, /login, /logout, /session
    - questions.py:      /api/questions (list, ask, live), /api/questions/{id}
                         (detail, answers, live answers, post answer, accept)
    - answers.py:        POST /api/answers/{answer_id}/vote
    - users.py:          /api/users/{id} (profile, questions tab, answers tab),
                         PATCH /api/users/me
    - notifications.py:  GET /api/notifications
    - health.py:         GET /health

Routes stay thin: parse the request, resolve the viewer, call one service,
return its schema. Business rules and error translation live in services.
"""
