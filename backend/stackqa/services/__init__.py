# Services package init
"""
StackQA Backend — Services Layer
=================================

What:  Business rules between the HTTP routes and the database.
How:   Each service is a stateless class with a module-level singleton; the
       request's AsyncSession and the signed-in viewer are passed per call.

Service Inventory:
    - QuestionService:     ask, list (cursor pagination), detail, view counter
    - AnswerService:       post, display-ordered list, accept transition
    - VoteService:         vote transition table + atomic counter increments
    - UserService:         profile card, profile tabs, author cards, profile edit
    - AuthService:         sign-up, sign-in, bearer tokens, sign-out
    - NotificationService: notification dropdown feed
    - UserCache:           TTL cache of user snapshots with invalidation
    - LiveQueryHub:        in-process change signals for live streams
    - sanitizer:           rich-text allow-list cleaning and excerpts

Writes commit inside the service and only then publish on the live hub, so a
subscriber that re-queries on the signal always sees the change.
"""
