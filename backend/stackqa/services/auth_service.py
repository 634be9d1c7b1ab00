"""
StackQA Backend — Authentication Service
=========================================

What:  Email/password sign-up and sign-in, bearer token issue and checks, and
       ending a session.
How:   passlib CryptContext (bcrypt) for password hashes, PyJWT HS256 access
       tokens carrying sub/jti/iat/exp. Logout revokes the token's jti in a
       TTL-bounded set and forgets the viewer's vote intents.
Who:   /api/auth routes, the session dependencies, the rate limiter (token
       subject as client key).

Token lifecycle:
    1. register/login → create_access_token (valid access_token_minutes)
    2. every request  → decode_token (signature, expiry, revocation)
    3. logout         → end_session (jti revoked until the token would expire)
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt
from cachetools import TTLCache
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stackqa.config import settings
from stackqa.exceptions import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    StackQAError,
    ValidationError,
)
from stackqa.models.user import User, default_avatar_url
from stackqa.schemas.auth import SessionToken, SessionUser
from stackqa.services.user_cache import CachedUser
from stackqa.services.user_service import user_service
from stackqa.services.vote_service import vote_intents

logger = logging.getLogger(__name__)

TOKEN_TYPE = "access"
REVOKED_TOKENS_MAX = 100_000

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

# Revoked jti → True, kept until the token would have expired anyway
revoked_tokens: TTLCache = TTLCache(
    maxsize=REVOKED_TOKENS_MAX,
    ttl=settings.access_token_minutes * 60,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: uuid.UUID) -> Tuple[str, int]:
    """Return (token, expires_in_seconds) for `user_id`."""
    now = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=settings.access_token_minutes)
    claims = {
        "sub": str(user_id),
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + lifetime,
        "type": TOKEN_TYPE,
    }
    token = jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return token, int(lifetime.total_seconds())


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify a bearer token and return its claims.

    Raises:
        AuthenticationError: bad signature, expired, wrong type, or revoked
    """
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "jti", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError(message="Your session has expired. Please log in again.")
    except jwt.InvalidTokenError as e:
        logger.debug("Rejected bearer token: %s", str(e))
        raise AuthenticationError(message="Invalid authentication token.")

    if claims.get("type") != TOKEN_TYPE:
        raise AuthenticationError(message="Invalid authentication token.")
    if claims["jti"] in revoked_tokens:
        raise AuthenticationError(message="Your session has ended. Please log in again.")
    return claims


def token_subject(token: str) -> Optional[str]:
    """Subject of a valid token, or None. Never raises."""
    try:
        return decode_token(token)["sub"]
    except AuthenticationError:
        return None


class AuthService:
    """Sign-up, sign-in, session resolution and sign-out."""

    def _issue(self, user: CachedUser) -> SessionToken:
        token, expires_in = create_access_token(user.id)
        return SessionToken(
            access_token=token,
            expires_in=expires_in,
            user=SessionUser(**user.model_dump()),
        )

    async def register(
        self, db: AsyncSession, name: str, email: str, password: str
    ) -> SessionToken:
        """
        Create an account and sign it in.

        The address is compared lower-cased. A concurrent sign-up with the
        same address that wins the race surfaces here as an IntegrityError on
        the unique email index and is reported as the same ConflictError.

        Raises:
            ValidationError: password shorter than password_min_length (→ 400)
            ConflictError: email already registered (→ 409)
            DatabaseError: insert failed (→ 500)
        """
        if len(password) < settings.password_min_length:
            raise ValidationError(
                message=f"Password must be at least {settings.password_min_length} characters.",
                field="password",
            )

        normalized_email = email.strip().lower()
        conflict = ConflictError(
            message="A user with this email already exists. Please log in.",
            context={"field": "email"},
        )

        try:
            result = await db.execute(select(User.id).where(User.email == normalized_email))
            if result.scalar_one_or_none() is not None:
                raise conflict

            password_hash = await asyncio.to_thread(hash_password, password)
            user_id = uuid.uuid4()
            user = User(
                id=user_id,
                name=name.strip(),
                email=normalized_email,
                password_hash=password_hash,
                avatar_url=default_avatar_url(user_id),
                created_at=datetime.now(timezone.utc),
                reputation=0,
            )
            db.add(user)
            await db.flush()
            await db.commit()
        except StackQAError:
            raise
        except IntegrityError:
            await db.rollback()
            raise conflict
        except Exception as e:
            logger.error("Database error registering user: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create your account. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("User registered: %s", user.id)
        return self._issue(CachedUser.model_validate(user))

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> SessionToken:
        """
        Sign in with email and password.

        Unknown email and wrong password produce the same message.

        Raises:
            AuthenticationError: bad credentials (→ 401)
            DatabaseError: lookup failed (→ 500)
        """
        try:
            result = await db.execute(select(User).where(User.email == email.strip().lower()))
            user = result.scalar_one_or_none()
        except Exception as e:
            logger.error("Database error during login: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not sign you in. Please try again.")

        if user is None:
            # Hash anyway so response time does not reveal unknown addresses
            await asyncio.to_thread(hash_password, password)
            raise AuthenticationError(message="Invalid email or password.")

        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            logger.warning("Failed login attempt for user %s", user.id)
            raise AuthenticationError(message="Invalid email or password.")

        logger.info("User signed in: %s", user.id)
        return self._issue(CachedUser.model_validate(user))

    async def resolve_user(
        self, db: AsyncSession, claims: Dict[str, Any]
    ) -> Optional[CachedUser]:
        """Session user for verified token claims; None if the account is gone."""
        try:
            user_id = uuid.UUID(claims["sub"])
        except (KeyError, ValueError):
            return None
        return await user_service.get_cached_user(db, user_id)

    def end_session(self, claims: Dict[str, Any]) -> None:
        """
        Sign out: revoke this token and reset the viewer's vote intents.

        Other tokens of the same user stay valid until they expire.
        """
        revoked_tokens[claims["jti"]] = True
        try:
            forgotten = vote_intents.forget_viewer(uuid.UUID(claims["sub"]))
        except (KeyError, ValueError):
            forgotten = 0
        logger.info("Session ended for %s (%d vote intents cleared)", claims.get("sub"), forgotten)


auth_service = AuthService()
