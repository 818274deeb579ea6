"""
Resolve the acting user from request credentials.

TokenIdentity reads a bearer JWT from the Authorization header.
SessionIdentity reads a session id cookie and looks it up server-side.
Both confirm the user still exists before returning an id.
"""
import logging
import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from starlette.requests import HTTPConnection

from petdealz.auth.auth_handler import ALGORITHM, create_access_token, decode_token
from petdealz.errors import AuthFailure
from petdealz.models.session_db import UserSession
from petdealz.models.user_db import User as DBUser

logger = logging.getLogger(__name__)


class IdentityContext(ABC):
    def __init__(self, engine: Engine):
        self.engine = engine

    @abstractmethod
    def issue(self, user_id: int) -> str:
        """Create a credential for a freshly authenticated user."""

    @abstractmethod
    def credential_from(self, request: HTTPConnection) -> Optional[str]:
        ...

    @abstractmethod
    def _user_id_for(self, credential: str) -> int:
        """Raises AuthFailure if the credential is not valid."""

    def revoke(self, credential: str):
        pass

    def current_user_id(self, request: HTTPConnection) -> int:
        credential = self.credential_from(request)
        if not credential:
            raise AuthFailure("Not authenticated")
        user_id = self._user_id_for(credential)
        try:
            with Session(self.engine) as session:
                user = session.get(DBUser, user_id)
        except SQLAlchemyError as e:
            logger.exception("Failed to look up user %s", user_id)
            raise AuthFailure("Could not verify credentials") from e
        if user is None:
            raise AuthFailure("User no longer exists")
        return user_id


class TokenIdentity(IdentityContext):
    token_type = "bearer"

    def __init__(self, engine: Engine, secret_key: str, expire_minutes: int = 60, algorithm: str = ALGORITHM):
        super().__init__(engine)
        self.secret_key = secret_key
        self.expire_minutes = expire_minutes
        self.algorithm = algorithm

    def issue(self, user_id: int) -> str:
        return create_access_token(
            {"sub": str(user_id)},
            self.secret_key,
            expires_delta=timedelta(minutes=self.expire_minutes),
            algorithm=self.algorithm,
        )

    def credential_from(self, request: HTTPConnection) -> Optional[str]:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None
        return token.strip()

    def _user_id_for(self, credential: str) -> int:
        try:
            payload = decode_token(credential, self.secret_key, algorithm=self.algorithm)
            return int(payload["sub"])
        except (JWTError, KeyError, TypeError, ValueError):
            raise AuthFailure("Invalid token")


class SessionIdentity(IdentityContext):
    token_type = None

    def __init__(self, engine: Engine, cookie_name: str = "session_id", ttl_minutes: int = 1440):
        super().__init__(engine)
        self.cookie_name = cookie_name
        self.ttl_minutes = ttl_minutes

    def issue(self, user_id: int) -> str:
        now = datetime.now(timezone.utc)
        record = UserSession(
            id=secrets.token_urlsafe(32),
            user_id=user_id,
            created_at=now,
            expires_at=now + timedelta(minutes=self.ttl_minutes),
        )
        with Session(self.engine) as session:
            session.add(record)
            session.commit()
            return record.id

    def credential_from(self, request: HTTPConnection) -> Optional[str]:
        return request.cookies.get(self.cookie_name)

    def _user_id_for(self, credential: str) -> int:
        try:
            with Session(self.engine) as session:
                record = session.get(UserSession, credential)
        except SQLAlchemyError as e:
            logger.exception("Failed to look up session")
            raise AuthFailure("Could not verify credentials") from e
        if record is None:
            raise AuthFailure("Invalid session")
        expires_at = record.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= datetime.now(timezone.utc):
            self.revoke(credential)
            raise AuthFailure("Session expired")
        return record.user_id

    def revoke(self, credential: str):
        with Session(self.engine) as session:
            record = session.get(UserSession, credential)
            if record is not None:
                session.delete(record)
                session.commit()
