"""
Authentication and Authorization for the MediaDrop API

Callers are either anonymous, identified by an opaque session id kept in
the signed Flask session cookie, or authenticated with a bearer JWT.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Iterable, Set, Any
from dataclasses import dataclass, field
import jwt
import logging

from flask import request, session

from ..errors import Unauthorized, Forbidden

logger = logging.getLogger(__name__)

ANONYMOUS_SESSION_KEY = 'mediadrop_session_id'

DEFAULT_PERMISSIONS = frozenset({'upload', 'view_own', 'delete_own', 'create_folder'})


@dataclass
class UserSession:
    """Identity of the caller for one request."""
    session_id: str
    user_id: Optional[int] = None
    username: Optional[str] = None
    permissions: Set[str] = field(default_factory=set)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


class APIAuth:
    """
    Handles API authentication and authorization.

    Supports:
    - JWT token generation and validation for registered users
    - Anonymous sessions through the signed session cookie
    - Permission-based access control
    """

    def __init__(self, secret_key: str, token_expiry_hours: int = 24,
                 anonymous_permissions: Optional[Iterable[str]] = None,
                 authenticated_permissions: Optional[Iterable[str]] = None,
                 algorithm: str = 'HS256'):
        self.secret_key = secret_key
        self.token_expiry_hours = token_expiry_hours
        self.algorithm = algorithm
        self.permission_sets = {
            'anonymous': set(DEFAULT_PERMISSIONS if anonymous_permissions is None
                             else anonymous_permissions),
            'authenticated': set(DEFAULT_PERMISSIONS if authenticated_permissions is None
                                 else authenticated_permissions),
        }

        logger.info("APIAuth initialized")

    @classmethod
    def from_config(cls, secret_key: str, config: Dict[str, Any],
                    algorithm: str = 'HS256') -> 'APIAuth':
        auth_config = config.get('auth', {})
        return cls(
            secret_key,
            token_expiry_hours=auth_config.get('token_expiry_hours', 24),
            anonymous_permissions=auth_config.get('anonymous_permissions'),
            authenticated_permissions=auth_config.get('authenticated_permissions'),
            algorithm=algorithm,
        )

    def issue_token(self, user_id: int, username: str,
                    permissions: Optional[Iterable[str]] = None) -> str:
        """Generate a JWT for a registered user."""
        now = datetime.now(timezone.utc)
        payload = {
            'user_id': user_id,
            'username': username,
            'exp': now + timedelta(hours=self.token_expiry_hours),
            'iat': now,
        }
        if permissions is not None:
            payload['permissions'] = sorted(permissions)

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.info(f"Issued token for user {user_id}")
        return token

    def validate_token(self, token: str) -> Optional[UserSession]:
        """
        Validate a bearer token.

        Returns:
            UserSession if valid, None otherwise
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Expired token attempted")
            return None
        except jwt.InvalidTokenError:
            logger.warning("Invalid token attempted")
            return None

        user_id = payload.get('user_id')
        if not isinstance(user_id, int):
            logger.warning("Token without a numeric user_id attempted")
            return None

        permissions = payload.get('permissions')
        return UserSession(
            session_id=f"user_{user_id}",
            user_id=user_id,
            username=payload.get('username'),
            permissions=set(permissions) if permissions is not None
            else set(self.permission_sets['authenticated']),
        )

    def anonymous_session(self) -> UserSession:
        """Session for a caller without a token, creating its id on first use."""
        session_id = session.get(ANONYMOUS_SESSION_KEY)
        if not session_id:
            session_id = f"session_{secrets.token_hex(16)}"
            session[ANONYMOUS_SESSION_KEY] = session_id
            session.permanent = True
        return UserSession(session_id=session_id,
                           permissions=set(self.permission_sets['anonymous']))

    def identify(self) -> UserSession:
        """
        Identify the caller of the current request.

        Raises:
            Unauthorized: A bearer token was sent but is not valid
        """
        auth_header = request.headers.get('Authorization', '')
        if auth_header.startswith('Bearer '):
            user_session = self.validate_token(auth_header.split(' ', 1)[1].strip())
            if user_session is None:
                raise Unauthorized("Invalid or expired token")
            return user_session
        return self.anonymous_session()

    def check_permission(self, user_session: UserSession, permission: str) -> bool:
        if '*' in user_session.permissions:
            return True
        return permission in user_session.permissions

    def require(self, permission: str) -> UserSession:
        """
        Identify the caller and insist on ``permission``.

        Raises:
            Forbidden: The caller lacks the permission
        """
        user_session = self.identify()
        if not self.check_permission(user_session, permission):
            logger.warning(f"Permission '{permission}' denied for {user_session.session_id}")
            raise Forbidden(f"You do not have permission to {permission.replace('_', ' ')}")
        return user_session
