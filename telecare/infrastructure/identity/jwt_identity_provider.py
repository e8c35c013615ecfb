from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

import jwt

from ...application.ports.identity_provider import Identity, IdentityProvider, Role
from ...core.config import DEFAULT_SECRET_KEY
from ...exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class JwtIdentityProvider(IdentityProvider):
    def __init__(self, secret_key: str, algorithm: str = "HS256", expires_minutes: int = 60) -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_minutes = expires_minutes

    def _check_secret(self) -> None:
        if not self.secret_key or self.secret_key == DEFAULT_SECRET_KEY:
            raise ValueError("SECRET_KEY not properly configured")

    def issue(self, subject_id: str, role: Role, expires_minutes: Optional[int] = None) -> str:
        self._check_secret()
        expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or self.expires_minutes)
        to_encode = {"sub": str(subject_id), "role": Role(role).value, "exp": expire, "type": "access"}
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Identity:
        try:
            self._check_secret()
        except ValueError:
            logger.error("Refusing to verify tokens: SECRET_KEY not properly configured")
            raise AuthenticationError("Authentication unavailable")
        if not token:
            raise AuthenticationError("Authentication required")

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token")

        if payload.get("type") != "access":
            raise AuthenticationError("Invalid token")
        subject_id = payload.get("sub")
        if not subject_id:
            raise AuthenticationError("Invalid token: missing user ID")
        try:
            role = Role(payload.get("role"))
        except ValueError:
            raise AuthenticationError("Invalid token: missing role")
        return Identity(subject_id=str(subject_id), role=role)
