"""
Identity Admin Module

Client for the managed backend's identity (auth) admin API: creating and
deleting credentialed users and password sign-in. Access tokens are HS256
JWTs whose subject is the identity id; they are verified locally with the
backend's JWT secret.
"""

import hashlib
import logging
import re
import secrets
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import jwt

logger = logging.getLogger("banking_panel.identity")

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
MIN_PASSWORD_LENGTH = 6


class IdentityError(Exception):
    """Raised when the identity service rejects a request"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class Identity:
    """Credentialed user as held by the identity service"""
    id: str
    email: str
    created_at: datetime
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    email_confirmed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "user_metadata": dict(self.user_metadata),
            "created_at": self.created_at.isoformat(),
            "email_confirmed_at": self.email_confirmed_at.isoformat() if self.email_confirmed_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Identity':
        return cls(
            id=data["id"],
            email=data.get("email", ""),
            created_at=_parse_timestamp(data.get("created_at")) or datetime.now(timezone.utc),
            user_metadata=data.get("user_metadata") or {},
            email_confirmed_at=_parse_timestamp(data.get("email_confirmed_at")),
        )


@dataclass
class AuthSession:
    """Result of a successful sign-in"""
    access_token: str
    expires_at: datetime
    user: Identity
    token_type: str = "bearer"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def issue_access_token(identity: Identity, secret: str, algorithm: str = "HS256",
                       expiry_hours: int = 24) -> Tuple[str, datetime]:
    """Issue a signed access token for an identity"""
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(hours=expiry_hours)
    payload = {
        "sub": identity.id,
        "email": identity.email,
        "role": "authenticated",
        "iat": now,
        "exp": expires_at,
    }
    return jwt.encode(payload, secret, algorithm=algorithm), expires_at


def verify_access_token(token: str, secret: str, algorithm: str = "HS256") -> str:
    """Validate an access token and return the identity id it was issued for"""
    try:
        payload = jwt.decode(
            token, secret, algorithms=[algorithm],
            options={"verify_aud": False}
        )
    except jwt.ExpiredSignatureError:
        raise IdentityError("Token expired", status_code=401)
    except jwt.InvalidTokenError:
        raise IdentityError("Invalid token", status_code=401)

    user_id = payload.get("sub")
    if not user_id:
        raise IdentityError("Invalid token", status_code=401)
    return user_id


class IdentityAdmin(ABC):
    """Abstract interface for the identity admin API"""

    @abstractmethod
    def create_user(self, email: str, password: str, email_confirm: bool = True,
                    user_metadata: Optional[Dict[str, Any]] = None) -> Identity:
        """Create a credentialed user"""
        pass

    @abstractmethod
    def delete_user(self, user_id: str) -> None:
        """Delete a user; raises IdentityError if it cannot be removed"""
        pass

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[Identity]:
        """Look up a user by id"""
        pass

    @abstractmethod
    def sign_in(self, email: str, password: str) -> AuthSession:
        """Authenticate with email and password"""
        pass

    def close(self) -> None:
        """Release connections"""
        pass


@dataclass
class _StoredIdentity:
    identity: Identity
    password_salt: str
    password_hash: str


class InMemoryIdentityAdmin(IdentityAdmin):
    """In-memory identity service for testing and local runs

    ``on_user_created`` callbacks run after each successful creation, the way
    a database trigger on the backend's users table would. If one raises, the
    user is removed again and ``IdentityError`` is raised.
    """

    def __init__(self, jwt_secret: str, jwt_algorithm: str = "HS256",
                 jwt_expiry_hours: int = 24):
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.jwt_expiry_hours = jwt_expiry_hours
        self.on_user_created: List[Callable[[Identity], None]] = []
        self._users: Dict[str, _StoredIdentity] = {}
        self._lock = threading.RLock()

    def create_user(self, email, password, email_confirm=True, user_metadata=None):
        email = (email or "").strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise IdentityError("Unable to validate email address: invalid format")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise IdentityError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters",
                                status_code=422)

        with self._lock:
            if any(stored.identity.email == email for stored in self._users.values()):
                raise IdentityError("A user with this email address has already been registered",
                                    status_code=422)

            now = datetime.now(timezone.utc)
            identity = Identity(
                id=str(uuid.uuid4()),
                email=email,
                created_at=now,
                user_metadata=dict(user_metadata or {}),
                email_confirmed_at=now if email_confirm else None,
            )
            salt = secrets.token_hex(16)
            self._users[identity.id] = _StoredIdentity(identity, salt, self._hash_password(password, salt))

        try:
            for callback in self.on_user_created:
                callback(identity)
        except Exception as e:
            with self._lock:
                self._users.pop(identity.id, None)
            raise IdentityError("Database error creating new user", status_code=500) from e
        return identity

    def delete_user(self, user_id):
        with self._lock:
            if user_id not in self._users:
                raise IdentityError("User not found", status_code=404)
            del self._users[user_id]

    def get_user(self, user_id):
        with self._lock:
            stored = self._users.get(user_id)
            return stored.identity if stored else None

    def get_user_by_email(self, email: str) -> Optional[Identity]:
        """Look up a user by email address"""
        email = (email or "").strip().lower()
        with self._lock:
            for stored in self._users.values():
                if stored.identity.email == email:
                    return stored.identity
        return None

    def list_users(self) -> List[Identity]:
        """All users, oldest first"""
        with self._lock:
            return sorted((s.identity for s in self._users.values()), key=lambda i: i.created_at)

    def sign_in(self, email, password):
        email = (email or "").strip().lower()
        with self._lock:
            stored = next((s for s in self._users.values() if s.identity.email == email), None)

        if not stored or not secrets.compare_digest(
                stored.password_hash, self._hash_password(password or "", stored.password_salt)):
            raise IdentityError("Invalid login credentials")
        if stored.identity.email_confirmed_at is None:
            raise IdentityError("Email not confirmed")

        token, expires_at = issue_access_token(
            stored.identity, self.jwt_secret, self.jwt_algorithm, self.jwt_expiry_hours
        )
        return AuthSession(access_token=token, expires_at=expires_at, user=stored.identity)

    @staticmethod
    def _hash_password(password: str, salt: str) -> str:
        return hashlib.scrypt(password.encode(), salt=salt.encode(), n=16384, r=8, p=1).hex()


class GoTrueIdentityAdmin(IdentityAdmin):
    """REST client for the managed backend's identity admin endpoints"""

    def __init__(self, base_url: str, service_key: str, timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
            }
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self._client.request(method, f"{self.base_url}/auth/v1{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Identity service request {method} {path} failed: {e}")
            raise IdentityError(f"Identity service unavailable: {e}", status_code=503) from e

        if response.status_code >= 400:
            raise IdentityError(self._error_message(response), status_code=response.status_code)
        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"Identity service returned {response.status_code}"
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
        return f"Identity service returned {response.status_code}"

    def create_user(self, email, password, email_confirm=True, user_metadata=None):
        body = {
            "email": email,
            "password": password,
            "email_confirm": email_confirm,
        }
        if user_metadata:
            body["user_metadata"] = user_metadata
        data = self._request("POST", "/admin/users", json=body)
        # Some deployments wrap the user object
        if "user" in data and isinstance(data["user"], dict):
            data = data["user"]
        if not data.get("id"):
            return Identity(id="", email=email, created_at=datetime.now(timezone.utc))
        return Identity.from_dict(data)

    def delete_user(self, user_id):
        self._request("DELETE", f"/admin/users/{user_id}")

    def get_user(self, user_id):
        try:
            data = self._request("GET", f"/admin/users/{user_id}")
        except IdentityError as e:
            if e.status_code == 404:
                return None
            raise
        return Identity.from_dict(data)

    def sign_in(self, email, password):
        data = self._request(
            "POST", "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password}
        )
        expires_in = int(data.get("expires_in", 3600))
        return AuthSession(
            access_token=data["access_token"],
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            user=Identity.from_dict(data["user"]),
            token_type=data.get("token_type", "bearer"),
        )

    def close(self) -> None:
        """Close the HTTP client"""
        self._client.close()
