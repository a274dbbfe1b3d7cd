"""JWT token storage and inspection"""

import base64
import binascii
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from payroll_client.domain.models.access import AuthState
from payroll_client.domain.models.user import User

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"


class CredentialStore(ABC):
    """Key/value storage for the token and the user record"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class InMemoryCredentialStore(CredentialStore):
    """Credential store that lives for the process lifetime"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileCredentialStore(CredentialStore):
    """Credential store persisted as a JSON object in a private file"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable credentials file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Owner-only from creation
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f)
        try:
            # An existing file keeps its old mode on O_CREAT
            os.chmod(self.path, 0o600)
        except OSError:
            logger.debug(f"Could not restrict permissions on {self.path}")

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


def parse_token(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode a JWT payload without verifying the signature

    Args:
        token: Encoded JWT

    Returns:
        Payload dict, or None if the token is missing or malformed
    """
    if not token:
        return None
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1]
    padded = payload + "=" * (-len(payload) % 4)
    try:
        decoded = base64.urlsafe_b64decode(padded.encode("ascii"))
        data = json.loads(decoded.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


class TokenManager:
    """Centralized token and user storage with expiry checks"""

    def __init__(
        self,
        store: Optional[CredentialStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize token manager

        Args:
            store: Credential store (in-memory if None)
            clock: Returns current time in epoch seconds
        """
        self.store = store or InMemoryCredentialStore()
        self.clock = clock

    def get_token(self) -> Optional[str]:
        return self.store.get(TOKEN_KEY)

    def set_token(self, token: str) -> None:
        if token:
            self.store.set(TOKEN_KEY, token)

    def get_user(self) -> Optional[User]:
        raw = self.store.get(USER_KEY)
        if not raw:
            return None
        try:
            return User.from_dict(json.loads(raw))
        except (ValueError, AttributeError):
            return None

    def set_user(self, user: Union[User, Dict[str, Any]]) -> None:
        if not user:
            return
        data = user.to_dict() if isinstance(user, User) else dict(user)
        self.store.set(USER_KEY, json.dumps(data))

    def set_auth(self, token: str, user: Union[User, Dict[str, Any]]) -> None:
        """Store authentication data after a successful login"""
        self.set_token(token)
        self.set_user(user)

    def clear_auth(self) -> None:
        """Remove all authentication data (logout)"""
        self.store.remove(TOKEN_KEY)
        self.store.remove(USER_KEY)

    def has_valid_token_presence(self) -> bool:
        return bool(self.get_token())

    def is_token_expired(self, token: Optional[str] = None) -> bool:
        """Check if a token is expired; invalid tokens or tokens without exp count as expired"""
        payload = parse_token(token if token is not None else self.get_token())
        if not payload:
            return True
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            return True
        return self.clock() >= exp

    def current_user_role(self) -> Optional[str]:
        user = self.get_user()
        return user.role if user and user.role else None

    def auth_state(self) -> AuthState:
        """Read a fresh authentication snapshot"""
        has_token = self.has_valid_token_presence()
        return AuthState(
            has_token=has_token,
            is_expired=self.is_token_expired() if has_token else False,
            role=self.current_user_role(),
        )
