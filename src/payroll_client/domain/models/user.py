"""User model - the authenticated account as returned by the API"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class User:
    """Authenticated user"""

    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["User"]:
        """Build a user from an API payload, tolerating Mongo-style `_id`"""
        if not data:
            return None
        return cls(
            id=data.get("id") or data.get("_id"),
            name=data.get("name"),
            email=data.get("email"),
            role=data.get("role"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
