"""Access models - authentication state, route requirements and gate decisions"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Union


class Role(str, Enum):
    """User roles known to the payroll API"""

    ADMIN = "admin"
    EMPLOYEE = "employee"


@dataclass(frozen=True)
class AuthState:
    """Snapshot of the caller's authentication, read fresh for every check"""

    has_token: bool
    is_expired: bool
    role: Optional[str] = None


@dataclass(frozen=True)
class AnyAuthenticated:
    """Route open to any authenticated user"""


@dataclass(frozen=True)
class RequiresRole:
    """Route restricted to a set of roles"""

    roles: FrozenSet[str]

    def __post_init__(self):
        if not self.roles:
            raise ValueError("RequiresRole needs at least one role; use AnyAuthenticated")

    @classmethod
    def of(cls, *roles: Union[str, Role]) -> "RequiresRole":
        return cls(frozenset(_role_value(r) for r in roles))


RouteRequirement = Union[AnyAuthenticated, RequiresRole]

ANY_AUTHENTICATED = AnyAuthenticated()


def route_requirement(allowed_roles: Optional[Iterable[Union[str, Role]]] = None) -> RouteRequirement:
    """Build a requirement from an optional, possibly empty, role collection

    Args:
        allowed_roles: Roles allowed on the route (None or empty = any authenticated user)

    Returns:
        AnyAuthenticated or RequiresRole
    """
    roles = frozenset(_role_value(r) for r in (allowed_roles or ()))
    if not roles:
        return ANY_AUTHENTICATED
    return RequiresRole(roles)


class RedirectReason(str, Enum):
    """Why the gate refused access"""

    UNAUTHENTICATED = "unauthenticated"
    EXPIRED = "expired"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Allow:
    """Render the protected view"""

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class RedirectTo:
    """Navigate away from the protected view"""

    path: str
    reason: RedirectReason

    @property
    def allowed(self) -> bool:
        return False


AccessDecision = Union[Allow, RedirectTo]

ALLOW = Allow()


def _role_value(role: Union[str, Role]) -> str:
    return role.value if isinstance(role, Role) else str(role)
