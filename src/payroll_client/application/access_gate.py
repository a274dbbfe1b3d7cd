"""Route guard deciding whether a protected operation may run"""

import logging
from typing import Optional, Protocol

from payroll_client.domain.models.access import (
    ALLOW,
    ANY_AUTHENTICATED,
    AccessDecision,
    AuthState,
    RedirectReason,
    RedirectTo,
    RequiresRole,
    Role,
    RouteRequirement,
)

logger = logging.getLogger(__name__)

DEFAULT_LOGIN_PATH = "/login"
DEFAULT_UNAUTHORIZED_PATH = "/unauthorized"

LANDING_PATHS = {
    Role.ADMIN.value: "/admin/dashboard",
    Role.EMPLOYEE.value: "/employee/dashboard",
}


class TokenSource(Protocol):
    """What the gate needs from the token collaborator"""

    def has_valid_token_presence(self) -> bool: ...

    def is_token_expired(self) -> bool: ...

    def current_user_role(self) -> Optional[str]: ...


def decide_access(
    auth_state: AuthState,
    requirement: RouteRequirement = ANY_AUTHENTICATED,
    login_path: str = DEFAULT_LOGIN_PATH,
    unauthorized_path: str = DEFAULT_UNAUTHORIZED_PATH,
) -> AccessDecision:
    """Decide access for one navigation; the first matching rule wins.

    Args:
        auth_state: Current authentication snapshot
        requirement: Route role requirement
        login_path: Redirect target for missing or expired sessions
        unauthorized_path: Redirect target for role mismatches

    Returns:
        ALLOW or RedirectTo
    """
    if not auth_state.has_token:
        return RedirectTo(login_path, RedirectReason.UNAUTHENTICATED)
    if auth_state.is_expired:
        return RedirectTo(login_path, RedirectReason.EXPIRED)
    if isinstance(requirement, RequiresRole) and auth_state.role not in requirement.roles:
        return RedirectTo(unauthorized_path, RedirectReason.FORBIDDEN)
    return ALLOW


class AccessGate:
    """Re-derives an access decision from fresh token state on every check"""

    def __init__(
        self,
        token_source: TokenSource,
        login_path: str = DEFAULT_LOGIN_PATH,
        unauthorized_path: str = DEFAULT_UNAUTHORIZED_PATH,
    ):
        self.token_source = token_source
        self.login_path = login_path
        self.unauthorized_path = unauthorized_path

    def read_auth_state(self) -> AuthState:
        has_token = bool(self.token_source.has_valid_token_presence())
        return AuthState(
            has_token=has_token,
            is_expired=bool(self.token_source.is_token_expired()) if has_token else False,
            role=self.token_source.current_user_role(),
        )

    def check(
        self,
        requirement: RouteRequirement = ANY_AUTHENTICATED,
        login_path: Optional[str] = None,
    ) -> AccessDecision:
        """Check access for a route

        Args:
            requirement: Route role requirement
            login_path: Per call-site override of the login path

        Returns:
            AccessDecision
        """
        decision = decide_access(
            self.read_auth_state(),
            requirement,
            login_path=login_path or self.login_path,
            unauthorized_path=self.unauthorized_path,
        )
        if isinstance(decision, RedirectTo):
            logger.debug(f"Access refused ({decision.reason.value}), redirecting to {decision.path}")
        return decision

    def landing_path_for(self, role: Optional[str]) -> str:
        """Home route for a role; unknown roles go to the login page"""
        return LANDING_PATHS.get(role or "", self.login_path)
