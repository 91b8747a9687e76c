"""
Identity verification for the dispatch engine.

Every engine entry point re-checks the caller: either by credentials
(verify_identity) or, for an already authenticated user, by role
(require_role).
"""

import logging

from django.contrib.auth import authenticate

from services.dispatch_management.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


def verify_identity(role, email: str, password: str):
    """
    Authenticate `email`/`password` as a member of `role` (any role when None).

    Returns:
        The authenticated User

    Raises:
        UnauthorizedError: unknown identity, wrong password, inactive
            account or a role mismatch
    """
    user = authenticate(username=email, password=password)
    if user is None:
        logger.info("Credential check failed for %s", email)
        raise UnauthorizedError("Invalid email or password")
    return require_role(user, role) if role else require_role(user)


def require_role(user, *roles):
    """Return `user` if it is an active account holding one of `roles`."""
    if user is None or not getattr(user, "is_authenticated", False):
        raise UnauthorizedError("Authentication required")
    if not user.is_active:
        raise UnauthorizedError("Account is disabled")
    if roles and user.role not in roles:
        allowed = ", ".join(roles)
        raise UnauthorizedError(f"Only {allowed} accounts may perform this action")
    return user
