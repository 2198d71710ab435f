"""Authority checks against an authenticated session."""

from admin_session.auth.models import UserSession

ROLE_PREFIX = "ROLE_"


def has_authority(session: UserSession | None, authority: str) -> bool:
    if session is None:
        return False
    return session.has_authority(authority)


def has_role(session: UserSession | None, role: str) -> bool:
    """Role check; the ``ROLE_`` prefix is added when missing."""
    role_with_prefix = role if role.startswith(ROLE_PREFIX) else f"{ROLE_PREFIX}{role}"
    return has_authority(session, role_with_prefix)


def is_owner(session: UserSession | None, resource_owner_id: str) -> bool:
    if session is None:
        return False
    return session.user_id == resource_owner_id


def can_access(session: UserSession | None, resource_owner_id: str, admin_authority: str) -> bool:
    """Administrators may access everything, other users only their own resources."""
    return has_authority(session, admin_authority) or is_owner(session, resource_owner_id)
