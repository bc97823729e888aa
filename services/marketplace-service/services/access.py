"""Role and ownership checks shared by the services."""
import logging
from typing import Optional
from sqlalchemy.orm import Session

from exceptions import AccessDenied, NotFound
from models import Role, UserProfile
from monitoring import access_denied_counter

logger = logging.getLogger(__name__)


def get_profile(db: Session, user_id: int) -> Optional[UserProfile]:
    """Return the profile for a user, or None if they have not created one."""
    return db.query(UserProfile).filter(UserProfile.user_id == user_id).first()


def deny(user_id: int, reason: str, message: str = "Access denied") -> AccessDenied:
    """Record a failed authorization check and build the exception to raise."""
    access_denied_counter.add(1, {"reason": reason})
    logger.warning("Access denied", extra={"user_id": user_id, "reason": reason})
    return AccessDenied(message)


def require_profile(db: Session, user_id: int) -> UserProfile:
    """
    Load the caller's profile.

    Raises:
        NotFound: If the user has no profile yet
        AccessDenied: If the profile has been deactivated
    """
    profile = get_profile(db, user_id)
    if profile is None:
        raise NotFound("Profile not found")
    if not profile.is_active:
        raise deny(user_id, "inactive_profile")
    return profile


def require_role(db: Session, user_id: int, *roles: Role) -> UserProfile:
    """
    Load the caller's profile and check it holds one of ``roles``.

    Raises:
        AccessDenied: If there is no profile, it is inactive, or the role does not match
    """
    profile = get_profile(db, user_id)
    allowed = {role.value for role in roles}
    if profile is None or profile.role not in allowed:
        raise deny(user_id, "role")
    if not profile.is_active:
        raise deny(user_id, "inactive_profile")
    return profile
