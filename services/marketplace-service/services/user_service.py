"""User profile management service."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exceptions import Conflict, MarketplaceError, NotFound
from models import Role, User, UserProfile
from services.access import get_profile, require_role
from services.audit_service import AuditService, snapshot

logger = logging.getLogger(__name__)

UPDATABLE_PROFILE_FIELDS = ("first_name", "last_name", "phone", "avatar")


class UserService:
    """Service for managing user profiles and roles."""

    def __init__(self, audit_service: AuditService):
        self.audit_service = audit_service

    def create_profile(
        self,
        db: Session,
        user_id: int,
        role: Role,
        first_name: str,
        last_name: str,
        phone: Optional[str] = None,
        employee_id: Optional[str] = None,
        department: Optional[str] = None
    ) -> UserProfile:
        """
        Create the caller's profile.

        Staff profiles (sellers and managers) get a hire date of today.

        Raises:
            Conflict: If the user already has a profile
        """
        if get_profile(db, user_id) is not None:
            raise Conflict("Profile already exists")

        role = Role(role)
        profile = UserProfile(
            user_id=user_id,
            role=role.value,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            employee_id=employee_id,
            department=department,
            is_active=True,
            hire_date=datetime.utcnow() if role != Role.CUSTOMER else None
        )
        try:
            db.add(profile)
            db.flush()
            self.audit_service.record(
                db, user_id, "CREATE_PROFILE", "userProfiles", profile.id,
                after=snapshot(profile)
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("Duplicate profile rejected on insert", extra={"user_id": user_id})
            raise Conflict("Profile already exists")
        except Exception:
            db.rollback()
            raise

        logger.info("Profile created", extra={"user_id": user_id, "role": role.value})
        return profile

    def get_current_profile(self, db: Session, user_id: int) -> UserProfile:
        profile = get_profile(db, user_id)
        if profile is None:
            raise NotFound("Profile not found")
        return profile

    def update_profile(self, db: Session, user_id: int, **changes: Any) -> UserProfile:
        """Apply the given field changes to the caller's own profile."""
        profile = get_profile(db, user_id)
        if profile is None:
            raise NotFound("Profile not found")

        updates = {
            field: value for field, value in changes.items()
            if field in UPDATABLE_PROFILE_FIELDS and value is not None
        }
        before = snapshot(profile)
        for field, value in updates.items():
            setattr(profile, field, value)

        try:
            self.audit_service.record(
                db, user_id, "UPDATE_PROFILE", "userProfiles", profile.id,
                before=before, after=updates
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return profile

    def get_users_by_role(self, db: Session, user_id: int, role: Role) -> List[Dict[str, Any]]:
        """List profiles with the given role joined with their user record. Managers only."""
        require_role(db, user_id, Role.MANAGER)

        rows = (
            db.query(UserProfile, User)
            .join(User, User.id == UserProfile.user_id)
            .filter(UserProfile.role == Role(role).value)
            .order_by(UserProfile.id)
            .all()
        )
        return [
            {
                **snapshot(profile),
                "email": user.email,
                "name": user.name,
            }
            for profile, user in rows
        ]

    def set_user_active(
        self,
        db: Session,
        user_id: int,
        target_user_id: int,
        is_active: bool
    ) -> UserProfile:
        """
        Activate or deactivate another user's profile. Managers only.

        Raises:
            MarketplaceError: If a manager tries to deactivate themself
            NotFound: If the target has no profile
        """
        require_role(db, user_id, Role.MANAGER)
        if target_user_id == user_id and not is_active:
            raise MarketplaceError("Managers cannot deactivate themselves")

        target = get_profile(db, target_user_id)
        if target is None:
            raise NotFound("User not found")

        before = {"is_active": target.is_active}
        target.is_active = is_active
        try:
            self.audit_service.record(
                db, user_id, "UPDATE_USER_STATUS", "userProfiles", target.id,
                before=before, after={"is_active": is_active}
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("User status changed", extra={
            "manager_id": user_id,
            "target_user_id": target_user_id,
            "is_active": is_active
        })
        return target
