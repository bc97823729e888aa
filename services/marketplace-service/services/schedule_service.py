"""Seller work schedule service."""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exceptions import Conflict, MarketplaceError, NotFound
from models import Role, ScheduleStatus, ShiftType, User, UserProfile, WorkSchedule
from monitoring import schedules_counter
from services.access import deny, get_profile, require_profile, require_role
from services.audit_service import AuditService, snapshot

logger = logging.getLogger(__name__)


class ScheduleService:
    """Service for assigning and tracking seller shifts."""

    def __init__(self, audit_service: AuditService):
        self.audit_service = audit_service

    def get_seller_schedules(
        self,
        db: Session,
        user_id: int,
        seller_id: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Shifts for one seller, optionally within an inclusive date range.

        Sellers always get their own schedule; managers must name the seller.
        """
        profile = require_profile(db, user_id)

        if profile.role == Role.SELLER.value:
            target_seller_id = user_id
        elif profile.role == Role.MANAGER.value:
            if seller_id is None:
                raise MarketplaceError("Seller ID required for managers")
            target_seller_id = seller_id
        else:
            raise deny(user_id, "role")

        query = db.query(WorkSchedule).filter(WorkSchedule.seller_id == target_seller_id)
        # YYYY-MM-DD strings sort chronologically
        if start_date:
            query = query.filter(WorkSchedule.date >= start_date)
        if end_date:
            query = query.filter(WorkSchedule.date <= end_date)

        return self._with_names(db, query.order_by(WorkSchedule.date).all())

    def create_schedule(
        self,
        db: Session,
        user_id: int,
        seller_id: int,
        date: str,
        shift_type: ShiftType,
        start_time: str,
        end_time: str,
        notes: Optional[str] = None
    ) -> WorkSchedule:
        """
        Assign a shift to a seller. Managers only.

        Raises:
            NotFound: If the target is not an active seller
            Conflict: If the seller already has a shift on that date
        """
        require_role(db, user_id, Role.MANAGER)

        seller_profile = get_profile(db, seller_id)
        if (
            not seller_profile
            or seller_profile.role != Role.SELLER.value
            or not seller_profile.is_active
        ):
            raise NotFound("Seller not found or inactive")

        existing = db.query(WorkSchedule).filter(
            WorkSchedule.seller_id == seller_id,
            WorkSchedule.date == date
        ).first()
        if existing:
            raise Conflict("Schedule already exists for this date")

        schedule = WorkSchedule(
            seller_id=seller_id,
            date=date,
            shift_type=ShiftType(shift_type).value,
            start_time=start_time,
            end_time=end_time,
            status=ScheduleStatus.SCHEDULED.value,
            assigned_by=user_id,
            notes=notes
        )
        try:
            db.add(schedule)
            db.flush()
            self.audit_service.record(
                db, user_id, "CREATE_SCHEDULE", "workSchedules", schedule.id,
                after=snapshot(schedule)
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("Duplicate schedule rejected on insert", extra={"user_id": user_id})
            raise Conflict("Schedule already exists for this date")
        except Exception:
            db.rollback()
            raise

        schedules_counter.add(1, {"action": "create", "shift_type": schedule.shift_type})
        logger.info("Schedule created", extra={
            "schedule_id": schedule.id,
            "seller_id": seller_id,
            "date": date,
            "shift_type": schedule.shift_type,
            "assigned_by": user_id
        })
        return schedule

    def update_schedule_status(
        self,
        db: Session,
        user_id: int,
        schedule_id: int,
        status: ScheduleStatus,
        notes: Optional[str] = None
    ) -> WorkSchedule:
        """Change a shift's status. Managers may update any shift, sellers only their own."""
        profile = require_profile(db, user_id)

        schedule = db.query(WorkSchedule).filter(WorkSchedule.id == schedule_id).first()
        if not schedule:
            raise NotFound("Schedule not found")

        can_update = (
            profile.role == Role.MANAGER.value
            or (profile.role == Role.SELLER.value and schedule.seller_id == user_id)
        )
        if not can_update:
            raise deny(user_id, "schedule_owner")

        before = {"status": schedule.status}
        schedule.status = ScheduleStatus(status).value
        if notes:
            schedule.notes = notes

        try:
            self.audit_service.record(
                db, user_id, "UPDATE_SCHEDULE_STATUS", "workSchedules", schedule_id,
                before=before, after={"status": schedule.status}
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        schedules_counter.add(1, {"action": "update_status", "status": schedule.status})
        return schedule

    def get_all_schedules(
        self,
        db: Session,
        user_id: int,
        date: Optional[str] = None,
        shift_type: Optional[ShiftType] = None
    ) -> List[Dict[str, Any]]:
        """All shifts, optionally filtered by date and shift type. Managers only."""
        require_role(db, user_id, Role.MANAGER)

        query = db.query(WorkSchedule)
        if date:
            query = query.filter(WorkSchedule.date == date)
        if shift_type:
            query = query.filter(WorkSchedule.shift_type == ShiftType(shift_type).value)

        return self._with_names(db, query.order_by(WorkSchedule.date, WorkSchedule.id).all())

    def _with_names(self, db: Session, schedules: List[WorkSchedule]) -> List[Dict[str, Any]]:
        """Attach seller and assigner display names."""
        user_ids = {s.seller_id for s in schedules} | {s.assigned_by for s in schedules}
        names = {}
        if user_ids:
            rows = (
                db.query(User, UserProfile)
                .outerjoin(UserProfile, UserProfile.user_id == User.id)
                .filter(User.id.in_(user_ids))
                .all()
            )
            names = {
                user.id: profile.full_name if profile else user.name
                for user, profile in rows
            }

        return [
            {
                **snapshot(schedule),
                "seller_name": names.get(schedule.seller_id),
                "assigner_name": names.get(schedule.assigned_by),
            }
            for schedule in schedules
        ]
