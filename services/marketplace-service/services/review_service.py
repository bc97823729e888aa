"""Product review service."""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exceptions import Conflict, MarketplaceError, NotFound
from models import Order, OrderItem, Review, Role, User, UserProfile
from monitoring import reviews_counter
from services.access import require_role
from services.audit_service import AuditService, snapshot

logger = logging.getLogger(__name__)

REVIEW_FIELDS = ("rating", "title", "comment", "images")


def validate_rating(rating: int) -> None:
    if rating < 1 or rating > 5:
        raise MarketplaceError("Rating must be between 1 and 5")


class ReviewService:
    """Service for customer product reviews."""

    def __init__(self, audit_service: AuditService):
        self.audit_service = audit_service

    def get_product_reviews(self, db: Session, product_id: int) -> List[Dict[str, Any]]:
        """Reviews of a product, newest first, with the reviewer's display name."""
        rows = (
            db.query(Review, User, UserProfile)
            .join(User, User.id == Review.customer_id)
            .outerjoin(UserProfile, UserProfile.user_id == Review.customer_id)
            .filter(Review.product_id == product_id)
            .order_by(Review.id.desc())
            .all()
        )
        return [
            {
                **snapshot(review),
                "customer_name": profile.full_name if profile else user.name,
            }
            for review, user, profile in rows
        ]

    def create_review(
        self,
        db: Session,
        user_id: int,
        product_id: int,
        order_id: int,
        rating: int,
        title: str,
        comment: str,
        images: Optional[List[str]] = None
    ) -> Review:
        """
        Review a purchased product. Customers only.

        The order must belong to the caller and contain the product, and a
        customer may review each product once.

        Raises:
            AccessDenied: If the caller is not a customer
            NotFound: If the order is not the caller's or lacks the product
            Conflict: If the caller already reviewed the product
        """
        require_role(db, user_id, Role.CUSTOMER)

        order = db.query(Order).filter(Order.id == order_id).first()
        if not order or order.customer_id != user_id:
            raise NotFound("Order not found")

        order_item = db.query(OrderItem).filter(
            OrderItem.order_id == order_id,
            OrderItem.product_id == product_id
        ).first()
        if not order_item:
            raise NotFound("Product not found in order")

        existing = db.query(Review).filter(
            Review.customer_id == user_id,
            Review.product_id == product_id
        ).first()
        if existing:
            raise Conflict("Review already exists for this product")

        validate_rating(rating)

        review = Review(
            product_id=product_id,
            customer_id=user_id,
            order_id=order_id,
            rating=rating,
            title=title,
            comment=comment,
            images=list(images or []),
            is_verified_purchase=True,
            helpful_votes=0
        )
        try:
            db.add(review)
            db.flush()
            self.audit_service.record(
                db, user_id, "CREATE_REVIEW", "reviews", review.id,
                after=snapshot(review)
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("Duplicate review rejected on insert", extra={"user_id": user_id})
            raise Conflict("Review already exists for this product")
        except Exception:
            db.rollback()
            raise

        reviews_counter.add(1, {"action": "create", "rating": str(rating)})
        logger.info("Review created", extra={
            "review_id": review.id,
            "product_id": product_id,
            "user_id": user_id,
            "rating": rating
        })
        return review

    def update_review(self, db: Session, user_id: int, review_id: int, **changes: Any) -> Review:
        """Edit the caller's own review."""
        review = self._get_own_review(db, user_id, review_id)

        updates = {k: v for k, v in changes.items() if k in REVIEW_FIELDS and v is not None}
        if "rating" in updates:
            validate_rating(updates["rating"])

        before = snapshot(review)
        for field, value in updates.items():
            setattr(review, field, value)

        try:
            self.audit_service.record(
                db, user_id, "UPDATE_REVIEW", "reviews", review_id,
                before=before, after=updates
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        reviews_counter.add(1, {"action": "update"})
        return review

    def delete_review(self, db: Session, user_id: int, review_id: int) -> int:
        """Delete the caller's own review."""
        review = self._get_own_review(db, user_id, review_id)

        try:
            self.audit_service.record(
                db, user_id, "DELETE_REVIEW", "reviews", review_id,
                before=snapshot(review)
            )
            db.delete(review)
            db.commit()
        except Exception:
            db.rollback()
            raise

        reviews_counter.add(1, {"action": "delete"})
        return review_id

    def _get_own_review(self, db: Session, user_id: int, review_id: int) -> Review:
        review = db.query(Review).filter(Review.id == review_id).first()
        if not review or review.customer_id != user_id:
            raise NotFound("Review not found")
        return review
