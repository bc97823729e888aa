import pytest

from conftest import SHIPPING_ADDRESS
from exceptions import AccessDenied, Conflict, MarketplaceError, NotFound
from models import AuditLog, Review


@pytest.fixture()
def purchase(db, cart_service, order_service, customer, make_product):
    """A customer order containing one product."""
    product = make_product()
    cart_service.add_to_cart(db, customer, product.id, 1)
    order = order_service.create_order(db, customer, dict(SHIPPING_ADDRESS), "card")
    return order, product


class TestCreateReview:
    def test_verified_review(self, db, review_service, customer, purchase):
        order, product = purchase

        review = review_service.create_review(
            db, customer, product.id, order.id, 5, "Great", "Works well"
        )

        assert review.is_verified_purchase is True
        assert review.helpful_votes == 0
        assert db.query(AuditLog).filter(AuditLog.action == "CREATE_REVIEW").count() == 1

    def test_one_review_per_product(self, db, review_service, customer, purchase):
        order, product = purchase
        review_service.create_review(db, customer, product.id, order.id, 4, "Good", "Fine")

        with pytest.raises(Conflict):
            review_service.create_review(db, customer, product.id, order.id, 3, "Again", "Hmm")

    @pytest.mark.parametrize("rating", [0, 6])
    def test_rating_bounds(self, db, review_service, customer, purchase, rating):
        order, product = purchase
        with pytest.raises(MarketplaceError, match="Rating must be between 1 and 5"):
            review_service.create_review(db, customer, product.id, order.id, rating, "t", "c")

    def test_order_must_belong_to_reviewer(self, db, review_service, make_user, purchase):
        order, product = purchase
        other = make_user("customer")

        with pytest.raises(NotFound, match="Order not found"):
            review_service.create_review(db, other, product.id, order.id, 5, "t", "c")

    def test_product_must_be_in_order(self, db, review_service, customer, make_product, purchase):
        order, _ = purchase
        unrelated = make_product()

        with pytest.raises(NotFound, match="Product not found in order"):
            review_service.create_review(db, customer, unrelated.id, order.id, 5, "t", "c")

    def test_only_customers_review(self, db, review_service, seller, purchase):
        order, product = purchase
        with pytest.raises(AccessDenied):
            review_service.create_review(db, seller, product.id, order.id, 5, "t", "c")


class TestManageReviews:
    @pytest.fixture()
    def review(self, db, review_service, customer, purchase):
        order, product = purchase
        return review_service.create_review(db, customer, product.id, order.id, 3, "Okay", "Average")

    def test_listing_includes_reviewer_name(self, db, review_service, review):
        reviews = review_service.get_product_reviews(db, review.product_id)

        assert len(reviews) == 1
        assert reviews[0]["customer_name"] == "Cathy Customer"
        assert reviews[0]["rating"] == 3

    def test_author_updates_review(self, db, review_service, customer, review):
        updated = review_service.update_review(db, customer, review.id, rating=5, title="Better")

        assert updated.rating == 5
        assert updated.title == "Better"
        entry = db.query(AuditLog).filter(AuditLog.action == "UPDATE_REVIEW").one()
        assert entry.details["before"]["rating"] == 3

    def test_update_revalidates_rating(self, db, review_service, customer, review):
        with pytest.raises(MarketplaceError):
            review_service.update_review(db, customer, review.id, rating=9)

    def test_only_author_may_edit_or_delete(self, db, review_service, make_user, review):
        other = make_user("customer")

        with pytest.raises(NotFound, match="Review not found"):
            review_service.update_review(db, other, review.id, title="Mine now")
        with pytest.raises(NotFound):
            review_service.delete_review(db, other, review.id)

    def test_author_deletes_review(self, db, review_service, customer, review):
        review_service.delete_review(db, customer, review.id)

        assert db.query(Review).count() == 0
        entry = db.query(AuditLog).filter(AuditLog.action == "DELETE_REVIEW").one()
        assert entry.details["before"]["title"] == "Okay"
