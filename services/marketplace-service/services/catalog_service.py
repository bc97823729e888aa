"""Catalog service: categories and products."""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from opentelemetry import trace

from config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from exceptions import Conflict, MarketplaceError, NotFound
from models import Category, Product, Review, Role
from monitoring import catalog_changes_counter, product_detail_views_counter, product_views_counter
from services.access import deny, require_role
from services.audit_service import AuditService, snapshot
from services.pricing import to_money

logger = logging.getLogger(__name__)

CATEGORY_FIELDS = ("name", "description", "image", "is_active")
PRODUCT_FIELDS = (
    "name", "description", "price", "category_id", "images", "stock",
    "weight", "dimensions",
)


class CatalogService:
    """Service for browsing and administering the catalog."""

    def __init__(self, audit_service: AuditService):
        """
        Initialize catalog service.

        Args:
            audit_service: Audit trail writer bound to the current request
        """
        self.audit_service = audit_service
        self.tracer = trace.get_tracer(__name__)

    # Categories

    def get_categories(self, db: Session) -> List[Category]:
        """Active categories ordered by name."""
        return (
            db.query(Category)
            .filter(Category.is_active.is_(True))
            .order_by(Category.name)
            .all()
        )

    def create_category(
        self,
        db: Session,
        user_id: int,
        name: str,
        description: Optional[str] = None,
        image: Optional[str] = None
    ) -> Category:
        """Create a category. Managers only."""
        require_role(db, user_id, Role.MANAGER)

        category = Category(name=name, description=description, image=image, is_active=True)
        try:
            db.add(category)
            db.flush()
            self.audit_service.record(
                db, user_id, "CREATE_CATEGORY", "categories", category.id,
                after={"name": name, "description": description, "image": image}
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        catalog_changes_counter.add(1, {"action": "create_category"})
        logger.info("Category created", extra={"category_id": category.id, "name": name})
        return category

    def update_category(self, db: Session, user_id: int, category_id: int, **changes: Any) -> Category:
        """Update a category. Managers only."""
        require_role(db, user_id, Role.MANAGER)

        category = db.query(Category).filter(Category.id == category_id).first()
        if not category:
            raise NotFound("Category not found")

        updates = {k: v for k, v in changes.items() if k in CATEGORY_FIELDS and v is not None}
        before = snapshot(category)
        for field, value in updates.items():
            setattr(category, field, value)

        try:
            self.audit_service.record(
                db, user_id, "UPDATE_CATEGORY", "categories", category_id,
                before=before, after=updates
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        catalog_changes_counter.add(1, {"action": "update_category"})
        return category

    # Products

    def get_products(
        self,
        db: Session,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        offset: int = 0
    ) -> List[Product]:
        """
        List active products, newest first.

        Args:
            db: Database session
            category_id: Restrict to one category
            search: Case-insensitive substring match on the product name
            limit: Page size, capped at MAX_PAGE_LIMIT
            offset: Number of products to skip

        Returns:
            Products with their category loaded
        """
        with self.tracer.start_as_current_span("db.query.get_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")

            query = (
                db.query(Product)
                .options(joinedload(Product.category))
                .filter(Product.is_active.is_(True))
            )
            if category_id is not None:
                db_span.set_attribute("category.id", category_id)
                query = query.filter(Product.category_id == category_id)
            if search:
                db_span.set_attribute("search", search)
                query = query.filter(func.lower(Product.name).contains(search.lower(), autoescape=True))

            products = (
                query.order_by(Product.id.desc())
                .offset(max(offset, 0))
                .limit(max(1, min(limit, MAX_PAGE_LIMIT)))
                .all()
            )
            db_span.set_attribute("db.rows_returned", len(products))

        product_views_counter.add(1, {"filtered": str(bool(category_id or search)).lower()})
        return products

    def get_product(self, db: Session, product_id: int) -> Dict[str, Any]:
        """
        Product detail with category, reviews and rating summary.

        Raises:
            NotFound: If the product does not exist or is inactive
        """
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product or not product.is_active:
            raise NotFound("Product not found")

        reviews = (
            db.query(Review)
            .filter(Review.product_id == product_id)
            .order_by(Review.id.desc())
            .all()
        )
        average_rating = (
            sum(review.rating for review in reviews) / len(reviews) if reviews else 0.0
        )

        product_detail_views_counter.add(1, {"category_id": str(product.category_id)})
        return {
            "product": product,
            "reviews": reviews,
            "average_rating": round(average_rating, 2),
            "review_count": len(reviews),
        }

    def get_managed_products(self, db: Session, user_id: int) -> List[Product]:
        """Products the caller administers: own listings for sellers, everything for managers."""
        profile = require_role(db, user_id, Role.SELLER, Role.MANAGER)

        query = db.query(Product).options(joinedload(Product.category))
        if profile.role == Role.SELLER.value:
            query = query.filter(Product.seller_id == user_id)
        return query.order_by(Product.id.desc()).all()

    def create_product(
        self,
        db: Session,
        user_id: int,
        name: str,
        description: str,
        price: Decimal,
        category_id: int,
        sku: str,
        stock: int = 0,
        images: Optional[List[str]] = None,
        weight: Optional[float] = None,
        dimensions: Optional[Dict[str, float]] = None
    ) -> Product:
        """
        Create a product listing. Sellers and managers only.

        Seller-created products are owned by the seller; manager-created
        products have no owner.

        Raises:
            Conflict: If the SKU is already in use
            NotFound: If the category is missing or inactive
        """
        profile = require_role(db, user_id, Role.SELLER, Role.MANAGER)

        if db.query(Product).filter(Product.sku == sku).first():
            raise Conflict("SKU already exists")
        self._require_category(db, category_id)
        if stock < 0:
            raise MarketplaceError("Stock cannot be negative")

        product = Product(
            name=name,
            description=description,
            price=to_money(price),
            category_id=category_id,
            images=list(images or []),
            stock=stock,
            sku=sku,
            weight=weight,
            dimensions=dimensions,
            seller_id=user_id if profile.role == Role.SELLER.value else None,
            is_active=True
        )
        try:
            db.add(product)
            db.flush()
            self.audit_service.record(
                db, user_id, "CREATE_PRODUCT", "products", product.id,
                after=snapshot(product)
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("Duplicate SKU rejected on insert", extra={"user_id": user_id})
            raise Conflict("SKU already exists")
        except Exception:
            db.rollback()
            raise

        catalog_changes_counter.add(1, {"action": "create_product", "role": profile.role})
        logger.info("Product created", extra={
            "product_id": product.id,
            "sku": sku,
            "seller_id": product.seller_id
        })
        return product

    def update_product(self, db: Session, user_id: int, product_id: int, **changes: Any) -> Product:
        """Update a product. Sellers may only update their own listings."""
        product = self._load_for_edit(db, user_id, product_id)

        updates = {k: v for k, v in changes.items() if k in PRODUCT_FIELDS and v is not None}
        if "stock" in updates and updates["stock"] < 0:
            raise MarketplaceError("Stock cannot be negative")
        if "category_id" in updates:
            self._require_category(db, updates["category_id"])
        if "price" in updates:
            updates["price"] = to_money(updates["price"])

        before = snapshot(product)
        for field, value in updates.items():
            setattr(product, field, value)

        try:
            self.audit_service.record(
                db, user_id, "UPDATE_PRODUCT", "products", product_id,
                before=before, after=updates
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        catalog_changes_counter.add(1, {"action": "update_product"})
        return product

    def delete_product(self, db: Session, user_id: int, product_id: int) -> Product:
        """Soft-delete a product by marking it inactive."""
        product = self._load_for_edit(db, user_id, product_id)

        before = snapshot(product)
        product.is_active = False
        try:
            self.audit_service.record(
                db, user_id, "DELETE_PRODUCT", "products", product_id,
                before=before
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        catalog_changes_counter.add(1, {"action": "delete_product"})
        logger.info("Product deactivated", extra={"product_id": product_id, "user_id": user_id})
        return product

    def _load_for_edit(self, db: Session, user_id: int, product_id: int) -> Product:
        profile = require_role(db, user_id, Role.SELLER, Role.MANAGER)

        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFound("Product not found")
        if profile.role == Role.SELLER.value and product.seller_id != user_id:
            raise deny(user_id, "product_owner")
        return product

    def _require_category(self, db: Session, category_id: int) -> Category:
        category = db.query(Category).filter(Category.id == category_id).first()
        if not category or not category.is_active:
            raise NotFound("Category not found")
        return category
