"""Sample catalog used to seed an empty database."""
import logging
from decimal import Decimal
from sqlalchemy.orm import Session

from models import Category, Product

logger = logging.getLogger(__name__)

SAMPLE_CATEGORIES = [
    {
        "name": "Electronics",
        "description": "Electronic devices and gadgets",
        "image": "https://images.unsplash.com/photo-1498049794561-7780e7231661?w=500",
    },
    {
        "name": "Clothing",
        "description": "Fashion and apparel",
        "image": "https://images.unsplash.com/photo-1441986300917-64674bd600d8?w=500",
    },
    {
        "name": "Home & Garden",
        "description": "Home improvement and garden supplies",
        "image": "https://images.unsplash.com/photo-1586023492125-27b2c045efd7?w=500",
    },
]

SAMPLE_PRODUCTS = [
    {
        "category": "Electronics",
        "name": "Wireless Bluetooth Headphones",
        "description": "High-quality wireless headphones with noise cancellation and 30-hour battery life.",
        "price": Decimal("199.99"),
        "images": [
            "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=500",
            "https://images.unsplash.com/photo-1484704849700-f032a568e944?w=500",
        ],
        "stock": 25,
        "sku": "WBH-001",
        "weight": 0.8,
        "dimensions": {"length": 8.5, "width": 7.2, "height": 3.1},
    },
    {
        "category": "Electronics",
        "name": "Smartphone 128GB",
        "description": "Latest smartphone with 128GB storage, dual camera, and fast charging.",
        "price": Decimal("699.99"),
        "images": ["https://images.unsplash.com/photo-1511707171634-5f897ff02aa9?w=500"],
        "stock": 15,
        "sku": "SP-128-001",
        "weight": 0.4,
        "dimensions": {"length": 6.1, "width": 2.8, "height": 0.3},
    },
    {
        "category": "Clothing",
        "name": "Cotton T-Shirt",
        "description": "Comfortable 100% cotton t-shirt available in multiple colors.",
        "price": Decimal("24.99"),
        "images": ["https://images.unsplash.com/photo-1521572163474-6864f9cf17ab?w=500"],
        "stock": 50,
        "sku": "CT-001",
        "weight": 0.2,
    },
    {
        "category": "Clothing",
        "name": "Denim Jeans",
        "description": "Classic blue denim jeans with comfortable fit.",
        "price": Decimal("79.99"),
        "images": ["https://images.unsplash.com/photo-1542272604-787c3835535d?w=500"],
        "stock": 30,
        "sku": "DJ-001",
        "weight": 0.6,
    },
    {
        "category": "Home & Garden",
        "name": "Indoor Plant Pot Set",
        "description": "Set of 3 ceramic plant pots perfect for indoor gardening.",
        "price": Decimal("45.99"),
        "images": ["https://images.unsplash.com/photo-1485955900006-10f4d324d411?w=500"],
        "stock": 20,
        "sku": "IPP-SET-001",
        "weight": 2.5,
        "dimensions": {"length": 12.0, "width": 12.0, "height": 10.0},
    },
    {
        "category": "Home & Garden",
        "name": "LED Desk Lamp",
        "description": "Adjustable LED desk lamp with touch controls and USB charging port.",
        "price": Decimal("89.99"),
        "images": ["https://images.unsplash.com/photo-1507003211169-0a1dd7228f2d?w=500"],
        "stock": 12,
        "sku": "LED-LAMP-001",
        "weight": 1.2,
        "dimensions": {"length": 18.0, "width": 8.0, "height": 22.0},
    },
]


def seed_sample_data(db: Session) -> bool:
    """
    Insert the sample categories and products if the catalog is empty.

    Returns:
        True if data was inserted
    """
    if db.query(Category).count() > 0:
        return False

    categories = {}
    for data in SAMPLE_CATEGORIES:
        category = Category(is_active=True, **data)
        db.add(category)
        categories[data["name"]] = category
    db.flush()

    for data in SAMPLE_PRODUCTS:
        fields = dict(data)
        category = categories[fields.pop("category")]
        db.add(Product(category_id=category.id, is_active=True, **fields))

    db.commit()
    logger.info("Sample catalog created", extra={
        "categories": len(SAMPLE_CATEGORIES),
        "products": len(SAMPLE_PRODUCTS)
    })
    return True
