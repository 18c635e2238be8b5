import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from .models import Product

logger = logging.getLogger(__name__)


def backfill_original_price(db: Session) -> int:
    """Set original_price = price for products created before it existed."""
    try:
        result = db.execute(
            update(Product)
            .where(Product.original_price.is_(None))
            .values(original_price=Product.price)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("original_price backfill failed")
        raise

    updated = int(result.rowcount or 0)
    if updated:
        logger.info("✓ Backfilled original_price for %s products", updated)
    else:
        logger.info("✓ All products already have original_price set")
    return updated


def fix_scaled_prices(db: Session) -> int:
    """Convert prices that were stored in paise back to rupees.

    A price above 1000 that is an exact multiple of 100 is taken to be in
    minor units; original_price is rescaled only when it matches the same
    pattern.
    """
    updated = 0
    try:
        products = (
            db.query(Product)
            .filter(Product.price > 1000)
            .with_for_update()
            .all()
        )
        for product in products:
            if product.price % 100 != 0:
                continue
            old_price, old_original = product.price, product.original_price
            product.price = product.price / 100
            if old_original is not None and old_original > 1000 and old_original % 100 == 0:
                product.original_price = old_original / 100
            updated += 1
            logger.info(
                "Fixed scaling for product %s - %s: price %s -> %s, original_price %s -> %s",
                product.id, product.name, old_price, product.price, old_original, product.original_price,
            )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Price scaling fix failed")
        raise

    logger.info("Price scaling fix completed: updated %s products", updated)
    return updated
