import logging
from decimal import Decimal
from typing import Dict, List, Optional, Type

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from .auth import get_password_hash
from .errors import AlreadyExists, Conflict, NotFound, ValidationError
from .models import (
    Banner,
    CartItem,
    Category,
    ContactMessage,
    Favorite,
    Notification,
    Order,
    OrderItem,
    Product,
    SpecialCategory,
    User,
    special_category_products,
)
from .notifications import add_low_stock_alert, crossed_low_stock
from .order_state import ACTIVE_STATUSES

logger = logging.getLogger(__name__)


# -----------------------------
# Users
# -----------------------------


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_all_users(db: Session, skip: int = 0, limit: int = 100) -> List[User]:
    return db.query(User).order_by(User.id).offset(skip).limit(limit).all()


def create_user(db: Session, *, username: str, email: str, password: str, is_admin: bool = False) -> User:
    if get_user_by_username(db, username):
        raise AlreadyExists("Username already exists")

    db_user = User(
        username=username,
        email=email,
        hashed_password=get_password_hash(password),
        is_admin=is_admin,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # DB-level unique constraint (race conditions)
        db.rollback()
        raise AlreadyExists("Username already exists")
    db.refresh(db_user)
    return db_user


# -----------------------------
# Categories
# -----------------------------


def get_categories(db: Session, visible_only: bool = False) -> List[Category]:
    query = db.query(Category)
    if visible_only:
        query = query.filter(Category.is_visible.is_(True))
    return query.order_by(Category.id).all()


def get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if category is None:
        raise NotFound("Category", category_id)
    return category


def create_category(db: Session, *, name: str, is_visible: bool = True) -> Category:
    category = Category(name=name, is_visible=is_visible)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def update_category(db: Session, category_id: int, update_data: Dict) -> Category:
    category = get_category(db, category_id)
    for key, value in update_data.items():
        if value is not None:
            setattr(category, key, value)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> None:
    category = get_category(db, category_id)
    db.query(Product).filter(Product.category_id == category_id).update(
        {Product.category_id: None}, synchronize_session=False
    )
    db.delete(category)
    db.commit()


# -----------------------------
# Products
# -----------------------------


def _check_prices(price: Decimal, original_price: Optional[Decimal]) -> None:
    if price <= 0:
        raise ValidationError("Price must be a positive number", field="price")
    if original_price is not None:
        if original_price <= 0:
            raise ValidationError("Original price must be a positive number", field="originalPrice")
        if price > original_price:
            raise ValidationError("Price cannot exceed the original price", field="price")
    if price > 1000 and price % 100 == 0:
        logger.warning("Price %s may be in minor units; prices are expected in rupees", price)


def _check_category(db: Session, category_id: Optional[int]) -> None:
    if category_id is None:
        return
    if db.query(Category.id).filter(Category.id == category_id).first() is None:
        raise ValidationError("Invalid category ID", field="categoryId")


def get_product(db: Session, product_id: int, for_update: bool = False) -> Product:
    query = db.query(Product).filter(Product.id == product_id)
    if for_update:
        # Serializes with the conditional stock decrement in checkout
        query = query.with_for_update()
    product = query.first()
    if product is None:
        raise NotFound("Product", product_id)
    return product


def get_products(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    category_id: Optional[int] = None,
    search: Optional[str] = None,
) -> List[Product]:
    query = db.query(Product)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if search:
        query = query.filter(Product.name.ilike(f"%{search}%"))
    return query.order_by(Product.id).offset(skip).limit(limit).all()


def create_product(db: Session, product_data: Dict) -> Product:
    name = (product_data.get("name") or "").strip()
    if not name:
        raise ValidationError("Product name is required", field="name")
    if product_data.get("stock", 0) < 0:
        raise ValidationError("Stock must be a non-negative number", field="stock")
    _check_prices(product_data["price"], product_data.get("original_price"))
    _check_category(db, product_data.get("category_id"))

    db_product = Product(**{**product_data, "name": name})
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    logger.info(
        "Product added: %s (price=%s, original_price=%s, stock=%s)",
        db_product.name, db_product.price, db_product.original_price, db_product.stock,
    )
    return db_product


def update_product(db: Session, product_id: int, update_data: Dict, clear_category: bool = False) -> tuple:
    """Apply a partial update. Returns ``(product, crossed_low_stock)``."""
    new_stock = update_data.get("stock")
    db_product = get_product(db, product_id, for_update=new_stock is not None)
    old_stock = db_product.stock

    if "name" in update_data and not str(update_data["name"]).strip():
        raise ValidationError("Product name is required", field="name")
    if update_data.get("stock") is not None and update_data["stock"] < 0:
        raise ValidationError("Stock must be a non-negative number", field="stock")
    if "price" in update_data or "original_price" in update_data:
        _check_prices(
            update_data.get("price", db_product.price),
            update_data.get("original_price", db_product.original_price),
        )
    if "category_id" in update_data:
        _check_category(db, update_data["category_id"])

    for key, value in update_data.items():
        if value is not None:
            setattr(db_product, key, value)
    if clear_category:
        db_product.category_id = None

    crossed = new_stock is not None and crossed_low_stock(old_stock, new_stock)
    if crossed:
        add_low_stock_alert(db, product_id=db_product.id, product_name=db_product.name, stock=new_stock)

    db.commit()
    db.refresh(db_product)
    logger.info("Product %s updated", product_id)
    return db_product, crossed


def set_stock(db: Session, product_id: int, stock: int) -> tuple:
    """Overwrite a product's stock. Returns ``(product, crossed_low_stock)``."""
    product = get_product(db, product_id, for_update=True)

    old_stock = product.stock
    product.stock = stock
    crossed = crossed_low_stock(old_stock, stock)
    if crossed:
        add_low_stock_alert(db, product_id=product.id, product_name=product.name, stock=stock)

    db.commit()
    db.refresh(product)
    logger.info("Stock for product %s set from %s to %s", product_id, old_stock, stock)
    return product, crossed


def delete_product(db: Session, product_id: int) -> None:
    product = get_product(db, product_id, for_update=True)

    in_use = (
        db.query(OrderItem.id)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(OrderItem.product_id == product_id, Order.status.in_(ACTIVE_STATUSES))
        .first()
    )
    if in_use is not None:
        db.rollback()
        raise Conflict(
            f"Product {product_id} is part of an active order and cannot be deleted",
            productId=product_id,
        )

    try:
        db.query(CartItem).filter(CartItem.product_id == product_id).delete(synchronize_session=False)
        db.query(Favorite).filter(Favorite.product_id == product_id).delete(synchronize_session=False)
        db.execute(
            special_category_products.delete().where(
                special_category_products.c.product_id == product_id
            )
        )
        # order lines keep their name/price snapshot
        db.query(OrderItem).filter(OrderItem.product_id == product_id).update(
            {OrderItem.product_id: None}, synchronize_session=False
        )
        db.query(Notification).filter(Notification.product_id == product_id).update(
            {Notification.product_id: None}, synchronize_session=False
        )
        db.delete(product)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Product %s deleted", product_id)


# -----------------------------
# Special categories
# -----------------------------


def _resolve_products(db: Session, product_ids: List[int]) -> List[Product]:
    unique_ids = list(dict.fromkeys(product_ids))
    if not unique_ids:
        return []
    products = db.query(Product).filter(Product.id.in_(unique_ids)).order_by(Product.id).all()
    if len(products) != len(unique_ids):
        raise ValidationError("One or more product IDs are invalid", field="productIds")
    return products


def get_special_categories(db: Session, visible_only: bool = False) -> List[SpecialCategory]:
    query = db.query(SpecialCategory).options(selectinload(SpecialCategory.products))
    if visible_only:
        query = query.filter(SpecialCategory.is_visible.is_(True))
    return query.order_by(SpecialCategory.id).all()


def get_special_category(db: Session, special_category_id: int) -> SpecialCategory:
    special = db.query(SpecialCategory).filter(SpecialCategory.id == special_category_id).first()
    if special is None:
        raise NotFound("SpecialCategory", special_category_id)
    return special


def create_special_category(db: Session, *, name: str, product_ids: List[int], is_visible: bool) -> SpecialCategory:
    special = SpecialCategory(
        name=name,
        is_visible=is_visible,
        products=_resolve_products(db, product_ids),
    )
    db.add(special)
    db.commit()
    db.refresh(special)
    return special


def update_special_category(db: Session, special_category_id: int, update_data: Dict) -> SpecialCategory:
    special = get_special_category(db, special_category_id)
    if update_data.get("name") is not None:
        special.name = update_data["name"]
    if update_data.get("is_visible") is not None:
        special.is_visible = update_data["is_visible"]
    if update_data.get("product_ids") is not None:
        special.products = _resolve_products(db, update_data["product_ids"])
    db.commit()
    db.refresh(special)
    return special


def delete_special_category(db: Session, special_category_id: int) -> None:
    special = get_special_category(db, special_category_id)
    db.delete(special)
    db.commit()


# -----------------------------
# Cart
# -----------------------------


def get_cart(db: Session, user_id: int) -> List[CartItem]:
    return (
        db.query(CartItem)
        .options(selectinload(CartItem.product))
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.id)
        .all()
    )


def replace_cart(db: Session, user_id: int, lines: List[Dict]) -> List[CartItem]:
    """Replace the user's whole cart with ``lines``.

    lines: [{"product_id": int, "quantity": int}, ...]
    Every product must exist, otherwise nothing is applied. Stock is not
    checked here; checkout enforces it.
    """
    merged: Dict[int, int] = {}
    for line in lines:
        pid = int(line["product_id"])
        qty = int(line["quantity"])
        if qty < 1:
            raise ValidationError("quantity must be >= 1", field="quantity")
        merged[pid] = merged.get(pid, 0) + qty

    try:
        # Serialize concurrent saves of the same user's cart
        user = db.query(User).filter(User.id == user_id).with_for_update().first()
        if user is None:
            raise NotFound("User", user_id)

        if merged:
            found = {pid for (pid,) in db.query(Product.id).filter(Product.id.in_(merged.keys()))}
            missing = sorted(set(merged) - found)
            if missing:
                logger.warning("Cart save for user %s references unknown products %s", user_id, missing)
                raise NotFound("Product", missing[0])

        db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
        for pid, qty in merged.items():
            db.add(CartItem(user_id=user_id, product_id=pid, quantity=qty))
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Replaced cart for user %s with %s items", user_id, len(merged))
    return get_cart(db, user_id)


def remove_cart_item(db: Session, user_id: int, product_id: int) -> None:
    deleted = (
        db.query(CartItem)
        .filter(CartItem.user_id == user_id, CartItem.product_id == product_id)
        .delete(synchronize_session=False)
    )
    if not deleted:
        raise NotFound("CartItem", product_id)
    db.commit()
    logger.info("Removed cart item %s for user %s", product_id, user_id)


# -----------------------------
# Favorites
# -----------------------------


def get_favorites(db: Session, user_id: int) -> List[Favorite]:
    return (
        db.query(Favorite)
        .options(selectinload(Favorite.product))
        .filter(Favorite.user_id == user_id)
        .order_by(Favorite.id)
        .all()
    )


def add_favorite(db: Session, user_id: int, product_id: int) -> Favorite:
    get_product(db, product_id)

    existing = (
        db.query(Favorite)
        .filter(Favorite.user_id == user_id, Favorite.product_id == product_id)
        .first()
    )
    if existing:
        logger.warning("Product %s already in favorites for user %s", product_id, user_id)
        raise AlreadyExists("Product already in favorites")

    favorite = Favorite(user_id=user_id, product_id=product_id)
    db.add(favorite)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadyExists("Product already in favorites")
    db.refresh(favorite)
    logger.info("Added favorite %s for user %s", product_id, user_id)
    return favorite


def remove_favorite(db: Session, user_id: int, product_id: int) -> None:
    deleted = (
        db.query(Favorite)
        .filter(Favorite.user_id == user_id, Favorite.product_id == product_id)
        .delete(synchronize_session=False)
    )
    if not deleted:
        raise NotFound("Favorite", product_id)
    db.commit()
    logger.info("Removed favorite %s for user %s", product_id, user_id)


# -----------------------------
# Orders (read side)
# -----------------------------


def _order_query(db: Session):
    return db.query(Order).options(
        selectinload(Order.items).selectinload(OrderItem.product),
        selectinload(Order.user),
    )


def get_order(db: Session, order_id: int) -> Order:
    order = _order_query(db).filter(Order.id == order_id).first()
    if order is None:
        raise NotFound("Order", order_id)
    return order


def get_orders(db: Session, skip: int = 0, limit: int = 100) -> List[Order]:
    return (
        _order_query(db)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_orders_by_user(db: Session, user_id: int) -> List[Order]:
    return (
        _order_query(db)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def get_order_by_idempotency_key(db: Session, user_id: int, key: str) -> Optional[Order]:
    return (
        db.query(Order)
        .filter(Order.user_id == user_id, Order.idempotency_key == key)
        .first()
    )


def get_order_count(db: Session) -> int:
    return db.query(func.count(Order.id)).scalar() or 0


# -----------------------------
# Content
# -----------------------------


def add_text_content(db: Session, model: Type, text: str, replace: bool = False):
    """Store a text entry; ``replace`` drops earlier entries first (singletons)."""
    if replace:
        db.query(model).delete(synchronize_session=False)
    entry = model(text=text)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def get_latest_text_content(db: Session, model: Type):
    return db.query(model).order_by(model.created_at.desc(), model.id.desc()).first()


def create_contact_message(db: Session, *, name: str, email: str, message: str) -> ContactMessage:
    entry = ContactMessage(name=name, email=email, message=message, is_read=False)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("Contact message saved from %s", email)
    return entry


def get_contact_messages(db: Session, unread_only: bool = False) -> List[ContactMessage]:
    query = db.query(ContactMessage)
    if unread_only:
        query = query.filter(ContactMessage.is_read.is_(False))
    return query.order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc()).all()


def mark_contact_message_read(db: Session, message_id: int) -> bool:
    """Returns False when the message was already read."""
    entry = db.query(ContactMessage).filter(ContactMessage.id == message_id).first()
    if entry is None:
        raise NotFound("ContactMessage", message_id)
    if entry.is_read:
        return False
    entry.is_read = True
    db.commit()
    return True


def get_banners(db: Session) -> List[Banner]:
    return db.query(Banner).order_by(Banner.created_at.desc(), Banner.id.desc()).all()


def get_banner(db: Session, banner_id: int) -> Banner:
    banner = db.query(Banner).filter(Banner.id == banner_id).first()
    if banner is None:
        raise NotFound("Banner", banner_id)
    return banner


def create_banner(db: Session, image_url: str) -> Banner:
    banner = Banner(image_url=image_url)
    db.add(banner)
    db.commit()
    db.refresh(banner)
    return banner


def update_banner(db: Session, banner_id: int, image_url: str) -> Banner:
    banner = get_banner(db, banner_id)
    banner.image_url = image_url
    db.commit()
    db.refresh(banner)
    return banner


def delete_banner(db: Session, banner_id: int) -> None:
    banner = get_banner(db, banner_id)
    db.delete(banner)
    db.commit()
