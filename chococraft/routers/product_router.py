from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Form, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import get_current_admin
from ..crud import (
    create_product,
    delete_product,
    get_product,
    get_products,
    set_stock,
    update_product,
)
from ..database import get_db
from ..errors import ValidationError
from ..messaging import publish_after_commit

router = APIRouter(prefix="/api/products", tags=["Products"])


def _parse_category_id(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw.strip() in ("", "null"):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("Invalid category ID", field="categoryId")


def _publish_low_stock(product) -> None:
    publish_after_commit(
        "stock.low",
        {"product_id": product.id, "product_name": product.name, "stock": product.stock},
    )


@router.post("", response_model=schemas.ProductOut, status_code=201)
def Create_Product_Only_Admin(
    name: str = Form(..., description="**Product name** (required)"),
    price: Decimal = Form(..., description="**Price** in rupees (must be greater than 0)"),
    original_price: Optional[Decimal] = Form(None, alias="originalPrice", description="**Original price** (defaults to price)"),
    stock: int = Form(..., ge=0, description="**Stock quantity** (must be >= 0)"),
    description: Optional[str] = Form(None, description="**Description** (optional)"),
    category_id: Optional[str] = Form(None, alias="categoryId", description="**Category ID** (optional)"),
    image_url: Optional[str] = Form(None, alias="imageUrl", description="**Image URL** (optional)"),
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    product_data = {
        "name": name,
        "price": price,
        "original_price": original_price if original_price is not None else price,
        "stock": stock,
        "description": description,
        "category_id": _parse_category_id(category_id),
        "image_url": image_url,
    }
    return create_product(db, product_data)


@router.get("", response_model=List[schemas.ProductOut])
def View_Products(
    skip: int = Query(0, ge=0, description="**Skip** number of products"),
    limit: int = Query(100, ge=1, le=1000, description="**Limit** number of products"),
    category_id: Optional[int] = Query(None, alias="categoryId", description="**Category** filter"),
    search: Optional[str] = Query(None, description="**Search** in product name"),
    db: Session = Depends(get_db)
):
    return get_products(db, skip=skip, limit=limit, category_id=category_id, search=search)


@router.get("/{product_id:int}", response_model=schemas.ProductOut)
def View_Product(
    product_id: int,
    db: Session = Depends(get_db)
):
    return get_product(db, product_id)


@router.put("/{product_id:int}", response_model=schemas.ProductOut)
def Update_Product_Only_Admin(
    product_id: int,
    name: Optional[str] = Form(None, description="**New name** (optional)"),
    price: Optional[Decimal] = Form(None, description="**New price** (optional, > 0)"),
    original_price: Optional[Decimal] = Form(None, alias="originalPrice", description="**New original price** (optional, > 0)"),
    stock: Optional[int] = Form(None, ge=0, description="**New stock** (optional, >= 0)"),
    description: Optional[str] = Form(None, description="**New description** (optional)"),
    category_id: Optional[str] = Form(None, alias="categoryId", description="**New category ID** (\"null\" to clear)"),
    image_url: Optional[str] = Form(None, alias="imageUrl", description="**New image URL** (optional)"),
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    update_data = {
        "name": name,
        "price": price,
        "original_price": original_price,
        "stock": stock,
        "description": description,
        "image_url": image_url,
    }
    update_data = {k: v for k, v in update_data.items() if v is not None}

    clear_category = category_id is not None and _parse_category_id(category_id) is None
    if category_id is not None and not clear_category:
        update_data["category_id"] = _parse_category_id(category_id)

    product, crossed = update_product(db, product_id, update_data, clear_category=clear_category)
    if crossed:
        _publish_low_stock(product)
    return product


@router.put("/{product_id:int}/stock", response_model=schemas.StockOut)
def Update_Stock_Only_Admin(
    product_id: int,
    body: schemas.StockUpdate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    product, crossed = set_stock(db, product_id, body.stock)
    if crossed:
        _publish_low_stock(product)
    return {"message": "Stock updated successfully", "stock": product.stock}


@router.delete("/{product_id:int}", response_model=schemas.MessageOut)
def Delete_Product_Only_Admin(
    product_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    delete_product(db, product_id)
    return {"message": "Product deleted successfully"}
