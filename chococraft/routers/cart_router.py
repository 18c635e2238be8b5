from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import get_current_user
from ..database import get_db

router = APIRouter(prefix="/api/cart", tags=["Cart"])


@router.get("", response_model=schemas.CartOut)
def get_my_cart(
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items = crud.get_cart(db, current_user["id"])
    return schemas.CartOut(
        message="Cart fetched successfully",
        items=[schemas.CartItemOut.model_validate(i) for i in items],
    )


@router.post("", response_model=schemas.CartOut)
def save_my_cart(
    body: schemas.CartReplace,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Replace the whole cart with the submitted lines.

    Every product must exist or nothing is saved. Stock is not checked
    until checkout.
    """
    items = crud.replace_cart(db, current_user["id"], [line.model_dump() for line in body.cart])
    return schemas.CartOut(
        message="Cart saved successfully",
        items=[schemas.CartItemOut.model_validate(i) for i in items],
    )


@router.delete("/{product_id:int}", response_model=schemas.MessageOut)
def delete_cart_item(
    product_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    crud.remove_cart_item(db, current_user["id"], product_id)
    return {"message": "Item removed from cart"}
