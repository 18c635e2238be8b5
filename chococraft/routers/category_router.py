from typing import Dict, List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import get_current_admin
from ..database import get_db

router = APIRouter(prefix="/api/categories", tags=["Categories"])
special_router = APIRouter(prefix="/api/special-categories", tags=["Special categories"])
public_router = APIRouter(prefix="/api/public", tags=["Special categories"])


@router.get("", response_model=List[schemas.CategoryOut])
def list_categories(
    visible: bool = Query(False, description="Only categories shown in the storefront"),
    db: Session = Depends(get_db),
):
    return crud.get_categories(db, visible_only=visible)


@router.post("", response_model=schemas.CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(
    body: schemas.CategoryCreate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.create_category(db, name=body.name, is_visible=body.is_visible)


@router.get("/{category_id:int}", response_model=schemas.CategoryOut)
def get_category(
    category_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.get_category(db, category_id)


@router.put("/{category_id:int}", response_model=schemas.CategoryOut)
def update_category(
    category_id: int,
    body: schemas.CategoryUpdate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.update_category(db, category_id, body.model_dump(exclude_unset=True))


@router.delete("/{category_id:int}", response_model=schemas.MessageOut)
def delete_category(
    category_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    crud.delete_category(db, category_id)
    return {"message": "Category deleted successfully"}


# -----------------------------
# Special categories (curated product groups)
# -----------------------------


@special_router.get("", response_model=List[schemas.SpecialCategoryOut])
def list_special_categories(
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.get_special_categories(db)


@special_router.post("", response_model=schemas.SpecialCategoryOut, status_code=status.HTTP_201_CREATED)
def create_special_category(
    body: schemas.SpecialCategoryCreate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.create_special_category(
        db, name=body.name, product_ids=body.product_ids, is_visible=body.is_visible
    )


@special_router.get("/{special_category_id:int}", response_model=schemas.SpecialCategoryOut)
def get_special_category(
    special_category_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.get_special_category(db, special_category_id)


@special_router.put("/{special_category_id:int}", response_model=schemas.SpecialCategoryOut)
def update_special_category(
    special_category_id: int,
    body: schemas.SpecialCategoryUpdate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.update_special_category(db, special_category_id, body.model_dump(exclude_unset=True))


@special_router.delete("/{special_category_id:int}", response_model=schemas.MessageOut)
def delete_special_category(
    special_category_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    crud.delete_special_category(db, special_category_id)
    return {"message": "Special category deleted successfully"}


@public_router.get("/special-categories", response_model=List[schemas.SpecialCategoryOut])
def list_visible_special_categories(db: Session = Depends(get_db)):
    return crud.get_special_categories(db, visible_only=True)
