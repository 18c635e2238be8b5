from typing import Dict, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import get_current_user
from ..database import get_db

router = APIRouter(prefix="/api/favorites", tags=["Favorites"])


@router.get("", response_model=List[schemas.FavoriteOut])
def list_favorites(
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return crud.get_favorites(db, current_user["id"])


@router.post("/add", response_model=schemas.FavoriteOut, status_code=status.HTTP_201_CREATED)
def add_favorite(
    body: schemas.FavoriteCreate,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return crud.add_favorite(db, current_user["id"], body.product_id)


@router.delete("/{product_id:int}", response_model=schemas.MessageOut)
def remove_favorite(
    product_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    crud.remove_favorite(db, current_user["id"], product_id)
    return {"message": "Removed from favorites"}
