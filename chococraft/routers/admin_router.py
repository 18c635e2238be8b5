from typing import Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_admin
from ..crud import get_all_users
from ..database import get_db
from ..migrations import backfill_original_price, fix_scaled_prices
from ..schemas import MigrationOut, UserOut

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users", response_model=List[UserOut])
def list_all_users(
    skip: int = 0,
    limit: int = 100,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Get list of all users (Admin only)
    """
    users = get_all_users(db, skip=skip, limit=limit)
    return [UserOut.model_validate(user) for user in users]


@router.post("/migrate-products", response_model=MigrationOut)
def migrate_products(
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Backfill original_price on products that predate it (Admin only)
    """
    updated = backfill_original_price(db)
    return MigrationOut(message="Product migration completed", updated=updated)


@router.post("/fix-scaled-prices", response_model=MigrationOut)
def fix_prices(
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Convert prices stored in paise back to rupees (Admin only)
    """
    updated = fix_scaled_prices(db)
    return MigrationOut(message="Price scaling fix completed", updated=updated)
