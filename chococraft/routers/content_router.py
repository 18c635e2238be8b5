"""Storefront content managed by admins: updates, about/contact pages,
contact-form messages and home page banners."""
from typing import Dict, List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import get_current_admin
from ..database import get_db
from ..models import AboutUs, ContactInfo, SiteUpdate

router = APIRouter(prefix="/api", tags=["Content"])

DEFAULT_UPDATE = "Welcome to ChocoCraft! Check back soon for the latest news."
DEFAULT_ABOUT_US = "ChocoCraft makes handcrafted chocolates in small batches."
DEFAULT_CONTACT_INFO = "Reach us through the contact form and we will get back to you."


def _latest_or_default(db: Session, model, default: str) -> schemas.TextContentOut:
    entry = crud.get_latest_text_content(db, model)
    if entry is None:
        return schemas.TextContentOut(text=default)
    return schemas.TextContentOut.model_validate(entry)


@router.post("/updates", response_model=schemas.TextContentOut, status_code=status.HTTP_201_CREATED)
def post_update(
    body: schemas.TextContentIn,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.add_text_content(db, SiteUpdate, body.text)


@router.get("/updates/latest", response_model=schemas.TextContentOut)
def latest_update(db: Session = Depends(get_db)):
    return _latest_or_default(db, SiteUpdate, DEFAULT_UPDATE)


@router.post("/about-us", response_model=schemas.TextContentOut, status_code=status.HTTP_201_CREATED)
def set_about_us(
    body: schemas.TextContentIn,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.add_text_content(db, AboutUs, body.text, replace=True)


@router.get("/about-us", response_model=schemas.TextContentOut)
def get_about_us(db: Session = Depends(get_db)):
    return _latest_or_default(db, AboutUs, DEFAULT_ABOUT_US)


@router.post("/contact-info", response_model=schemas.TextContentOut, status_code=status.HTTP_201_CREATED)
def set_contact_info(
    body: schemas.TextContentIn,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.add_text_content(db, ContactInfo, body.text, replace=True)


@router.get("/contact-info", response_model=schemas.TextContentOut)
def get_contact_info(db: Session = Depends(get_db)):
    return _latest_or_default(db, ContactInfo, DEFAULT_CONTACT_INFO)


# -----------------------------
# Contact messages
# -----------------------------


@router.post("/contact-messages", response_model=schemas.ContactMessageOut, status_code=status.HTTP_201_CREATED)
def send_contact_message(body: schemas.ContactMessageIn, db: Session = Depends(get_db)):
    return crud.create_contact_message(db, name=body.name, email=body.email, message=body.message)


@router.get("/contact-messages", response_model=List[schemas.ContactMessageOut])
def list_contact_messages(
    unread: bool = Query(False, description="Only messages not yet marked as read"),
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.get_contact_messages(db, unread_only=unread)


@router.patch("/contact-messages/{message_id:int}/read", response_model=schemas.MessageOut)
def mark_contact_message_read(
    message_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if crud.mark_contact_message_read(db, message_id):
        return {"message": "Message marked as read"}
    return {"message": "Message already marked as read"}


# -----------------------------
# Banners
# -----------------------------


@router.get("/banners", response_model=List[schemas.BannerOut])
def list_banners(db: Session = Depends(get_db)):
    return crud.get_banners(db)


@router.get("/banners/{banner_id:int}", response_model=schemas.BannerOut)
def get_banner(banner_id: int, db: Session = Depends(get_db)):
    return crud.get_banner(db, banner_id)


@router.post("/banners", response_model=schemas.BannerOut, status_code=status.HTTP_201_CREATED)
def create_banner(
    body: schemas.BannerIn,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.create_banner(db, body.image_url)


@router.put("/banners/{banner_id:int}", response_model=schemas.BannerOut)
def update_banner(
    banner_id: int,
    body: schemas.BannerIn,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.update_banner(db, banner_id, body.image_url)


@router.delete("/banners/{banner_id:int}", response_model=schemas.MessageOut)
def delete_banner(
    banner_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    crud.delete_banner(db, banner_id)
    return {"message": "Banner deleted successfully"}
