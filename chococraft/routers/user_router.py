import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..auth import create_access_token, verify_password
from ..crud import create_user, get_user_by_username
from ..database import get_db
from ..schemas import LoginRequest, SignupRequest, TokenOut, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/signup", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def signup(body: SignupRequest, db: Session = Depends(get_db)):
    user = create_user(db, username=body.username, email=body.email, password=body.password)
    logger.info("User %s registered", user.username)
    return UserOut.model_validate(user)


@router.post("/login", response_model=TokenOut)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = get_user_by_username(db, username=body.username)
    if not user or not verify_password(body.password, user.hashed_password):
        logger.warning("Failed login for %s", body.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = create_access_token(user.id, user.is_admin)
    return TokenOut(message="Login successful", token=token, user_id=user.id, is_admin=user.is_admin)
