# auth.py
from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from db import get_db
from errors import AuthError
from models import User
from schemas import LoginIn, SignupIn, SignupOut, TokenOut, UserOut
from security import authenticate, register_user, validate_token

router = APIRouter(prefix="/api/users", tags=["auth"])
bearer = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise AuthError()
    user_id = validate_token(credentials.credentials)
    user = db.get(User, user_id)
    if not user:
        raise AuthError()
    return user


# === РЕГИСТРАЦИЯ ===
@router.post("/signup", response_model=SignupOut, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupIn, db: Session = Depends(get_db)):
    user = register_user(db, payload.username, payload.email, payload.password)
    return SignupOut(message="User registered successfully", user=UserOut.model_validate(user))


# === ЛОГИН ===
@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    return TokenOut(session_token=authenticate(db, payload.email, payload.password))
