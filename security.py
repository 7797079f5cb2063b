# security.py
"""
Credentials and sessions: password hashing, signup, login,
and issuing/validating bearer tokens (JWT).
"""
import logging
from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import get_settings
from errors import DuplicateIdentity, ExpiredCredential, InvalidCredentials, InvalidSignature, ValidationError
from models import User

logger = logging.getLogger(__name__)

# bcrypt_sha256 pre-hashes, so bytes past bcrypt's 72-byte limit still count;
# plain bcrypt hashes stay verifiable
pwd_context = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    deprecated=["bcrypt"],
    bcrypt_sha256__rounds=get_settings().bcrypt_rounds,
    bcrypt__rounds=get_settings().bcrypt_rounds,
)

# verified against when the email is unknown, so both login failures cost the same
_DUMMY_HASH = pwd_context.hash("not-a-real-password")


def hash_password(p: str) -> str:
    return pwd_context.hash(p)


def verify_password(p: str, hp: str) -> bool:
    return pwd_context.verify(p, hp)


def check_password_policy(password: str | None) -> None:
    if not password:
        raise ValidationError("Password is required")
    min_length = get_settings().password_min_length
    if len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters long")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# === РЕГИСТРАЦИЯ ===
def _find_existing_user(db: Session, username: str, email: str) -> User | None:
    return db.query(User).filter(or_(User.email == email, User.username == username)).first()


def register_user(db: Session, username: str, email: str, password: str) -> User:
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValidationError("Username and email are required")
    check_password_policy(password)

    if _find_existing_user(db, username, email):
        raise DuplicateIdentity("Username or email already registered")

    user = User(username=username, email=email, hashed_password=hash_password(password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent signup won the unique constraint
        db.rollback()
        raise DuplicateIdentity("Username or email already registered")
    db.refresh(user)
    logger.info("Registered user id=%s email=%s", user.id, user.email)
    return user


def change_password(user: User, new_password: str) -> None:
    check_password_policy(new_password)
    user.hashed_password = hash_password(new_password)


# === ЛОГИН ===
def authenticate(db: Session, email: str, password: str) -> str:
    """Check email/password and return a fresh session token.

    Unknown email and wrong password raise the same InvalidCredentials.
    """
    email = (email or "").strip().lower()
    user = db.query(User).filter(User.email == email).first() if email else None
    if user is None:
        verify_password(password or "", _DUMMY_HASH)
        logger.info("Failed login for email=%s", email)
        raise InvalidCredentials()
    # always run the hash check so an empty password costs the same as a wrong one
    if not verify_password(password or "", user.hashed_password) or not password:
        logger.info("Failed login for email=%s", email)
        raise InvalidCredentials()
    logger.info("User id=%s logged in", user.id)
    return issue_token(user.id)


# === ТОКЕНЫ ===
def issue_token(user_id: int, now: datetime | None = None) -> str:
    settings = get_settings()
    now = now or _utcnow()
    expire = now + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def validate_token(token: str, now: datetime | None = None) -> int:
    """Return the user id bound to ``token``.

    The token is valid strictly before its ``exp`` instant.
    """
    settings = get_settings()
    try:
        # expiry is checked below against ``now``
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": False, "verify_iat": False, "require": ["sub", "exp"]},
        )
        user_id = int(payload["sub"])
        exp = int(payload["exp"])
    except (jwt.InvalidTokenError, TypeError, ValueError):
        raise InvalidSignature()

    now = now or _utcnow()
    if now.timestamp() >= exp:
        raise ExpiredCredential()
    return user_id
