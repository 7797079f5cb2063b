# users.py
import logging
import uuid
from pathlib import Path

import pydantic
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth import get_current_user
from config import get_settings
from db import get_db
from errors import DuplicateIdentity, ValidationError
from models import User
from schemas import ProfileUpdate, UserOut
from security import change_password

router = APIRouter(prefix="/api/users", tags=["users"])
logger = logging.getLogger(__name__)

ALLOWED_PICTURE_TYPES = {"image/jpeg": ".jpg", "image/png": ".png", "image/gif": ".gif", "image/webp": ".webp"}


def read_profile_picture(upload: UploadFile) -> tuple[bytes, str]:
    suffix = ALLOWED_PICTURE_TYPES.get(upload.content_type or "")
    if not suffix:
        raise ValidationError("Profile picture must be a JPEG, PNG, GIF or WebP image")
    limit = get_settings().max_upload_bytes
    data = upload.file.read(limit + 1)
    if len(data) > limit:
        raise ValidationError(f"Profile picture must be at most {limit} bytes")
    return data, suffix


def picture_file(ref: str) -> Path:
    """Location on disk of a stored ``uploads/<name>`` reference."""
    return Path(get_settings().upload_dir) / Path(ref).name


def save_profile_picture(data: bytes, suffix: str, user_id: int) -> str:
    upload_dir = Path(get_settings().upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{user_id}_{uuid.uuid4().hex}{suffix}"
    (upload_dir / filename).write_bytes(data)
    return f"uploads/{filename}"


def _held_by_other(db: Session, column, value: str, user_id: int) -> User | None:
    return db.query(User).filter(column == value, User.id != user_id).first()


@router.get("/profile", response_model=UserOut)
def get_profile(user: User = Depends(get_current_user)):
    return user


@router.post("/profile", response_model=UserOut)
def update_profile(
    username: str | None = Form(None),
    email: str | None = Form(None),
    password: str | None = Form(None),
    profile_picture: UploadFile | None = File(None, alias="profilePicture"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        changes = ProfileUpdate(username=username or None, email=email or None, password=password or None)
    except pydantic.ValidationError:
        raise ValidationError("Invalid profile data")
    picture = None
    if profile_picture is not None and profile_picture.filename:
        picture = read_profile_picture(profile_picture)

    if changes.username and changes.username != user.username:
        taken = _held_by_other(db, User.username, changes.username, user.id)
        if taken:
            raise DuplicateIdentity("Username already taken")
        user.username = changes.username
    if changes.email:
        new_email = changes.email.lower()
        if new_email != user.email:
            taken = _held_by_other(db, User.email, new_email, user.id)
            if taken:
                raise DuplicateIdentity("Email already registered")
            user.email = new_email
    if changes.password:
        change_password(user, changes.password)
    old_picture = user.profile_picture
    new_picture = None
    if picture:
        new_picture = save_profile_picture(*picture, user.id)
        user.profile_picture = new_picture

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if new_picture:
            picture_file(new_picture).unlink(missing_ok=True)
        raise DuplicateIdentity("Username or email already registered")
    if new_picture and old_picture:
        picture_file(old_picture).unlink(missing_ok=True)
    db.refresh(user)
    logger.info("Updated profile for user id=%s", user.id)
    return user
