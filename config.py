# config.py
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

# --- Загружаем .env ---
load_dotenv()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str
    jwt_secret: str
    jwt_algorithm: str
    jwt_expire_minutes: int
    bcrypt_rounds: int
    password_min_length: int
    razorpay_key_id: str
    razorpay_key_secret: str
    upload_dir: str
    max_upload_bytes: int
    cors_origins: tuple
    log_level: str
    seed_courses: bool


@lru_cache()
def get_settings() -> Settings:
    """Read the environment once; the result is shared by the whole process."""
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise RuntimeError("JWT_SECRET is not set")
    origins = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./lms.db"),
        jwt_secret=secret,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", "60")),
        bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
        password_min_length=int(os.getenv("PASSWORD_MIN_LENGTH", "8")),
        razorpay_key_id=os.getenv("RAZORPAY_KEY_ID", ""),
        razorpay_key_secret=os.getenv("RAZORPAY_KEY_SECRET", ""),
        upload_dir=os.getenv("UPLOAD_DIR", "./uploads"),
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(2 * 1024 * 1024))),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        seed_courses=_as_bool(os.getenv("SEED_COURSES", "true")),
    )
