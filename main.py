import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import router as auth_router
from cart import router as cart_router
from config import get_settings
from courses import router as courses_router
from db import Base, SessionLocal, engine
from errors import LMSError
from models import Course
from payments import router as payments_router
from users import router as users_router

logger = logging.getLogger("lms")


# --- Демо-курсы (seed) ---
DEMO_COURSES = [
    dict(
        title="Mastering Python for Web",
        description="Python basics, FastAPI, databases and deployment.",
        instructor="Alex Ivanov",
        duration="6 weeks",
        price=2900,
        thumbnail="/static/img/python.png",
        content=["intro-to-python", "fastapi-routing", "sqlalchemy-models", "deploying"],
    ),
    dict(
        title="Frontend Basics",
        description="HTML/CSS/JS, components and bundling.",
        instructor="Maria Petrova",
        duration="4 weeks",
        price=9900,
        thumbnail="/static/img/frontend.png",
        content=["html", "css-layout", "javascript", "components"],
    ),
    dict(
        title="Fullstack Pro",
        description="The full course: from the database to production.",
        instructor="Alex Ivanov",
        duration="12 weeks",
        price=24900,
        thumbnail="/static/img/fullstack.png",
        content=["backend", "frontend", "auth", "payments", "production"],
    ),
]


def seed_courses():
    db = SessionLocal()
    try:
        if db.query(Course).count() == 0:
            db.add_all([Course(**c) for c in DEMO_COURSES])
            db.commit()
            logger.info("Seeded %d demo courses", len(DEMO_COURSES))
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- База ---
    Base.metadata.create_all(bind=engine)
    if get_settings().seed_courses:
        seed_courses()
    yield


# === ОШИБКИ ===
async def lms_error_handler(request: Request, exc: LMSError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    field = ".".join(str(p) for p in errors[0]["loc"][1:]) if errors else ""
    message = f"Invalid or missing field: {field}" if field else "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": message})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"},
    )


def cors_options(origins) -> dict:
    """Credentials are only allowed for an explicit origin list, never with "*"."""
    origins = list(origins)
    return dict(
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="LMS Backend", lifespan=lifespan)

    app.add_middleware(CORSMiddleware, **cors_options(settings.cors_origins))

    app.add_exception_handler(LMSError, lms_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # --- Загруженные аватарки ---
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(upload_dir)), name="uploads")

    # --- Роуты ---
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(courses_router)
    app.include_router(cart_router)
    app.include_router(payments_router)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()
