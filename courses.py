# courses.py
import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db import get_db
from errors import NotFound
from models import Course, Enrollment, User
from schemas import CourseOut, EnrollIn, EnrollOut

router = APIRouter(prefix="/api/courses", tags=["courses"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[CourseOut])
def courses_index(db: Session = Depends(get_db)):
    return db.query(Course).order_by(Course.created_at.desc(), Course.id.desc()).all()


@router.get("/enrolled/{user_id}", response_model=List[CourseOut])
def enrolled_courses(user_id: int, db: Session = Depends(get_db)):
    if not db.get(User, user_id):
        raise NotFound("User not found")
    return (
        db.query(Course)
        .join(Enrollment, Enrollment.course_id == Course.id)
        .filter(Enrollment.user_id == user_id)
        .order_by(Enrollment.enrolled_at, Enrollment.id)
        .all()
    )


@router.get("/{course_id}", response_model=CourseOut)
def course_detail(course_id: int, db: Session = Depends(get_db)):
    course = db.get(Course, course_id)
    if not course:
        raise NotFound("Course not found")
    return course


def _find_enrollment(db: Session, user_id: int, course_id: int) -> Enrollment | None:
    return db.query(Enrollment).filter_by(user_id=user_id, course_id=course_id).first()


@router.post("/enroll", response_model=EnrollOut)
def enroll(payload: EnrollIn, db: Session = Depends(get_db)):
    course = db.get(Course, payload.course_id)
    if not course:
        raise NotFound("Course not found")
    if not db.get(User, payload.user_id):
        raise NotFound("User not found")
    already = EnrollOut(message="Already enrolled", course_id=payload.course_id, user_id=payload.user_id)

    # уже записан?
    if _find_enrollment(db, payload.user_id, payload.course_id):
        return already

    db.add(Enrollment(user_id=payload.user_id, course_id=payload.course_id))
    try:
        db.commit()
    except IntegrityError:
        # a concurrent request enrolled the same pair first
        db.rollback()
        return already
    logger.info("User id=%s enrolled in course id=%s", payload.user_id, payload.course_id)
    return EnrollOut(message="Enrolled successfully", course_id=payload.course_id, user_id=payload.user_id)
