# cart.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db import get_db
from errors import NotFound
from models import Cart, CartItem, Course, User
from schemas import CartAddIn, CartItemOut, CartOut, CartRemoveIn, CourseOut

router = APIRouter(prefix="/api/cart", tags=["cart"])
logger = logging.getLogger(__name__)


def _find_cart(db: Session, user_id: int) -> Cart | None:
    # row lock on backends that support it; SQLite serializes writers itself
    return db.query(Cart).filter(Cart.user_id == user_id).with_for_update().first()


def get_or_create_cart(db: Session, user_id: int) -> Cart:
    cart = _find_cart(db, user_id)
    if cart:
        return cart
    try:
        db.execute(insert(Cart).values(user_id=user_id, total_amount=0))
        db.commit()
    except IntegrityError:
        # another request created it first
        db.rollback()
    return _find_cart(db, user_id)


def _increment_item(db: Session, cart_id: int, course_id: int, quantity: int) -> int:
    result = db.execute(
        update(CartItem)
        .where(CartItem.cart_id == cart_id, CartItem.course_id == course_id)
        .values(quantity=CartItem.quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def add_item(db: Session, cart_id: int, course_id: int, quantity: int) -> None:
    """Add ``quantity`` of a course in SQL, so concurrent adds never overwrite each other."""
    if _increment_item(db, cart_id, course_id, quantity):
        return
    try:
        db.execute(insert(CartItem).values(cart_id=cart_id, course_id=course_id, quantity=quantity))
    except IntegrityError:
        # the line was inserted concurrently, fall back to incrementing it
        db.rollback()
        _increment_item(db, cart_id, course_id, quantity)


def remove_item(db: Session, cart_id: int, course_id: int) -> bool:
    result = db.execute(
        delete(CartItem)
        .where(CartItem.cart_id == cart_id, CartItem.course_id == course_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def recompute_total(db: Session, cart_id: int) -> None:
    """Set total_amount to the sum of quantity x current course price, in one statement."""
    subtotal = (
        select(func.coalesce(func.sum(CartItem.quantity * Course.price), 0))
        .select_from(CartItem)
        .join(Course, Course.id == CartItem.course_id)
        .where(CartItem.cart_id == cart_id)
        .scalar_subquery()
    )
    db.execute(
        update(Cart)
        .where(Cart.id == cart_id)
        .values(total_amount=subtotal)
        .execution_options(synchronize_session=False)
    )


def _cart_out(cart: Cart) -> CartOut:
    return CartOut(
        user_id=cart.user_id,
        items=[
            CartItemOut(product=CourseOut.model_validate(item.course), quantity=item.quantity)
            for item in cart.items
        ],
        total_amount=cart.total_amount,
    )


def _load_cart(db: Session, user_id: int) -> Cart | None:
    return db.query(Cart).filter(Cart.user_id == user_id).first()


@router.get("/{user_id}", response_model=CartOut)
def get_cart(user_id: int, db: Session = Depends(get_db)):
    cart = _load_cart(db, user_id)
    if not cart:
        raise NotFound("Cart not found")
    return _cart_out(cart)


@router.post("/add", response_model=CartOut)
def add_to_cart(payload: CartAddIn, db: Session = Depends(get_db)):
    course = db.get(Course, payload.product_id)
    if not course:
        raise NotFound("Product not found")
    if not db.get(User, payload.user_id):
        raise NotFound("User not found")

    cart = get_or_create_cart(db, payload.user_id)
    cart_id = cart.id
    add_item(db, cart_id, course.id, payload.quantity)
    recompute_total(db, cart_id)
    db.commit()

    logger.info("Cart of user id=%s: added course id=%s x%s", payload.user_id, payload.product_id, payload.quantity)
    return _cart_out(_load_cart(db, payload.user_id))


@router.post("/remove", response_model=CartOut)
def remove_from_cart(payload: CartRemoveIn, db: Session = Depends(get_db)):
    cart = _find_cart(db, payload.user_id)
    if not cart:
        raise NotFound("Cart not found")

    cart_id = cart.id
    if not remove_item(db, cart_id, payload.product_id):
        raise NotFound("Item not found in cart")
    recompute_total(db, cart_id)
    db.commit()

    logger.info("Cart of user id=%s: removed course id=%s", payload.user_id, payload.product_id)
    return _cart_out(_load_cart(db, payload.user_id))
