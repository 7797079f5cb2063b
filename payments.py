# payments.py
import hashlib
import hmac
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config import get_settings
from db import get_db
from errors import PaymentGatewayError, ValidationError
from models import PaymentOrder
from schemas import PaymentOrderIn, PaymentVerifyIn, PaymentVerifyOut

router = APIRouter(prefix="/api/payment", tags=["payments"])
logger = logging.getLogger(__name__)

_gateway_client = None


def get_gateway_client():
    """Razorpay client, created on first use."""
    global _gateway_client
    if _gateway_client is None:
        settings = get_settings()
        if not (settings.razorpay_key_id and settings.razorpay_key_secret):
            raise PaymentGatewayError("Payment gateway is not configured")
        import razorpay
        _gateway_client = razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))
    return _gateway_client


def expected_signature(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    # bytes: compare_digest refuses non-ASCII str
    return hmac.compare_digest(expected_signature(order_id, payment_id, secret).encode(), signature.encode())


@router.post("/order")
def create_order(payload: PaymentOrderIn, db: Session = Depends(get_db), client=Depends(get_gateway_client)):
    data = {"amount": payload.amount, "currency": payload.currency.upper()}
    if payload.receipt:
        data["receipt"] = payload.receipt

    try:
        order = client.order.create(data=data)
    except Exception as e:
        logger.error("Order creation failed: %s", e)
        raise PaymentGatewayError("Failed to create payment order")

    db.add(PaymentOrder(
        order_id=order["id"],
        amount=payload.amount,
        currency=data["currency"],
        receipt=payload.receipt,
        status="created",
    ))
    db.commit()
    logger.info("Created payment order %s for %s %s", order["id"], payload.amount, data["currency"])
    return order


@router.post("/verify", response_model=PaymentVerifyOut)
def verify_payment(payload: PaymentVerifyIn, db: Session = Depends(get_db)):
    secret = get_settings().razorpay_key_secret
    if not secret:
        raise PaymentGatewayError("Payment gateway is not configured")

    verified = verify_signature(payload.order_id, payload.payment_id, payload.signature, secret)
    order = db.query(PaymentOrder).filter(PaymentOrder.order_id == payload.order_id).first()
    if order and order.status != "paid":
        order.status = "paid" if verified else "failed"
        if verified:
            order.payment_id = payload.payment_id
        db.commit()

    if not verified:
        logger.warning("Invalid payment signature for order %s", payload.order_id)
        raise ValidationError("Payment verification failed")

    logger.info("Payment %s verified for order %s", payload.payment_id, payload.order_id)
    return PaymentVerifyOut(message="Payment verified", order_id=payload.order_id, payment_id=payload.payment_id)
