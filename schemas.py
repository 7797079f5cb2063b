# schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# === USERS ===
class SignupIn(APIModel):
    username: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginIn(APIModel):
    email: str
    password: str


class TokenOut(APIModel):
    session_token: str


class ProfileUpdate(APIModel):
    username: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class UserOut(APIModel):
    id: int
    username: str
    email: str
    profile_picture: Optional[str] = None
    created_at: Optional[datetime] = None


class SignupOut(APIModel):
    message: str
    user: UserOut


# === COURSES ===
class CourseOut(APIModel):
    id: int
    title: str
    description: str
    instructor: str
    duration: Optional[str] = None
    price: int
    thumbnail: Optional[str] = None
    content: List[str] = []


class EnrollIn(APIModel):
    course_id: int
    user_id: int


class EnrollOut(APIModel):
    message: str
    course_id: int
    user_id: int


# === CART ===
class CartAddIn(APIModel):
    user_id: int
    product_id: int
    quantity: int = Field(1, ge=1)


class CartRemoveIn(APIModel):
    user_id: int
    product_id: int


class CartItemOut(APIModel):
    product: CourseOut
    quantity: int


class CartOut(APIModel):
    user_id: int
    items: List[CartItemOut]
    total_amount: int


# === PAYMENTS ===
class PaymentOrderIn(APIModel):
    amount: int = Field(..., gt=0)
    currency: str = Field("INR", min_length=3, max_length=3)
    receipt: Optional[str] = Field(None, max_length=40)


class PaymentVerifyIn(APIModel):
    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class PaymentVerifyOut(APIModel):
    message: str
    order_id: str
    payment_id: str
