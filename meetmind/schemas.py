"""
Pydantic request bodies for the JSON API.
"""
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .helpers import is_valid_email

OrderStatus = Literal["pending", "completed", "cancelled"]
PaymentStatus = Literal[
    "pending", "processing", "succeeded", "failed", "cancelled", "refunded"
]
MAX_PASSWORD_BYTES = 72


def _email(v: str) -> str:
    if not is_valid_email(v):
        raise ValueError("invalid email address")
    return v.strip()


def _optional_email(v: Optional[str]) -> Optional[str]:
    return v if v is None else _email(v)


# ----------------------------
# Orders (snake_case, amounts in dollars)
# ----------------------------
class OrderCreate(BaseModel):
    customer_name: str = Field(..., min_length=1)
    customer_email: str
    product_name: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    status: Optional[OrderStatus] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("customer_email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _email(v)


class OrderUpdate(BaseModel):
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    product_name: Optional[str] = None
    amount: Optional[float] = Field(None, ge=0)
    status: Optional[OrderStatus] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("customer_email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        return _optional_email(v)


# ----------------------------
# Payments (camelCase on the wire)
# ----------------------------
class PaymentCreate(BaseModel):
    customerName: str = Field(..., min_length=1)
    customerEmail: str
    amount: float = Field(..., ge=0)
    currency: Optional[str] = None
    status: Optional[PaymentStatus] = None
    paymentMethod: Optional[str] = None
    productName: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("customerEmail")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _email(v)


class PaymentUpdate(BaseModel):
    customerName: Optional[str] = None
    customerEmail: Optional[str] = None
    amount: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None
    status: Optional[PaymentStatus] = None
    paymentMethod: Optional[str] = None
    productName: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("customerEmail")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        return _optional_email(v)


# ----------------------------
# Auth, agents, meetings
# ----------------------------
class SignUp(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=8)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        # bcrypt only hashes the first 72 bytes
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(
                f"password cannot be longer than {MAX_PASSWORD_BYTES} bytes"
            )
        return v


class SignIn(BaseModel):
    email: str
    password: str


class AgentCreate(BaseModel):
    name: str = Field(..., min_length=1, pattern=r"^[a-zA-Z0-9 ]+$")
    instructions: str = Field(..., min_length=1)


class MeetingCreate(BaseModel):
    name: str = Field(..., min_length=1)
    agentId: str = Field(..., min_length=1)
