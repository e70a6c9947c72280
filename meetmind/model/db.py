import uuid
from sqlalchemy.orm import declarative_base
from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Boolean,
    Text,
    Enum,
    ForeignKey,
    Index,
)

from ..helpers import now_ts


Base = declarative_base()

ORDER_STATUSES = ("pending", "completed", "cancelled")
PAYMENT_STATUSES = (
    "pending", "processing", "succeeded", "failed", "cancelled", "refunded"
)
MEETING_STATUSES = (
    "upcoming", "active", "completed", "cancelled", "processing"
)


def new_id() -> str:
    return uuid.uuid4().hex


def new_uuid() -> str:
    return str(uuid.uuid4())


# ----------------------------
# auth tables
# ----------------------------
class User(Base):
    __tablename__ = "user"
    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    image = Column(String, nullable=True)
    created_at = Column(Float, nullable=False, default=now_ts)
    updated_at = Column(Float, nullable=False, default=now_ts)


class Session(Base):
    __tablename__ = "session"
    id = Column(String, primary_key=True, default=new_id)
    expires_at = Column(Float, nullable=False)
    token = Column(String, nullable=False, unique=True)
    created_at = Column(Float, nullable=False, default=now_ts)
    updated_at = Column(Float, nullable=False, default=now_ts)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    user_id = Column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False
    )


class Account(Base):
    __tablename__ = "account"
    id = Column(String, primary_key=True, default=new_id)
    account_id = Column(String, nullable=False)
    # "credential" for email/password sign-in
    provider_id = Column(String, nullable=False)
    user_id = Column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False
    )
    access_token = Column(String, nullable=True)
    refresh_token = Column(String, nullable=True)
    id_token = Column(String, nullable=True)
    access_token_expires_at = Column(Float, nullable=True)
    refresh_token_expires_at = Column(Float, nullable=True)
    scope = Column(String, nullable=True)
    password = Column(String, nullable=True)  # bcrypt hash
    created_at = Column(Float, nullable=False, default=now_ts)
    updated_at = Column(Float, nullable=False, default=now_ts)


class Verification(Base):
    __tablename__ = "verification"
    id = Column(String, primary_key=True, default=new_id)
    identifier = Column(String, nullable=False)
    value = Column(String, nullable=False)
    expires_at = Column(Float, nullable=False)
    created_at = Column(Float, nullable=True, default=now_ts)
    updated_at = Column(Float, nullable=True, default=now_ts)


# ----------------------------
# agents & meetings
# ----------------------------
class Agent(Base):
    __tablename__ = "agent"
    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    user_id = Column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False
    )
    instructions = Column("instruction", Text, nullable=False)
    created_at = Column(Float, nullable=True, default=now_ts)
    updated_at = Column(Float, nullable=True, default=now_ts)


class Meeting(Base):
    __tablename__ = "meetings"
    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    user_id = Column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False
    )
    agent_id = Column(
        String, ForeignKey("agent.id", ondelete="CASCADE"), nullable=False
    )
    status = Column(
        Enum(*MEETING_STATUSES, name="meeting_status"),
        nullable=False, default="upcoming",
    )
    started_at = Column(Float, nullable=True)
    ended_at = Column(Float, nullable=True)
    transcript_url = Column(String, nullable=True)
    recording_url = Column(String, nullable=True)
    summary = Column(Text, nullable=True)
    created_at = Column(Float, nullable=True, default=now_ts)
    updated_at = Column(Float, nullable=True, default=now_ts)


# ----------------------------
# orders & payments
# ----------------------------
class Order(Base):
    __tablename__ = "orders"
    id = Column(String, primary_key=True, default=new_uuid)
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False)
    product_name = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)  # cents
    # pending | completed | cancelled
    status = Column(String, nullable=False, default="pending")
    payment_method = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False, default=now_ts)
    updated_at = Column(Float, nullable=False, default=now_ts)


class Payment(Base):
    __tablename__ = "payments"
    id = Column(String, primary_key=True, default=new_uuid)
    polar_payment_id = Column(String, nullable=True, unique=True)
    polar_order_id = Column(String, nullable=True)
    polar_customer_id = Column(String, nullable=True)
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)  # cents
    currency = Column(String, nullable=True, default="USD")
    # pending | processing | succeeded | failed | cancelled | refunded
    status = Column(String, nullable=False, default="pending")
    payment_method = Column(String, nullable=True)
    payment_intent_id = Column(String, nullable=True)
    subscription_id = Column(String, nullable=True)
    product_name = Column(String, nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_json = Column("metadata", Text, nullable=True)
    polar_webhook_data = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False, default=now_ts)
    updated_at = Column(Float, nullable=False, default=now_ts)
    processed_at = Column(Float, nullable=True)
    synced_from_polar = Column(Boolean, nullable=True, default=False)
    last_sync_at = Column(Float, nullable=True)


Index("idx_payments_created_at", Payment.created_at)
Index("idx_payments_polar_order_id", Payment.polar_order_id)
Index("idx_payments_subscription_id", Payment.subscription_id)
Index("idx_orders_created_at", Order.created_at)
