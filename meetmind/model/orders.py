from __future__ import annotations
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from .db import Order
from ..helpers import now_ts, to_iso, cents_to_dollars, dollars_to_cents


DUMMY_ORDERS = [
    {
        "customer_name": "John Smith",
        "customer_email": "john@example.com",
        "product_name": "Premium Meeting Package",
        "amount": 9999,  # $99.99
        "status": "completed",
        "payment_method": "credit_card",
        "notes": "VIP customer - priority support",
    },
    {
        "customer_name": "Sarah Johnson",
        "customer_email": "sarah@company.com",
        "product_name": "Basic AI Agent",
        "amount": 2999,
        "status": "pending",
        "payment_method": "paypal",
        "notes": "Corporate account - billing monthly",
    },
    {
        "customer_name": "Mike Davis",
        "customer_email": "mike.davis@startup.io",
        "product_name": "Enterprise Solution",
        "amount": 49999,
        "status": "completed",
        "payment_method": "bank_transfer",
        "notes": "Annual subscription - includes premium features",
    },
    {
        "customer_name": "Lisa Chen",
        "customer_email": "lisa.chen@tech.com",
        "product_name": "Standard Package",
        "amount": 4999,
        "status": "cancelled",
        "payment_method": "credit_card",
        "notes": "Cancelled due to budget constraints",
    },
    {
        "customer_name": "Robert Wilson",
        "customer_email": "r.wilson@business.net",
        "product_name": "Pro Meeting Tools",
        "amount": 7999,
        "status": "completed",
        "payment_method": "stripe",
        "notes": "Upgraded from basic plan",
    },
    {
        "customer_name": "Emily Brown",
        "customer_email": "emily@freelance.com",
        "product_name": "Starter Package",
        "amount": 1999,
        "status": "pending",
        "payment_method": "credit_card",
        "notes": "First-time customer",
    },
    {
        "customer_name": "David Kim",
        "customer_email": "david.kim@agency.co",
        "product_name": "Agency Bundle",
        "amount": 19999,
        "status": "completed",
        "payment_method": "bank_transfer",
        "notes": "Multi-user license for team",
    },
    {
        "customer_name": "Rachel Green",
        "customer_email": "rachel@consulting.biz",
        "product_name": "Professional Package",
        "amount": 12999,
        "status": "completed",
        "payment_method": "paypal",
        "notes": "Monthly recurring subscription",
    },
]


def order_to_dict(o: Order) -> Dict[str, Any]:
    # amounts leave the API in dollars
    return {
        "id": o.id,
        "customer_name": o.customer_name,
        "customer_email": o.customer_email,
        "product_name": o.product_name,
        "amount": cents_to_dollars(o.amount),
        "status": o.status,
        "payment_method": o.payment_method or "cash",
        "order_date": to_iso(o.created_at or now_ts()),
        "updated_at": to_iso(o.updated_at or now_ts()),
        "notes": o.notes or "",
    }


async def get_order(db: AsyncSession, order_id: str) -> Optional[Order]:
    return await db.get(Order, order_id)


async def list_orders(
    db: AsyncSession, since: Optional[float] = None
) -> List[Order]:
    q = select(Order).order_by(Order.created_at.desc())
    if since is not None:
        q = q.where(Order.created_at >= since)
    result = await db.execute(q)
    return list(result.scalars().all())


async def create_order(db: AsyncSession, data: Dict[str, Any]) -> Order:
    ts = now_ts()
    order = Order(
        customer_name=data["customer_name"],
        customer_email=data["customer_email"],
        product_name=data["product_name"],
        amount=dollars_to_cents(data["amount"]),
        status=data.get("status") or "pending",
        payment_method=data.get("payment_method") or "cash",
        notes=data.get("notes") or "",
        created_at=ts,
        updated_at=ts,
    )
    db.add(order)
    await db.commit()
    return order


async def update_order(
    db: AsyncSession, order_id: str, fields: Dict[str, Any]
) -> Optional[Order]:
    order = await get_order(db, order_id)
    if order is None:
        return None
    for key in ("customer_name", "customer_email", "product_name",
                "status", "payment_method", "notes"):
        if fields.get(key) is not None:
            setattr(order, key, fields[key])
    # 0 / missing amount keeps the stored value
    if fields.get("amount"):
        order.amount = dollars_to_cents(fields["amount"])
    order.updated_at = now_ts()
    await db.commit()
    return order


async def delete_order(db: AsyncSession, order_id: str) -> bool:
    result = await db.execute(delete(Order).where(Order.id == order_id))
    await db.commit()
    return result.rowcount > 0


async def seed_orders(db: AsyncSession) -> List[Order]:
    inserted = []
    for item in DUMMY_ORDERS:
        ts = now_ts()
        order = Order(**item, created_at=ts, updated_at=ts)
        db.add(order)
        inserted.append(order)
    await db.commit()
    return inserted
