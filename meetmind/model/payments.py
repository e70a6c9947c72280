from __future__ import annotations
import json
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .db import Payment
from ..helpers import now_ts, to_iso, dollars_to_cents
from ..polar import order_to_payment_fields


def payment_to_dict(p: Payment) -> Dict[str, Any]:
    return {
        "id": p.id,
        "polarPaymentId": p.polar_payment_id,
        "polarOrderId": p.polar_order_id,
        "polarCustomerId": p.polar_customer_id,
        "customerName": p.customer_name,
        "customerEmail": p.customer_email,
        "amount": p.amount,
        "currency": p.currency,
        "status": p.status,
        "paymentMethod": p.payment_method,
        "paymentIntentId": p.payment_intent_id,
        "subscriptionId": p.subscription_id,
        "productName": p.product_name,
        "metadata": p.metadata_json,
        "polarWebhookData": p.polar_webhook_data,
        "createdAt": to_iso(p.created_at),
        "updatedAt": to_iso(p.updated_at),
        "processedAt": to_iso(p.processed_at),
        "syncedFromPolar": bool(p.synced_from_polar),
        "lastSyncAt": to_iso(p.last_sync_at),
    }


# ----------------------------
# CRUD
# ----------------------------
async def list_payments(
    db: AsyncSession, search: Optional[str] = None,
    status: Optional[str] = None, limit: int = 50, offset: int = 0,
) -> Tuple[List[Payment], int]:
    conditions = []
    if search:
        term = search.strip().lower()
        conditions.append(or_(*(
            func.lower(col).contains(term, autoescape=True)
            for col in (Payment.customer_name, Payment.customer_email,
                        Payment.product_name, Payment.polar_payment_id)
        )))
    if status and status != "all":
        conditions.append(Payment.status == status)

    q = select(Payment).where(*conditions)
    result = await db.execute(
        q.order_by(Payment.created_at.desc()).limit(limit).offset(offset)
    )
    total = await db.scalar(
        select(func.count()).select_from(Payment).where(*conditions)
    )
    return list(result.scalars().all()), int(total or 0)


async def get_payment(db: AsyncSession, payment_id: str) -> Optional[Payment]:
    return await db.get(Payment, payment_id)


async def create_payment(db: AsyncSession, data: Dict[str, Any]) -> Payment:
    ts = now_ts()
    metadata = data.get("metadata")
    payment = Payment(
        customer_name=data["customerName"],
        customer_email=data["customerEmail"],
        amount=dollars_to_cents(data["amount"]),
        currency=data.get("currency") or "USD",
        status=data.get("status") or "pending",
        payment_method=data.get("paymentMethod") or "manual",
        product_name=data.get("productName"),
        metadata_json=json.dumps(metadata) if metadata else None,
        synced_from_polar=False,
        created_at=ts,
        updated_at=ts,
    )
    db.add(payment)
    await db.commit()
    return payment


_PATCHABLE = {
    "customerName": "customer_name",
    "customerEmail": "customer_email",
    "currency": "currency",
    "status": "status",
    "paymentMethod": "payment_method",
    "productName": "product_name",
}


async def update_payment(
    db: AsyncSession, payment_id: str, fields: Dict[str, Any]
) -> Optional[Payment]:
    payment = await db.get(Payment, payment_id)
    if payment is None:
        return None
    for key, column in _PATCHABLE.items():
        if fields.get(key) is not None:
            setattr(payment, column, fields[key])
    if fields.get("amount"):
        payment.amount = dollars_to_cents(fields["amount"])
    if fields.get("metadata"):
        payment.metadata_json = json.dumps(fields["metadata"])
    payment.updated_at = now_ts()
    await db.commit()
    return payment


async def delete_payment(db: AsyncSession, payment_id: str) -> bool:
    result = await db.execute(delete(Payment).where(Payment.id == payment_id))
    await db.commit()
    return result.rowcount > 0


async def payments_in_range(
    db: AsyncSession, rng: Optional[Tuple[float, float]] = None,
    newest_first: bool = False, limit: Optional[int] = None,
) -> List[Payment]:
    q = select(Payment)
    if rng is not None:
        q = q.where(Payment.created_at >= rng[0], Payment.created_at <= rng[1])
    if newest_first:
        q = q.order_by(Payment.created_at.desc())
    else:
        q = q.order_by(Payment.created_at.asc())
    if limit is not None:
        q = q.limit(limit)
    result = await db.execute(q)
    return list(result.scalars().all())


# ----------------------------
# Polar sync
# ----------------------------
async def find_by_polar_id(db: AsyncSession, polar_id: str
                           ) -> Optional[Payment]:
    result = await db.execute(
        select(Payment).where(or_(
            Payment.polar_order_id == polar_id,
            Payment.polar_payment_id == polar_id,
        )).limit(1)
    )
    return result.scalars().first()


async def find_by_subscription_id(db: AsyncSession, subscription_id: str
                                  ) -> Optional[Payment]:
    result = await db.execute(
        select(Payment)
        .where(Payment.subscription_id == subscription_id)
        .order_by(Payment.created_at.asc())
        .limit(1)
    )
    return result.scalars().first()


async def upsert_polar_order(db: AsyncSession, order: Dict[str, Any]) -> str:
    """Insert or update the payment for a Polar order.

    Returns "created" or "updated"; any exception is left to the caller.
    """
    fields = order_to_payment_fields(order)
    existing = await find_by_polar_id(db, order["id"])
    ts = now_ts()
    if existing is not None:
        for column, value in fields.items():
            setattr(existing, column, value)
        existing.updated_at = ts
        await db.commit()
        return "updated"
    db.add(Payment(**fields, created_at=ts, updated_at=ts))
    await db.commit()
    return "created"


# ----------------------------
# Duplicate cleanup
# ----------------------------
async def _duplicate_groups(db: AsyncSession, column) -> List[str]:
    result = await db.execute(
        select(column)
        .where(column.is_not(None))
        .group_by(column)
        .having(func.count() > 1)
    )
    return [row[0] for row in result.all()]


async def _delete_all_but_oldest(db: AsyncSession, column, value) -> List[str]:
    result = await db.execute(
        select(Payment.id)
        .where(column == value)
        .order_by(Payment.created_at.asc(), Payment.id.asc())
    )
    ids = [row[0] for row in result.all()]
    doomed = ids[1:]
    if doomed:
        await db.execute(delete(Payment).where(Payment.id.in_(doomed)))
    return doomed


async def cleanup_duplicates(db: AsyncSession) -> Dict[str, Any]:
    """Keep the oldest row per subscription id, then per Polar order id."""
    deleted: List[str] = []

    sub_groups = await _duplicate_groups(db, Payment.subscription_id)
    print(f"[CLEANUP] {len(sub_groups)} subscription groups with duplicates")
    for value in sub_groups:
        for pid in await _delete_all_but_oldest(
                db, Payment.subscription_id, value):
            print(f"[CLEANUP] deleted duplicate payment: {pid}")
            deleted.append(pid)
    await db.commit()

    order_groups = await _duplicate_groups(db, Payment.polar_order_id)
    print(f"[CLEANUP] {len(order_groups)} order groups with duplicates")
    for value in order_groups:
        for pid in await _delete_all_but_oldest(
                db, Payment.polar_order_id, value):
            print(f"[CLEANUP] deleted duplicate order payment: {pid}")
            deleted.append(pid)
    await db.commit()

    return {
        "deletedCount": len(deleted),
        "subscriptionGroups": len(sub_groups),
        "orderGroups": len(order_groups),
        "deletedIds": deleted,
    }


# ----------------------------
# Webhook event handlers
# ----------------------------
async def _lookup_for_event(db: AsyncSession, event_type: str,
                            data: Dict[str, Any]) -> Optional[Payment]:
    object_id = data.get("id")
    if not object_id:
        return None
    if event_type.startswith("subscription."):
        return await find_by_subscription_id(db, object_id)
    return await find_by_polar_id(db, object_id)


async def handle_payment_created(db: AsyncSession, event_type: str,
                                 data: Dict[str, Any]) -> Dict[str, str]:
    if not data.get("id"):
        raise ValueError("event data has no id")
    existing = await _lookup_for_event(db, event_type, data)
    if existing is not None:
        return {"status": "exists", "action": "no_action_required"}

    fields = order_to_payment_fields(data)
    fields["status"] = "pending"
    if event_type.startswith("subscription."):
        fields["polar_order_id"] = None
        fields["subscription_id"] = data["id"]
        fields["payment_method"] = "subscription"
    ts = now_ts()
    db.add(Payment(**fields, created_at=ts, updated_at=ts))
    await db.commit()
    return {"status": "created", "action": "payment_record_created"}


async def handle_payment_status(
    db: AsyncSession, event_type: str, data: Dict[str, Any], status: str
) -> Dict[str, str]:
    payment = await _lookup_for_event(db, event_type, data)
    if payment is None:
        return {"status": "not_found", "action": "payment_record_not_found"}
    ts = now_ts()
    payment.status = status
    payment.updated_at = ts
    if status == "succeeded":
        payment.processed_at = ts
    payment.polar_webhook_data = json.dumps(data)
    await db.commit()
    return {
        "status": "updated",
        "action": f"payment_status_updated_to_{status}",
    }
