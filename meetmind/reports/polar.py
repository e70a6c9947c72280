"""Polar dashboard reports, aggregated in SQL where the dialects agree."""
from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from ..helpers import day_key, to_iso
from ..model.db import Payment

REPORT_TYPES = ("summary", "detailed", "analytics")


def _in_range(q, rng: Optional[Tuple[float, float]]):
    if rng is None:
        return q
    return q.where(Payment.created_at >= rng[0], Payment.created_at <= rng[1])


async def summary_report(db: AsyncSession,
                         rng: Optional[Tuple[float, float]]) -> Dict[str, Any]:
    q = _in_range(
        select(
            Payment.status,
            func.count().label("n"),
            func.coalesce(func.sum(Payment.amount), 0).label("total"),
            Payment.currency,
        ).group_by(Payment.status, Payment.currency),
        rng,
    )
    result = await db.execute(q)
    rows = [
        {
            "status": r.status,
            "count": int(r.n),
            "total": int(r.total),
            "currency": r.currency,
        }
        for r in result.all()
    ]
    return {
        "payment_summary": rows,
        "total_transactions": sum(r["count"] for r in rows),
        "total_revenue": sum(
            r["total"] for r in rows if r["status"] == "succeeded"
        ),
    }


async def detailed_report(db: AsyncSession, rng: Optional[Tuple[float, float]],
                          start_date: Optional[str], end_date: Optional[str]
                          ) -> Dict[str, Any]:
    q = _in_range(
        select(
            Payment.id, Payment.customer_email, Payment.amount,
            Payment.currency, Payment.status, Payment.created_at,
        ).order_by(Payment.created_at.asc()),
        rng,
    )
    result = await db.execute(q)
    transactions = [
        {
            "id": r.id,
            "customerEmail": r.customer_email,
            "amount": r.amount,
            "currency": r.currency,
            "status": r.status,
            "createdAt": to_iso(r.created_at),
        }
        for r in result.all()
    ]
    return {
        "transactions": transactions,
        "transaction_count": len(transactions),
        "date_range": {"start": start_date, "end": end_date},
    }


async def analytics_report(db: AsyncSession,
                           rng: Optional[Tuple[float, float]],
                           start_date: Optional[str], end_date: Optional[str]
                           ) -> Dict[str, Any]:
    # timestamps are epoch floats, so days are bucketed here, not in SQL
    result = await db.execute(_in_range(
        select(
            Payment.created_at,
            case((Payment.status == "succeeded", Payment.amount), else_=0)
            .label("revenue"),
        ),
        rng,
    ))
    daily: Dict[str, Dict[str, Any]] = {}
    for r in result.all():
        key = day_key(r.created_at)
        d = daily.setdefault(
            key, {"date": key, "revenue": 0, "transaction_count": 0}
        )
        d["revenue"] += int(r.revenue or 0)
        d["transaction_count"] += 1
    daily_revenue: List[Dict[str, Any]] = [daily[k] for k in sorted(daily)]

    status_rows = await db.execute(
        select(Payment.status, func.count().label("n"))
        .group_by(Payment.status)
    )
    counts = [(r.status, int(r.n)) for r in status_rows.all()]
    grand = sum(n for _, n in counts)
    distribution = [
        {
            "status": status,
            "count": n,
            "percentage": round(n * 100.0 / grand, 2) if grand else 0,
        }
        for status, n in counts
    ]
    return {
        "daily_revenue": daily_revenue,
        "status_distribution": distribution,
        "analytics_period": {
            "start_date": start_date,
            "end_date": end_date,
            "total_days": len(daily_revenue),
        },
    }


async def build_report(db: AsyncSession, report_type: str,
                       rng: Optional[Tuple[float, float]],
                       start_date: Optional[str], end_date: Optional[str]
                       ) -> Dict[str, Any]:
    if report_type == "summary":
        return await summary_report(db, rng)
    if report_type == "detailed":
        return await detailed_report(db, rng, start_date, end_date)
    if report_type == "analytics":
        return await analytics_report(db, rng, start_date, end_date)
    raise ValueError(f"unknown report type: {report_type}")
