"""Payment report aggregations.

Every builder takes the already date-filtered ``Payment`` rows and returns
a JSON-ready dict. Amounts stay in cents.
"""
from __future__ import annotations
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..helpers import day_key, to_dt, parse_date, DAY_SECONDS
from ..model.db import Payment
from ..model.payments import payment_to_dict

REPORT_TYPES = ("summary", "detailed", "analytics", "financial")
DETAILED_LIMIT = 1000


def days_between(start_date: Optional[str], end_date: Optional[str]
                 ) -> Optional[int]:
    if not start_date or not end_date:
        return None
    delta = parse_date(end_date) - parse_date(start_date)
    return math.ceil(delta / DAY_SECONDS)


def _succeeded(payments: List[Payment]) -> List[Payment]:
    return [p for p in payments if p.status == "succeeded"]


def _count_by(payments: List[Payment], key) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for p in payments:
        k = key(p)
        out[k] = out.get(k, 0) + 1
    return out


def summary_report(payments: List[Payment], start_date: Optional[str] = None,
                   end_date: Optional[str] = None) -> Dict[str, Any]:
    total = len(payments)
    succeeded = _succeeded(payments)
    revenue = sum(p.amount for p in succeeded)
    return {
        "overview": {
            "total_payments": total,
            "total_revenue": revenue,
            "average_transaction_value": (
                revenue / len(succeeded) if succeeded else 0
            ),
            "success_rate": (
                f"{len(succeeded) / total * 100:.2f}" if total else 0
            ),
        },
        "status_distribution": {
            status: sum(1 for p in payments if p.status == status)
            for status in ("succeeded", "pending", "failed", "processing",
                           "cancelled", "refunded")
        },
        "currency_breakdown": _count_by(payments, lambda p: p.currency or "USD"),
        "payment_methods": _count_by(
            payments, lambda p: p.payment_method or "unknown"
        ),
        "period_summary": {
            "start_date": start_date,
            "end_date": end_date,
            "days_analyzed": days_between(start_date, end_date),
        },
    }


def detailed_report(payments: List[Payment]) -> Dict[str, Any]:
    """``payments`` newest first, at most DETAILED_LIMIT rows."""
    records = payments[:DETAILED_LIMIT]
    daily: Dict[str, Dict[str, int]] = {}
    for p in records:
        day = daily.setdefault(day_key(p.created_at), {
            "total_transactions": 0,
            "total_amount": 0,
            "succeeded": 0,
            "failed": 0,
            "pending": 0,
        })
        day["total_transactions"] += 1
        day["total_amount"] += p.amount
        day[p.status] = day.get(p.status, 0) + 1

    largest = max(records, key=lambda p: p.amount) if records else None
    return {
        "transactions": [payment_to_dict(p) for p in records[:100]],
        "daily_statistics": daily,
        "transaction_count": len(records),
        "largest_transaction": (
            payment_to_dict(largest) if largest else {"amount": 0}
        ),
        "recent_failures": [
            payment_to_dict(p) for p in records if p.status == "failed"
        ][:10],
    }


def analytics_report(payments: List[Payment],
                     today: Optional[datetime] = None) -> Dict[str, Any]:
    today = today or datetime.now(timezone.utc)

    hourly = [{"hour": h, "count": 0} for h in range(24)]
    for p in payments:
        hourly[to_dt(p.created_at).hour]["count"] += 1

    trend = []
    for i in range(29, -1, -1):
        date_str = (today - timedelta(days=i)).strftime("%Y-%m-%d")
        day_payments = [p for p in payments if day_key(p.created_at) == date_str]
        trend.append({
            "date": date_str,
            "count": len(day_payments),
            "revenue": sum(p.amount for p in _succeeded(day_payments)),
        })

    customers: Dict[str, Dict[str, Any]] = {}
    for p in payments:
        c = customers.setdefault(p.customer_email, {
            "total_payments": 0,
            "total_spent": 0,
            "last_payment": p.created_at,
        })
        c["total_payments"] += 1
        if p.status == "succeeded":
            c["total_spent"] += p.amount
        c["last_payment"] = max(c["last_payment"], p.created_at)

    top = sorted(customers.items(), key=lambda kv: kv[1]["total_spent"],
                 reverse=True)[:10]
    return {
        "hourly_distribution": hourly,
        "daily_trend": trend,
        "customer_analytics": {
            "total_unique_customers": len(customers),
            "top_customers": [
                {
                    "email": email,
                    "total_payments": stats["total_payments"],
                    "total_spent": stats["total_spent"],
                    "last_payment": to_dt(stats["last_payment"]).isoformat(),
                }
                for email, stats in top
            ],
            "repeat_customers": sum(
                1 for stats in customers.values() if stats["total_payments"] > 1
            ),
        },
        "conversion_funnel": {
            "pending_to_success": sum(
                1 for p in payments if p.status == "pending"),
            "processing_to_success": sum(
                1 for p in payments if p.status == "processing"),
            "total_successful": len(_succeeded(payments)),
        },
    }


def median(values: List[int]) -> float:
    if not values:
        return 0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def peak_day(payments: List[Payment]) -> Dict[str, Any]:
    daily: Dict[str, Dict[str, int]] = {}
    for p in payments:
        d = daily.setdefault(day_key(p.created_at), {"count": 0, "revenue": 0})
        d["count"] += 1
        d["revenue"] += p.amount
    if not daily:
        return {"date": "", "count": 0, "revenue": 0}
    date, stats = max(daily.items(), key=lambda kv: kv[1]["revenue"])
    return {"date": date, **stats}


def financial_report(payments: List[Payment], start_date: Optional[str] = None,
                     end_date: Optional[str] = None) -> Dict[str, Any]:
    succeeded = _succeeded(payments)
    gross = sum(p.amount for p in succeeded)
    refunded = sum(p.amount for p in payments if p.status == "refunded")

    monthly: Dict[str, int] = {}
    by_currency: Dict[str, int] = {}
    for p in succeeded:
        month = day_key(p.created_at)[:7]
        monthly[month] = monthly.get(month, 0) + p.amount
        cur = p.currency or "USD"
        by_currency[cur] = by_currency.get(cur, 0) + p.amount

    days = days_between(start_date, end_date)
    return {
        "revenue_summary": {
            "gross_revenue": gross,
            "refunded_amount": refunded,
            "net_revenue": gross - refunded,
            "total_transactions": len(payments),
            "successful_transactions": len(succeeded),
        },
        "monthly_breakdown": monthly,
        "currency_revenue": by_currency,
        "average_values": {
            "average_transaction": gross / len(succeeded) if succeeded else 0,
            "median_transaction": median([p.amount for p in succeeded]),
        },
        "payment_volume": {
            "daily_average": len(succeeded) / days if days and days > 0 else 0,
            "peak_day": peak_day(succeeded),
        },
    }


def build_report(report_type: str, payments: List[Payment],
                 start_date: Optional[str], end_date: Optional[str]
                 ) -> Dict[str, Any]:
    if report_type == "summary":
        return summary_report(payments, start_date, end_date)
    if report_type == "detailed":
        return detailed_report(
            sorted(payments, key=lambda p: p.created_at, reverse=True)
        )
    if report_type == "analytics":
        return analytics_report(payments)
    if report_type == "financial":
        return financial_report(payments, start_date, end_date)
    raise ValueError(f"unknown report type: {report_type}")

