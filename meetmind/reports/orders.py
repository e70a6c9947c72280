"""Sales reports over the orders table (admin reports page)."""
from __future__ import annotations
import calendar
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..helpers import cents_to_dollars
from ..model.db import Order

REPORT_TYPES = ("overview", "financial", "customer")
RANGES = {
    "7": "Last 7 days",
    "30": "Last 30 days",
    "90": "Last 90 days",
    "thisMonth": "This month",
    "6months": "Last 6 months",
    "1year": "Last year",
}


def _sub_months(dt: datetime, months: int) -> datetime:
    month = dt.month - months
    year = dt.year
    while month < 1:
        month += 12
        year -= 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def range_cutoff(date_range: str, now: Optional[datetime] = None
                 ) -> Optional[float]:
    """Epoch cutoff for a named range, None for all time."""
    now = now or datetime.now(timezone.utc)
    if date_range in ("7", "30", "90"):
        cutoff = now - timedelta(days=int(date_range))
    elif date_range == "thisMonth":
        cutoff = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    elif date_range == "6months":
        cutoff = _sub_months(now, 6)
    elif date_range == "1year":
        cutoff = _sub_months(now, 12)
    else:
        return None
    return cutoff.timestamp()


def report_data(orders: List[Order]) -> Dict[str, Any]:
    total = len(orders)
    completed = [o for o in orders if o.status == "completed"]
    pending = sum(1 for o in orders if o.status == "pending")
    cancelled = sum(1 for o in orders if o.status == "cancelled")
    revenue = sum(cents_to_dollars(o.amount) for o in completed)

    products: Dict[str, Dict[str, Any]] = {}
    customers: Dict[str, Dict[str, Any]] = {}
    methods: Dict[str, Dict[str, Any]] = {}
    for o in orders:
        amount = cents_to_dollars(o.amount) if o.status == "completed" else 0
        p = products.setdefault(o.product_name, {"count": 0, "revenue": 0.0})
        p["count"] += 1
        p["revenue"] += amount
        c = customers.setdefault(o.customer_email, {
            "name": o.customer_name,
            "email": o.customer_email,
            "totalSpent": 0.0,
            "orderCount": 0,
        })
        c["orderCount"] += 1
        c["totalSpent"] += amount
        m = methods.setdefault(o.payment_method or "Unknown",
                               {"count": 0, "revenue": 0.0})
        m["count"] += 1
        m["revenue"] += amount

    def pct(n: int) -> float:
        return n / total * 100 if total else 0

    return {
        "totalOrders": total,
        "totalRevenue": revenue,
        "completedOrders": len(completed),
        "pendingOrders": pending,
        "cancelledOrders": cancelled,
        "avgOrderValue": revenue / len(completed) if completed else 0,
        "topProducts": sorted(
            ({"name": k, **v} for k, v in products.items()),
            key=lambda x: x["revenue"], reverse=True,
        )[:5],
        "topCustomers": sorted(
            customers.values(), key=lambda x: x["totalSpent"], reverse=True
        )[:5],
        "uniqueCustomers": len(customers),
        "ordersByStatus": [
            {"status": "Completed", "count": len(completed),
             "percentage": pct(len(completed))},
            {"status": "Pending", "count": pending,
             "percentage": pct(pending)},
            {"status": "Cancelled", "count": cancelled,
             "percentage": pct(cancelled)},
        ],
        "paymentMethods": sorted(
            ({"method": k, **v} for k, v in methods.items()),
            key=lambda x: x["revenue"], reverse=True,
        ),
    }


def render_text(report_type: str, data: Dict[str, Any], date_range: str,
                generated_on: Optional[datetime] = None) -> str:
    range_text = RANGES.get(date_range, "All time")
    generated = (generated_on or datetime.now(timezone.utc)).strftime(
        "%B %d, %Y")
    lines: List[str] = []

    if report_type == "overview":
        lines += [
            f"# Sales Report - {range_text}",
            f"Generated on: {generated}",
            "",
            "## Executive Summary",
            f"- Total Orders: {data['totalOrders']}",
            f"- Total Revenue: ${data['totalRevenue']:.2f}",
            f"- Completed Orders: {data['completedOrders']}",
            f"- Pending Orders: {data['pendingOrders']}",
            f"- Cancelled Orders: {data['cancelledOrders']}",
            f"- Average Order Value: ${data['avgOrderValue']:.2f}",
            "",
            "## Order Status Breakdown",
        ]
        lines += [
            f"- {s['status']}: {s['count']} orders ({s['percentage']:.1f}%)"
            for s in data["ordersByStatus"]
        ]
        lines += ["", "## Top Products by Revenue"]
        lines += [
            f"{i}. {p['name']}: {p['count']} orders, "
            f"${p['revenue']:.2f} revenue"
            for i, p in enumerate(data["topProducts"], 1)
        ]
        lines += ["", "## Top Customers"]
        lines += [
            f"{i}. {c['name']} ({c['email']}): {c['orderCount']} orders, "
            f"${c['totalSpent']:.2f} total"
            for i, c in enumerate(data["topCustomers"], 1)
        ]
        lines += ["", "## Payment Methods"]
        lines += [
            f"- {m['method']}: {m['count']} orders, ${m['revenue']:.2f} revenue"
            for m in data["paymentMethods"]
        ]
    elif report_type == "financial":
        total = data["totalOrders"]
        conversion = (
            f"{data['completedOrders'] / total * 100:.1f}" if total else "0"
        )
        lines += [
            f"# Financial Report - {range_text}",
            f"Generated on: {generated}",
            "",
            "## Revenue Summary",
            f"- Total Revenue: ${data['totalRevenue']:.2f}",
            f"- Completed Orders: {data['completedOrders']}",
            f"- Average Order Value: ${data['avgOrderValue']:.2f}",
            f"- Conversion Rate: {conversion}%",
            "",
            "## Revenue by Payment Method",
        ]
        lines += [
            f"- {m['method']}: ${m['revenue']:.2f} ({m['count']} orders)"
            for m in data["paymentMethods"]
        ]
        lines += ["", "## Product Performance"]
        for i, p in enumerate(data["topProducts"], 1):
            avg = p["revenue"] / p["count"] if p["count"] else 0
            lines += [
                f"{i}. {p['name']}",
                f"   - Orders: {p['count']}",
                f"   - Revenue: ${p['revenue']:.2f}",
                f"   - Avg per order: ${avg:.2f}",
                "",
            ]
    elif report_type == "customer":
        unique = data["uniqueCustomers"]
        per_customer = (
            f"{data['totalOrders'] / unique:.1f}" if unique else "0"
        )
        lines += [
            f"# Customer Report - {range_text}",
            f"Generated on: {generated}",
            "",
            "## Customer Overview",
            f"- Total Unique Customers: {unique}",
            f"- Total Orders: {data['totalOrders']}",
            f"- Average Orders per Customer: {per_customer}",
            "",
            "## Top Customers by Spend",
        ]
        for i, c in enumerate(data["topCustomers"], 1):
            avg = c["totalSpent"] / c["orderCount"] if c["orderCount"] else 0
            lines += [
                f"{i}. {c['name']}",
                f"   - Email: {c['email']}",
                f"   - Orders: {c['orderCount']}",
                f"   - Total Spent: ${c['totalSpent']:.2f}",
                f"   - Avg per order: ${avg:.2f}",
                "",
            ]
    else:
        raise ValueError(f"unknown report type: {report_type}")

    return "\n".join(lines).rstrip() + "\n"
