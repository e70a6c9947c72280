import csv
import io
from datetime import datetime, timezone

from meetmind.helpers import parse_date
from meetmind.model.db import Payment
from meetmind.reports import payments as reports


def ts(day: str, hour: int = 12) -> float:
    return parse_date(f"{day}T{hour:02d}:00:00")


def pay(amount, status, day="2025-01-10", hour=12, email="a@x.io", **kw):
    return Payment(
        customer_name=email.split("@")[0], customer_email=email,
        amount=amount, status=status, currency=kw.pop("currency", "USD"),
        payment_method=kw.pop("payment_method", "order"),
        created_at=ts(day, hour), updated_at=ts(day, hour), **kw,
    )


SAMPLE = [
    pay(1000, "succeeded", "2025-01-10", 9, "a@x.io"),
    pay(3000, "succeeded", "2025-01-10", 15, "b@x.io"),
    pay(2000, "succeeded", "2025-01-12", 9, "a@x.io", currency="EUR"),
    pay(500, "failed", "2025-01-12", 10, "c@x.io"),
    pay(700, "refunded", "2025-01-13", 11, "b@x.io"),
    pay(900, "pending", "2025-01-14", 23, "d@x.io", payment_method="manual"),
]


def test_summary():
    data = reports.summary_report(SAMPLE, "2025-01-01", "2025-01-31")
    o = data["overview"]
    assert o["total_payments"] == 6
    assert o["total_revenue"] == 6000
    assert o["average_transaction_value"] == 2000
    assert o["success_rate"] == "50.00"
    assert data["status_distribution"]["failed"] == 1
    assert data["status_distribution"]["processing"] == 0
    assert data["currency_breakdown"] == {"USD": 5, "EUR": 1}
    assert data["payment_methods"] == {"order": 5, "manual": 1}
    assert data["period_summary"]["days_analyzed"] == 30


def test_summary_empty():
    data = reports.summary_report([])
    assert data["overview"]["success_rate"] == 0
    assert data["overview"]["average_transaction_value"] == 0
    assert data["period_summary"]["days_analyzed"] is None


def test_detailed():
    newest_first = sorted(SAMPLE, key=lambda p: p.created_at, reverse=True)
    data = reports.detailed_report(newest_first)
    assert data["transaction_count"] == 6
    assert data["largest_transaction"]["amount"] == 3000
    assert [f["amount"] for f in data["recent_failures"]] == [500]
    day = data["daily_statistics"]["2025-01-10"]
    assert day["total_transactions"] == 2
    assert day["total_amount"] == 4000
    assert day["succeeded"] == 2
    assert data["transactions"][0]["amount"] == 900


def test_analytics():
    today = datetime(2025, 1, 20, tzinfo=timezone.utc)
    data = reports.analytics_report(SAMPLE, today=today)
    hourly = data["hourly_distribution"]
    assert len(hourly) == 24
    assert hourly[9]["count"] == 2
    trend = data["daily_trend"]
    assert len(trend) == 30
    assert trend[-1]["date"] == "2025-01-20"
    jan10 = next(d for d in trend if d["date"] == "2025-01-10")
    assert jan10 == {"date": "2025-01-10", "count": 2, "revenue": 4000}
    ca = data["customer_analytics"]
    assert ca["total_unique_customers"] == 4
    assert ca["repeat_customers"] == 2
    top = ca["top_customers"]
    assert {c["email"] for c in top[:2]} == {"a@x.io", "b@x.io"}
    assert top[0]["total_spent"] == 3000
    assert top[-1]["total_spent"] == 0
    assert data["conversion_funnel"] == {
        "pending_to_success": 1,
        "processing_to_success": 0,
        "total_successful": 3,
    }


def test_financial():
    data = reports.financial_report(SAMPLE, "2025-01-01", "2025-01-11")
    rs = data["revenue_summary"]
    assert rs["gross_revenue"] == 6000
    assert rs["refunded_amount"] == 700
    assert rs["net_revenue"] == 5300
    assert rs["successful_transactions"] == 3
    assert data["monthly_breakdown"] == {"2025-01": 6000}
    assert data["currency_revenue"] == {"USD": 4000, "EUR": 2000}
    assert data["average_values"]["median_transaction"] == 2000
    assert data["payment_volume"]["daily_average"] == 0.3
    assert data["payment_volume"]["peak_day"] == {
        "date": "2025-01-10", "count": 2, "revenue": 4000,
    }


def test_median():
    assert reports.median([]) == 0
    assert reports.median([3, 1, 2]) == 2
    assert reports.median([4, 1, 2, 3]) == 2.5


# ----------------------------
# HTTP
# ----------------------------
async def seed(db):
    db.add_all(fresh_sample())
    await db.commit()


def fresh_sample():
    # fresh instances per test; ORM objects bind to one session
    return [
        pay(p.amount, p.status,
            datetime.fromtimestamp(p.created_at, tz=timezone.utc)
            .strftime("%Y-%m-%d"),
            datetime.fromtimestamp(p.created_at, tz=timezone.utc).hour,
            p.customer_email, currency=p.currency,
            payment_method=p.payment_method)
        for p in SAMPLE
    ]


async def test_json_report_with_range(client, db):
    await seed(db)
    r = await client.get("/api/payments/reports", params={
        "type": "summary", "start_date": "2025-01-12",
        "end_date": "2025-01-13",
    })
    assert r.status_code == 200
    body = r.json()
    assert body["report_type"] == "summary"
    assert body["period"] == {
        "start_date": "2025-01-12", "end_date": "2025-01-13"
    }
    # end date covers the whole 13th
    assert body["data"]["overview"]["total_payments"] == 3


async def test_range_needs_both_dates(client, db):
    await seed(db)
    r = await client.get("/api/payments/reports",
                         params={"start_date": "2025-01-12"})
    assert r.json()["data"]["overview"]["total_payments"] == 6


async def test_invalid_type_and_dates(client):
    r = await client.get("/api/payments/reports", params={"type": "weekly"})
    assert r.status_code == 400
    assert r.json() == {
        "error": "Invalid report type. Use: summary, detailed, analytics, "
                 "or financial"
    }
    r = await client.get("/api/payments/reports", params={
        "start_date": "soon", "end_date": "later",
    })
    assert r.status_code == 400


async def test_pdf_report(client, db):
    await seed(db)
    for type_ in reports.REPORT_TYPES:
        r = await client.get("/api/payments/reports",
                             params={"type": type_, "format": "pdf"})
        assert r.status_code == 200
        assert r.headers["content-type"] == "application/pdf"
        assert r.content.startswith(b"%PDF")
        disposition = r.headers["content-disposition"]
        assert f'filename="payment-report-{type_}-' in disposition


async def test_csv_export(client, db):
    await seed(db)
    r = await client.get("/api/payments/reports", params={"format": "csv"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert 'filename="payments-' in r.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(r.text)))
    assert rows[0][:3] == ["Payment ID", "Customer Name", "Customer Email"]
    assert len(rows) == 7
    # newest first, every cell quoted
    assert rows[1][4] == "9.00"
    assert r.text.splitlines()[1].startswith('"')


async def test_json_report_is_not_an_attachment(client, db):
    await seed(db)
    r = await client.get("/api/payments/reports", params={"type": "summary"})
    assert r.status_code == 200
    assert "content-disposition" not in r.headers
