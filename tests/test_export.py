from meetmind.helpers import parse_date
from meetmind.model.db import Meeting, Order, Payment
from meetmind.reports import export
from meetmind.reports.payments import build_report
from meetmind.reports.pdf import meeting_row, status_counts, payment_report_pdf


def test_filenames():
    assert export.payment_pdf_filename("summary", "2025-01-02") == \
        "payment-report-summary-2025-01-02.pdf"
    assert export.payments_csv_filename("2025-01-02") == "payments-2025-01-02.csv"
    assert export.orders_csv_filename("2025-01-02") == "orders-2025-01-02.csv"
    assert export.orders_text_filename("financial", "2025-01-02") == \
        "financial-report-2025-01-02.txt"
    assert export.meetings_pdf_filename("2025-01-02") == \
        "MeetMind-Meetings-Report-2025-01-02.pdf"
    assert export.polar_json_filename("analytics", "2025-01-02") == \
        "polar-report-analytics-2025-01-02.json"
    assert export.attachment("a.pdf") == {
        "Content-Disposition": 'attachment; filename="a.pdf"'
    }


def test_orders_csv_quotes_everything():
    o = Order(
        id="o1", customer_name='Ann "The Boss"', customer_email="ann@x.io",
        product_name="Pro, yearly", amount=12345, status="completed",
        payment_method=None, notes=None,
        created_at=parse_date("2025-03-04T05:06:07"),
    )
    lines = export.orders_csv([o]).splitlines()
    assert lines[1] == (
        '"o1","Ann ""The Boss""","ann@x.io","Pro, yearly","123.45",'
        '"completed","","2025-03-04",""'
    )


def test_payments_csv_source_column():
    ts = parse_date("2025-03-04T05:06:07")
    rows = [
        Payment(id="p1", customer_name="A", customer_email="a@x.io",
                amount=100, status="succeeded", synced_from_polar=True,
                created_at=ts),
        Payment(id="p2", customer_name="B", customer_email="b@x.io",
                amount=250, status="pending", synced_from_polar=False,
                currency="EUR", created_at=ts),
    ]
    lines = export.payments_csv(rows).splitlines()
    assert '"Polar"' in lines[1]
    assert '"Manual"' in lines[2]
    assert '"EUR"' in lines[2]
    assert '"2025-03-04 05:06:07"' in lines[1]


def test_meeting_row():
    m = Meeting(
        name="Retro", status="completed",
        created_at=parse_date("2025-01-05T14:30:00"),
        started_at=1000.0, ended_at=1000.0 + 45 * 60,
    )
    row = meeting_row(1, m, "Coach")
    assert row[:4] == ["1", "Retro", "Coach", "Completed"]
    assert row[4] == "Jan 05, 2025"
    assert row[5] == "02:30 PM"
    assert row[-1] == "45 min"

    upcoming = Meeting(name=None, status=None, created_at=None)
    row = meeting_row(2, upcoming, None)
    assert row[1:4] == ["Untitled Meeting", "Unknown Agent", "Unknown"]
    assert row[6:] == ["Not Started", "Not Ended", "N/A"]


def test_status_counts():
    meetings = [
        (Meeting(status="completed"), "a"),
        (Meeting(status="completed"), "a"),
        (Meeting(status="upcoming"), "b"),
    ]
    assert status_counts(meetings) == {"completed": 2, "upcoming": 1}


def test_payment_pdf_with_empty_data():
    for type_ in ("summary", "detailed", "analytics", "financial"):
        pdf = payment_report_pdf(
            type_, build_report(type_, [], None, None),
            "2025-01-01", "2025-01-31",
        )
        assert pdf.startswith(b"%PDF")
