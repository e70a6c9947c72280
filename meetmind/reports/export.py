import csv
import io
from typing import Iterable, List, Optional

from ..helpers import today_str, to_dt
from ..model.db import Order, Payment

ORDER_COLUMNS = [
    "Order ID", "Customer Name", "Customer Email", "Product", "Amount",
    "Status", "Payment Method", "Order Date", "Notes",
]
PAYMENT_COLUMNS = [
    "Payment ID", "Customer Name", "Customer Email", "Product", "Amount",
    "Currency", "Status", "Payment Method", "Source", "Date", "Notes",
]


# ----------------------------
# filenames
# ----------------------------
def payment_pdf_filename(report_type: str, day: Optional[str] = None) -> str:
    return f"payment-report-{report_type}-{day or today_str()}.pdf"


def payments_csv_filename(day: Optional[str] = None) -> str:
    return f"payments-{day or today_str()}.csv"


def orders_csv_filename(day: Optional[str] = None) -> str:
    return f"orders-{day or today_str()}.csv"


def orders_text_filename(report_type: str, day: Optional[str] = None) -> str:
    return f"{report_type}-report-{day or today_str()}.txt"


def meetings_pdf_filename(day: Optional[str] = None) -> str:
    return f"MeetMind-Meetings-Report-{day or today_str()}.pdf"


def polar_json_filename(report_type: str, day: Optional[str] = None) -> str:
    return f"polar-report-{report_type}-{day or today_str()}.json"


AGENTS_PDF_FILENAME = "my-agents-report.pdf"


def attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


# ----------------------------
# CSV
# ----------------------------
def _render(header: List[str], rows: Iterable[List[str]]) -> str:
    buf = io.StringIO()
    # every cell quoted, one row per record
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(row)
    return buf.getvalue()


def orders_csv(orders: Iterable[Order]) -> str:
    return _render(ORDER_COLUMNS, (
        [
            o.id,
            o.customer_name,
            o.customer_email,
            o.product_name,
            f"{o.amount / 100:.2f}",
            o.status,
            o.payment_method or "",
            to_dt(o.created_at).strftime("%Y-%m-%d"),
            o.notes or "",
        ]
        for o in orders
    ))


def payments_csv(payments: Iterable[Payment]) -> str:
    return _render(PAYMENT_COLUMNS, (
        [
            p.id,
            p.customer_name,
            p.customer_email,
            p.product_name or "",
            f"{p.amount / 100:.2f}",
            p.currency or "USD",
            p.status,
            p.payment_method or "",
            "Polar" if p.synced_from_polar else "Manual",
            to_dt(p.created_at).strftime("%Y-%m-%d %H:%M:%S"),
            p.metadata_json or "",
        ]
        for p in payments
    ))
