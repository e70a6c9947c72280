"""PDF rendering with reportlab (payment, meetings and agents reports)."""
from __future__ import annotations
import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, letter, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle,
)

from ..helpers import fmt_money, to_dt
from ..model.db import Agent, Meeting

BRAND = "MeetMind AI"
PRIMARY = colors.Color(37 / 255, 99 / 255, 235 / 255)
ROW_ALT = colors.Color(248 / 255, 250 / 255, 252 / 255)
GRID = colors.Color(220 / 255, 220 / 255, 220 / 255)

_styles = getSampleStyleSheet()
TITLE = ParagraphStyle("mm-title", parent=_styles["Title"], fontSize=20,
                       leading=24)
CENTER = ParagraphStyle("mm-center", parent=_styles["Normal"], alignment=1,
                        fontSize=12, leading=16)
SECTION = ParagraphStyle("mm-section", parent=_styles["Heading2"],
                         fontSize=16, leading=20, spaceBefore=12)
SUBSECTION = ParagraphStyle("mm-subsection", parent=_styles["Heading3"],
                            fontSize=14, leading=18, spaceBefore=10)
BODY = ParagraphStyle("mm-body", parent=_styles["Normal"], fontSize=12,
                      leading=16)
CELL = ParagraphStyle("mm-cell", parent=_styles["Normal"], fontSize=9,
                      leading=11)


def _p(text: Any, style: ParagraphStyle = BODY) -> Paragraph:
    return Paragraph(escape(str(text)), style)


def _build(story: list, pagesize, **kw) -> bytes:
    buf = io.BytesIO()
    on_page = kw.pop("on_page", None)
    doc = SimpleDocTemplate(buf, pagesize=pagesize, **kw)
    if on_page is not None:
        doc.build(story, onFirstPage=on_page, onLaterPages=on_page)
    else:
        doc.build(story)
    return buf.getvalue()


def _now_text() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


# ----------------------------
# payment report
# ----------------------------
def _summary_section(data: Dict[str, Any]) -> list:
    o = data["overview"]
    story = [
        _p("Overview", SECTION),
        _p(f"Total Payments: {o['total_payments']}"),
        _p(f"Total Revenue: {fmt_money(o['total_revenue'])}"),
        _p(f"Average Transaction: {fmt_money(o['average_transaction_value'])}"),
        _p(f"Success Rate: {o['success_rate']}%"),
        _p("Status Distribution", SUBSECTION),
    ]
    story += [
        _p(f"{status}: {count}")
        for status, count in data["status_distribution"].items()
    ]
    return story


def _detailed_section(data: Dict[str, Any]) -> list:
    story = [
        _p("Transaction Details", SECTION),
        _p(f"Total Transactions Analyzed: {data['transaction_count']}"),
    ]
    largest = data.get("largest_transaction")
    if largest:
        story.append(
            _p(f"Largest Transaction: {fmt_money(largest.get('amount'))}")
        )
    story.append(Spacer(1, 8))
    story.append(_p("Recent Failed Transactions:"))
    for i, f in enumerate(data["recent_failures"][:5], 1):
        story.append(_p(
            f"{i}. {f['customerEmail']} - {fmt_money(f['amount'])} - "
            f"{f['createdAt']}"
        ))
    return story


def _analytics_section(data: Dict[str, Any]) -> list:
    ca = data["customer_analytics"]
    story = [
        _p("Analytics Overview", SECTION),
        _p(f"Total Unique Customers: {ca['total_unique_customers']}"),
        _p(f"Repeat Customers: {ca['repeat_customers']}"),
        Spacer(1, 8),
        _p("Top 5 Customers:"),
    ]
    for i, c in enumerate(ca["top_customers"][:5], 1):
        story.append(_p(f"{i}. {c['email']} - {fmt_money(c['total_spent'])}"))
    return story


def _financial_section(data: Dict[str, Any]) -> list:
    rs = data["revenue_summary"]
    av = data["average_values"]
    return [
        _p("Financial Summary", SECTION),
        _p(f"Gross Revenue: {fmt_money(rs['gross_revenue'])}"),
        _p(f"Refunded Amount: {fmt_money(rs['refunded_amount'])}"),
        _p(f"Net Revenue: {fmt_money(rs['net_revenue'])}"),
        _p(f"Average Transaction: {fmt_money(av['average_transaction'])}"),
        _p(f"Median Transaction: {fmt_money(av['median_transaction'])}"),
    ]


_SECTIONS = {
    "summary": _summary_section,
    "detailed": _detailed_section,
    "analytics": _analytics_section,
    "financial": _financial_section,
}


def payment_report_pdf(report_type: str, data: Dict[str, Any],
                       start_date: Optional[str] = None,
                       end_date: Optional[str] = None) -> bytes:
    story = [
        _p(f"{BRAND} - Payment Report", TITLE),
        _p(f"Report Type: {report_type.upper()}", CENTER),
        _p(f"Generated: {_now_text()}", CENTER),
    ]
    if start_date and end_date:
        story.append(_p(f"Period: {start_date} to {end_date}", CENTER))
    story.append(Spacer(1, 24))
    story += _SECTIONS[report_type](data)
    return _build(story, letter, leftMargin=50, rightMargin=50,
                  topMargin=50, bottomMargin=50,
                  title=f"{BRAND} - Payment Report")


# ----------------------------
# meetings report
# ----------------------------
MEETING_COLUMNS = [
    "#", "Meeting Name", "Agent Name", "Status", "Created Date",
    "Created Time", "Started Date", "Ended Date", "Duration",
]
MEETING_WIDTHS = [12, 45, 35, 25, 28, 24, 28, 28, 20]


def _date(ts: Optional[float], default: str) -> str:
    return to_dt(ts).strftime("%b %d, %Y") if ts else default


def meeting_row(index: int, meeting: Meeting, agent_name: Optional[str]
                ) -> List[str]:
    created = meeting.created_at
    duration = "N/A"
    if meeting.started_at and meeting.ended_at:
        minutes = round((meeting.ended_at - meeting.started_at) / 60)
        duration = f"{minutes} min"
    status = meeting.status or "unknown"
    return [
        str(index),
        meeting.name or "Untitled Meeting",
        agent_name or "Unknown Agent",
        status.capitalize(),
        _date(created, "N/A"),
        to_dt(created).strftime("%I:%M %p") if created else "N/A",
        _date(meeting.started_at, "Not Started"),
        _date(meeting.ended_at, "Not Ended"),
        duration,
    ]


def status_counts(meetings: List[Tuple[Meeting, str]]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for m, _ in meetings:
        key = m.status or "unknown"
        counts[key] = counts.get(key, 0) + 1
    return counts


def _meetings_page(canvas, doc):
    width, height = doc.pagesize
    canvas.saveState()
    # header band
    canvas.setFillColor(PRIMARY)
    canvas.rect(0, height - 40 * mm, width, 40 * mm, stroke=0, fill=1)
    canvas.setFillColor(colors.white)
    canvas.setFont("Helvetica-Bold", 24)
    canvas.drawString(20 * mm, height - 20 * mm, BRAND)
    canvas.setFont("Helvetica", 16)
    canvas.drawString(20 * mm, height - 30 * mm, "Meetings Report")
    canvas.setFont("Helvetica", 12)
    canvas.drawString(200 * mm, height - 25 * mm, f"Generated: {_now_text()}")
    # footer band
    canvas.setFillColor(PRIMARY)
    canvas.rect(0, 0, width, 15 * mm, stroke=0, fill=1)
    canvas.setFillColor(colors.white)
    canvas.setFont("Helvetica", 10)
    canvas.drawString(20 * mm, 5 * mm, "Generated by MeetMind AI Platform")
    canvas.drawString(220 * mm, 5 * mm, "meetmindai.online")
    canvas.setFillColor(colors.Color(100 / 255, 100 / 255, 100 / 255))
    canvas.setFont("Helvetica", 8)
    canvas.drawRightString(width - 10 * mm, 17 * mm, f"Page {doc.page}")
    canvas.restoreState()


def meetings_report_pdf(user_name: Optional[str], user_email: str,
                        meetings: List[Tuple[Meeting, str]]) -> bytes:
    details = ParagraphStyle("mm-details", parent=BODY, fontSize=11,
                             leading=14)
    story = [
        _p("Report Details", SUBSECTION),
        _p(f"User: {user_name or 'N/A'}", details),
        _p(f"Email: {user_email}", details),
        _p(f"Total Records: {len(meetings)}", details),
        Spacer(1, 6 * mm),
    ]

    body = [
        [_p(cell, CELL) for cell in meeting_row(i, m, agent_name)]
        for i, (m, agent_name) in enumerate(meetings, 1)
    ]
    table = Table(
        [MEETING_COLUMNS] + body,
        colWidths=[w * mm for w in MEETING_WIDTHS],
        repeatRows=1,
    )
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), PRIMARY),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 10),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, ROW_ALT]),
        ("GRID", (0, 0), (-1, -1), 0.25, GRID),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))
    story.append(table)
    story.append(Spacer(1, 10 * mm))

    counts = [
        f"{status.capitalize()}: {n}"
        for status, n in status_counts(meetings).items()
    ]
    summary_rows = [[_p("Meeting Summary", SUBSECTION)],
                    [_p(f"Total Meetings: {len(meetings)}", details)]]
    # four statuses per line
    for i in range(0, len(counts), 4):
        summary_rows.append([_p("    ".join(counts[i:i + 4]), details)])
    summary = Table(summary_rows, colWidths=[sum(MEETING_WIDTHS) * mm])
    summary.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), ROW_ALT),
        ("BOX", (0, 0), (-1, -1), 1, PRIMARY),
        ("LEFTPADDING", (0, 0), (-1, -1), 5 * mm),
    ]))
    story.append(summary)

    return _build(
        story, landscape(A4),
        leftMargin=20 * mm, rightMargin=20 * mm,
        topMargin=48 * mm, bottomMargin=25 * mm,
        title=f"{BRAND} - Meetings Report", author=BRAND,
        subject="Generated Meetings Report", creator="MeetMind AI System",
        on_page=_meetings_page,
    )


# ----------------------------
# agents report
# ----------------------------
def agents_report_pdf(agents: List[Tuple[Agent, int]]) -> bytes:
    rows = [["Name", "Instructions", "Meetings"]] + [
        [_p(a.name, CELL), _p(a.instructions, CELL), str(n)]
        for a, n in agents
    ]
    table = Table(rows, colWidths=[45 * mm, 105 * mm, 25 * mm], repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), PRIMARY),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("GRID", (0, 0), (-1, -1), 0.25, GRID),
    ]))
    story = [_p("My Agents Report", SECTION), Spacer(1, 6), table]
    return _build(story, A4, leftMargin=14 * mm, rightMargin=14 * mm,
                  topMargin=20 * mm, bottomMargin=20 * mm,
                  title="My Agents Report")
