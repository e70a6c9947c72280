from __future__ import annotations
import sys

import httpx
import os
from typing import Optional

from .infra.sql import make_async_engine
from .infra.timings import install_shutdown_report, timeit

from .model.db import Base, User
from .model import orders as orders_model
from .model import payments as payments_model
from .model.orders import order_to_dict
from .model.payments import payment_to_dict
from .model.users import (
    user_to_dict, get_users, get_user_stats, get_user_by_id,
    create_user, update_user, delete_user,
)
from .model.auth import sign_up, sign_in, sign_out, get_session_user
from .model.meetings import (
    agent_to_dict, meeting_to_dict, list_agents, get_agent, create_agent,
    list_meetings, create_meeting,
)
from . import polar
from .polar import PolarClient, PolarAPIError, SIGNATURE_HEADER
from .reports import payments as payment_reports
from .reports import polar as polar_reports
from .reports import orders as order_reports
from .reports.export import (
    attachment, orders_csv, payments_csv, orders_csv_filename,
    orders_text_filename, payments_csv_filename, payment_pdf_filename,
    meetings_pdf_filename, polar_json_filename, AGENTS_PDF_FILENAME,
)
from .reports.pdf import payment_report_pdf, meetings_report_pdf, agents_report_pdf
from .schemas import (
    OrderCreate, OrderUpdate, PaymentCreate, PaymentUpdate,
    SignUp, SignIn, AgentCreate, MeetingCreate,
)

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import (
    HTMLResponse, RedirectResponse, ORJSONResponse, Response,
)
from fastapi import Form
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
from starlette.status import HTTP_303_SEE_OTHER

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from .helpers import now_ts, to_iso, is_valid_email, ct_equal, parse_range

PKG_DIR = os.path.dirname(os.path.abspath(__file__))
templates = Jinja2Templates(directory=os.path.join(PKG_DIR, "templates"))

# ----------------------------
# Config & Constants
# ----------------------------
DATABASE_URL = os.environ.get("DATABASE_URL", None)

if DATABASE_URL is None:
    print("NEED DATABASE_URL! e.g. sqlite:///./meetmind.db")
    sys.exit(1)

SITE_NAME = "MeetMind AI"
SESSION_SECRET = os.environ.get("SESSION_SECRET", "dev-secret-change-me")
ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "supasecret")

# webhook event type -> payment status
WEBHOOK_STATUS_EVENTS = {
    "subscription.updated": "succeeded",
    "order.paid": "succeeded",
    "subscription.cancelled": "cancelled",
    "order.refunded": "refunded",
}
WEBHOOK_CREATE_EVENTS = ("subscription.created", "order.created")


engine, SessionAsync = make_async_engine(DATABASE_URL)


async def get_db() -> AsyncSession:
    async with SessionAsync() as session:
        yield session


app = FastAPI(
    title=SITE_NAME,
    default_response_class=ORJSONResponse,
)
app.mount(
    "/static",
    StaticFiles(directory=os.path.join(PKG_DIR, "static")),
    name="static",
)
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET)

# print handler timings on shutdown
install_shutdown_report(app)


def polar_client(request: Request) -> Optional[PolarClient]:
    # token is read per request, None when not configured
    token = polar.access_token()
    if not token:
        return None
    return PolarClient(request.app.state.http, token)


async def current_user(
    request: Request, db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    return await get_session_user(db, request.session.get("session_token"))


async def require_user(user: Optional[User] = Depends(current_user)) -> User:
    if user is None:
        raise HTTPException(401, detail="Unauthorized")
    return user


# ---
# startup / shutdown
# ---
@app.on_event("startup")
async def _say_hello():
    print('\n' * 3)
    print('=' * 50)
    print(f'{SITE_NAME} is starting up...')
    print(f'   - Database: {engine.url.get_backend_name()}')
    print(f'   - Polar API: {polar.api_url()}')
    print(f'   - Polar token configured: {bool(polar.access_token())}')
    print('=' * 50)
    print('\n' * 3)


@app.on_event("startup")
async def _db_init():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@app.on_event("startup")
async def _http_client_start():
    app.state.http = httpx.AsyncClient(
        timeout=10.0,
        limits=httpx.Limits(
            max_connections=64, max_keepalive_connections=16
        ),
    )


@app.on_event("shutdown")
async def _http_client_stop():
    http = getattr(app.state, "http", None)
    if http is not None:
        await http.aclose()
        app.state.http = None


# ----------------------------
# Error handling
# ----------------------------
@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return ORJSONResponse(
        {"error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
        for e in exc.errors()
    ]
    return ORJSONResponse(
        {"error": "Invalid request body", "details": details},
        status_code=400,
    )


# ----------------------------
# Helpers
# ----------------------------
def is_admin(request: Request) -> bool:
    return bool(request.session.get("admin_user"))


def login_redirect(request: Request, status_code: int = 307
                   ) -> RedirectResponse:
    # preserve where we wanted to go
    dest = request.url.path
    return RedirectResponse(
        url=f"/admin/login?next={dest}", status_code=status_code
    )


def render(request: Request, name: str, status_code: int = 200, **ctx):
    ctx.setdefault("site_name", SITE_NAME)
    ctx["is_admin"] = is_admin(request)
    return templates.TemplateResponse(
        request, name, ctx, status_code=status_code
    )


def timestamped(status_code: int, **body) -> ORJSONResponse:
    body["timestamp"] = to_iso(now_ts())
    return ORJSONResponse(body, status_code=status_code)


# ----------------------------
# Landing page
# ----------------------------
@app.get("/", response_class=HTMLResponse)
async def landing_page(request: Request):
    return render(
        request, "landing.html",
        tagline="AI meeting agents, with the admin tools to run them.",
    )


@app.get("/sign-in", response_class=HTMLResponse)
async def sign_in_page(request: Request):
    return render(request, "sign_in.html")


# ----------------------------
# Admin login
# ----------------------------
@app.get("/admin/login", response_class=HTMLResponse)
async def admin_login_get(request: Request, next: str | None = "/admin"):
    return render(request, "login.html", next=next, error=None)


@app.post("/admin/login", response_class=HTMLResponse)
async def admin_login_post(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    next: str = Form("/admin"),
):
    ok_user = ct_equal(username.strip(), ADMIN_USERNAME)
    ok_pass = ct_equal(password, ADMIN_PASSWORD)
    if ok_user and ok_pass:
        request.session["admin_user"] = username.strip()
        return RedirectResponse(
            url=(next or "/admin"),
            status_code=HTTP_303_SEE_OTHER
        )
    # auth failed
    return render(
        request, "login.html", status_code=401,
        next=next, error="Invalid credentials.",
    )


@app.get("/admin/logout")
async def admin_logout(request: Request):
    request.session.pop("admin_user", None)
    return RedirectResponse(url="/", status_code=HTTP_303_SEE_OTHER)


# ----------------------------
# Admin pages
# ----------------------------
@app.get("/admin", response_class=HTMLResponse)
async def admin_page(request: Request, db: AsyncSession = Depends(get_db)):
    if not is_admin(request):
        return login_redirect(request)

    rows = await orders_model.list_orders(db)
    items = [order_to_dict(o) for o in rows]
    return render(
        request, "admin.html",
        orders=items,
        total_revenue=sum(
            o["amount"] for o in items if o["status"] == "completed"
        ),
        pending=sum(1 for o in items if o["status"] == "pending"),
    )


@app.get("/admin/reports", response_class=HTMLResponse)
async def admin_reports_page(request: Request):
    if not is_admin(request):
        return login_redirect(request)
    return render(
        request, "admin_reports.html",
        report_types=order_reports.REPORT_TYPES,
        ranges=order_reports.RANGES,
    )


@app.get("/admin/users", response_class=HTMLResponse)
async def admin_users_page(
    request: Request,
    search: Optional[str] = None,
    message: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    if not is_admin(request):
        return login_redirect(request)
    users = await get_users(db, search)
    stats = await get_user_stats(db)
    return render(
        request, "users.html",
        users=[user_to_dict(u) for u in users],
        stats=stats,
        search=search or "",
        message=message,
    )


@app.get("/admin/users/create", response_class=HTMLResponse)
async def admin_user_create_page(request: Request):
    if not is_admin(request):
        return login_redirect(request)
    return render(request, "user_form.html", user=None, error=None)


@app.post("/admin/users/create", response_class=HTMLResponse)
async def admin_user_create(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    image: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    if not is_admin(request):
        return login_redirect(request, HTTP_303_SEE_OTHER)

    form = {"name": name, "email": email, "image": image}
    if not name.strip() or not is_valid_email(email):
        return render(
            request, "user_form.html", status_code=400,
            user=form, error="Name and a valid email are required",
        )
    try:
        await create_user(db, name, email, image or None)
    except IntegrityError:
        await db.rollback()
        return render(
            request, "user_form.html", status_code=400,
            user=form, error="Email already exists",
        )
    return RedirectResponse(
        url="/admin/users?message=User+created",
        status_code=HTTP_303_SEE_OTHER,
    )


@app.get("/admin/users/{user_id}/edit", response_class=HTMLResponse)
async def admin_user_edit_page(
    request: Request, user_id: str, db: AsyncSession = Depends(get_db)
):
    if not is_admin(request):
        return login_redirect(request)
    user = await get_user_by_id(db, user_id)
    if user is None:
        return render(
            request, "user_form.html", status_code=404,
            user=None, error="User not found",
        )
    return render(request, "user_form.html", user=user_to_dict(user),
                  error=None)


@app.post("/admin/users/{user_id}/edit", response_class=HTMLResponse)
async def admin_user_edit(
    request: Request,
    user_id: str,
    name: str = Form(...),
    email: str = Form(...),
    image: str = Form(""),
    email_verified: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
):
    if not is_admin(request):
        return login_redirect(request, HTTP_303_SEE_OTHER)

    form = {
        "id": user_id, "name": name, "email": email, "image": image,
        "emailVerified": bool(email_verified),
    }
    if not name.strip() or not is_valid_email(email):
        return render(
            request, "user_form.html", status_code=400,
            user=form, error="Name and a valid email are required",
        )
    try:
        user = await update_user(db, user_id, {
            "name": name,
            "email": email,
            "email_verified": bool(email_verified),
            "image": image,
        })
    except IntegrityError:
        await db.rollback()
        return render(
            request, "user_form.html", status_code=400,
            user=form, error="Email already exists",
        )
    if user is None:
        return render(
            request, "user_form.html", status_code=404,
            user=None, error="User not found",
        )
    return RedirectResponse(
        url="/admin/users?message=User+updated",
        status_code=HTTP_303_SEE_OTHER,
    )


@app.post("/admin/users/{user_id}/delete")
async def admin_user_delete(
    request: Request, user_id: str, db: AsyncSession = Depends(get_db)
):
    if not is_admin(request):
        return login_redirect(request, HTTP_303_SEE_OTHER)
    deleted = await delete_user(db, user_id)
    msg = "User+deleted" if deleted else "User+not+found"
    return RedirectResponse(
        url=f"/admin/users?message={msg}", status_code=HTTP_303_SEE_OTHER
    )


@app.get("/payments", response_class=HTMLResponse)
async def payments_page(request: Request):
    if not is_admin(request):
        return login_redirect(request)
    return render(request, "payments.html")


@app.get("/payments/reports", response_class=HTMLResponse)
async def payments_reports_page(request: Request):
    if not is_admin(request):
        return login_redirect(request)
    return render(
        request, "payments_reports.html",
        report_types=payment_reports.REPORT_TYPES,
    )


@app.get("/dashboard/reports", response_class=HTMLResponse)
async def dashboard_reports_page(request: Request):
    if not is_admin(request):
        return login_redirect(request)
    return render(
        request, "polar_reports.html",
        report_types=polar_reports.REPORT_TYPES,
    )


# ----------------------------
# API: Orders (admin dashboard)
# ----------------------------
@app.get("/api/admin/orders")
async def api_admin_orders(db: AsyncSession = Depends(get_db)):
    async with timeit("db.list_orders"):
        rows = await orders_model.list_orders(db)
    return [order_to_dict(o) for o in rows]


@app.post("/api/admin/orders")
async def api_admin_create_order(
    body: OrderCreate, db: AsyncSession = Depends(get_db)
):
    async with timeit("db.create_order"):
        order = await orders_model.create_order(db, body.model_dump())
    print(f"[ORDERS] created {order.id} for {order.customer_email}")
    return order_to_dict(order)


@app.get("/api/admin/orders/report")
async def api_admin_orders_report(
    type: str = "overview",
    range: str = "30",
    format: str = "txt",
    db: AsyncSession = Depends(get_db),
):
    if type not in order_reports.REPORT_TYPES:
        raise HTTPException(
            400, detail="Invalid report type. Use: overview, financial, "
                        "or customer"
        )
    if format not in ("txt", "csv"):
        raise HTTPException(400, detail="Invalid format. Use: txt or csv")

    since = order_reports.range_cutoff(range)
    async with timeit(f"reports.orders.{type}"):
        rows = await orders_model.list_orders(db, since=since)

    if format == "csv":
        return Response(
            orders_csv(rows),
            media_type="text/csv",
            headers=attachment(orders_csv_filename()),
        )
    body = order_reports.render_text(
        type, order_reports.report_data(rows), range
    )
    return Response(
        body,
        media_type="text/plain",
        headers=attachment(orders_text_filename(type)),
    )


@app.patch("/api/admin/orders/{order_id}")
async def api_admin_update_order(
    order_id: str, body: OrderUpdate, db: AsyncSession = Depends(get_db)
):
    async with timeit("db.update_order"):
        order = await orders_model.update_order(
            db, order_id, body.model_dump(exclude_unset=True)
        )
    if order is None:
        raise HTTPException(404, detail="Order not found")
    return {"success": True, "order": order_to_dict(order)}


@app.delete("/api/admin/orders/{order_id}")
async def api_admin_delete_order(
    order_id: str, db: AsyncSession = Depends(get_db)
):
    async with timeit("db.delete_order"):
        deleted = await orders_model.delete_order(db, order_id)
    if not deleted:
        raise HTTPException(404, detail="Order not found")
    return {"success": True}


@app.post("/api/admin/seed")
async def api_admin_seed(db: AsyncSession = Depends(get_db)):
    try:
        inserted = await orders_model.seed_orders(db)
    except SQLAlchemyError as e:
        await db.rollback()
        print("[SEED] failed:", e)
        raise HTTPException(500, detail="Failed to seed orders")
    print(f"[SEED] inserted {len(inserted)} orders")
    return {
        "success": True,
        "message": f"Successfully seeded {len(inserted)} orders",
        "orders": [order_to_dict(o) for o in inserted],
    }


@app.get("/api/admin/users")
async def api_admin_users(
    search: Optional[str] = None, db: AsyncSession = Depends(get_db)
):
    users = await get_users(db, search)
    return {
        "items": [user_to_dict(u) for u in users],
        "stats": await get_user_stats(db),
    }


# ----------------------------
# API: Payments
# ----------------------------
@app.get("/api/payments")
async def api_list_payments(
    search: Optional[str] = None,
    status: Optional[str] = None,
    limit: str = "50",
    offset: str = "0",
    db: AsyncSession = Depends(get_db),
):
    try:
        n_limit = int(limit)
        n_offset = int(offset)
    except ValueError:
        raise HTTPException(400, detail="Invalid limit or offset")
    if n_limit < 0 or n_offset < 0:
        raise HTTPException(400, detail="Invalid limit or offset")

    async with timeit("db.list_payments"):
        rows, total = await payments_model.list_payments(
            db, search=search, status=status, limit=n_limit, offset=n_offset
        )
    return {
        "payments": [payment_to_dict(p) for p in rows],
        "total": total,
        "limit": n_limit,
        "offset": n_offset,
    }


@app.post("/api/payments")
async def api_create_payment(
    body: PaymentCreate, db: AsyncSession = Depends(get_db)
):
    async with timeit("db.create_payment"):
        payment = await payments_model.create_payment(db, body.model_dump())
    print(f"[PAYMENTS] manual payment {payment.id} for {payment.customer_email}")
    return payment_to_dict(payment)


@app.post("/api/payments/sync")
async def api_payments_sync(
    db: AsyncSession = Depends(get_db),
    client: Optional[PolarClient] = Depends(polar_client),
):
    if client is None:
        return timestamped(
            500, success=False, error="Orders sync failed",
            message="Polar access token not configured",
        )

    print("[SYNC] starting orders sync from Polar...")
    new_count = updated_count = skipped_count = 0
    methods = []
    processed: list[str] = []
    seen: set[str] = set()

    async with timeit("payments.sync"):
        try:
            orders = await client.list_orders()
            methods.append(
                {"method": "orders", "success": True, "count": len(orders)}
            )
            print(f"[SYNC] found {len(orders)} orders")
        except PolarAPIError as e:
            print(f"[SYNC] orders fetch failed: {e.status} {e.body}")
            methods.append({
                "method": "orders", "success": False,
                "status": e.status, "error": e.body,
            })
            orders = []
        except httpx.HTTPError as e:
            print(f"[SYNC] orders fetch error: {e!r}")
            methods.append(
                {"method": "orders", "success": False, "error": str(e)}
            )
            orders = []

        for order in orders:
            order_id = order.get("id")
            if not order_id or order_id in seen:
                continue
            seen.add(order_id)
            processed.append(order_id)
            try:
                action = await payments_model.upsert_polar_order(db, order)
            except (SQLAlchemyError, TypeError, ValueError) as e:
                await db.rollback()
                print(f"[SYNC] error processing order {order_id}: {e!r}")
                skipped_count += 1
                continue
            if action == "created":
                new_count += 1
            else:
                updated_count += 1
            print(f"[SYNC] {action} order {order_id}")

    return {
        "success": True,
        "message": (
            f"Orders sync completed: {new_count} new, "
            f"{updated_count} updated, {skipped_count} skipped"
        ),
        "stats": {
            "totalProcessed": new_count + updated_count,
            "newPayments": new_count,
            "updatedPayments": updated_count,
            "skippedDuplicates": skipped_count,
            "ordersOnly": True,
            "timestamp": to_iso(now_ts()),
        },
        "debug": {
            "organizationId": client.organization_id,
            "methods": methods,
            "processedOrders": processed,
        },
    }


@app.get("/api/payments/debug")
async def api_payments_debug(
    client: Optional[PolarClient] = Depends(polar_client),
):
    if client is None:
        raise HTTPException(400, detail="No Polar token configured")
    try:
        status, data = await client.get_organizations()
    except httpx.HTTPError as e:
        print(f"[POLAR] debug request failed: {e!r}")
        raise HTTPException(500, detail=str(e))
    print(f"[POLAR] organizations status {status}")
    return {"success": status < 400, "status": status, "data": data}


@app.post("/api/payments/cleanup")
async def api_payments_cleanup(db: AsyncSession = Depends(get_db)):
    print("[CLEANUP] removing duplicate payments...")
    try:
        async with timeit("payments.cleanup"):
            result = await payments_model.cleanup_duplicates(db)
    except SQLAlchemyError as e:
        await db.rollback()
        print("[CLEANUP] failed:", e)
        return ORJSONResponse(
            {"success": False, "error": "Cleanup failed", "message": str(e)},
            status_code=500,
        )
    return {
        "success": True,
        "message": f"Cleanup complete! Deleted {result['deletedCount']} duplicates",
        "stats": {
            "deletedCount": result["deletedCount"],
            "subscriptionGroups": result["subscriptionGroups"],
            "orderGroups": result["orderGroups"],
            "timestamp": to_iso(now_ts()),
        },
    }


@app.get("/api/payments/reports")
async def api_payments_reports(
    type: str = "summary",
    format: str = "json",
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    if type not in payment_reports.REPORT_TYPES:
        raise HTTPException(
            400, detail="Invalid report type. Use: summary, detailed, "
                        "analytics, or financial"
        )
    if format not in ("json", "pdf", "csv"):
        raise HTTPException(400, detail="Invalid format. Use: json, pdf, or csv")
    try:
        rng = parse_range(start_date, end_date)
    except ValueError:
        raise HTTPException(400, detail="Invalid date range")

    detailed = type == "detailed"
    try:
        async with timeit(f"reports.payments.{type}"):
            if format == "csv":
                rows = await payments_model.payments_in_range(
                    db, rng, newest_first=True
                )
                return Response(
                    payments_csv(rows),
                    media_type="text/csv",
                    headers=attachment(payments_csv_filename()),
                )
            rows = await payments_model.payments_in_range(
                db, rng, newest_first=detailed,
                limit=payment_reports.DETAILED_LIMIT if detailed else None,
            )
            data = payment_reports.build_report(
                type, rows, start_date, end_date
            )
    except SQLAlchemyError as e:
        print("[PAYMENT_REPORTS] error generating report:", e)
        return ORJSONResponse(
            {"error": "Report generation failed", "message": str(e)},
            status_code=500,
        )

    if format == "pdf":
        return Response(
            payment_report_pdf(type, data, start_date, end_date),
            media_type="application/pdf",
            headers=attachment(payment_pdf_filename(type)),
        )
    return {
        "report_type": type,
        "generated_at": to_iso(now_ts()),
        "period": {"start_date": start_date, "end_date": end_date},
        "data": data,
    }


@app.get("/api/payments/{payment_id}")
async def api_get_payment(payment_id: str, db: AsyncSession = Depends(get_db)):
    payment = await payments_model.get_payment(db, payment_id)
    if payment is None:
        raise HTTPException(404, detail="Payment not found")
    return payment_to_dict(payment)


@app.patch("/api/payments/{payment_id}")
async def api_update_payment(
    payment_id: str, body: PaymentUpdate, db: AsyncSession = Depends(get_db)
):
    async with timeit("db.update_payment"):
        payment = await payments_model.update_payment(
            db, payment_id, body.model_dump(exclude_unset=True)
        )
    if payment is None:
        raise HTTPException(404, detail="Payment not found")
    return {"success": True, "payment": payment_to_dict(payment)}


@app.delete("/api/payments/{payment_id}")
async def api_delete_payment(
    payment_id: str, db: AsyncSession = Depends(get_db)
):
    if not await payments_model.delete_payment(db, payment_id):
        raise HTTPException(404, detail="Payment not found")
    return {"success": True}


# ----------------------------
# Polar webhook + reports
# ----------------------------
@app.post("/api/polar/webhook")
async def polar_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    async with timeit("webhook.polar") as t:
        payload = await request.body()
        secret = polar.webhook_secret()
        if secret:
            signature = request.headers.get(SIGNATURE_HEADER)
            if not polar.verify_signature(payload, signature, secret):
                print("[POLAR_WEBHOOK] invalid signature")
                return timestamped(401, error="Invalid webhook signature")

        try:
            event = polar.parse_event(payload)
        except ValueError:
            return timestamped(400, error="Invalid JSON payload")

        event_type = str(event.get("type") or "")
        event_id = event.get("id")
        data = event.get("data") or {}
        print(f"[POLAR_WEBHOOK] received {event_type} ({event_id})")

        try:
            if not isinstance(data, dict):
                raise ValueError("event data must be an object")
            if event_type in WEBHOOK_CREATE_EVENTS:
                result = await payments_model.handle_payment_created(
                    db, event_type, data
                )
            elif event_type in WEBHOOK_STATUS_EVENTS:
                result = await payments_model.handle_payment_status(
                    db, event_type, data, WEBHOOK_STATUS_EVENTS[event_type]
                )
            else:
                result = {
                    "status": "ignored", "reason": "unsupported_event_type"
                }
        except (SQLAlchemyError, ValueError, TypeError) as e:
            await db.rollback()
            print(f"[POLAR_WEBHOOK] processing error for {event_type}: {e!r}")
            return timestamped(
                500, error="Webhook processing failed", message=str(e)
            )

    print(f"[POLAR_WEBHOOK] {event_type} -> {result} in {t.elapsed_ms}ms")
    return {
        "received": True,
        "event_type": event_type,
        "event_id": event_id,
        "processing_time_ms": t.elapsed_ms,
        "timestamp": to_iso(now_ts()),
        "result": result,
    }


@app.get("/api/polar/reports")
async def api_polar_reports(
    type: str = "summary",
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    if type not in polar_reports.REPORT_TYPES:
        raise HTTPException(
            400, detail="Invalid report type. Use: summary, detailed, "
                        "or analytics"
        )
    try:
        rng = parse_range(start_date, end_date)
    except ValueError:
        raise HTTPException(400, detail="Invalid date range")

    async with timeit(f"reports.polar.{type}"):
        data = await polar_reports.build_report(
            db, type, rng, start_date, end_date
        )
    return ORJSONResponse(
        {
            "report_type": type,
            "generated_at": to_iso(now_ts()),
            "period": {"start_date": start_date, "end_date": end_date},
            "data": data,
        },
        headers=attachment(polar_json_filename(type)),
    )


# ----------------------------
# API: Auth
# ----------------------------
@app.post("/api/auth/sign-up")
async def api_sign_up(body: SignUp, db: AsyncSession = Depends(get_db)):
    try:
        user = await sign_up(db, body.name, body.email, body.password)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(400, detail="Email already exists")
    print(f"[AUTH] signed up {user.email}")
    return {"user": user_to_dict(user)}


@app.post("/api/auth/sign-in")
async def api_sign_in(
    request: Request, body: SignIn, db: AsyncSession = Depends(get_db)
):
    session = await sign_in(
        db, body.email, body.password,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    if session is None:
        raise HTTPException(401, detail="Invalid email or password")
    request.session["session_token"] = session.token
    user = await get_user_by_id(db, session.user_id)
    return {"user": user_to_dict(user), "expiresAt": to_iso(session.expires_at)}


@app.post("/api/auth/sign-out")
async def api_sign_out(request: Request, db: AsyncSession = Depends(get_db)):
    await sign_out(db, request.session.pop("session_token", None))
    return {"success": True}


@app.get("/api/auth/session")
async def api_session(user: User = Depends(require_user)):
    return {"user": user_to_dict(user)}


# ----------------------------
# API: Agents & meetings
# ----------------------------
@app.get("/api/agents")
async def api_list_agents(
    user: User = Depends(require_user), db: AsyncSession = Depends(get_db)
):
    rows = await list_agents(db, user.id)
    return {"items": [agent_to_dict(a, n) for a, n in rows]}


@app.post("/api/agents")
async def api_create_agent(
    body: AgentCreate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    agent = await create_agent(db, user.id, body.name, body.instructions)
    return agent_to_dict(agent)


@app.get("/api/agents/report")
async def api_agents_report(
    user: User = Depends(require_user), db: AsyncSession = Depends(get_db)
):
    rows = await list_agents(db, user.id)
    return Response(
        agents_report_pdf(rows),
        media_type="application/pdf",
        headers=attachment(AGENTS_PDF_FILENAME),
    )


@app.get("/api/meetings")
async def api_list_meetings(
    user: User = Depends(require_user), db: AsyncSession = Depends(get_db)
):
    rows = await list_meetings(db, user.id)
    return {"items": [meeting_to_dict(m, name) for m, name in rows]}


@app.post("/api/meetings")
async def api_create_meeting(
    body: MeetingCreate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    agent = await get_agent(db, body.agentId)
    if agent is None or agent.user_id != user.id:
        raise HTTPException(404, detail="Agent not found")
    meeting = await create_meeting(db, user.id, agent.id, body.name)
    return meeting_to_dict(meeting, agent.name)


@app.get("/api/meetings/report")
async def api_meetings_report(
    user: User = Depends(require_user), db: AsyncSession = Depends(get_db)
):
    async with timeit("reports.meetings"):
        rows = await list_meetings(db, user.id)
        pdf = meetings_report_pdf(user.name, user.email, rows)
    print(f"[MEETINGS_REPORT] {len(rows)} meetings for {user.email}")
    return Response(
        pdf,
        media_type="application/pdf",
        headers=attachment(meetings_pdf_filename()),
    )
