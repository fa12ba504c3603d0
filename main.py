import datetime
import logging
import os
from contextlib import asynccontextmanager

import requests
from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from dashboard.analytics import build_analytics
from dashboard.auth import AuthSession, FirebaseAuthClient, logout_redirect, lookup_profile
from dashboard.config import FIREBASE_API_KEY, LOG_LEVEL, REALTIME_ORDERS, resolve_project
from dashboard.errors import AuthenticationError, OrderUpdateError
from dashboard.events import Subscription
from dashboard.expenses import ALL, branch_options, calculate_expense_summary, load_expense_data
from dashboard.filters import filter_orders, payment_methods
from dashboard.firestore_db import DocumentStore
from dashboard.logging_config import configure_logging
from dashboard.models import OrderStatus, UserProfile
from dashboard.orders import OrdersStore
from dashboard.reporting import render_expense_report, report_filename

logger = logging.getLogger(__name__)

_store_singleton = None
_orders_singleton = None
_http_session = requests.Session()


def get_document_store() -> DocumentStore:
    global _store_singleton
    if _store_singleton is None:
        _store_singleton = DocumentStore()
    return _store_singleton


def get_orders_store() -> OrdersStore:
    global _orders_singleton
    if _orders_singleton is None:
        _orders_singleton = OrdersStore(get_document_store())
        _orders_singleton.fetch_orders()
    return _orders_singleton


def get_auth_client() -> FirebaseAuthClient:
    return FirebaseAuthClient(FIREBASE_API_KEY, http=_http_session)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(LOG_LEVEL)
    subscription = Subscription.inactive()
    if REALTIME_ORDERS:
        subscription = get_orders_store().setup_realtime_updates()
    yield
    subscription.cancel()


app = FastAPI(title="Admin Dashboard API", lifespan=lifespan)


def current_user(authorization: str = Header(default=""),
                 auth: FirebaseAuthClient = Depends(get_auth_client),
                 db: DocumentStore = Depends(get_document_store)) -> UserProfile:
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    try:
        claims = auth.verify_id_token(token)
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail=str(exc))
    uid = claims.get("user_id") or claims.get("sub")
    profile = lookup_profile(db, uid, claims.get("email", ""))
    if profile is None:
        raise HTTPException(status_code=401, detail="User not found in database")
    return profile


def require_admin(user: UserProfile = Depends(current_user)) -> UserProfile:
    if user.role not in ("admin", "super_admin"):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def require_super_admin(user: UserProfile = Depends(current_user)) -> UserProfile:
    if user.role != "super_admin":
        raise HTTPException(status_code=403, detail="Super admin access required")
    return user


@app.get("/")
def root():
    return "dashboard-api alive"


@app.get("/healthz")
def health_json():
    return {"ok": True, "project": resolve_project(), "realtime": REALTIME_ORDERS}


class LoginIn(BaseModel):
    email: str
    password: str
    is_customer: bool = False


@app.post("/auth/login")
def login(payload: LoginIn,
          auth: FirebaseAuthClient = Depends(get_auth_client),
          db: DocumentStore = Depends(get_document_store)):
    session = AuthSession(auth, db)
    try:
        result = session.login(payload.email, payload.password, is_customer=payload.is_customer)
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail=str(exc))
    finally:
        session.close()
    return {"user": result.user, "redirect": result.redirect, "id_token": result.id_token}


@app.post("/auth/logout")
def logout(user: UserProfile = Depends(current_user)):
    return {"redirect": logout_redirect(user.role)}


@app.get("/orders")
def list_orders(status: str = ALL, payment_method: str = ALL, search: str = "",
                date: datetime.date | None = None,
                store: OrdersStore = Depends(get_orders_store),
                user: UserProfile = Depends(require_admin)):
    state = store.state
    orders = filter_orders(state.orders, state.customers, search=search, status=status,
                           payment_method=payment_method, date=date)
    customers = {o.customer_id: state.customers[o.customer_id]
                 for o in orders if o.customer_id in state.customers}
    return {
        "orders": orders,
        "customers": customers,
        "stats": state.stats,
        "payment_methods": payment_methods(state.orders),
        "is_loading": state.is_loading,
        "error": state.error,
    }


@app.post("/orders/refresh")
def refresh_orders(store: OrdersStore = Depends(get_orders_store),
                   user: UserProfile = Depends(require_admin)):
    store.fetch_orders()
    state = store.state
    return {"count": len(state.orders), "stats": state.stats, "error": state.error}


@app.get("/orders/stats")
def order_stats(store: OrdersStore = Depends(get_orders_store),
                user: UserProfile = Depends(require_admin)):
    return store.calculate_stats()


@app.get("/orders/payment-methods")
def order_payment_methods(store: OrdersStore = Depends(get_orders_store),
                          user: UserProfile = Depends(require_admin)):
    return payment_methods(store.orders)


class StatusIn(BaseModel):
    status: OrderStatus


@app.patch("/orders/{order_id}/status")
def update_status(order_id: str, payload: StatusIn,
                  store: OrdersStore = Depends(get_orders_store),
                  user: UserProfile = Depends(require_admin)):
    try:
        store.update_order_status(order_id, payload.status)
    except OrderUpdateError:
        raise HTTPException(status_code=502, detail="Failed to update order status. Please try again.")
    return {"updated": True, "order_id": order_id, "status": payload.status}


def _summary(db: DocumentStore, branch: str, month: str, year: int | None):
    data = load_expense_data(db)
    try:
        summary = calculate_expense_summary(data.products, data.services, data.bookings,
                                            branch=branch, month=month, year=year)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return data, summary


@app.get("/expenses/summary")
def expense_summary(branch: str = ALL, month: str = ALL, year: int | None = None,
                    db: DocumentStore = Depends(get_document_store),
                    user: UserProfile = Depends(require_super_admin)):
    _, summary = _summary(db, branch, month, year)
    return summary


@app.get("/expenses/branches")
def expense_branches(db: DocumentStore = Depends(get_document_store),
                     user: UserProfile = Depends(require_super_admin)):
    data = load_expense_data(db)
    return branch_options(data.products, data.services)


@app.get("/expenses/report")
def expense_report(start: datetime.date | None = None, end: datetime.date | None = None,
                   branch: str = ALL, month: str = ALL, year: int | None = None,
                   db: DocumentStore = Depends(get_document_store),
                   user: UserProfile = Depends(require_super_admin)):
    today = datetime.date.today()
    start = start or today.replace(day=1)
    end = end or today
    _, summary = _summary(db, branch, month, year)
    text = render_expense_report(summary, start, end, generated_on=today, year=year or today.year)
    return PlainTextResponse(
        text,
        headers={"Content-Disposition": f'attachment; filename="{report_filename(today)}"'},
    )


@app.get("/analytics")
def analytics(time_range: str = "30d",
              db: DocumentStore = Depends(get_document_store),
              user: UserProfile = Depends(require_admin)):
    data = load_expense_data(db)
    try:
        return build_analytics(data.bookings, time_range=time_range)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


def run_server():
    """Serve the app on $PORT, as Cloud Run expects."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8080")), log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run_server()
