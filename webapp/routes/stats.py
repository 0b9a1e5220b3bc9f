# webapp/routes/stats.py
import asyncio
from typing import List, Literal, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query

from dependencies import get_backend_client
from schemas.dashboard import (
    Activity, DailyRevenueResponse, DashboardStats, TransactionPage, TransactionStats,
)
from utils.api_client import ApiResult, BackendClient
from utils.dashboard import (
    bookings_to_transactions, calculate_dashboard_stats, daily_revenue, filter_transactions,
    generate_recent_activity, pending_amount, total_revenue, transaction_status_counts,
)
from utils.errors import RequestAbandonedError
from utils.request_scope import RequestScope, get_request_scope
from utils.tokenJWT import CurrentUser, admin_required

router = APIRouter(
    prefix="/admin",
    tags=["Stats"]
)


def _rows(result: ApiResult, key: str) -> List[dict]:
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.message or f"Failed to load {key}")
    # Some listings are wrapped ({"bookings": [...]}), users come back as a bare list
    return result.data.get(key) or result.data.get("items") or []


async def _fetch_dashboard_sources(client: BackendClient, scope: RequestScope) -> Tuple[list, list, list]:
    try:
        bookings, properties, users = await scope.run(asyncio.gather(
            client.get_admin_bookings(),
            client.get_admin_properties(),
            client.get_users(),
        ))
    except RequestAbandonedError:
        raise HTTPException(status_code=499, detail="Request abandoned")
    return _rows(bookings, "bookings"), _rows(properties, "properties"), _rows(users, "users")


async def _fetch_bookings(client: BackendClient, scope: RequestScope) -> List[dict]:
    try:
        result = await scope.run(client.get_admin_bookings())
    except RequestAbandonedError:
        raise HTTPException(status_code=499, detail="Request abandoned")
    return _rows(result, "bookings")


# === Endpoint 1: Dashboard Summary ===

@router.get("/stats/summary", response_model=DashboardStats)
async def get_stats_summary(
    client: BackendClient = Depends(get_backend_client),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(admin_required)
):
    bookings, properties, users = await _fetch_dashboard_sources(client, scope)
    return calculate_dashboard_stats(bookings, properties, users)


# === Endpoint 2: Chart Data ===

@router.get("/stats/daily-revenue", response_model=DailyRevenueResponse)
async def get_daily_revenue_stats(
    days: int = Query(7, ge=1, le=90),
    client: BackendClient = Depends(get_backend_client),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(admin_required)
):
    transactions = bookings_to_transactions(await _fetch_bookings(client, scope))
    return DailyRevenueResponse(data=daily_revenue(transactions, days=days))


# === Endpoint 3: Transactions ===

@router.get("/transactions", response_model=TransactionPage)
async def get_transactions(
    status: Literal["all", "paid", "completed", "pending", "failed", "refunded"] = "all",
    client: BackendClient = Depends(get_backend_client),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(admin_required)
):
    transactions = bookings_to_transactions(await _fetch_bookings(client, scope))
    items = filter_transactions(transactions, status)

    # Totals always describe every transaction, not just the filtered view
    stats = TransactionStats(
        total_revenue=total_revenue(transactions),
        pending_amount=pending_amount(transactions),
        counts=transaction_status_counts(transactions),
    )
    return TransactionPage(items=items, total=len(items), stats=stats)


# === Endpoint 4: Recent Activity ===

@router.get("/activity", response_model=List[Activity])
async def get_recent_activity(
    client: BackendClient = Depends(get_backend_client),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(admin_required)
):
    bookings, _, users = await _fetch_dashboard_sources(client, scope)
    return generate_recent_activity(bookings, users)
