# webapp/utils/dashboard.py
"""
Admin dashboard aggregates computed from already-fetched backend lists.

Plain functions only: no I/O, so routes fetch and these reduce.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from schemas.dashboard import Activity, DailyRevenue, DashboardStats, Transaction
from schemas.vendor import PaymentStatus, VendorOrder, VendorOrderItem, VendorOrderSummary

PAID_STATUSES = {"paid", "completed"}
ACTIVE_BOOKING_STATUSES = {"confirmed", "pending"}


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    # Backend timestamps are UTC
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _full_name(person: Any) -> str:
    if not isinstance(person, dict):
        return ""
    return f"{person.get('firstName', '')} {person.get('lastName', '')}".strip()


def bookings_to_transactions(bookings: Iterable[dict]) -> List[Transaction]:
    transactions = []
    for booking in bookings:
        prop = booking.get("property")
        user = booking.get("user")
        transactions.append(Transaction(
            id=str(booking.get("_id", "")),
            user_name=_full_name(user),
            user_email=user.get("email") if isinstance(user, dict) else None,
            property_title=(prop.get("title") or "") if isinstance(prop, dict) else (prop or ""),
            type="booking",
            amount=float(booking.get("totalAmount") or 0),
            status=booking.get("paymentStatus") or "pending",
            date=parse_datetime(booking.get("createdAt")),
            method="Paystack",
            payment_reference=booking.get("paymentReference"),
            paystack_reference=booking.get("paystackReference"),
        ))
    return transactions


def filter_transactions(transactions: Iterable[Transaction], status: str = "all") -> List[Transaction]:
    if not status or status == "all":
        return list(transactions)
    return [t for t in transactions if t.status == status]


def display_status(status: str) -> str:
    # Gateway-paid bookings are shown as completed
    return "completed" if status in PAID_STATUSES else status


def total_revenue(transactions: Iterable[Transaction]) -> float:
    return sum(t.amount for t in transactions if t.status in PAID_STATUSES)


def pending_amount(transactions: Iterable[Transaction]) -> float:
    return sum(t.amount for t in transactions if t.status == "pending")


def transaction_status_counts(transactions: Iterable[Transaction]) -> Dict[str, int]:
    counts = {"completed": 0, "pending": 0, "failed": 0, "refunded": 0}
    for t in transactions:
        key = display_status(t.status)
        if key in counts:
            counts[key] += 1
    return counts


def calculate_dashboard_stats(bookings: List[dict], properties: List[dict], users: List[dict]) -> DashboardStats:
    active = [b for b in bookings if b.get("bookingStatus") in ACTIVE_BOOKING_STATUSES]
    revenue = sum(float(b.get("totalAmount") or 0) for b in bookings if b.get("paymentStatus") == "paid")
    return DashboardStats(
        total_properties=len(properties),
        active_bookings=len(active),
        total_revenue=revenue,
        registered_users=len(users),
    )


def format_time_ago(moment: Union[str, datetime, None], now: Optional[datetime] = None) -> str:
    moment = parse_datetime(moment)
    if moment is None:
        return ""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    diff_mins = max(0, int((now - moment).total_seconds() // 60))
    diff_hours = diff_mins // 60
    diff_days = diff_hours // 24

    if diff_mins < 60:
        return f"{diff_mins} minute{'' if diff_mins == 1 else 's'} ago"
    if diff_hours < 24:
        return f"{diff_hours} hour{'' if diff_hours == 1 else 's'} ago"
    return f"{diff_days} day{'' if diff_days == 1 else 's'} ago"


def _newest(entries: Iterable[dict], count: int) -> List[dict]:
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    ordered = sorted(entries, key=lambda e: parse_datetime(e.get("createdAt")) or epoch, reverse=True)
    return ordered[:count]


def generate_recent_activity(
    bookings: List[dict],
    users: List[dict],
    now: Optional[datetime] = None,
    limit: int = 6,
) -> List[Activity]:
    activities: List[Activity] = []

    for booking in _newest(bookings, 3):
        prop = booking.get("property")
        title = prop.get("title", "") if isinstance(prop, dict) else (prop or "")
        activities.append(Activity(
            id=str(booking.get("_id", "")),
            type="booking",
            message=f"New {booking.get('bookingStatus', '')} booking for {title}",
            time=format_time_ago(booking.get("createdAt"), now),
            user=_full_name(booking.get("user")),
            occurred_at=parse_datetime(booking.get("createdAt")),
        ))

    for user in _newest(users, 2):
        activities.append(Activity(
            id=str(user.get("_id", "")),
            type="user",
            message="New user registered",
            time=format_time_ago(user.get("createdAt"), now),
            user=_full_name(user),
            occurred_at=parse_datetime(user.get("createdAt")),
        ))

    # Merge on the real timestamp, not the "time ago" label
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    activities.sort(key=lambda a: a.occurred_at or epoch, reverse=True)
    return activities[:limit]


def daily_revenue(
    transactions: Iterable[Transaction],
    days: int = 7,
    today: Optional[date] = None,
) -> List[DailyRevenue]:
    today = today or datetime.now(timezone.utc).date()
    first_day = today - timedelta(days=days - 1)

    revenue_by_date: Dict[date, float] = {}
    for t in transactions:
        if t.status not in PAID_STATUSES or t.date is None:
            continue
        day = t.date.date()
        if first_day <= day <= today:
            revenue_by_date[day] = revenue_by_date.get(day, 0.0) + t.amount

    # Fill missing dates with zero revenue
    result = []
    for i in range(days):
        current = first_day + timedelta(days=i)
        result.append(DailyRevenue(date=current.strftime("%d/%m"), revenue=revenue_by_date.get(current, 0.0)))
    return result


# --- Vendor orders ---

def vendor_order_status_counts(orders: Iterable[VendorOrder]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for order in orders:
        key = order.order_status.value
        counts[key] = counts.get(key, 0) + 1
    return counts


def vendor_order_revenue(orders: Iterable[VendorOrder]) -> float:
    return sum(o.total_amount for o in orders if o.payment_status == PaymentStatus.PAID)


def summarize_order_items(items: List[VendorOrderItem]) -> str:
    if not items:
        return ""
    if len(items) == 1:
        return f"{items[0].quantity} × {items[0].product.name}"
    return f"{len(items)} items"


def format_status_label(status: Any) -> str:
    value = status.value if hasattr(status, "value") else str(status or "")
    return value.replace("_", " ")


def summarize_order(order: VendorOrder) -> VendorOrderSummary:
    return VendorOrderSummary.model_validate({
        **order.model_dump(),
        "item_summary": summarize_order_items(order.items),
        "status_label": format_status_label(order.order_status),
    })
