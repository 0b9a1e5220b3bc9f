# webapp/schemas/dashboard.py
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel


# Booking payment seen as a transaction on the admin transactions page
class Transaction(BaseModel):
    id: str
    user_name: str = ""
    user_email: Optional[str] = None
    property_title: str = ""
    type: str = "booking"
    amount: float = 0.0
    status: str = "pending"
    date: Optional[datetime] = None
    method: str = "Paystack"
    payment_reference: Optional[str] = None
    paystack_reference: Optional[str] = None


class TransactionStats(BaseModel):
    total_revenue: float
    pending_amount: float
    counts: Dict[str, int]


class TransactionPage(BaseModel):
    items: List[Transaction]
    total: int
    stats: TransactionStats


class DashboardStats(BaseModel):
    total_properties: int
    active_bookings: int
    total_revenue: float
    registered_users: int


class DailyRevenue(BaseModel):
    date: str
    revenue: float


class DailyRevenueResponse(BaseModel):
    data: List[DailyRevenue]


class Activity(BaseModel):
    id: str
    type: str
    message: str
    time: str
    user: str
    occurred_at: Optional[datetime] = None


class VendorOrderStats(BaseModel):
    counts: Dict[str, int]
    paid_revenue: float
