"""
Pytest configuration and fixtures for tests.

Backend calls are faked with httpx.MockTransport; no network is used.
"""

import asyncio
import json
import os
import sys

import httpx
import pytest

# Add parent directory to Python path so tests can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("API_BASE_URL", "http://backend.test")

from jose import jwt

from config import settings

from schemas.vendor import Product
from utils.api_client import BackendClient


class FakeBackend:
    """Routes (method, path) to canned responses and records every request."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method: str, path: str, status_code: int = 200, body=None, exc: Exception = None, delay: float = 0):
        self.routes[(method.upper(), path)] = (status_code, body, exc, delay)
        return self

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": f"Route {request.url.path} not found"})
        status_code, body, exc, delay = self.routes[key]
        if delay:
            await asyncio.sleep(delay)
        if exc is not None:
            raise exc
        return httpx.Response(status_code, json=body)

    def json_body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)

    def client(self, token: str = "token") -> BackendClient:
        return BackendClient(access_token=token, base_url="http://backend.test", transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def make_product():
    def _make(product_id="p1", price=1000.0, min_qty=1, max_qty=5, stock=10, vendor_id="v1", **extra):
        data = {
            "_id": product_id,
            "name": extra.pop("name", f"Product {product_id}"),
            "description": "",
            "category": extra.pop("category", "food"),
            "price": price,
            "images": [],
            "vendor": {"_id": vendor_id, "businessName": f"Vendor {vendor_id}"},
            "isAvailable": extra.pop("is_available", True),
            "stockQuantity": stock,
            "minOrderQuantity": min_qty,
            "maxOrderQuantity": max_qty,
            "preparationTime": 20,
            "tags": extra.pop("tags", []),
        }
        data.update(extra)
        return Product.model_validate(data)
    return _make


@pytest.fixture
def make_order():
    def _make(order_id="o1", number="1001", payment_status="pending", order_status="pending", total=2000.0, **extra):
        data = {
            "_id": order_id,
            "orderNumber": number,
            "vendor": {"_id": "v1", "businessName": "Mama's Kitchen"},
            "items": [{"product": {"_id": "p1", "name": "Jollof"}, "quantity": 2, "price": 1000}],
            "subtotal": total,
            "serviceFee": 0,
            "deliveryFee": 0,
            "totalAmount": total,
            "orderStatus": order_status,
            "paymentStatus": payment_status,
        }
        data.update(extra)
        return data
    return _make


@pytest.fixture
def make_token():
    def _make(user_id="u1", role="user", email="guest@example.com"):
        return jwt.encode({"userId": user_id, "role": role, "email": email}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return _make
