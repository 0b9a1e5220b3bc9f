"""
Integration Tests: HTTP routes

Runs the FastAPI app with the backend client replaced by the fake backend.
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from config import settings
from dependencies import get_backend_client
from main import app
from utils.cart_store import cart_registry


@pytest.fixture
def client(fake_backend):
    app.dependency_overrides[get_backend_client] = lambda: fake_backend.client()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    cart_registry.discard("u1")
    cart_registry.discard("admin1")


@pytest.fixture
def auth(make_token):
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def admin_auth(make_token):
    return {"Authorization": f"Bearer {make_token(user_id='admin1', role='admin')}"}


def product_body(product_id="p1", price=1000, max_qty=5, stock=10, vendor_id="v1"):
    return {
        "success": True,
        "product": {
            "_id": product_id,
            "name": f"Product {product_id}",
            "category": "food",
            "price": price,
            "vendor": vendor_id,
            "isAvailable": True,
            "stockQuantity": stock,
            "minOrderQuantity": 1,
            "maxOrderQuantity": max_qty,
        },
    }


PAID_BOOKING = {
    "_id": "b1",
    "bookingStatus": "confirmed",
    "paymentStatus": "paid",
    "property": {"title": "Lekki Loft", "location": "Lekki"},
}


class TestAuth:

    def test_missing_token_rejected(self, client):
        response = client.get("/cart")
        assert response.status_code in (401, 403)

    def test_bad_token_rejected(self, client):
        response = client.get("/cart", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_admin_routes_need_admin_role(self, client, auth):
        response = client.get("/admin/vendor-orders", headers=auth)
        assert response.status_code == 403


class TestCartRoutes:

    def test_add_and_view_cart(self, client, auth, fake_backend):
        fake_backend.on("GET", "/api/vendor-products/p1", body=product_body(price=1000))

        response = client.post("/cart/add", json={"product_id": "p1", "qty": 2}, headers=auth)
        assert response.status_code == 200
        body = response.json()
        assert body["item_count"] == 2
        assert body["total"] == 2000
        assert body["service_fee"] == 200
        assert body["delivery_fee"] == 500
        assert body["grand_total"] == 2700

        assert client.get("/cart", headers=auth).json()["items"][0]["vendor_id"] == "v1"

    def test_add_over_maximum_rejected(self, client, auth, fake_backend):
        fake_backend.on("GET", "/api/vendor-products/p1", body=product_body(max_qty=3))

        response = client.post("/cart/add", json={"product_id": "p1", "qty": 4}, headers=auth)
        assert response.status_code == 400
        assert response.json()["detail"] == "Maximum order quantity is 3"

    def test_unknown_product_is_404(self, client, auth):
        response = client.post("/cart/add", json={"product_id": "ghost", "qty": 1}, headers=auth)
        assert response.status_code == 404

    def test_update_remove_clear(self, client, auth, fake_backend):
        fake_backend.on("GET", "/api/vendor-products/p1", body=product_body())
        client.post("/cart/add", json={"product_id": "p1", "qty": 1}, headers=auth)

        updated = client.put("/cart/items/p1", json={"qty": 3, "special_instructions": "gate"}, headers=auth)
        assert updated.json()["items"][0]["qty"] == 3
        assert client.put("/cart/items/zzz", json={"qty": 1}, headers=auth).status_code == 404

        removed = client.delete("/cart/items/p1", headers=auth).json()
        assert removed["items"] == []
        assert removed["delivery_fee"] == 0

        assert client.delete("/cart", headers=auth).json()["total"] == 0


class TestCheckoutRoutes:

    def _fill_cart(self, client, auth, fake_backend):
        fake_backend.on("GET", "/api/vendor-products/p1", body=product_body())
        client.post("/cart/add", json={"product_id": "p1", "qty": 2}, headers=auth)

    def test_checkout_creates_order_and_clears_cart(self, client, auth, fake_backend, make_order):
        self._fill_cart(client, auth, fake_backend)
        fake_backend.on("GET", "/bookings/my-bookings", body={"bookings": [PAID_BOOKING]})
        fake_backend.on("POST", "/api/vendor-orders", 201, {"success": True, "order": make_order()})

        response = client.post("/vendor/checkout", json={"booking_id": "b1"}, headers=auth)

        assert response.status_code == 201
        assert response.json()["orderNumber"] == "1001"
        assert fake_backend.json_body()["bookingId"] == "b1"
        assert client.get("/cart", headers=auth).json()["item_count"] == 0

    def test_unpaid_booking_rejected(self, client, auth, fake_backend):
        self._fill_cart(client, auth, fake_backend)
        fake_backend.on("GET", "/bookings/my-bookings", body={
            "bookings": [dict(PAID_BOOKING, paymentStatus="pending")],
        })

        response = client.post("/vendor/checkout", json={"booking_id": "b1"}, headers=auth)
        assert response.status_code == 400
        assert response.json()["detail"] == "Selected booking not found"

    def test_backend_rejection_keeps_cart(self, client, auth, fake_backend):
        self._fill_cart(client, auth, fake_backend)
        fake_backend.on("GET", "/bookings/my-bookings", body={"bookings": [PAID_BOOKING]})
        fake_backend.on("POST", "/api/vendor-orders", 400, {"success": False, "errors": ["bad item"]})

        response = client.post("/vendor/checkout", json={"booking_id": "b1"}, headers=auth)
        assert response.status_code == 400
        assert response.json()["detail"] == "Order validation failed: bad item"
        assert client.get("/cart", headers=auth).json()["item_count"] == 2

    def test_pay_redirects_to_gateway(self, client, auth, fake_backend, make_order):
        fake_backend.on("GET", "/api/vendor-orders/o1", body={"order": make_order()})
        fake_backend.on("POST", "/api/vendor-orders/o1/initialize-payment", body={
            "success": True, "paymentData": {"authorization_url": "https://checkout.gateway/o1", "reference": "r1"},
        })

        response = client.post("/vendor/checkout/o1/pay", headers=auth, follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "https://checkout.gateway/o1"
        assert fake_backend.json_body() == {"email": "guest@example.com"}

    def test_paid_order_cannot_be_paid_again(self, client, auth, fake_backend, make_order):
        fake_backend.on("GET", "/api/vendor-orders/o1", body={"order": make_order(payment_status="paid")})

        response = client.post("/vendor/checkout/o1/pay", headers=auth, follow_redirects=False)
        assert response.status_code == 400
        assert response.json()["detail"] == "This order has already been paid"


class TestPaymentSuccessRoute:

    def test_verified_payment(self, client, auth, fake_backend, make_order):
        fake_backend.on("POST", "/api/vendor-orders/verify-payment", body={
            "success": True, "order": make_order(payment_status="paid", order_status="confirmed"),
        })

        body = client.get("/vendor/payment/success?trxref=ref-9", headers=auth).json()

        assert body["status"] == "paid"
        assert body["order_number"] == "1001"
        assert body["vendor_name"] == "Mama's Kitchen"
        assert body["actions"] == ["View Order Details", "Continue Shopping"]
        assert fake_backend.json_body() == {"reference": "ref-9"}

    def test_order_status_shown_as_label(self, client, auth, fake_backend, make_order):
        fake_backend.on("POST", "/api/vendor-orders/verify-payment", body={
            "success": True, "order": make_order(payment_status="paid", order_status="out_for_delivery"),
        })

        body = client.get("/vendor/payment/success?reference=ref-1", headers=auth).json()

        assert body["order_status"] == "out for delivery"
        assert body["payment_status"] == "paid"

    def test_missing_reference(self, client, auth, fake_backend):
        response = client.get("/vendor/payment/success", headers=auth)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "failed"
        assert body["message"] == "No payment reference found"
        assert body["actions"] == ["Back to Marketplace", "View My Orders"]
        assert fake_backend.requests == []

    def test_missing_verification_endpoint(self, client, auth):
        body = client.get("/vendor/payment/success?reference=r1", headers=auth).json()

        assert body["status"] == "failed"
        assert body["message"] == "Vendor payment verification endpoint not found. Please contact support."


class TestMyOrdersRoutes:

    def test_list_skips_unreadable_orders(self, client, auth, fake_backend, make_order):
        fake_backend.on("GET", "/api/vendor-orders/my-orders", body={
            "success": True, "orders": [make_order(), {"broken": True}],
        })

        body = client.get("/dashboard/vendor-orders", headers=auth).json()
        assert body["total"] == 1
        assert body["items"][0]["_id"] == "o1"
        assert body["items"][0]["itemSummary"] == "2 × Jollof"
        assert body["items"][0]["statusLabel"] == "pending"

    def test_missing_order_is_404(self, client, auth):
        assert client.get("/dashboard/vendor-orders/nope", headers=auth).status_code == 404


class TestAdminRoutes:

    def test_status_filter_forwarded(self, client, admin_auth, fake_backend, make_order):
        fake_backend.on("GET", "/api/vendor-orders", body={"orders": [make_order()]})

        response = client.get("/admin/vendor-orders?status=pending", headers=admin_auth)
        assert response.status_code == 200
        assert response.json()["items"][0]["itemSummary"] == "2 × Jollof"
        assert fake_backend.requests[0].url.params["status"] == "pending"

    def test_invalid_status_filter_rejected(self, client, admin_auth):
        assert client.get("/admin/vendor-orders?status=lost", headers=admin_auth).status_code == 422

    def test_terminal_order_status_locked(self, client, admin_auth, fake_backend, make_order):
        fake_backend.on("GET", "/api/vendor-orders/o1", body={"order": make_order(order_status="cancelled")})

        response = client.patch("/admin/vendor-orders/o1/status", json={"status": "preparing"}, headers=admin_auth)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot change status from cancelled"

    def test_vendor_order_stats(self, client, admin_auth, fake_backend, make_order):
        fake_backend.on("GET", "/api/vendor-orders", body={"orders": [
            make_order(order_id="a", payment_status="paid", total=2000),
            make_order(order_id="b", total=900),
        ]})

        body = client.get("/admin/vendor-orders/stats", headers=admin_auth).json()
        assert body == {"counts": {"pending": 2}, "paid_revenue": 2000}

    def test_dashboard_summary(self, client, admin_auth, fake_backend):
        fake_backend.on("GET", "/bookings/admin/all", body={"bookings": [
            dict(PAID_BOOKING, totalAmount=5000),
            dict(PAID_BOOKING, _id="b2", bookingStatus="cancelled", paymentStatus="refunded", totalAmount=100),
        ]})
        fake_backend.on("GET", "/properties/admin/all", body={"properties": [{"_id": "x"}]})
        fake_backend.on("GET", "/users", body=[{"_id": "u1"}, {"_id": "u2"}])

        body = client.get("/admin/stats/summary", headers=admin_auth).json()
        assert body == {"total_properties": 1, "active_bookings": 1, "total_revenue": 5000, "registered_users": 2}

    def test_backend_failure_is_502(self, client, admin_auth, fake_backend):
        fake_backend.on("GET", "/bookings/admin/all", 500, {"message": "db down"})

        response = client.get("/admin/transactions", headers=admin_auth)
        assert response.status_code == 502
        assert response.json()["detail"] == "db down"


class TestMarketplaceRoutes:

    def test_categories_from_bare_list_reply(self, client, auth, fake_backend):
        fake_backend.on("GET", "/api/vendor-products", body=[
            product_body("p1")["product"],
            dict(product_body("p2")["product"], category="drinks"),
            dict(product_body("p3")["product"], category=""),
        ])

        response = client.get("/marketplace/categories", headers=auth)
        assert response.status_code == 200
        assert response.json() == ["drinks", "food"]

    def test_product_filters(self, client, auth, fake_backend):
        fake_backend.on("GET", "/api/vendor-products", body={"products": [
            product_body("p1")["product"],
            dict(product_body("p2", vendor_id="v2")["product"], category="drinks"),
        ]})

        body = client.get("/marketplace/products?category=drinks", headers=auth).json()
        assert body["total"] == 1
        assert body["items"][0]["_id"] == "p2"


async def call_then_disconnect(path: str, payload: dict, token: str, disconnect_after: float) -> int:
    """Drive the ASGI app directly with a client that goes away after `disconnect_after` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + disconnect_after
    body_sent = False
    messages = []

    async def receive():
        nonlocal body_sent
        if not body_sent:
            body_sent = True
            return {"type": "http.request", "body": json.dumps(payload).encode(), "more_body": False}
        remaining = deadline - loop.time()
        if remaining > 0:
            await asyncio.sleep(remaining)
        return {"type": "http.disconnect"}

    async def send(message):
        messages.append(message)

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": [
            (b"host", b"testserver"),
            (b"content-type", b"application/json"),
            (b"authorization", f"Bearer {token}".encode()),
        ],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }
    await app(scope, receive, send)
    return next(m["status"] for m in messages if m["type"] == "http.response.start")


class TestClientDisconnect:

    @pytest.fixture(autouse=True)
    def backend_override(self, fake_backend, monkeypatch):
        monkeypatch.setattr(settings, "DISCONNECT_POLL_SECONDS", 0.01)
        app.dependency_overrides[get_backend_client] = lambda: fake_backend.client()
        yield
        app.dependency_overrides.clear()
        cart_registry.discard("u1")

    @pytest.mark.asyncio
    async def test_slow_lookup_cancelled_when_client_leaves(self, fake_backend, make_product, make_token):
        cart_registry.get_or_create("u1").add_to_cart(make_product("p1"), 2)
        fake_backend.on("GET", "/bookings/my-bookings", body={"bookings": [PAID_BOOKING]}, delay=0.5)

        status_code = await call_then_disconnect("/vendor/checkout", {"booking_id": "b1"}, make_token(), 0.05)

        assert status_code == 499
        assert [r.method for r in fake_backend.requests] == ["GET"]
        assert cart_registry.get_or_create("u1").get_cart_item_count() == 2

    @pytest.mark.asyncio
    async def test_order_created_after_disconnect_still_clears_cart(
        self, fake_backend, make_product, make_order, make_token
    ):
        cart_registry.get_or_create("u1").add_to_cart(make_product("p1"), 2)
        fake_backend.on("GET", "/bookings/my-bookings", body={"bookings": [PAID_BOOKING]})
        fake_backend.on("POST", "/api/vendor-orders", 201, {"success": True, "order": make_order()}, delay=0.4)

        status_code = await call_then_disconnect("/vendor/checkout", {"booking_id": "b1"}, make_token(), 0.1)

        # The response is never delivered, but the accepted order is not lost
        assert status_code == 499
        assert [r.method for r in fake_backend.requests] == ["GET", "POST"]
        assert cart_registry.get_or_create("u1").get_cart_item_count() == 0
