# webapp/utils/api_client.py
import httpx
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config import settings

logger = logging.getLogger(__name__)


@dataclass
class ApiResult:
    """Uniform outcome of a backend call: either ok with a body, or a failure with a message."""
    ok: bool
    status_code: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


def _error_strings(raw: Any) -> List[str]:
    # Backend validation errors come as strings or {msg|message} objects
    if not isinstance(raw, list):
        return []
    out = []
    for entry in raw:
        if isinstance(entry, dict):
            entry = entry.get("msg") or entry.get("message") or str(entry)
        out.append(str(entry))
    return out


def normalize_response(response: httpx.Response, expect_success_flag: bool = False) -> ApiResult:
    """
    Turn an HTTP response into an ApiResult.

    Endpoints whose contract carries a `success` field only count as ok when
    it is literally true; others are ok on any 2xx status.
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        data = body
    elif isinstance(body, list):
        data = {"items": body}
    else:
        data = {}

    ok = response.is_success
    if ok and expect_success_flag:
        ok = data.get("success") is True

    message = None
    errors: List[str] = []
    if not ok:
        message = data.get("message") or data.get("error")
        errors = _error_strings(data.get("errors"))

    return ApiResult(ok=ok, status_code=response.status_code, data=data, message=message, errors=errors)


class BackendClient:
    """Thin async wrapper over the platform backend REST API."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.access_token = access_token
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        expect_success_flag: bool = False,
    ) -> ApiResult:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(method, path, json=json, params=params)
            except httpx.RequestError as e:
                logger.error(f"Backend request {method} {path} failed: {e}")
                return ApiResult(ok=False, message=f"Could not reach the server: {e.__class__.__name__}")

        result = normalize_response(response, expect_success_flag=expect_success_flag)
        if not result.ok:
            logger.warning(
                "Backend %s %s -> %s: %s",
                method, path, response.status_code, result.message or response.text[:300],
            )
        return result

    # --- Marketplace ---

    async def get_available_products(self, params: Optional[dict] = None) -> ApiResult:
        return await self.request("GET", "/api/vendor-products", params=params or {})

    async def get_product(self, product_id: str) -> ApiResult:
        return await self.request("GET", f"/api/vendor-products/{product_id}")

    # --- Vendor orders ---

    async def create_order(self, order_data: dict) -> ApiResult:
        return await self.request("POST", "/api/vendor-orders", json=order_data, expect_success_flag=True)

    async def initialize_vendor_payment(self, order_id: str, email: str) -> ApiResult:
        return await self.request(
            "POST", f"/api/vendor-orders/{order_id}/initialize-payment",
            json={"email": email}, expect_success_flag=True,
        )

    async def verify_vendor_payment(self, reference: str) -> ApiResult:
        return await self.request(
            "POST", "/api/vendor-orders/verify-payment",
            json={"reference": reference}, expect_success_flag=True,
        )

    async def get_user_vendor_orders(self) -> ApiResult:
        return await self.request("GET", "/api/vendor-orders/my-orders")

    async def get_vendor_order(self, order_id: str) -> ApiResult:
        return await self.request("GET", f"/api/vendor-orders/{order_id}")

    async def get_all_vendor_orders(self, params: Optional[dict] = None) -> ApiResult:
        return await self.request("GET", "/api/vendor-orders", params=params or {})

    async def update_order_status(self, order_id: str, status: str, vendor_notes: Optional[str] = None) -> ApiResult:
        body = {"status": status}
        if vendor_notes is not None:
            body["vendorNotes"] = vendor_notes
        return await self.request("PATCH", f"/api/vendor-orders/{order_id}/status", json=body)

    # --- Bookings ---

    async def get_user_bookings(self) -> ApiResult:
        return await self.request("GET", "/bookings/my-bookings")

    # --- Dashboard sources ---

    async def get_admin_bookings(self, params: Optional[dict] = None) -> ApiResult:
        return await self.request("GET", "/bookings/admin/all", params=params or {})

    async def get_admin_properties(self, params: Optional[dict] = None) -> ApiResult:
        return await self.request("GET", "/properties/admin/all", params=params or {})

    async def get_users(self) -> ApiResult:
        return await self.request("GET", "/users")
