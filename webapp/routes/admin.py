# webapp/routes/admin.py
from fastapi import APIRouter, Depends, Query, Request
from typing import Optional

from dependencies import get_backend_client
from routes.vendor_orders import http_error_for
from schemas.dashboard import VendorOrderStats
from schemas.vendor import OrderStatus, OrderStatusPatch, VendorOrder, VendorOrderList
from utils.api_client import BackendClient
from utils.audit import write_log
from utils.dashboard import summarize_order, vendor_order_revenue, vendor_order_status_counts
from utils.errors import StorefrontError
from utils.order_lifecycle import VendorOrderService
from utils.request_scope import RequestScope, get_request_scope
from utils.tokenJWT import CurrentUser, admin_required

router = APIRouter(prefix="/admin/vendor-orders", tags=["Admin"])


# Order service without a cart; admins act on existing orders only
def get_admin_order_service(client: BackendClient = Depends(get_backend_client)) -> VendorOrderService:
    return VendorOrderService(client)


# Retrieve all vendor orders, optionally filtered by status (Admin only)
@router.get("", response_model=VendorOrderList)
async def list_vendor_orders(
    status: Optional[OrderStatus] = Query(None, description="Filter by order status"),
    service: VendorOrderService = Depends(get_admin_order_service),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(admin_required)
):
    try:
        orders = await scope.run(service.list_all_vendor_orders(status.value if status else None))
    except StorefrontError as e:
        raise http_error_for(e)
    return {"items": [summarize_order(o) for o in orders], "total": len(orders)}


# Status counts and paid revenue across vendor orders (Admin only)
@router.get("/stats", response_model=VendorOrderStats)
async def vendor_order_stats(
    service: VendorOrderService = Depends(get_admin_order_service),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(admin_required)
):
    try:
        orders = await scope.run(service.list_all_vendor_orders())
    except StorefrontError as e:
        raise http_error_for(e)
    return VendorOrderStats(counts=vendor_order_status_counts(orders), paid_revenue=vendor_order_revenue(orders))


@router.get("/{order_id}", response_model=VendorOrder)
async def get_vendor_order(
    order_id: str,
    service: VendorOrderService = Depends(get_admin_order_service),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(admin_required)
):
    try:
        return await scope.run(service.get_vendor_order(order_id))
    except StorefrontError as e:
        raise http_error_for(e)


# Manually update vendor order status (Admin only)
@router.patch("/{order_id}/status", response_model=VendorOrder)
async def update_vendor_order_status(
    order_id: str,
    payload: OrderStatusPatch,
    request: Request,
    service: VendorOrderService = Depends(get_admin_order_service),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(admin_required)
):
    try:
        order = await scope.run(service.update_order_status(order_id, payload.status, payload.vendor_notes))
    except StorefrontError as e:
        write_log(
            user_id=current_user.id, action="VENDOR_ORDER_STATUS", resource="vendor-orders", status="FAIL",
            ip=request.client.host if request.client else None,
            meta={"order_id": order_id, "new_status": payload.status.value, "reason": e.message},
        )
        raise http_error_for(e)

    write_log(
        user_id=current_user.id, action="VENDOR_ORDER_STATUS", resource="vendor-orders", status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"order_id": order_id, "new_status": payload.status.value},
    )
    return order
