# webapp/routes/vendor_orders.py
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, Query, status
from fastapi.responses import RedirectResponse

from dependencies import get_backend_client, get_order_service
from schemas.cart import CheckoutPayload
from schemas.vendor import PaymentOutcome, VendorOrder, VendorOrderList
from utils.api_client import BackendClient
from utils.audit import write_log
from utils.dashboard import format_status_label, summarize_order
from utils.errors import (
    BackendError, CheckoutValidationError, PaymentVerificationError,
    RequestAbandonedError, StorefrontError,
)
from utils.order_lifecycle import VendorOrderService, ensure_payable, resolve_payment_reference
from utils.request_scope import RequestScope, get_request_scope
from utils.tokenJWT import CurrentUser, get_current_user

router = APIRouter(tags=["Vendor Orders"])
logger = logging.getLogger(__name__)

# Retry actions offered on a failed payment page
FAILURE_ACTIONS = ["Back to Marketplace", "View My Orders"]
SUCCESS_ACTIONS = ["View Order Details", "Continue Shopping"]


def http_error_for(exc: StorefrontError) -> HTTPException:
    # Translate storefront errors at the route boundary
    if isinstance(exc, RequestAbandonedError):
        return HTTPException(status_code=499, detail=exc.message)
    if isinstance(exc, CheckoutValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, BackendError) and exc.status_code and 400 <= exc.status_code < 500:
        return HTTPException(status_code=exc.status_code, detail=exc.message)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message)


async def _confirmed_booking(client: BackendClient, scope: RequestScope, booking_id: str) -> dict:
    result = await scope.run(client.get_user_bookings())
    if not result.ok:
        raise BackendError(result.message or "Failed to load bookings", status_code=result.status_code)

    # Deliveries only go to confirmed, paid stays
    for booking in result.data.get("bookings") or result.data.get("items") or []:
        if (
            booking.get("_id") == booking_id
            and booking.get("bookingStatus") == "confirmed"
            and booking.get("paymentStatus") == "paid"
        ):
            return booking
    raise CheckoutValidationError("Selected booking not found", {"booking_id": booking_id})


# Turn the caller's cart into a vendor order (cart is cleared only on success)
@router.post("/vendor/checkout", response_model=VendorOrder, status_code=status.HTTP_201_CREATED)
async def checkout(
    payload: CheckoutPayload,
    request: Request,
    service: VendorOrderService = Depends(get_order_service),
    client: BackendClient = Depends(get_backend_client),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(get_current_user)
):
    try:
        booking = await _confirmed_booking(client, scope, payload.booking_id)
        # Order creation is not cancelled on disconnect: once the backend accepts
        # it the cart is cleared, even if the caller is no longer there to see it
        order = await scope.run(service.checkout(
            booking,
            delivery_instructions=payload.delivery_instructions,
            preferred_delivery_time=payload.preferred_delivery_time,
        ), cancel_on_close=False)
    except StorefrontError as e:
        write_log(
            user_id=current_user.id, action="VENDOR_ORDER_CREATE", resource="vendor-orders", status="FAIL",
            ip=request.client.host if request.client else None, meta={"reason": e.message},
        )
        raise http_error_for(e)

    write_log(
        user_id=current_user.id, action="VENDOR_ORDER_CREATE", resource="vendor-orders", status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"order_id": order.id, "order_number": order.order_number, "total": order.total_amount},
    )
    return order


# Start payment and hand the browser over to the gateway
@router.post("/vendor/checkout/{order_id}/pay")
async def pay_vendor_order(
    order_id: str,
    request: Request,
    service: VendorOrderService = Depends(get_order_service),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(get_current_user)
):
    try:
        order = await scope.run(service.get_vendor_order(order_id))
        ensure_payable(order)
        session = await scope.run(service.initialize_vendor_payment(order.id, current_user.email))
    except StorefrontError as e:
        raise http_error_for(e)

    write_log(
        user_id=current_user.id, action="VENDOR_PAYMENT_INIT", resource="vendor-orders", status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"order_id": order.id, "reference": session.reference},
    )
    return RedirectResponse(url=session.authorization_url, status_code=status.HTTP_303_SEE_OTHER)


# Gateway return page: verify the reference and report a paid or failed outcome
@router.get("/vendor/payment/success", response_model=PaymentOutcome)
async def vendor_payment_success(
    request: Request,
    reference: Optional[str] = Query(None),
    trxref: Optional[str] = Query(None),
    service: VendorOrderService = Depends(get_order_service),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(get_current_user)
):
    try:
        payment_reference = resolve_payment_reference(reference, trxref)
        order = await scope.run(service.verify_vendor_payment(payment_reference))
    except RequestAbandonedError as e:
        raise http_error_for(e)
    except PaymentVerificationError as e:
        write_log(
            user_id=current_user.id, action="VENDOR_PAYMENT_VERIFY", resource="vendor-orders", status="FAIL",
            ip=request.client.host if request.client else None,
            meta={"reference": reference or trxref, "reason": e.message},
        )
        return PaymentOutcome(status="failed", message=e.message, actions=FAILURE_ACTIONS)
    except StorefrontError as e:
        logger.error("Payment success page failed: %r", e)
        return PaymentOutcome(status="failed", message=e.message or "Failed to verify payment", actions=FAILURE_ACTIONS)

    write_log(
        user_id=current_user.id, action="VENDOR_PAYMENT_VERIFY", resource="vendor-orders", status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"order_id": order.id, "payment_status": order.payment_status.value},
    )
    return PaymentOutcome(
        status=order.payment_status.value,
        message="Thank you for your order. Your vendor order has been confirmed.",
        order_id=order.id,
        order_number=order.order_number,
        total_amount=order.total_amount,
        vendor_name=order.vendor.business_name if order.vendor else None,
        order_status=format_status_label(order.order_status),
        payment_status=order.payment_status.value,
        actions=SUCCESS_ACTIONS,
    )


# List the caller's vendor orders
@router.get("/dashboard/vendor-orders", response_model=VendorOrderList)
async def list_my_vendor_orders(
    service: VendorOrderService = Depends(get_order_service),
    scope: RequestScope = Depends(get_request_scope),
):
    try:
        orders: List[VendorOrder] = await scope.run(service.get_user_vendor_orders())
    except StorefrontError as e:
        raise http_error_for(e)
    return {"items": [summarize_order(o) for o in orders], "total": len(orders)}


# Get details of one of the caller's vendor orders
@router.get("/dashboard/vendor-orders/{order_id}", response_model=VendorOrder)
async def get_my_vendor_order(
    order_id: str,
    service: VendorOrderService = Depends(get_order_service),
    scope: RequestScope = Depends(get_request_scope),
):
    try:
        return await scope.run(service.get_vendor_order(order_id))
    except StorefrontError as e:
        raise http_error_for(e)
