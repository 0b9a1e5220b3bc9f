# webapp/utils/order_lifecycle.py
"""
Vendor order lifecycle: cart -> created order -> payment session -> verified order.

Each phase is one backend call started by an explicit user action. Failures
are raised as typed StorefrontError subclasses; nothing here ever marks an
order paid on its own, only a successful backend verification does.
"""
import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from schemas.vendor import (
    DeliveryAddress, OrderCreatePayload, OrderItemPayload, OrderStatus,
    PaymentSession, PaymentStatus, TERMINAL_ORDER_STATUSES, VendorOrder,
)
from utils.api_client import ApiResult, BackendClient
from utils.cart_store import CartStore
from utils.errors import (
    BackendError, BackendUnavailableError, CheckoutValidationError,
    MissingPaymentReferenceError, OrderCreationError, OrderStatusUpdateError,
    PaymentInitializationError, PaymentVerificationError, StorefrontError,
    VerificationEndpointMissingError,
)

logger = logging.getLogger(__name__)


def resolve_payment_reference(reference: Optional[str], trxref: Optional[str]) -> str:
    # The gateway sends `reference`, `trxref`, or both
    payment_reference = reference or trxref
    if not payment_reference:
        logger.warning("Payment verification skipped: cause=missing_reference")
        raise MissingPaymentReferenceError()
    return payment_reference


def ensure_payable(order: VendorOrder) -> None:
    if order.payment_status == PaymentStatus.PAID:
        raise CheckoutValidationError("This order has already been paid", {"order_id": order.id})
    if order.order_status == OrderStatus.CANCELLED:
        raise CheckoutValidationError("This order has been cancelled", {"order_id": order.id})


def _booking_label(value: Any) -> Optional[str]:
    # Booking property may be populated ({title, location}) or a plain string
    if isinstance(value, dict):
        return value.get("title") or value.get("name")
    return value


def build_order_payload(
    cart: CartStore,
    booking: Optional[dict],
    delivery_instructions: str = "",
    preferred_delivery_time: Optional[str] = None,
) -> OrderCreatePayload:
    """Validate the cart locally and shape it into the backend order body."""
    if len(cart) == 0:
        raise CheckoutValidationError("Your cart is empty")
    if not booking or not booking.get("_id"):
        raise CheckoutValidationError("Please select a booking for delivery")

    vendors = cart.vendor_ids()
    if len(vendors) > 1:
        raise CheckoutValidationError(
            "Please order from one vendor at a time. Your cart contains items from multiple vendors.",
            {"vendors": vendors},
        )
    if not vendors:
        raise CheckoutValidationError("Cart items are missing vendor information")

    prop = booking.get("property")
    unit = prop.get("location") if isinstance(prop, dict) else None

    return OrderCreatePayload(
        booking_id=booking["_id"],
        vendor_id=vendors[0],
        items=[
            OrderItemPayload(
                product_id=item.product.id,
                quantity=item.quantity,
                special_instructions=item.special_instructions,
            )
            for item in cart.items
        ],
        delivery_address=DeliveryAddress(
            property=_booking_label(prop),
            unit=unit,
            special_instructions=delivery_instructions,
        ),
        preferred_delivery_time=preferred_delivery_time or None,
        customer_notes=delivery_instructions,
    )


def _parse_order(payload: Any, error_cls=BackendUnavailableError) -> VendorOrder:
    if not isinstance(payload, dict):
        raise error_cls("Server response did not include the order")
    try:
        return VendorOrder.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Unreadable order in backend response: {e}")
        raise error_cls("Server returned an unreadable order")


def _parse_orders(raw: Any) -> List[VendorOrder]:
    orders = []
    for entry in raw or []:
        try:
            orders.append(VendorOrder.model_validate(entry))
        except ValidationError as e:
            logger.warning("Skipping unreadable vendor order %s: %s", entry.get("_id") if isinstance(entry, dict) else entry, e)
    return orders


class VendorOrderService:
    def __init__(self, client: BackendClient, cart: Optional[CartStore] = None):
        self.client = client
        self.cart = cart

    async def create_vendor_order(self, order_data) -> VendorOrder:
        body = order_data.to_backend() if isinstance(order_data, OrderCreatePayload) else order_data
        logger.info("Creating vendor order: vendor=%s items=%s", body.get("vendorId"), len(body.get("items", [])))

        try:
            result = await self.client.create_order(body)
        except StorefrontError:
            raise
        except Exception as e:
            logger.exception("Create vendor order failed: cause=unexpected")
            raise OrderCreationError("Failed to create order") from e

        if not result.ok:
            if result.errors:
                message = f"Order validation failed: {', '.join(result.errors)}"
            else:
                message = result.message or "Failed to create order"
            logger.warning(
                "Create vendor order failed: cause=backend status=%s message=%s", result.status_code, message
            )
            raise OrderCreationError(message, status_code=result.status_code, errors=result.errors)

        order = _parse_order(result.data.get("order"), OrderCreationError)
        logger.info("Vendor order created: id=%s number=%s", order.id, order.order_number)
        return order

    async def checkout(
        self,
        booking: Optional[dict],
        delivery_instructions: str = "",
        preferred_delivery_time: Optional[str] = None,
    ) -> VendorOrder:
        if self.cart is None:
            raise CheckoutValidationError("Your cart is empty")
        payload = build_order_payload(self.cart, booking, delivery_instructions, preferred_delivery_time)
        order = await self.create_vendor_order(payload)
        # Only an accepted order empties the cart
        self.cart.clear_cart()
        return order

    async def initialize_vendor_payment(self, order_id: str, email: str) -> PaymentSession:
        if not email:
            raise CheckoutValidationError("An email address is required to pay")

        try:
            result = await self.client.initialize_vendor_payment(order_id, email)
        except StorefrontError:
            raise
        except Exception as e:
            logger.exception("Payment initialization failed for order %s: cause=unexpected", order_id)
            raise PaymentInitializationError("Failed to initialize payment") from e

        if not result.ok:
            logger.warning(
                "Payment initialization failed for order %s: cause=backend status=%s message=%s",
                order_id, result.status_code, result.message,
            )
            raise PaymentInitializationError(
                result.message or "Failed to initialize payment", status_code=result.status_code
            )

        payment_data = result.data.get("paymentData") or result.data
        if not payment_data.get("authorization_url"):
            logger.error("Payment initialization for order %s returned no authorization_url", order_id)
            raise PaymentInitializationError("No payment URL received")

        session = PaymentSession(
            authorization_url=payment_data["authorization_url"],
            reference=payment_data.get("reference"),
            access_code=payment_data.get("access_code"),
        )
        logger.info("Payment session ready for order %s: reference=%s", order_id, session.reference)
        return session

    async def verify_vendor_payment(self, reference: str) -> VendorOrder:
        reference = resolve_payment_reference(reference, None)
        logger.info("Verifying vendor payment: reference=%s", reference)
        try:
            result = await self.client.verify_vendor_payment(reference)
        except StorefrontError:
            raise
        except Exception as e:
            logger.exception("Payment verification failed: cause=unexpected reference=%s", reference)
            raise PaymentVerificationError("Payment verification failed") from e

        if result.not_found:
            logger.error("Payment verification failed: cause=endpoint_missing reference=%s", reference)
            raise VerificationEndpointMissingError({"reference": reference})

        if not result.ok:
            logger.warning(
                "Payment verification failed: cause=backend status=%s message=%s reference=%s",
                result.status_code, result.message, reference,
            )
            raise PaymentVerificationError(
                result.message or "Payment verification failed",
                status_code=result.status_code,
                details={"reference": reference},
            )

        order = _parse_order(result.data.get("order"), PaymentVerificationError)
        logger.info(
            "Vendor payment verified: order=%s payment_status=%s", order.order_number, order.payment_status.value
        )
        return order

    async def get_user_vendor_orders(self) -> List[VendorOrder]:
        result = await self.client.get_user_vendor_orders()
        self._raise_for(result, "Failed to fetch orders")
        return _parse_orders(result.data.get("orders"))

    async def get_vendor_order(self, order_id: str) -> VendorOrder:
        result = await self.client.get_vendor_order(order_id)
        if result.not_found:
            raise BackendError("Order not found", status_code=404, details={"order_id": order_id})
        self._raise_for(result, "Failed to load order details")
        return _parse_order(result.data.get("order") or result.data)

    async def list_all_vendor_orders(self, status: Optional[str] = None) -> List[VendorOrder]:
        params = {"status": status} if status else {}
        result = await self.client.get_all_vendor_orders(params)
        self._raise_for(result, "Failed to fetch orders")
        return _parse_orders(result.data.get("orders"))

    async def update_order_status(
        self, order_id: str, status: OrderStatus, vendor_notes: Optional[str] = None
    ) -> VendorOrder:
        current = await self.get_vendor_order(order_id)
        if current.order_status in TERMINAL_ORDER_STATUSES:
            raise CheckoutValidationError(
                f"Cannot change status from {current.order_status.value}", {"order_id": order_id}
            )

        result = await self.client.update_order_status(order_id, status.value, vendor_notes)
        if not result.ok:
            raise OrderStatusUpdateError(
                result.message or "Failed to update order status", status_code=result.status_code
            )
        logger.info("Vendor order %s status %s -> %s", order_id, current.order_status.value, status.value)

        updated = result.data.get("order")
        if isinstance(updated, dict):
            return _parse_order(updated, OrderStatusUpdateError)
        return current.model_copy(update={"order_status": status, "vendor_notes": vendor_notes or current.vendor_notes})

    @staticmethod
    def _raise_for(result: ApiResult, fallback: str) -> None:
        if not result.ok:
            raise BackendError(result.message or fallback, status_code=result.status_code)
