# webapp/routes/cart.py
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Request
from pydantic import ValidationError

from config import settings
from dependencies import get_backend_client, get_cart
from schemas.cart import CartAddItem, CartUpdateItem, CartOut, CartItemOut
from schemas.vendor import Product
from utils.api_client import BackendClient
from utils.audit import write_log
from utils.cart_store import CartStore, check_order_quantity
from utils.errors import RequestAbandonedError
from utils.request_scope import RequestScope, get_request_scope
from utils.tokenJWT import CurrentUser, get_current_user

router = APIRouter(prefix="/cart", tags=["Cart"])
logger = logging.getLogger(__name__)

def _client_ip(request: Request):
    return request.client.host if request.client else None

def _cart_to_out(cart: CartStore) -> CartOut:
    items_out = []
    for it in cart.items:
        items_out.append(CartItemOut(
            product_id=it.product.id,
            name=it.product.name,
            vendor_id=it.product.vendor_id,
            qty=it.quantity,
            unit_price=round(it.product.price, 2),
            line_total=round(it.line_total, 2),
            special_instructions=it.special_instructions,
        ))

    total = cart.get_cart_total()
    # Fee preview only; the backend prices the created order
    service_fee = total * settings.SERVICE_FEE_RATE
    delivery_fee = settings.DELIVERY_FEE if items_out else 0.0

    return CartOut(
        items=items_out,
        item_count=cart.get_cart_item_count(),
        total=round(total, 2),
        service_fee=round(service_fee, 2),
        delivery_fee=round(delivery_fee, 2),
        grand_total=round(total + service_fee + delivery_fee, 2),
    )

async def _fetch_product(client: BackendClient, scope: RequestScope, product_id: str) -> Product:
    try:
        result = await scope.run(client.get_product(product_id))
    except RequestAbandonedError:
        raise HTTPException(status_code=499, detail="Request abandoned")

    if result.not_found:
        raise HTTPException(status_code=404, detail="Product not found")
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.message or "Failed to load product")

    raw = result.data.get("product") or result.data
    try:
        return Product.model_validate(raw)
    except ValidationError as e:
        logger.error(f"Unreadable product {product_id}: {e}")
        raise HTTPException(status_code=502, detail="Server returned an unreadable product")

@router.get("", response_model=CartOut)
def get_cart_view(
    request: Request,
    cart: CartStore = Depends(get_cart),
    current_user: CurrentUser = Depends(get_current_user)
):
    out = _cart_to_out(cart)

    # Log cart view action
    write_log(
        user_id=current_user.id,
        action="CART_VIEW",
        resource="cart",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"items": len(out.items), "total": out.total},
    )
    return out

@router.post("/add", response_model=CartOut, status_code=status.HTTP_200_OK)
async def add_to_cart(
    payload: CartAddItem,
    request: Request,
    cart: CartStore = Depends(get_cart),
    client: BackendClient = Depends(get_backend_client),
    scope: RequestScope = Depends(get_request_scope),
    current_user: CurrentUser = Depends(get_current_user)
):
    product = await _fetch_product(client, scope, payload.product_id)

    # Validate availability, order limits and stock before touching the cart
    problem = check_order_quantity(product, payload.qty)
    if problem:
        write_log(
            user_id=current_user.id, action="CART_ADD", resource="cart", status="FAIL",
            ip=_client_ip(request), meta={"product_id": product.id, "qty": payload.qty, "reason": problem},
        )
        raise HTTPException(status_code=400, detail=problem)

    cart.add_to_cart(product, payload.qty, payload.special_instructions)

    out = _cart_to_out(cart)
    write_log(
        user_id=current_user.id,
        action="CART_ADD",
        resource="cart",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"product_id": product.id, "qty": payload.qty, "cart_items": len(out.items), "total": out.total},
    )
    return out

@router.put("/items/{product_id}", response_model=CartOut)
def update_cart_item(
    product_id: str,
    payload: CartUpdateItem,
    request: Request,
    cart: CartStore = Depends(get_cart),
    current_user: CurrentUser = Depends(get_current_user)
):
    item = cart.get_item(product_id)
    if not item:
        raise HTTPException(status_code=404, detail="Cart item not found")

    # Validate the new quantity against the product captured in the cart
    problem = check_order_quantity(item.product, payload.qty)
    if problem:
        raise HTTPException(status_code=400, detail=problem)

    cart.update_cart_item(product_id, payload.qty, payload.special_instructions)

    out = _cart_to_out(cart)
    write_log(
        user_id=current_user.id,
        action="CART_UPDATE",
        resource="cart",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"product_id": product_id, "qty": payload.qty, "total": out.total},
    )
    return out

@router.delete("/items/{product_id}", response_model=CartOut)
def delete_cart_item(
    product_id: str,
    request: Request,
    cart: CartStore = Depends(get_cart),
    current_user: CurrentUser = Depends(get_current_user)
):
    cart.remove_from_cart(product_id)

    out = _cart_to_out(cart)
    write_log(
        user_id=current_user.id,
        action="CART_DELETE",
        resource="cart",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"product_id": product_id, "cart_items": len(out.items), "total": out.total},
    )
    return out

@router.delete("", response_model=CartOut)
def clear_cart(
    request: Request,
    cart: CartStore = Depends(get_cart),
    current_user: CurrentUser = Depends(get_current_user)
):
    cart.clear_cart()
    write_log(
        user_id=current_user.id, action="CART_CLEAR", resource="cart", status="SUCCESS", ip=_client_ip(request),
    )
    return _cart_to_out(cart)
