# webapp/dependencies.py
from fastapi import Depends

from utils.api_client import BackendClient
from utils.cart_store import CartStore, cart_registry
from utils.order_lifecycle import VendorOrderService
from utils.tokenJWT import CurrentUser, get_current_user


# Backend client acting on behalf of the caller
def get_backend_client(current_user: CurrentUser = Depends(get_current_user)) -> BackendClient:
    return BackendClient(access_token=current_user.access_token)


# The caller's in-memory cart
def get_cart(current_user: CurrentUser = Depends(get_current_user)) -> CartStore:
    return cart_registry.get_or_create(current_user.id)


def get_order_service(
    client: BackendClient = Depends(get_backend_client),
    cart: CartStore = Depends(get_cart),
) -> VendorOrderService:
    return VendorOrderService(client, cart)
