from pydantic import BaseModel, Field
from typing import List, Optional

# Request schema for adding an item to the cart
class CartAddItem(BaseModel):
    product_id: str
    qty: int = Field(ge=1)
    special_instructions: Optional[str] = None

# Request schema for updating cart item quantity
class CartUpdateItem(BaseModel):
    qty: int = Field(ge=1)
    special_instructions: Optional[str] = None

# Response schema for a single cart line item
class CartItemOut(BaseModel):
    product_id: str
    name: str
    vendor_id: Optional[str] = None
    qty: int
    unit_price: float
    line_total: float
    special_instructions: Optional[str] = None

# Response schema for the entire cart summary with fee preview
class CartOut(BaseModel):
    items: List[CartItemOut]
    item_count: int
    total: float
    service_fee: float
    delivery_fee: float
    grand_total: float

# Request schema for turning the cart into a vendor order
class CheckoutPayload(BaseModel):
    booking_id: str
    delivery_instructions: str = ""
    preferred_delivery_time: Optional[str] = None
