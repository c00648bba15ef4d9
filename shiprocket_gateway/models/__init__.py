from shiprocket_gateway.models.order import Order, OrderItem, OrderFulfillment
from shiprocket_gateway.models.shiprocket_token import ShiprocketToken

__all__ = [
    "Order",
    "OrderItem",
    "OrderFulfillment",
    "ShiprocketToken",
]
