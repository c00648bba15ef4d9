from shiprocket_gateway.schemas.shiprocket import (
    PickupLocation,
    ShiprocketOrderItem,
    ShiprocketOrderPayload,
    ShiprocketReturnPayload,
    ValidationOk,
    ValidationInvalid,
    validate_order_payload,
)

__all__ = [
    "PickupLocation",
    "ShiprocketOrderItem",
    "ShiprocketOrderPayload",
    "ShiprocketReturnPayload",
    "ValidationOk",
    "ValidationInvalid",
    "validate_order_payload",
]
