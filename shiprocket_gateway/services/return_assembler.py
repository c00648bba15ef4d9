"""
Return payload assembly.

A Shiprocket return travels the opposite way of the original shipment:
the "pickup" side is the customer the order was delivered to (as Shiprocket
recorded them), and the "shipping" side is our configured return facility.
Line items, payment and totals come from the local order; parcel
dimensions come from Shiprocket's record of the original shipment.
"""
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from shiprocket_gateway.core.config import ReturnDestination
from shiprocket_gateway.core.exceptions import ReturnAssemblyError
from shiprocket_gateway.schemas.shiprocket import ShiprocketReturnPayload, format_validation_errors
from shiprocket_gateway.services.order_normalizer import dedupe_skus, to_carrier_item

logger = logging.getLogger(__name__)

DIMENSION_FIELDS = ("length", "breadth", "height", "weight")


def _order_detail(carrier_order_detail: Dict[str, Any]) -> Dict[str, Any]:
    """Accept either the raw GET /orders/show response or its ``data`` member."""
    data = carrier_order_detail.get("data") if isinstance(carrier_order_detail, dict) else None
    if isinstance(data, dict):
        return data
    return carrier_order_detail or {}


def _shipment_dimensions(detail: Dict[str, Any]) -> Dict[str, Any]:
    shipments = detail.get("shipments")
    if isinstance(shipments, list):
        shipments = shipments[0] if shipments else None
    if not isinstance(shipments, dict):
        raise ReturnAssemblyError(
            message="Shiprocket order detail has no shipment dimensions",
            reasons=["shipments: missing"],
        )

    missing = [name for name in DIMENSION_FIELDS if shipments.get(name) in (None, "")]
    if missing:
        raise ReturnAssemblyError(
            message="Shiprocket shipment is missing dimensions",
            reasons=[f"shipments.{name}: missing" for name in missing],
        )
    return {name: shipments[name] for name in DIMENSION_FIELDS}


def payment_method_for(paid: bool) -> str:
    # Observed mapping: a paid order goes back as "cod"
    return "cod" if paid else "Prepaid"


def build_return_payload(
    order: Any,
    carrier_order_detail: Dict[str, Any],
    destination: ReturnDestination,
    sku_prefix: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the body for POST /orders/create/return.

    Args:
        order: Local order with ``items`` loaded
        carrier_order_detail: Response of GET /orders/show/{id}
        destination: Facility the parcel is returned to
        sku_prefix: Override for the carrier SKU prefix

    Raises:
        ReturnAssemblyError: carrier detail lacks the order id or dimensions,
            or the assembled payload fails schema validation
    """
    detail = _order_detail(carrier_order_detail)
    if detail.get("id") is None:
        raise ReturnAssemblyError(
            message="Shiprocket order detail has no order id",
            reasons=["data.id: missing"],
        )

    payload = {
        "order_id": detail["id"],
        "order_date": order.created_at.date().isoformat(),
        "pickup_customer_name": detail.get("customer_name"),
        "pickup_address": detail.get("customer_address"),
        "pickup_city": detail.get("customer_city"),
        "pickup_state": detail.get("customer_state"),
        "pickup_country": detail.get("customer_country"),
        "pickup_pincode": detail.get("customer_pincode"),
        "pickup_email": detail.get("customer_email"),
        "pickup_phone": detail.get("customer_phone"),
        "shipping_customer_name": destination.name,
        "shipping_address": destination.address or detail.get("pickup_location"),
        "shipping_city": destination.city,
        "shipping_country": destination.country,
        "shipping_pincode": destination.pincode,
        "shipping_state": destination.state,
        "shipping_phone": destination.phone,
        "order_items": dedupe_skus(to_carrier_item(item, sku_prefix) for item in order.items),
        "payment_method": payment_method_for(bool(order.paid)),
        "sub_total": float(order.total),
    }
    payload.update(_shipment_dimensions(detail))

    try:
        ShiprocketReturnPayload.model_validate(payload)
    except ValidationError as e:
        reasons = format_validation_errors(e)
        logger.error(f"Assembled return payload for order {order.id} is invalid: {reasons}")
        raise ReturnAssemblyError(message="Assembled return payload is invalid", reasons=reasons)

    return payload
