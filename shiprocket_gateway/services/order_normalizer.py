"""
Normalization of outbound Shiprocket order payloads.

Pure functions: nothing here touches the network or the database, and no
input is mutated.
"""
import re
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from shiprocket_gateway.core.config import settings
from shiprocket_gateway.schemas.shiprocket import PickupLocation

DEFAULT_PICKUP_LOCATION = "Home"


def strip_trailing_pincode(address: Optional[str], pincode: Optional[Any]) -> Optional[str]:
    """
    Remove a redundant " - <pincode>" suffix from an address.

    "123 Main St - 110001" with pincode "110001" becomes "123 Main St".
    Addresses without that exact suffix come back unchanged.
    """
    if not address or pincode is None or str(pincode) == "":
        return address

    pattern = re.compile(rf"\s*-\s*{re.escape(str(pincode))}\s*$")
    if not pattern.search(address):
        return address
    return pattern.sub("", address).strip()


def resolve_pickup_location(
    candidates: Optional[List[Dict[str, Any]]],
    fallback: str = DEFAULT_PICKUP_LOCATION,
) -> str:
    """
    Pick the pickup location name to submit with an order.

    The first candidate is the account default; its dedicated
    ``pickup_location`` field wins over ``name``.
    """
    if not candidates:
        return fallback

    first = candidates[0]
    if not isinstance(first, dict):
        return fallback
    try:
        location = PickupLocation.model_validate(first)
    except ValidationError:
        return fallback
    return location.label or fallback


def dedupe_skus(items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Make SKUs unique within one order, keeping the first occurrence as-is.

    Repeats get the first unused ``_1``, ``_2``, ... suffix of their original
    SKU. Output order and length match the input.
    """
    used = set()
    result = []
    for item in items:
        base_sku = item.get("sku")
        sku = base_sku
        counter = 1
        while sku in used:
            sku = f"{base_sku}_{counter}"
            counter += 1
        used.add(sku)
        result.append({**item, "sku": sku})
    return result


def carrier_sku(color: str, size: str, prefix: Optional[str] = None) -> str:
    """Carrier-facing SKU for a product variant, e.g. ARV + Black + XL."""
    if prefix is None:
        prefix = settings.SHIPROCKET_SKU_PREFIX
    return f"{prefix}{color}{size}"


def to_carrier_item(item: Any, prefix: Optional[str] = None) -> Dict[str, Any]:
    """Map a local OrderItem to a Shiprocket order line."""
    return {
        "name": item.product_name,
        "sku": carrier_sku(item.color, item.size, prefix),
        "units": item.quantity,
        "selling_price": float(item.price_at_order),
    }


def normalize_order_payload(order_data: Dict[str, Any], pickup_location: str) -> Dict[str, Any]:
    """Apply address, pickup location and SKU rules to a create-order payload."""
    normalized = dict(order_data)

    if normalized.get("billing_address") and normalized.get("billing_pincode"):
        normalized["billing_address"] = strip_trailing_pincode(
            normalized["billing_address"], normalized["billing_pincode"]
        )

    normalized["pickup_location"] = pickup_location

    if isinstance(normalized.get("order_items"), list):
        normalized["order_items"] = dedupe_skus(normalized["order_items"])

    return normalized
