"""
Shiprocket Schemas

Pydantic models for payloads sent to and read from the Shiprocket API.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import re


# ==================== Pickup Locations ====================


class PickupLocation(BaseModel):
    """A configured pickup address as listed by Shiprocket."""
    model_config = ConfigDict(extra="allow")

    pickup_location: Optional[str] = None
    name: Optional[str] = None

    @property
    def label(self) -> Optional[str]:
        return self.pickup_location or self.name


# ==================== Order Schemas ====================


class ShiprocketOrderItem(BaseModel):
    """A single carrier-facing order line."""
    name: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1, max_length=100)
    units: int = Field(..., ge=1)
    selling_price: float = Field(..., ge=0)
    discount: Optional[float] = None
    tax: Optional[float] = None
    hsn: Optional[Union[int, str]] = None


class ShiprocketOrderPayload(BaseModel):
    """Body of POST /orders/create/adhoc."""
    model_config = ConfigDict(extra="allow")

    order_id: str = Field(..., min_length=1)
    order_date: str = Field(..., min_length=1)
    pickup_location: str = Field(..., min_length=1)

    billing_customer_name: str = Field(..., min_length=1)
    billing_last_name: Optional[str] = None
    billing_address: str = Field(..., min_length=1)
    billing_address_2: Optional[str] = None
    billing_city: str = Field(..., min_length=1)
    billing_pincode: str
    billing_state: str = Field(..., min_length=1)
    billing_country: str = Field(..., min_length=1)
    billing_email: str = Field(..., min_length=3)
    billing_phone: str

    shipping_is_billing: bool = True
    shipping_customer_name: Optional[str] = None
    shipping_last_name: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_address_2: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_pincode: Optional[str] = None
    shipping_country: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_email: Optional[str] = None
    shipping_phone: Optional[str] = None

    order_items: List[ShiprocketOrderItem] = Field(..., min_length=1)
    payment_method: str
    sub_total: float = Field(..., ge=0)
    length: float = Field(..., gt=0)
    breadth: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    weight: float = Field(..., gt=0)

    @field_validator("order_id", "billing_pincode", "billing_phone", mode="before")
    @classmethod
    def coerce_to_str(cls, v):
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("billing_pincode")
    @classmethod
    def validate_pincode(cls, v):
        if not re.fullmatch(r"\d{6}", v):
            raise ValueError("Pincode must be 6 digits")
        return v

    @field_validator("billing_phone")
    @classmethod
    def validate_phone(cls, v):
        digits = re.sub(r'\D', '', v)
        if len(digits) < 10 or len(digits) > 12:
            raise ValueError("Phone number must be 10-12 digits")
        return v

    @field_validator("payment_method")
    @classmethod
    def validate_payment_method(cls, v):
        if v.lower() not in ("cod", "prepaid"):
            raise ValueError("payment_method must be COD or Prepaid")
        return v

    @field_validator("order_items")
    @classmethod
    def validate_unique_skus(cls, v):
        skus = [item.sku for item in v]
        if len(skus) != len(set(skus)):
            raise ValueError("order_items SKUs must be unique")
        return v


class ShiprocketReturnPayload(BaseModel):
    """Body of POST /orders/create/return."""
    model_config = ConfigDict(extra="allow")

    order_id: Union[int, str]
    order_date: str

    pickup_customer_name: Optional[str] = None
    pickup_address: Optional[str] = None
    pickup_city: Optional[str] = None
    pickup_state: Optional[str] = None
    pickup_country: Optional[str] = None
    pickup_pincode: Optional[Union[int, str]] = None
    pickup_email: Optional[str] = None
    pickup_phone: Optional[Union[int, str]] = None

    shipping_customer_name: str
    shipping_address: Optional[str] = None
    shipping_city: str
    shipping_country: str
    shipping_pincode: str
    shipping_state: str
    shipping_phone: str

    order_items: List[ShiprocketOrderItem]
    payment_method: str
    sub_total: float
    length: float
    breadth: float
    height: float
    weight: float

    @field_validator("order_items")
    @classmethod
    def validate_unique_skus(cls, v):
        skus = [item.sku for item in v]
        if len(skus) != len(set(skus)):
            raise ValueError("order_items SKUs must be unique")
        return v


# ==================== Validation Result ====================


@dataclass
class ValidationOk:
    """Payload passed schema validation."""
    payload: ShiprocketOrderPayload
    ok: bool = True


@dataclass
class ValidationInvalid:
    """Payload failed schema validation."""
    reasons: List[str] = field(default_factory=list)
    ok: bool = False


def format_validation_errors(exc: ValidationError) -> List[str]:
    reasons = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        reasons.append(f"{location}: {error.get('msg')}" if location else error.get("msg", "invalid"))
    return reasons


def validate_order_payload(payload: Dict[str, Any]) -> Union[ValidationOk, ValidationInvalid]:
    """
    Validate an outbound create-order payload.

    Returns ValidationOk with the parsed model, or ValidationInvalid with one
    human-readable reason per failing field. Never raises.
    """
    try:
        parsed = ShiprocketOrderPayload.model_validate(payload)
    except ValidationError as e:
        return ValidationInvalid(reasons=format_validation_errors(e))
    return ValidationOk(payload=parsed)
