"""
Shipment Service for the Shiprocket integration

High-level service that coordinates:
- Token acquisition (TokenCache)
- Order normalization and schema validation
- Order creation, cancellation and returns with Shiprocket
- Recording carrier results on the local order

Order state as seen here:
    UNSHIPPED -> SHIPPED (shiprocket_order_id set) -> CANCELLED | RETURNING

A token is always obtained before any authenticated carrier call, and the
local order is only written after Shiprocket accepted the request.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shiprocket_gateway.core.config import settings, ReturnDestination
from shiprocket_gateway.core.utils import sanitize_for_logging
from shiprocket_gateway.core.exceptions import (
    MissingCarrierOrderError,
    OrderNotFoundError,
    PayloadValidationError,
    ShiprocketAPIError,
)
from shiprocket_gateway.models.order import Order, OrderFulfillment
from shiprocket_gateway.schemas.shiprocket import ValidationInvalid, validate_order_payload
from shiprocket_gateway.services.order_normalizer import normalize_order_payload, resolve_pickup_location
from shiprocket_gateway.services.order_store import OrderStore, TokenStore
from shiprocket_gateway.services.return_assembler import build_return_payload
from shiprocket_gateway.services.shiprocket_client import ShiprocketClient
from shiprocket_gateway.services.token_cache import TokenCache

logger = logging.getLogger(__name__)


@dataclass
class ShipmentResult:
    """Outcome of a shipment use case, shaped for an API response."""
    success: bool
    data: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "data": self.data}


class ShipmentService:
    """
    Central service for all Shiprocket shipment operations.
    """

    def __init__(
        self,
        db: AsyncSession,
        client: Optional[ShiprocketClient] = None,
        token_cache: Optional[TokenCache] = None,
        return_destination: Optional[ReturnDestination] = None,
        default_pickup_location: Optional[str] = None,
    ):
        self.db = db
        self._owns_client = client is None
        self.client = client or ShiprocketClient()
        self.orders = OrderStore(db)
        self.token_cache = token_cache or TokenCache(TokenStore(db), self.client)
        self.return_destination = return_destination or settings.return_destination
        self.default_pickup_location = default_pickup_location or settings.SHIPROCKET_DEFAULT_PICKUP_LOCATION

    async def close(self):
        """Clean up resources."""
        if self._owns_client:
            await self.client.close()

    async def _get_order(self, order_id: Any, include_items: bool = False) -> Order:
        order = await self.orders.find_order_by_id(order_id, include_items=include_items)
        if not order:
            raise OrderNotFoundError(message=f"Order {order_id} not found", order_id=order_id)
        return order

    def _require_carrier_order_id(self, order: Order) -> str:
        if not order.shiprocket_order_id:
            raise MissingCarrierOrderError(
                message=f"Order {order.id} has not been submitted to Shiprocket",
                order_id=order.id,
            )
        return order.shiprocket_order_id

    async def _pickup_location(self, token: str) -> str:
        """Default pickup location, falling back quietly if the lookup fails."""
        try:
            locations = await self.client.list_pickup_locations(token)
        except ShiprocketAPIError as e:
            logger.warning(
                f"Failed to fetch pickup locations, using '{self.default_pickup_location}': {e.message}"
            )
            return self.default_pickup_location
        return resolve_pickup_location(locations, fallback=self.default_pickup_location)

    # ==================== Pickup Locations ====================

    async def list_pickup_locations(self) -> List[Dict]:
        """Return Shiprocket's pickup locations verbatim."""
        token = await self.token_cache.get_valid_token()
        return await self.client.list_pickup_locations(token)

    # ==================== Order Creation ====================

    async def create_order(self, order_data: Dict[str, Any], normalize: bool = True) -> ShipmentResult:
        """
        Submit a local order to Shiprocket and record the carrier order id.

        Args:
            order_data: Create-order payload; ``order_id`` is the local order id
            normalize: Clean the billing address, resolve the pickup location
                and de-duplicate SKUs before validation

        Raises:
            ShiprocketAuthError: no valid token
            PayloadValidationError: payload fails the schema
            OrderNotFoundError: payload order_id names no local order; nothing is sent
            ShiprocketAPIError: Shiprocket rejected or never answered the request
        """
        token = await self.token_cache.get_valid_token()

        payload = dict(order_data)
        if normalize:
            pickup_location = await self._pickup_location(token)
            payload = normalize_order_payload(payload, pickup_location)

        validation = validate_order_payload(payload)
        if isinstance(validation, ValidationInvalid):
            logger.warning(f"Rejected create-order payload for {payload.get('order_id')}: {validation.reasons}")
            raise PayloadValidationError(message="Invalid data", reasons=validation.reasons)

        local_order_id = validation.payload.order_id
        await self._get_order(local_order_id)

        result = await self.client.create_order(token, payload)

        try:
            await self.orders.update_order(
                local_order_id,
                shiprocket_order_id=result.carrier_order_id,
                fulfillment=OrderFulfillment.SHIPPED,
            )
        except Exception as e:
            logger.error(
                f"Shiprocket order {result.carrier_order_id} created but recording it on "
                f"order {local_order_id} failed: {e}"
            )
            raise

        logger.info(f"Order {local_order_id} submitted to Shiprocket as {result.carrier_order_id}")
        return ShipmentResult(success=True, data=result.raw)

    # ==================== Cancellation ====================

    async def cancel_order(self, order_id: Any) -> ShipmentResult:
        """
        Cancel the Shiprocket order behind a local order.

        Raises:
            ShiprocketAuthError: no valid token
            OrderNotFoundError: unknown order
            MissingCarrierOrderError: order was never submitted; nothing is sent
            ShiprocketAPIError: Shiprocket rejected the cancellation
        """
        token = await self.token_cache.get_valid_token()
        order = await self._get_order(order_id)
        carrier_order_id = self._require_carrier_order_id(order)

        response = await self.client.cancel_order(token, [carrier_order_id])

        await self.orders.update_order(order.id, fulfillment=OrderFulfillment.CANCELLED)
        logger.info(f"Order {order.id} cancelled with Shiprocket ({carrier_order_id})")
        return ShipmentResult(success=True, data=response)

    # ==================== Returns ====================

    async def return_order(
        self,
        order_id: Any,
        reason: str,
        additional_info: Optional[str] = None,
    ) -> ShipmentResult:
        """
        Raise a return with Shiprocket and mark the order as RETURNING.

        Nothing is written locally unless Shiprocket accepts the return.

        Raises:
            ShiprocketAuthError: no valid token
            OrderNotFoundError: unknown order
            MissingCarrierOrderError: order was never submitted
            ReturnAssemblyError: Shiprocket's order detail is incomplete
            ShiprocketAPIError: Shiprocket rejected the lookup or the return
        """
        token = await self.token_cache.get_valid_token()
        order = await self._get_order(order_id, include_items=True)
        carrier_order_id = self._require_carrier_order_id(order)

        carrier_detail = await self.client.get_order(token, carrier_order_id)
        payload = build_return_payload(order, carrier_detail, self.return_destination)

        try:
            response = await self.client.create_return(token, payload)
        except ShiprocketAPIError as e:
            logger.error(f"Shiprocket return order error for {order.id}: {sanitize_for_logging(e.to_dict())}")
            raise

        await self.orders.update_order(
            order.id,
            return_reason=reason,
            return_additional_info=additional_info,
            fulfillment=OrderFulfillment.RETURNING,
        )
        logger.info(f"Return raised for order {order.id} ({carrier_order_id})")
        return ShipmentResult(success=True, data=response)


# Factory function for dependency injection
async def get_shipment_service(db: AsyncSession) -> ShipmentService:
    """Create shipment service instance."""
    return ShipmentService(db)
