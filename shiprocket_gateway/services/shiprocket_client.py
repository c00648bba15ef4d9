"""
Shiprocket API Client

Stateless wrapper around the Shiprocket external API:
- Login (email/password -> bearer token)
- Pickup location listing
- Adhoc order creation and cancellation
- Order detail lookup
- Return order creation

Token caching lives in TokenCache; every authenticated call here takes the
bearer token explicitly. All failures surface as ShiprocketAPIError.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import httpx

from shiprocket_gateway.core.config import settings
from shiprocket_gateway.core.exceptions import ShiprocketAPIError
from shiprocket_gateway.core.http_client import ResilientHTTPClient, get_shiprocket_http_client
from shiprocket_gateway.core.utils import sanitize_for_logging

logger = logging.getLogger(__name__)

# API endpoints
LOGIN_PATH = "/auth/login"
LOCATIONS_PATH = "/settings/company/locations"
CREATE_ORDER_PATH = "/orders/create/adhoc"
CANCEL_ORDER_PATH = "/orders/cancel"
SHOW_ORDER_PATH = "/orders/show/{order_id}"
CREATE_RETURN_PATH = "/orders/create/return"


@dataclass
class ShiprocketOrderResult:
    """Result of creating an adhoc order."""
    carrier_order_id: str
    shipment_id: Optional[str] = None
    status: Optional[str] = None
    raw: Dict = field(default_factory=dict)


def _extract_carrier_message(body: Any, fallback: str) -> str:
    """Pull the most specific human-readable message out of an error body."""
    if isinstance(body, dict):
        message = body.get("message")
        if message:
            return str(message)
        errors = body.get("errors")
        if isinstance(errors, dict) and errors:
            first = next(iter(errors.values()))
            if isinstance(first, list) and first:
                return str(first[0])
            return str(first)
        if isinstance(errors, list) and errors:
            return str(errors[0])
    return fallback[:500] if fallback else "Shiprocket API error"


class ShiprocketClient:
    """
    Shiprocket API client.

    The underlying ResilientHTTPClient applies a bounded timeout to every call
    and never retries POSTs.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[ResilientHTTPClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.SHIPROCKET_API_BASE).rstrip("/")
        self._http = http_client or get_shiprocket_http_client(
            timeout or settings.SHIPROCKET_TIMEOUT_SECONDS
        )

    async def close(self):
        """Close HTTP client."""
        await self._http.close()

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _make_request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        data: Optional[Dict] = None,
    ) -> Any:
        """Make an API request and return the parsed JSON body."""
        url = f"{self.base_url}{path}"

        try:
            if method.upper() == "GET":
                response = await self._http.get(url, headers=self._headers(token))
            elif method.upper() == "POST":
                response = await self._http.post(url, headers=self._headers(token), json=data)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")
        except httpx.TimeoutException as e:
            logger.error(f"Shiprocket {method} {path} timed out: {e}")
            raise ShiprocketAPIError(
                message=f"Shiprocket request timed out: {method} {path}",
                code="TIMEOUT",
            )
        except httpx.RequestError as e:
            logger.error(f"Shiprocket {method} {path} request failed: {e}")
            raise ShiprocketAPIError(
                message=f"Network error talking to Shiprocket: {e}",
                code="NETWORK_ERROR",
            )

        logger.debug(f"Shiprocket API {method} {path} -> {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            carrier_message = _extract_carrier_message(body, response.text)
            logger.error(
                f"Shiprocket API error: {response.status_code} on {method} {path} - "
                f"{sanitize_for_logging(carrier_message)}"
            )
            raise ShiprocketAPIError(
                message=f"Shiprocket rejected {method} {path}: {carrier_message}",
                http_status=response.status_code,
                carrier_message=carrier_message,
                details={"response": body if body is not None else response.text[:500]},
            )

        if body is None:
            logger.error(f"Shiprocket API {method} {path} returned non-JSON body")
            raise ShiprocketAPIError(
                message=f"Malformed response from Shiprocket on {method} {path}",
                http_status=response.status_code,
                carrier_message=response.text[:500],
                code="MALFORMED_RESPONSE",
            )

        return body

    # ==================== Authentication ====================

    async def login(self, email: str, password: str) -> Optional[str]:
        """
        Exchange API user credentials for a bearer token.

        Returns None when Shiprocket answers 2xx without a token.
        """
        body = await self._make_request("POST", LOGIN_PATH, data={"email": email, "password": password})

        token = None
        if isinstance(body, dict):
            token = body.get("token")
            if not token and isinstance(body.get("data"), dict):
                token = body["data"].get("token")

        if not token:
            logger.warning("Shiprocket login succeeded without returning a token")
            return None

        logger.info("Shiprocket token obtained")
        return token

    # ==================== Pickup Locations ====================

    async def list_pickup_locations(self, token: str) -> List[Dict]:
        """List the company's configured pickup locations."""
        body = await self._make_request("GET", LOCATIONS_PATH, token=token)

        data = body.get("data") if isinstance(body, dict) else None
        if isinstance(data, dict):
            # Newer accounts nest the list under data.shipping_address
            data = data.get("shipping_address")

        if data is None:
            return []
        if not isinstance(data, list):
            raise ShiprocketAPIError(
                message="Malformed pickup location list from Shiprocket",
                carrier_message=sanitize_for_logging(body),
                code="MALFORMED_RESPONSE",
            )
        return data

    # ==================== Orders ====================

    async def create_order(self, token: str, payload: Dict) -> ShiprocketOrderResult:
        """Create an adhoc order. Sent exactly once."""
        logger.debug(f"Shiprocket create order payload: {sanitize_for_logging(payload)}")
        body = await self._make_request("POST", CREATE_ORDER_PATH, token=token, data=payload)

        carrier_order_id = body.get("order_id") if isinstance(body, dict) else None
        if carrier_order_id is None:
            carrier_message = _extract_carrier_message(body, "Shiprocket did not return an order_id")
            logger.error(f"Shiprocket create order returned no order_id: {sanitize_for_logging(body)}")
            raise ShiprocketAPIError(
                message="Shiprocket did not return an order_id",
                carrier_message=carrier_message,
                code="MALFORMED_RESPONSE",
                details={"response": body},
            )

        shipment_id = body.get("shipment_id")
        logger.info(f"Shiprocket order created: {carrier_order_id}")
        return ShiprocketOrderResult(
            carrier_order_id=str(carrier_order_id),
            shipment_id=str(shipment_id) if shipment_id is not None else None,
            status=body.get("status"),
            raw=body,
        )

    async def cancel_order(self, token: str, carrier_order_ids: List[Union[int, str]]) -> Dict:
        """Cancel one or more Shiprocket orders by carrier order id."""
        body = await self._make_request("POST", CANCEL_ORDER_PATH, token=token, data={"ids": carrier_order_ids})
        logger.info(f"Shiprocket orders cancelled: {carrier_order_ids}")
        return body

    async def get_order(self, token: str, carrier_order_id: Union[int, str]) -> Dict:
        """Fetch full order detail, including customer and shipment dimensions."""
        return await self._make_request("GET", SHOW_ORDER_PATH.format(order_id=carrier_order_id), token=token)

    async def create_return(self, token: str, payload: Dict) -> Dict:
        """Create a return order. Sent exactly once."""
        logger.debug(f"Shiprocket create return payload: {sanitize_for_logging(payload)}")
        body = await self._make_request("POST", CREATE_RETURN_PATH, token=token, data=payload)
        logger.info(f"Shiprocket return created for order {payload.get('order_id')}")
        return body
