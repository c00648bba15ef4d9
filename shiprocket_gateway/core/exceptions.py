"""
Shiprocket Gateway Exception Hierarchy

All exceptions include code, message, and details for audit trail and
debugging. ``http_status`` is the status a routing layer should answer with.

Exception Hierarchy:
    GatewayError
    ├── ShiprocketError
    │   ├── ShiprocketAuthError
    │   └── ShiprocketAPIError
    ├── PayloadValidationError
    │   └── ReturnAssemblyError
    └── OrderError
        ├── OrderNotFoundError
        └── MissingCarrierOrderError
"""
import logging
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """
    Base exception for all gateway errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        severity: P0-P3 severity level
    """

    default_code: str = "GATEWAY_ERROR"
    default_severity: str = "P2"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# SHIPROCKET ERRORS
# =============================================================================

class ShiprocketError(GatewayError):
    """Base exception for Shiprocket integration errors."""
    default_code = "SHIPROCKET_ERROR"
    default_severity = "P1"
    http_status = 502


class ShiprocketAuthError(ShiprocketError):
    """No valid Shiprocket token could be obtained."""
    default_code = "SHIPROCKET_UNAUTHORIZED"
    default_severity = "P0"  # Nothing can ship without a token
    http_status = 401


class ShiprocketAPIError(ShiprocketError):
    """Shiprocket answered with a non-2xx or malformed response, or never answered."""
    default_code = "SHIPROCKET_API_ERROR"

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        carrier_message: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "http_status": http_status,
            "carrier_message": carrier_message,
        })
        super().__init__(message, details=details, **kwargs)
        self.carrier_status = http_status
        self.carrier_message = carrier_message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class PayloadValidationError(GatewayError):
    """Outbound payload failed schema validation."""
    default_code = "INVALID_PAYLOAD"
    default_severity = "P3"
    http_status = 400

    def __init__(
        self,
        message: str,
        reasons: Optional[List[str]] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["reasons"] = reasons or []
        super().__init__(message, details=details, **kwargs)
        self.reasons = reasons or []


class ReturnAssemblyError(PayloadValidationError):
    """Carrier order detail is missing fields needed to build a return."""
    default_code = "RETURN_ASSEMBLY_FAILED"
    default_severity = "P2"


# =============================================================================
# ORDER ERRORS
# =============================================================================

class OrderError(GatewayError):
    """Base exception for local order lookups."""
    default_code = "ORDER_ERROR"
    http_status = 400


class OrderNotFoundError(OrderError):
    """Order does not exist in the local store."""
    default_code = "ORDER_NOT_FOUND"
    default_severity = "P3"
    http_status = 404

    def __init__(self, message: str, order_id: Optional[Any] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["order_id"] = order_id
        super().__init__(message, details=details, **kwargs)


class MissingCarrierOrderError(OrderError):
    """Order was never submitted to Shiprocket, so it has no carrier order id."""
    default_code = "CARRIER_ORDER_MISSING"
    http_status = 409

    def __init__(self, message: str, order_id: Optional[Any] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["order_id"] = order_id
        super().__init__(message, details=details, **kwargs)
