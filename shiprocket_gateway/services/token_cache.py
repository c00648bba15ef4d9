"""
Shiprocket token cache with refresh policy.

A stored token younger than the refresh window is reused without a network
call. Anything older (or no token at all) triggers a login and a wholesale
replacement of the stored row.

Concurrent refreshes are not serialized: two callers may both log in and both
write. Every token written was issued by Shiprocket, so the last writer wins
and the table still ends up with one row.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from shiprocket_gateway.core.config import settings
from shiprocket_gateway.core.exceptions import ShiprocketAPIError, ShiprocketAuthError
from shiprocket_gateway.core.utils import as_utc, utcnow
from shiprocket_gateway.services.order_store import TokenStore
from shiprocket_gateway.services.shiprocket_client import ShiprocketClient

logger = logging.getLogger(__name__)


class TokenCache:
    """Hands out a bearer token that Shiprocket will still accept."""

    def __init__(
        self,
        store: TokenStore,
        client: ShiprocketClient,
        email: Optional[str] = None,
        password: Optional[str] = None,
        refresh_window: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.client = client
        self.email = email if email is not None else settings.SHIPROCKET_EMAIL
        self.password = password if password is not None else settings.SHIPROCKET_PASSWORD
        if refresh_window is None:
            refresh_window = timedelta(days=settings.SHIPROCKET_TOKEN_TTL_DAYS)
        self.refresh_window = refresh_window
        self._clock = clock

    def is_fresh(self, issued_at: datetime) -> bool:
        return self._clock() - as_utc(issued_at) < self.refresh_window

    async def get_valid_token(self) -> str:
        """
        Return a usable bearer token, logging in if the cached one is stale.

        Raises:
            ShiprocketAuthError: credentials missing or rejected, or no token issued
        """
        cached = await self.store.get_cached_token()
        if cached and cached.token and self.is_fresh(cached.created_at):
            return cached.token

        if cached:
            logger.info(f"Shiprocket token issued at {cached.created_at} is stale, refreshing")

        return await self._refresh()

    async def _refresh(self) -> str:
        if not self.email or not self.password:
            logger.error("Shiprocket credentials are not configured")
            raise ShiprocketAuthError(
                message="Shiprocket credentials are not configured",
                code="SHIPROCKET_CREDENTIALS_MISSING",
            )

        try:
            token = await self.client.login(self.email, self.password)
        except ShiprocketAPIError as e:
            logger.error(f"Shiprocket auth error: {e.carrier_status} - {e.carrier_message or e.message}")
            raise ShiprocketAuthError(
                message="Shiprocket rejected the login request",
                details={
                    "http_status": e.carrier_status,
                    "carrier_message": e.carrier_message,
                },
            ) from e

        if not token:
            raise ShiprocketAuthError(message="Shiprocket login returned no token")

        try:
            await self.store.replace_cached_token(token)
        except Exception as e:
            # The token is valid regardless; the next call will simply log in again
            logger.error(f"Failed to persist Shiprocket token, using in-memory token: {e}")

        return token
