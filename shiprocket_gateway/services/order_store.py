"""
Persistence access for the shipping gateway.

OrderStore reads orders and applies single-row patches; TokenStore keeps the
one cached Shiprocket token. Both commit their own writes so a patch is
all-or-nothing for the row it touches.
"""
import logging
from typing import Any, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shiprocket_gateway.models.order import Order
from shiprocket_gateway.models.shiprocket_token import ShiprocketToken
from shiprocket_gateway.core.utils import utcnow
from shiprocket_gateway.core.exceptions import OrderNotFoundError

logger = logging.getLogger(__name__)


class OrderStore:
    """Read-then-write access to orders owned by the order-management subsystem."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_order_by_id(self, order_id: Any, include_items: bool = False) -> Optional[Order]:
        query = select(Order).where(Order.id == str(order_id))
        if include_items:
            query = query.options(selectinload(Order.items))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def update_order(self, order_id: Any, **patch) -> None:
        """
        Apply patch to a single order in one statement and commit it.

        Raises OrderNotFoundError when no row matched.
        """
        try:
            result = await self.db.execute(
                update(Order)
                .where(Order.id == str(order_id))
                .values(updated_at=utcnow(), **patch)
            )
            if result.rowcount == 0:
                raise OrderNotFoundError(message=f"Order {order_id} not found", order_id=order_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise


class TokenStore:
    """Storage for the single cached Shiprocket bearer token."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_cached_token(self) -> Optional[ShiprocketToken]:
        result = await self.db.execute(
            select(ShiprocketToken).order_by(ShiprocketToken.created_at.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def replace_cached_token(self, token: str) -> ShiprocketToken:
        """Delete every stored token and insert the new one in a single commit."""
        row = ShiprocketToken(token=token, created_at=utcnow())
        try:
            await self.db.execute(delete(ShiprocketToken))
            self.db.add(row)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return row
