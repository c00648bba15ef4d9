"""
Cached Shiprocket bearer token.

The table holds at most one row. It is replaced wholesale on refresh, never
updated in place.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, Text, DateTime

from shiprocket_gateway.core.database import Base


class ShiprocketToken(Base):
    __tablename__ = "shiprocket_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
