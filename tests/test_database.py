"""
Tests for database session management.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from shiprocket_gateway.core import database


@pytest.fixture
def session_factory():
    """Stand-in for AsyncSessionLocal yielding one mock session."""
    session = AsyncMock()
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=session)
    context.__aexit__ = AsyncMock(return_value=False)
    factory = MagicMock(return_value=context)
    return factory, session


class TestGetDbSession:

    @pytest.mark.asyncio
    async def test_commits_and_closes(self, session_factory):
        factory, session = session_factory

        with patch.object(database, "AsyncSessionLocal", factory):
            async with database.get_db_session() as db:
                assert db is session

        session.commit.assert_awaited_once()
        session.rollback.assert_not_called()
        session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self, session_factory):
        factory, session = session_factory

        with patch.object(database, "AsyncSessionLocal", factory):
            with pytest.raises(RuntimeError):
                async with database.get_db_session():
                    raise RuntimeError("boom")

        session.rollback.assert_awaited_once()
        session.commit.assert_not_called()
        session.close.assert_awaited_once()
