"""
Tests for order and token persistence.
"""
from unittest.mock import MagicMock

import pytest
from sqlalchemy.sql.dml import Delete, Update

from shiprocket_gateway.core.exceptions import OrderNotFoundError
from shiprocket_gateway.models.order import OrderFulfillment
from shiprocket_gateway.models.shiprocket_token import ShiprocketToken
from shiprocket_gateway.services.order_store import OrderStore, TokenStore


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


class TestOrderStore:
    """Test OrderStore queries and patches."""

    @pytest.mark.asyncio
    async def test_find_order_by_id(self, mock_db, sample_order):
        mock_db.execute.return_value = _result(sample_order)

        order = await OrderStore(mock_db).find_order_by_id("ord-1001")

        assert order is sample_order
        mock_db.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_find_missing_order(self, mock_db):
        mock_db.execute.return_value = _result(None)

        assert await OrderStore(mock_db).find_order_by_id(404) is None

    @pytest.mark.asyncio
    async def test_update_order_commits_single_statement(self, mock_db):
        await OrderStore(mock_db).update_order(
            "ord-1001", shiprocket_order_id="552233", fulfillment=OrderFulfillment.SHIPPED
        )

        statement = mock_db.execute.call_args.args[0]
        assert isinstance(statement, Update)
        assert mock_db.execute.await_count == 1
        mock_db.commit.assert_awaited_once()
        mock_db.rollback.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_order_unknown_order(self, mock_db):
        """Test an UPDATE matching no row is reported, not committed."""
        result = MagicMock()
        result.rowcount = 0
        mock_db.execute.return_value = result

        with pytest.raises(OrderNotFoundError):
            await OrderStore(mock_db).update_order("no-such-order", fulfillment=OrderFulfillment.SHIPPED)

        mock_db.commit.assert_not_called()
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_order_rolls_back_on_failure(self, mock_db):
        mock_db.execute.side_effect = RuntimeError("connection lost")

        with pytest.raises(RuntimeError):
            await OrderStore(mock_db).update_order("ord-1001", fulfillment=OrderFulfillment.CANCELLED)

        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_called()


class TestTokenStore:
    """Test the single-row token table."""

    @pytest.mark.asyncio
    async def test_get_cached_token(self, mock_db):
        row = ShiprocketToken(token="tok-abc")
        mock_db.execute.return_value = _result(row)

        assert await TokenStore(mock_db).get_cached_token() is row

    @pytest.mark.asyncio
    async def test_replace_deletes_then_inserts_in_one_commit(self, mock_db):
        calls = []
        mock_db.execute.side_effect = lambda statement: calls.append(("execute", statement))
        mock_db.add.side_effect = lambda row: calls.append(("add", row))
        mock_db.commit.side_effect = lambda: calls.append(("commit", None))

        row = await TokenStore(mock_db).replace_cached_token("tok-new")

        assert [name for name, _ in calls] == ["execute", "add", "commit"]
        assert isinstance(calls[0][1], Delete)
        assert calls[1][1] is row
        assert row.token == "tok-new"
        assert row.created_at is not None

    @pytest.mark.asyncio
    async def test_replace_rolls_back_on_failure(self, mock_db):
        mock_db.commit.side_effect = RuntimeError("disk full")

        with pytest.raises(RuntimeError):
            await TokenStore(mock_db).replace_cached_token("tok-new")

        mock_db.rollback.assert_awaited_once()
