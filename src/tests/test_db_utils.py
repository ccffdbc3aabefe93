import sys
import os
from datetime import datetime, timezone

# --- Add src directory to sys.path ---
src_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

import pytest

from db_utils import (
    SqliteTradeSource,
    add_trade_to_db,
    delete_trade_from_db,
    initialize_database,
    load_all_trades_from_db,
)
from errors import UpstreamFailureError
from models import TradeSide


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "ledger" / "trades.db")


@pytest.fixture
def conn(db_path):
    connection = initialize_database(db_path)
    yield connection
    connection.close()


def _trade_row(**overrides):
    row = {
        "TradeId": "T1",
        "Ticker": "AAPL",
        "Side": "Buy",
        "Quantity": 10,
        "Price": 150.0,
        "Fx": 1.35,
        "TradeDate": "2023-01-01T00:00:00Z",
        "Book": "Growth",
    }
    row.update(overrides)
    return row


def test_initialize_creates_tables(conn):
    tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"trades", "schema_version"} <= tables
    assert conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0] == 1


def test_add_and_load_trades(conn):
    ok, new_id = add_trade_to_db(conn, _trade_row())
    assert ok and new_id == 1
    ok, _ = add_trade_to_db(
        conn,
        _trade_row(
            TradeId=None,
            Side="SELL",
            Quantity=4,
            Fx=None,
            TradeDate=datetime(2023, 6, 1, tzinfo=timezone.utc),
            Book=None,
        ),
    )
    assert ok

    df = load_all_trades_from_db(conn)
    assert len(df) == 2
    assert df["Side"].tolist() == ["buy", "sell"]
    assert df["Fx"].tolist() == [1.35, 1.0]
    assert df["TradeDate"].iloc[1] == "2023-06-01T00:00:00+0000"


@pytest.mark.parametrize(
    "overrides", [{"TradeDate": "01/01/2023"}, {"Side": "short"}]
)
def test_add_rejects_invalid_rows(conn, overrides):
    ok, new_id = add_trade_to_db(conn, _trade_row(**overrides))
    assert (ok, new_id) == (False, None)


def test_delete_trade(conn):
    _, new_id = add_trade_to_db(conn, _trade_row())
    assert delete_trade_from_db(conn, new_id)
    assert not delete_trade_from_db(conn, new_id)


def test_sqlite_trade_source(conn, db_path):
    add_trade_to_db(conn, _trade_row())
    add_trade_to_db(conn, _trade_row(TradeId=None, Side="sell", Quantity=4, Book=None))

    trades = SqliteTradeSource(db_path).get_trades()
    assert len(trades) == 2
    first, second = trades
    assert (first.ticker, first.side, first.quantity, first.price, first.fx) == ("AAPL", TradeSide.BUY, 10.0, 150.0, 1.35)
    assert first.book == "Growth"
    assert first.trade_id == "T1"
    assert second.side == TradeSide.SELL
    assert second.book == ""
    assert second.trade_id is None


def test_sqlite_trade_source_unreadable(tmp_path):
    directory = tmp_path / "not_a_file"
    directory.mkdir()
    with pytest.raises(UpstreamFailureError):
        SqliteTradeSource(str(directory)).get_trades()
