from datetime import datetime

import pytest

from catchdeal.errors import PersistenceError
from catchdeal.models import TradeRecord
from catchdeal.storage import TradeStore


def _record(name, recorded_at, user_id="user-1"):
    return TradeRecord(
        user_id=user_id,
        product_name=name,
        buy_price=100000,
        sell_price=110000,
        link="https://www.coupang.com/np/products/1",
        recorded_at=recorded_at,
    )


def test_save_and_read_back(tmp_path):
    store = TradeStore(tmp_path / "nested" / "trades.db")
    store.init_db()
    store.save_trade(_record("older", datetime(2024, 5, 1, 9, 0)))
    store.save_trade(_record("newer", datetime(2024, 5, 2, 9, 0)))
    store.save_trade(_record("someone else", datetime(2024, 5, 3, 9, 0), user_id="user-2"))

    rows = store.recent_trades("user-1")
    assert [r["product_name"] for r in rows] == ["newer", "older"]
    assert rows[0]["status"] == "PURCHASED"
    assert rows[0]["sell_price"] == 110000
    assert len(store.recent_trades("user-1", limit=1)) == 1


def test_init_db_is_idempotent(tmp_path):
    store = TradeStore(tmp_path / "trades.db")
    store.init_db()
    store.init_db()
    assert store.recent_trades("nobody") == []


def test_unwritable_store_raises_persistence_error(tmp_path):
    store = TradeStore(tmp_path)
    with pytest.raises(PersistenceError):
        store.init_db()
    with pytest.raises(PersistenceError):
        store.save_trade(_record("x", datetime(2024, 5, 1)))


def test_db_path_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "env.db"))
    assert TradeStore().db_path == tmp_path / "env.db"


def test_unreadable_store_raises_persistence_error(tmp_path):
    with pytest.raises(PersistenceError):
        TradeStore(tmp_path).recent_trades("user-1")
