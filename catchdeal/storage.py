"""SQLite persistence for completed trades."""

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from catchdeal.errors import PersistenceError
from catchdeal.models import TradeRecord


def get_db_path() -> Path:
    """Get database path from env or default."""
    return Path(os.environ.get("DB_PATH", "data/trades.db"))


class TradeStore:
    """Completed-transaction log backed by one sqlite file."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    @contextmanager
    def connection(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        try:
            self._create_tables()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"trade log unavailable: {e}") from e

    def _create_tables(self) -> None:
        with self.connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS trade_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    product_name TEXT NOT NULL,
                    buy_price INTEGER NOT NULL,
                    sell_price INTEGER NOT NULL,
                    link TEXT NOT NULL,
                    status TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_user_created
                ON trade_logs(user_id, created_at)
            """)

    def save_trade(self, record: TradeRecord) -> None:
        """Insert one record; any sqlite failure surfaces as PersistenceError."""
        try:
            with self.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO trade_logs (user_id, product_name, buy_price, sell_price, link, status, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.user_id,
                        record.product_name,
                        record.buy_price,
                        record.sell_price,
                        record.link,
                        record.status,
                        record.recorded_at.isoformat(),
                    ),
                )
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"trade log write failed: {e}") from e

    def recent_trades(self, user_id: str, limit: int = 100) -> list[dict]:
        """Most recent trades for a user, newest first."""
        try:
            with self.connection() as conn:
                rows = conn.execute(
                    """
                    SELECT * FROM trade_logs
                    WHERE user_id = ?
                    ORDER BY created_at DESC, id DESC LIMIT ?
                    """,
                    (user_id, limit),
                ).fetchall()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"trade log read failed: {e}") from e
        return [dict(row) for row in rows]
