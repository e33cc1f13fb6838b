"""SQLite-backed trade, balance and alert stores."""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog

from ..errors import PersistenceError
from ..notifications.models import AlertNotification
from ..state.models import AccountMode, Trade
from .stores import AlertStore, BalanceStore, TradeStore

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS trades (
        id TEXT PRIMARY KEY,
        account_mode TEXT NOT NULL,
        symbol TEXT NOT NULL,
        direction TEXT NOT NULL,
        stake REAL NOT NULL,
        entry_price REAL NOT NULL,
        duration_seconds INTEGER NOT NULL,
        opened_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        payout_rate REAL NOT NULL,
        status TEXT NOT NULL,
        closed_at TEXT,
        close_price REAL,
        profit_loss REAL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_trades_opened_at ON trades(opened_at)",
    "CREATE INDEX IF NOT EXISTS idx_trades_status ON trades(status)",
    """
    CREATE TABLE IF NOT EXISTS balances (
        account_id TEXT NOT NULL,
        mode TEXT NOT NULL,
        balance REAL NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (account_id, mode)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS alerts (
        id TEXT PRIMARY KEY,
        kind TEXT NOT NULL,
        severity TEXT NOT NULL,
        message TEXT NOT NULL,
        trade_id TEXT,
        symbol TEXT,
        read INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_alerts_created_at ON alerts(created_at)",
)

TRADE_COLUMNS = (
    "id", "account_mode", "symbol", "direction", "stake", "entry_price",
    "duration_seconds", "opened_at", "expires_at", "payout_rate", "status",
    "closed_at", "close_price", "profit_loss",
)


class SQLiteDatabase:
    """Shared connection handling for the SQLite stores."""

    def __init__(self, db_path: str = "tradedash.db"):
        self.db_path = Path(db_path)
        self.logger = structlog.get_logger(__name__).bind(db_path=str(self.db_path))
        self._lock = threading.Lock()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._get_connection("init_schema") as conn:
            for statement in SCHEMA:
                conn.execute(statement)
            conn.commit()

    @contextmanager
    def _get_connection(self, operation: str):
        """Open a connection; sqlite errors become PersistenceError."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            self.logger.error("Database error", operation=operation, error=str(e))
            raise PersistenceError(
                f"Database error during {operation}: {e}",
                operation=operation,
                target=str(self.db_path)
            ) from e
        finally:
            if conn:
                conn.close()


class SQLiteTradeStore(SQLiteDatabase, TradeStore):

    def create(self, trade: Trade) -> None:
        record = trade.to_record()
        placeholders = ", ".join("?" for _ in TRADE_COLUMNS)
        with self._lock, self._get_connection("create_trade") as conn:
            try:
                conn.execute(
                    f"INSERT INTO trades ({', '.join(TRADE_COLUMNS)}) VALUES ({placeholders})",
                    tuple(record[c] for c in TRADE_COLUMNS)
                )
            except sqlite3.IntegrityError as e:
                raise PersistenceError(
                    f"Trade {trade.id} already exists", operation="create_trade", target="trades"
                ) from e
            conn.commit()

        self.logger.info("Trade stored", trade_id=trade.id, status=trade.status.value)

    def update(self, trade: Trade) -> None:
        record = trade.to_record()
        assignments = ", ".join(f"{c} = ?" for c in TRADE_COLUMNS if c != "id")
        values = [record[c] for c in TRADE_COLUMNS if c != "id"]
        with self._lock, self._get_connection("update_trade") as conn:
            cursor = conn.execute(
                f"UPDATE trades SET {assignments} WHERE id = ?", (*values, trade.id)
            )
            if cursor.rowcount == 0:
                raise PersistenceError(
                    f"Trade {trade.id} not found", operation="update_trade", target="trades"
                )
            conn.commit()

        self.logger.info("Trade updated", trade_id=trade.id, status=trade.status.value)

    def get(self, trade_id: str) -> Optional[Trade]:
        with self._get_connection("get_trade") as conn:
            row = conn.execute("SELECT * FROM trades WHERE id = ?", (trade_id,)).fetchone()
        return Trade.from_record(dict(row)) if row else None

    def list_recent(self, limit: int = 20, account_mode: Optional[AccountMode] = None) -> list[Trade]:
        query = "SELECT * FROM trades"
        params: list[Any] = []
        if account_mode is not None:
            query += " WHERE account_mode = ?"
            params.append(account_mode.value)
        query += " ORDER BY opened_at DESC LIMIT ?"
        params.append(limit)

        with self._get_connection("list_trades") as conn:
            rows = conn.execute(query, params).fetchall()
        return [Trade.from_record(dict(row)) for row in rows]


class SQLiteBalanceStore(SQLiteDatabase, BalanceStore):

    def load(self, account_id: str, mode: AccountMode) -> Optional[float]:
        with self._get_connection("load_balance") as conn:
            row = conn.execute(
                "SELECT balance FROM balances WHERE account_id = ? AND mode = ?",
                (account_id, mode.value)
            ).fetchone()
        return float(row["balance"]) if row else None

    def save(self, account_id: str, mode: AccountMode, balance: float) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock, self._get_connection("save_balance") as conn:
            conn.execute("""
                INSERT INTO balances (account_id, mode, balance, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(account_id, mode) DO UPDATE SET
                    balance = excluded.balance,
                    updated_at = excluded.updated_at
            """, (account_id, mode.value, balance, now))
            conn.commit()


class SQLiteAlertStore(SQLiteDatabase, AlertStore):

    def insert(self, alert: AlertNotification) -> None:
        record = alert.to_record()
        with self._lock, self._get_connection("insert_alert") as conn:
            try:
                conn.execute("""
                    INSERT INTO alerts (id, kind, severity, message, trade_id, symbol, read, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    record["id"], record["kind"], record["severity"], record["message"],
                    record["trade_id"], record["symbol"], int(record["read"]), record["created_at"]
                ))
            except sqlite3.IntegrityError as e:
                raise PersistenceError(
                    f"Alert {alert.id} already exists", operation="insert_alert", target="alerts"
                ) from e
            conn.commit()

    def list(self, limit: int = 50, unread_only: bool = False) -> list[AlertNotification]:
        query = "SELECT * FROM alerts"
        if unread_only:
            query += " WHERE read = 0"
        query += " ORDER BY created_at DESC LIMIT ?"

        with self._get_connection("list_alerts") as conn:
            rows = conn.execute(query, (limit,)).fetchall()
        return [AlertNotification.from_record(dict(row)) for row in rows]

    def mark_read(self, alert_id: str) -> bool:
        with self._lock, self._get_connection("mark_alert_read") as conn:
            cursor = conn.execute("UPDATE alerts SET read = 1 WHERE id = ?", (alert_id,))
            conn.commit()
            return cursor.rowcount > 0
