import json
from typing import Any, Dict

import mysql.connector

from hedge_bot.database.base_database import BaseMySQLRepo
from hedge_bot.dataclass.position import Position
from hedge_bot.errors import PersistenceError
from hedge_bot.interface.collaborators import IPositionStore


def position_to_row(symbol: str, position: Position) -> Dict[str, Any]:
    return {
        "symbol": symbol,
        "role": position.role,
        "side": position.side,
        "entry_price": position.entry_price,
        "qty": position.qty,
        "level": position.level,
        "stop_loss": position.stop_loss,
        "opened_at_ms": position.opened_at,
        "breakthrough_price": position.breakthrough_price,
        "meta_json": json.dumps(position.meta or {}),
    }


def row_to_position(row: Dict[str, Any]) -> Position:
    meta = row.get("meta_json")
    return Position(
        symbol=row["symbol"],
        side=row["side"],
        entry_price=float(row["entry_price"]),
        qty=float(row["qty"]),
        role=row["role"],
        level=int(row.get("level") or 0),
        stop_loss=float(row["stop_loss"]) if row.get("stop_loss") is not None else None,
        opened_at=int(row.get("opened_at_ms") or 0),
        breakthrough_price=float(row["breakthrough_price"]) if row.get("breakthrough_price") is not None else None,
        meta=json.loads(meta) if meta else {},
    )


class TradePositions(BaseMySQLRepo, IPositionStore):
    """
    Open Main / Hedge positions, at most one row per (symbol, role).
    """

    def __init__(self, symbol: str):
        super().__init__()
        self.symbol = symbol
        conn = self._get_conn()
        cursor = conn.cursor()
        try:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS trade_positions (
                    symbol             VARCHAR(64) NOT NULL,
                    role               VARCHAR(8)  NOT NULL,   -- 'MAIN', 'HEDGE'
                    side               VARCHAR(8)  NOT NULL,   -- 'Buy', 'Sell'
                    entry_price        DECIMAL(18,8) NOT NULL,
                    qty                DECIMAL(18,8) NOT NULL,
                    level              INT NOT NULL DEFAULT 0,
                    stop_loss          DECIMAL(18,8) NULL,
                    opened_at_ms       BIGINT NOT NULL,
                    breakthrough_price DECIMAL(18,8) NULL,
                    meta_json          TEXT NULL,
                    update_date        DATETIME DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
                    PRIMARY KEY (symbol, role)
                )   ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
                """
            )
            conn.commit()
        finally:
            cursor.close()
            conn.close()

    def save_position(self, position: Position) -> None:
        try:
            conn = self._get_conn()
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    REPLACE INTO trade_positions (
                        symbol, role, side, entry_price, qty, level, stop_loss,
                        opened_at_ms, breakthrough_price, meta_json
                    ) VALUES (
                        %(symbol)s, %(role)s, %(side)s, %(entry_price)s, %(qty)s, %(level)s, %(stop_loss)s,
                        %(opened_at_ms)s, %(breakthrough_price)s, %(meta_json)s
                    )
                    """,
                    position_to_row(self.symbol, position),
                )
                conn.commit()
            finally:
                cursor.close()
                conn.close()
        except mysql.connector.Error as e:
            raise PersistenceError("trade_positions", f"save error: {e}") from e

    def clear_position(self, role: str) -> None:
        self._execute("DELETE FROM trade_positions WHERE symbol = %s AND role = %s", (self.symbol, role), "clear")

    def clear_all(self) -> None:
        self._execute("DELETE FROM trade_positions WHERE symbol = %s", (self.symbol,), "clear_all")

    def load_positions(self) -> Dict[str, Position]:
        try:
            conn = self._get_conn()
            cursor = conn.cursor(dictionary=True)
            try:
                cursor.execute("SELECT * FROM trade_positions WHERE symbol = %s", (self.symbol,))
                rows = cursor.fetchall()
            finally:
                cursor.close()
                conn.close()
        except mysql.connector.Error as e:
            raise PersistenceError("trade_positions", f"load error: {e}") from e

        return {row["role"]: row_to_position(row) for row in rows}

    def _execute(self, sql: str, params: tuple, action: str) -> int:
        try:
            conn = self._get_conn()
            cursor = conn.cursor()
            try:
                cursor.execute(sql, params)
                conn.commit()
                return cursor.rowcount
            finally:
                cursor.close()
                conn.close()
        except mysql.connector.Error as e:
            raise PersistenceError("trade_positions", f"{action} error: {e}") from e
