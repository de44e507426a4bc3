import json
from typing import Any, Dict, Optional

import mysql.connector

from hedge_bot.database.base_database import BaseMySQLRepo
from hedge_bot.errors import PersistenceError
from hedge_bot.interface.collaborators import IBoundaryStore


class BoundaryState(BaseMySQLRepo, IBoundaryStore):
    """
    Persists the boundary band (one row per symbol) so the bot can resume after restart.
    """

    def __init__(self, symbol: str):
        super().__init__()
        self.symbol = symbol
        conn = self._get_conn()
        cursor = conn.cursor()
        try:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS `boundary_state` (
                    `symbol` varchar(64) NOT NULL PRIMARY KEY,
                    `top` decimal(18, 8) NULL,
                    `bottom` decimal(18, 8) NULL,
                    `trailing_boundary` TEXT NULL,             -- legacy field, stored as json
                    `create_date` datetime DEFAULT CURRENT_TIMESTAMP,
                    `update_date` datetime DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP
                )
                """
            )
            conn.commit()
        finally:
            cursor.close()
            conn.close()

    def save(self, state: Dict[str, Any]) -> None:
        boundaries = state.get("boundaries") or {}
        entry = {
            "symbol": self.symbol,
            "top": boundaries.get("top"),
            "bottom": boundaries.get("bottom"),
            "trailing_boundary": json.dumps(state.get("trailing_boundary")),
        }
        try:
            conn = self._get_conn()
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    INSERT INTO boundary_state (symbol, top, bottom, trailing_boundary)
                    VALUES (%(symbol)s, %(top)s, %(bottom)s, %(trailing_boundary)s)
                    ON DUPLICATE KEY UPDATE
                        top               = VALUES(top),
                        bottom            = VALUES(bottom),
                        trailing_boundary = VALUES(trailing_boundary);
                    """,
                    entry,
                )
                conn.commit()
            finally:
                cursor.close()
                conn.close()
        except mysql.connector.Error as e:
            raise PersistenceError("boundary_state", f"save error: {e}") from e

    def load(self) -> Optional[Dict[str, Any]]:
        try:
            conn = self._get_conn()
            cursor = conn.cursor(dictionary=True)
            try:
                cursor.execute("SELECT * FROM boundary_state WHERE symbol = %s", (self.symbol,))
                row = cursor.fetchone()
            finally:
                cursor.close()
                conn.close()
        except mysql.connector.Error as e:
            raise PersistenceError("boundary_state", f"load error: {e}") from e

        if not row:
            return None

        trailing = row.get("trailing_boundary")
        return {
            "trailing_boundary": json.loads(trailing) if trailing else None,
            "boundaries": {
                "top": float(row["top"]) if row.get("top") is not None else None,
                "bottom": float(row["bottom"]) if row.get("bottom") is not None else None,
            },
        }

    def clear(self) -> None:
        try:
            conn = self._get_conn()
            cursor = conn.cursor()
            try:
                cursor.execute("DELETE FROM boundary_state WHERE symbol = %s", (self.symbol,))
                conn.commit()
            finally:
                cursor.close()
                conn.close()
        except mysql.connector.Error as e:
            raise PersistenceError("boundary_state", f"clear error: {e}") from e
