from typing import Any, Dict, List

from hedge_bot.database.base_database import BaseMySQLRepo


class FuturesOrders(BaseMySQLRepo):
    """
    Log of every open / close order sent for the Main and Hedge positions.
    """

    COLUMNS = [
        "order_id",
        "env",
        "symbol",
        "role",
        "action",
        "side",
        "qty",
        "price",
        "avg_price",
        "status",
        "realized_pnl",
        "time",
    ]

    def __init__(self) -> None:
        super().__init__()
        conn = self._get_conn()
        cursor = conn.cursor()
        try:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS `futures_orders` (
                    `id` INT AUTO_INCREMENT PRIMARY KEY,
                    `order_id` VARCHAR(64) NOT NULL,                  -- exchange id / paper id
                    `env` VARCHAR(16) NOT NULL,                       -- 'live', 'forward_test', 'backtest'
                    `symbol` VARCHAR(64) NOT NULL,
                    `role` VARCHAR(8) NOT NULL,                       -- 'MAIN', 'HEDGE'
                    `action` VARCHAR(8) NOT NULL,                     -- 'OPEN', 'CLOSE'
                    `side` VARCHAR(8) NOT NULL,                       -- side of the position: Buy / Sell
                    `qty` DECIMAL(18,8) NOT NULL,
                    `price` DECIMAL(18,8) NOT NULL DEFAULT 0,         -- tick price at decision time
                    `avg_price` DECIMAL(18,8) NOT NULL DEFAULT 0,     -- fill price reported by the exchange
                    `status` VARCHAR(32) NOT NULL,
                    `realized_pnl` DECIMAL(18,8) NOT NULL DEFAULT 0,
                    `time` BIGINT NOT NULL,
                    `create_date` datetime DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

            cursor.execute(
                """
                SELECT COUNT(1) FROM INFORMATION_SCHEMA.STATISTICS
                WHERE TABLE_SCHEMA = DATABASE()
                AND TABLE_NAME = 'futures_orders'
                AND INDEX_NAME = 'idx_futures_orders_symbol';
            """
            )

            if cursor.fetchone()[0] == 0:
                cursor.execute("CREATE INDEX idx_futures_orders_symbol ON futures_orders(symbol)")

            conn.commit()
        finally:
            cursor.close()
            conn.close()

    def create_order(self, data: Dict[str, Any]) -> int:
        """
        Insert a new order row. Returns the internal row id.
        """
        placeholders = ", ".join("%s" for _ in self.COLUMNS)
        values = [data.get(col) for col in self.COLUMNS]

        conn = self._get_conn()
        cursor = conn.cursor()
        try:
            cursor.execute(
                f"INSERT INTO futures_orders ({', '.join(self.COLUMNS)}) VALUES ({placeholders})",
                values,
            )
            conn.commit()
            return cursor.lastrowid
        finally:
            cursor.close()
            conn.close()

    def get_orders(self, symbol: str, limit: int = 50) -> List[Dict[str, Any]]:
        conn = self._get_conn()
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(
                "SELECT * FROM futures_orders WHERE symbol = %s ORDER BY id DESC LIMIT %s",
                (symbol, int(limit)),
            )
            return cursor.fetchall()
        finally:
            cursor.close()
            conn.close()
