import os
from datetime import datetime
from typing import Optional

import mysql.connector

from hedge_bot.database.base_database import BaseMySQLRepo


class Logger(BaseMySQLRepo):
    """
    Simple logger: prints to console in development, saves to DB otherwise.
    A failed DB write is printed instead, so logging never raises.
    """

    def __init__(self, env: Optional[str] = None):
        self.env = env or os.getenv("ENVIRONMENT", "development")
        if self.env != "development":
            super().__init__()  # initializes connection pool
            self._ensure_table()

    def _ensure_table(self):
        conn = self._get_conn()
        cursor = conn.cursor()
        try:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS logs (
                    timestamp TEXT,
                    level TEXT,
                    message TEXT
                )
                """
            )
            conn.commit()
        finally:
            cursor.close()
            conn.close()

    def log(self, message: str, level: str = "INFO"):
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        if self.env == "development":
            print(f"[{ts}] [{level}] {message}")
            return

        try:
            self._insert(ts, level, message)
        except mysql.connector.Error as e:
            print(f"[{ts}] [{level}] {message}")
            print(f"[{ts}] [ERROR] log write failed: {e}")

    def _insert(self, ts: str, level: str, message: str):
        conn = self._get_conn()
        cursor = conn.cursor()
        try:
            cursor.execute("INSERT INTO logs (timestamp, level, message) VALUES (%s, %s, %s)", (ts, level, message))
            conn.commit()
        finally:
            cursor.close()
            conn.close()
