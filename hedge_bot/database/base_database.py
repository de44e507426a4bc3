import os
from dotenv import load_dotenv
from mysql.connector import pooling

load_dotenv()


class BaseMySQLRepo:
    """
    Shared connection pool for the bot's tables (boundary_state, trade_positions,
    futures_orders, logs). Settings come from the DB_* keys in .env.
    """

    _pool = None

    def __init__(self, **db_kwargs):
        db_config = {
            "host": os.getenv("DB_HOST", "localhost"),
            "user": os.getenv("DB_USER", "root"),
            "password": os.getenv("DB_PASSWORD", ""),
            "database": os.getenv("DB_NAME", "hedge_bot"),
            "port": int(os.getenv("DB_PORT", 3306)),
        }
        # kwargs win, so tests can point at a scratch schema
        db_config.update(db_kwargs)
        self.config = db_config

        if not BaseMySQLRepo._pool:
            BaseMySQLRepo._pool = pooling.MySQLConnectionPool(
                pool_name=os.getenv("DB_POOL_NAME", "hedge_bot_pool"),
                pool_size=int(os.getenv("DB_POOL_SIZE", 5)),
                pool_reset_session=True,
                **self.config
            )

    def _get_conn(self):
        """Get pooled connection"""
        return BaseMySQLRepo._pool.get_connection()
