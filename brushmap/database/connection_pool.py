"""Database connection pooling for the PostGIS boundary store"""

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor
from contextlib import contextmanager
from typing import Optional
import structlog
import threading

from brushmap.config.settings import settings
from brushmap.utils.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

class DatabasePool:
    """Thread-safe connection pool for PostgreSQL, created on first use"""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not hasattr(self, '_initialized'):
            self._initialized = True
            self._pool = None

    def _ensure_pool(self):
        if self._pool is not None:
            return self._pool

        with self._lock:
            if self._pool is None:
                if not settings.DATABASE_URL:
                    raise ConfigurationError("DATABASE_URL is not configured")

                try:
                    self._pool = psycopg2.pool.ThreadedConnectionPool(
                        minconn=settings.DB_MIN_CONNECTIONS,
                        maxconn=settings.DB_MAX_CONNECTIONS,
                        dsn=settings.DATABASE_URL,
                        cursor_factory=RealDictCursor
                    )
                    logger.info("Database connection pool created",
                                min_connections=settings.DB_MIN_CONNECTIONS,
                                max_connections=settings.DB_MAX_CONNECTIONS)
                except psycopg2.Error as e:
                    logger.error("Failed to create connection pool", error=str(e))
                    raise
        return self._pool

    @contextmanager
    def get_connection(self):
        """Get a connection from the pool"""
        db = self._ensure_pool()
        conn = None
        try:
            conn = db.getconn()
            yield conn
            conn.commit()
        except Exception as e:
            if conn:
                conn.rollback()
            logger.error("Database error", error=str(e))
            raise
        finally:
            if conn:
                db.putconn(conn)

    @contextmanager
    def get_cursor(self):
        """Get a cursor with automatic connection management"""
        with self.get_connection() as conn:
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()

    def execute_query(self, query: str, params: tuple = None) -> list:
        """Execute a query and return results"""
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor.fetchall()

    def execute_one(self, query: str, params: tuple = None) -> Optional[dict]:
        """Execute a query and return single result"""
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor.fetchone()

    def execute(self, query: str, params: tuple = None) -> int:
        """Execute a statement and return the affected row count"""
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor.rowcount

    def get_pool_status(self) -> dict:
        """Get current pool status"""
        if self._pool is not None:
            return {
                'min_connections': self._pool.minconn,
                'max_connections': self._pool.maxconn,
                'closed': self._pool.closed
            }
        return {'status': 'not initialized'}

# Global pool instance
db_pool = DatabasePool()
