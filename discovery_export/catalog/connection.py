"""
PostgreSQL connection pool management using psycopg3

One pool is opened per export run and passed explicitly to every component
that queries the catalog. It is closed on every exit path by using it as a
context manager.
"""
import time
from contextlib import contextmanager

from psycopg import OperationalError
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from discovery_export.core.config import DatabaseSettings
from discovery_export.core.exceptions import ConfigurationError


class DatabaseConnectionPool:
    """
    PostgreSQL connection pool manager using psycopg3

    Rows are returned as dictionaries. Every connection carries a
    statement_timeout so a single slow query cannot stall a run.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "evergreen",
        user: str = "evergreen",
        password: str | None = None,
        min_size: int = 1,
        max_size: int = 1,
        timeout: float = 30.0,
        statement_timeout_seconds: int = 600,
    ) -> None:
        """
        Initialize database connection pool

        Args:
            host: Database host
            port: Database port
            database: Database name
            user: Database user
            password: Database password
            min_size: Minimum pool size
            max_size: Maximum pool size
            timeout: Connection timeout in seconds
            statement_timeout_seconds: Per-statement limit (0 disables it)

        Raises:
            ConfigurationError: If no password is given
        """
        if not password:
            raise ConfigurationError(
                "Database password must be provided. "
                "Set DB_PASSWORD or database.password in the configuration file."
            )

        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self.statement_timeout_seconds = statement_timeout_seconds

        self.conninfo = make_conninfo(
            host=host,
            port=port,
            dbname=database,
            user=user,
            password=password,
            connect_timeout=int(timeout),
            options=f"-c statement_timeout={statement_timeout_seconds * 1000}",
        )

        self._pool: ConnectionPool | None = None

    @classmethod
    def from_settings(cls, settings: DatabaseSettings, **kwargs) -> "DatabaseConnectionPool":
        return cls(
            host=settings.host,
            port=settings.port,
            database=settings.name,
            user=settings.user,
            password=settings.password,
            statement_timeout_seconds=settings.statement_timeout_seconds,
            **kwargs,
        )

    def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the connection pool with retry logic.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between retries in seconds

        Raises:
            OperationalError: If connection fails after all retries
        """
        if self._pool is not None:
            return

        self._pool = ConnectionPool(
            conninfo=self.conninfo,
            min_size=self.min_size,
            max_size=self.max_size,
            timeout=self.timeout,
            kwargs={"row_factory": dict_row},
            open=False,
        )

        self._pool.open()
        for attempt in range(1, max_retries + 1):
            try:
                self._pool.wait(timeout=self.timeout)
                return
            except OperationalError as e:
                if attempt < max_retries:
                    time.sleep(retry_delay)
                    continue
                self._pool.close()
                self._pool = None
                raise OperationalError(
                    f"Failed to connect to database after {max_retries} attempts: {e}"
                ) from e

    def close(self) -> None:
        """Close the connection pool"""
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def get_connection(self):
        """
        Get a connection from the pool

        Yields:
            psycopg.Connection: Database connection

        Raises:
            RuntimeError: If pool is not open
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        with self._pool.connection() as conn:
            yield conn

    @contextmanager
    def get_cursor(self):
        """
        Get a cursor from a pooled connection

        Yields:
            psycopg.Cursor: Database cursor
        """
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                yield cur

    def execute_query(self, query: str, params: dict | tuple | None = None) -> list[dict]:
        """
        Execute a SELECT query and return results

        Args:
            query: SQL SELECT query
            params: Query parameters (optional)

        Returns:
            List of dictionaries (one per row)
        """
        with self.get_cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
