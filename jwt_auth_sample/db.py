from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Sequence
from urllib.parse import urlparse

from jwt_auth_sample.errors import StorageError
from jwt_auth_sample.schema import get_schema_sql

# SQLSTATE for unique_violation
_PG_UNIQUE_VIOLATION = "23505"


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except Exception:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    return "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Convert SQLite qmark placeholders (?) to psycopg2 placeholders (%s).

    Skips '?' inside single/double-quoted literals. Not a full SQL parser, but
    sufficient for the queries in this codebase.
    """
    out: List[str] = []
    in_single = False
    in_double = False
    i = 0
    while i < len(sql):
        ch = sql[i]

        if ch == "'" and not in_double:
            out.append(ch)
            if in_single:
                # Escaped single quote: ''
                if i + 1 < len(sql) and sql[i + 1] == "'":
                    out.append("'")
                    i += 2
                    continue
                in_single = False
            else:
                in_single = True
            i += 1
            continue

        if ch == '"' and not in_single:
            out.append(ch)
            if in_double:
                if i + 1 < len(sql) and sql[i + 1] == '"':
                    out.append('"')
                    i += 2
                    continue
                in_double = False
            else:
                in_double = True
            i += 1
            continue

        if ch == "?" and not in_single and not in_double:
            out.append("%s")
            i += 1
            continue

        out.append(ch)
        i += 1

    return "".join(out)


def is_unique_violation(exc: BaseException | None) -> bool:
    """True if a driver error is a UNIQUE constraint violation."""
    if exc is None:
        return False
    if isinstance(exc, sqlite3.IntegrityError):
        return "UNIQUE" in str(exc).upper()
    return getattr(exc, "pgcode", None) == _PG_UNIQUE_VIOLATION


class PGCursor:
    def __init__(self, cur: Any):
        self._cur = cur

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> "PGCursor":
        self._cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return self

    def fetchone(self) -> Any:
        return self._cur.fetchone()

    def fetchall(self) -> Any:
        return self._cur.fetchall()

    @property
    def rowcount(self) -> int:
        return int(self._cur.rowcount or 0)

    def close(self) -> None:
        self._cur.close()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._cur, name)


class PGConnection:
    """A tiny adapter that makes psycopg2 connections look like sqlite3 connections."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> PGCursor:
        wrapper = PGCursor(self._conn.cursor())
        wrapper.execute(sql, params)
        return wrapper

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    @property
    def closed(self) -> bool:
        return bool(self._conn.closed)


class ConnectionPool:
    """Process-wide set of storage connections.

    Built once at startup and handed to whatever needs the store. Use
    ``with pool.connection() as conn:`` for one scoped unit of work: commit on
    success, rollback on error, connection released in every case.

    - Postgres: psycopg2 ThreadedConnectionPool. A semaphore sized to
      ``maxconn`` makes callers wait for a free connection instead of failing.
    - SQLite: a fresh connection per acquisition (WAL mode).

    Driver errors raised inside the block surface as ``StorageError`` with the
    original exception as ``__cause__``.
    """

    def __init__(self, db_dsn: str, *, minconn: int = 1, maxconn: int = 10):
        self.dsn = (db_dsn or "").strip()
        self.dialect = _detect_dialect(self.dsn)
        self._pg_pool: Any = None
        self._slots: threading.BoundedSemaphore | None = None

        if self.dialect == "postgres":
            try:
                import psycopg2
                import psycopg2.extras
                import psycopg2.pool
            except Exception as e:
                raise RuntimeError(
                    "Postgres selected but psycopg2 is not installed. "
                    "Install psycopg2-binary and try again."
                ) from e

            maxconn = max(1, int(maxconn))
            minconn = max(0, min(int(minconn), maxconn))
            # RealDictCursor makes fetchone()/fetchall() rows act like dicts.
            self._pg_pool = psycopg2.pool.ThreadedConnectionPool(
                minconn,
                maxconn,
                self.dsn,
                cursor_factory=psycopg2.extras.RealDictCursor,
            )
            self._slots = threading.BoundedSemaphore(maxconn)
            self._driver_errors: tuple[type[BaseException], ...] = (psycopg2.Error,)
        else:
            # Support sqlite:///path style
            if self.dsn.lower().startswith("sqlite:///"):
                self.dsn = self.dsn[len("sqlite:///") :]
            if not self.dsn:
                raise ValueError("db_dsn_blank")
            Path(self.dsn).parent.mkdir(parents=True, exist_ok=True)
            self._driver_errors = (sqlite3.Error,)

        _debug(f"Pool ready ({self.dialect})")

    @contextmanager
    def connection(self) -> Iterator[Any]:
        if self.dialect == "postgres":
            assert self._slots is not None
            with self._slots:
                raw = self._pg_pool.getconn()
                conn = PGConnection(raw)
                try:
                    yield from self._unit_of_work(conn)
                finally:
                    self._pg_pool.putconn(raw, close=bool(raw.closed))
            return

        conn = sqlite3.connect(self.dsn, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA busy_timeout=5000;")  # 5s
            yield from self._unit_of_work(conn)
        finally:
            conn.close()

    def _unit_of_work(self, conn: Any) -> Iterator[Any]:
        try:
            yield conn
            conn.commit()
        except self._driver_errors as e:
            self._safe_rollback(conn)
            _debug(f"Query failed: {type(e).__name__}: {e}")
            raise StorageError(str(e)) from e
        except BaseException:
            self._safe_rollback(conn)
            raise

    def _safe_rollback(self, conn: Any) -> None:
        # A dropped Postgres connection cannot roll back; it is discarded on release.
        if getattr(conn, "closed", False):
            return
        conn.rollback()

    def close(self) -> None:
        if self._pg_pool is not None:
            self._pg_pool.closeall()
            self._pg_pool = None
        _debug("Pool closed")


def init_db(pool: ConnectionPool) -> None:
    """Create the schema if it does not exist."""
    dialect = pool.dialect
    _debug(f"Initializing DB ({dialect}) at {pool.dsn if dialect == 'sqlite' else urlparse(pool.dsn).hostname}")
    with pool.connection() as conn:
        schema_sql = get_schema_sql(dialect)
        # Ensure only one process runs schema DDL at a time.
        if dialect == "postgres":
            conn.execute("SELECT pg_advisory_lock(2147483647);")
            try:
                _exec_schema(conn, schema_sql, dialect=dialect)
            finally:
                conn.execute("SELECT pg_advisory_unlock(2147483647);")
        else:
            _exec_schema(conn, schema_sql, dialect=dialect)


def _exec_schema(conn: Any, ddl: str, *, dialect: str) -> None:
    if dialect == "postgres":
        statements = [s.strip() for s in ddl.split(";") if s.strip()]
        for stmt in statements:
            conn.execute(stmt)
        return

    conn.executescript(ddl)
