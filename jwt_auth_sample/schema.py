"""Database schema for the auth service.

A single table. The UNIQUE constraint on ``email`` is what actually prevents
duplicate accounts; the application-level pre-check only avoids a pointless
insert in the common case.

NOTE: The Postgres schema is generated from the SQLite schema by dropping the
SQLite-only pragmas.
"""

from __future__ import annotations


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS account (
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL
);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    lines: list[str] = []
    for line in ddl.splitlines():
        if line.strip().upper().startswith("PRAGMA "):
            continue
        lines.append(line)
    return "\n".join(lines)


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
