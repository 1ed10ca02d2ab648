from __future__ import annotations

from typing import Any, Dict, List, Mapping

from jwt_auth_sample.db import ConnectionPool, is_unique_violation
from jwt_auth_sample.errors import ConflictError, StorageError


class AccountStore:
    """Data access for the ``account`` table.

    No validation happens here; callers hand in an already-hashed password.
    """

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    def find_by_email(self, email: str) -> List[Dict[str, Any]]:
        """Return every row matching ``email``, unchanged (possibly empty)."""
        with self.pool.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM account WHERE email = ?",
                (email,),
            ).fetchall()
        return [dict(r) for r in rows]

    def create_account(self, payload: Mapping[str, Any]) -> None:
        email = payload["email"]

        # Cheap pre-check; the UNIQUE constraint below is the real guard.
        if self.find_by_email(email):
            raise ConflictError("Email already exists")

        try:
            with self.pool.connection() as conn:
                conn.execute(
                    "INSERT INTO account (email, password) VALUES (?, ?)",
                    (email, payload["password"]),
                )
        except StorageError as e:
            # Lost a race with a concurrent sign-up for the same email.
            if is_unique_violation(e.__cause__):
                raise ConflictError("Email already exists") from e
            raise
