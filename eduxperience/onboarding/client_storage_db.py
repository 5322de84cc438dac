"""
Database-backed client storage medium (Postgres/Supabase).

Why: The in-memory medium loses pending submissions on restart and does not
work across instances. This medium persists the same string key/value pairs in
Postgres so a verification link opened hours later still finds the submission.

Security:
- Intended to be used with a service role connection string; anon clients must
  not access the `client_storage` table. RLS is enabled; service role bypasses RLS.
- Only the opaque client id is set in the cookie.

Note: This module uses psycopg3. It is imported only when enabled via
`CLIENT_STORAGE_BACKEND=db`. Tests can continue to use the in-memory medium.
"""
from __future__ import annotations

from typing import Optional
import os
import re

try:
    import psycopg
    from psycopg import sql as pg_sql
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    pg_sql = None  # type: ignore
    HAVE_PSYCOPG = False


class DBClientStorage:
    """Postgres-backed client storage.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Use a service role in Supabase.
    table:
        Fully qualified table name. Defaults to `public.client_storage`.
        Expected columns: client_id text, key text, value text,
        updated_at timestamptz, primary key (client_id, key).
    """

    def __init__(self, dsn: str | None = None, table: str = "public.client_storage") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBClientStorage")
        self._dsn = dsn or os.getenv("DATABASE_URL") or os.getenv("SUPABASE_DB_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBClientStorage")
        # Validate table identifier early (defense-in-depth)
        if not re.match(r'^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$', table or ''):
            raise ValueError("Invalid table name")
        self._table = table

    def _schema_and_name(self) -> tuple[str, str]:
        if "." in self._table:
            schema, name = self._table.split(".", 1)
        else:
            schema, name = "public", self._table
        return schema, name

    def _statement(self, template: str):
        """Compose `template` with the table identifier.

        Prefers psycopg.sql for safe identifier composition; falls back to the
        validated table string when it is unavailable (fake drivers in tests).
        """
        if pg_sql is None:
            return template.replace("{table}", self._table)
        schema, name = self._schema_and_name()
        return pg_sql.SQL(template.replace("{table}", "{}.{}")).format(pg_sql.Identifier(schema), pg_sql.Identifier(name))

    def get_item(self, client_id: str, key: str) -> Optional[str]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    self._statement("select value from {table} where client_id = %s and key = %s"),
                    (client_id, key),
                )
                row = cur.fetchone()
        if not row:
            return None
        return str(row[0]) if row[0] is not None else None

    def set_item(self, client_id: str, key: str, value: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    self._statement(
                        "insert into {table} (client_id, key, value, updated_at) values (%s, %s, %s, now()) "
                        "on conflict (client_id, key) do update set value = excluded.value, updated_at = now()"
                    ),
                    (client_id, key, value),
                )

    def remove_item(self, client_id: str, key: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    self._statement("delete from {table} where client_id = %s and key = %s"),
                    (client_id, key),
                )


__all__ = ["DBClientStorage"]
