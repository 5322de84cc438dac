"""
Lightweight psycopg stand-in for unit tests.

Provides ``install_fake_psycopg`` which monkeypatches a target module so that
``psycopg.connect`` returns connections backed by an in-memory key/value table.
Supports the subset of SQL used by DBClientStorage (upsert/select/delete).
"""
from __future__ import annotations

import types
from typing import Dict, List, Tuple


class _FakeCursor:
    def __init__(self, rows: Dict[Tuple[str, str], str], log: List[str]) -> None:
        self._rows = rows
        self._log = log
        self._row = None

    def execute(self, sql: str, params: tuple | list) -> None:
        sql_low = (sql or "").lower().strip()
        self._log.append(sql_low)
        if sql_low.startswith("insert into"):
            client_id, key, value = params
            assert "on conflict (client_id, key) do update" in sql_low
            self._rows[(client_id, key)] = value
            self._row = None
        elif sql_low.startswith("select"):
            client_id, key = params
            value = self._rows.get((client_id, key))
            self._row = (value,) if value is not None else None
        elif sql_low.startswith("delete"):
            client_id, key = params
            self._rows.pop((client_id, key), None)
            self._row = None
        else:
            raise AssertionError(f"Unexpected SQL in fake psycopg: {sql}")

    def fetchone(self):
        return self._row

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class _FakeConn:
    def __init__(self, rows, log) -> None:
        self._rows = rows
        self._log = log

    def cursor(self):
        return _FakeCursor(self._rows, self._log)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def install_fake_psycopg(monkeypatch, target_module):
    """
    Patch ``target_module`` so psycopg operations go against an in-memory table.

    Returns ``(rows, log)``: the backing dict keyed by (client_id, key) and the
    list of executed statements.
    """
    rows: Dict[Tuple[str, str], str] = {}
    log: List[str] = []

    def fake_connect(dsn: str, autocommit: bool | None = None):
        return _FakeConn(rows, log)

    monkeypatch.setattr(target_module, "HAVE_PSYCOPG", True, raising=False)
    monkeypatch.setattr(target_module, "psycopg", types.SimpleNamespace(connect=fake_connect), raising=False)
    # Plain SQL strings; identifier composition needs the real driver.
    monkeypatch.setattr(target_module, "pg_sql", None, raising=False)
    return rows, log


__all__ = ["install_fake_psycopg"]
