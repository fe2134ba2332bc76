#!/usr/bin/env python3
"""Tests for the Postgres read layer, with the connection faked out."""
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import database


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.conn.executed.append((sql, list(params or [])))

    def fetchall(self):
        return self.conn.rows

    def fetchone(self):
        return self.conn.rows[0] if self.conn.rows else None


class FakeConnection:
    def __init__(self, rows):
        self.rows = rows
        self.executed = []
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_conn(monkeypatch):
    conn = FakeConnection([])
    monkeypatch.setattr(database, "_get_connection", lambda: conn)
    return conn


def test_get_vocab_for_book_scopes_and_orders(fake_conn):
    fake_conn.rows = [{
        "id": 12,
        "book_id": "b1",
        "user_id": "u1",
        "word": " 学校 ",
        "reading": "がっこう",
        "meaning": "school",
        "jlpt": "jlpt-n5",
        "created_at": datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc),
    }]
    rows = database.get_vocab_for_book("b1", "u1")
    sql, params = fake_conn.executed[0]
    assert "WHERE book_id = %s AND user_id = %s" in sql
    assert sql.endswith("ORDER BY created_at ASC")
    assert params == ["b1", "u1"]
    assert rows == [{
        "id": "12",
        "book_id": "b1",
        "user_id": "u1",
        "word": "学校",
        "reading": "がっこう",
        "meaning": "school",
        "jlpt": "jlpt-n5",
        "created_at": "2024-05-01T09:00:00+00:00",
    }]
    assert fake_conn.closed


def test_get_vocab_without_user(fake_conn):
    database.get_vocab_for_book("b1")
    sql, params = fake_conn.executed[0]
    assert "user_id = %s" not in sql
    assert params == ["b1"]


def test_get_book(fake_conn):
    fake_conn.rows = [{"id": "b1", "title": "魔女の宅急便", "cover_url": ""}]
    assert database.get_book("b1", "u1") == {"id": "b1", "title": "魔女の宅急便", "cover_url": None}
    fake_conn.rows = []
    assert database.get_book("b2") is None


def test_missing_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_DB_URL", raising=False)
    with pytest.raises(RuntimeError):
        database._get_connection()
