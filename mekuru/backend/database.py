"""
Database layer for books and vocab (Supabase/Postgres), read side only.

Returns plain dicts in the same shape as the JSON snapshot rows, so the card
source can treat both the same way. Uses Psycopg 3 (psycopg[binary]>=3.1).
"""

import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import psycopg
from psycopg.rows import dict_row

VOCAB_COLUMNS = "id, book_id, user_id, word, reading, meaning, jlpt, created_at"


def _get_connection():
    url = os.environ.get("DATABASE_URL") or os.environ.get("SUPABASE_DB_URL")
    if not url:
        raise RuntimeError("DATABASE_URL or SUPABASE_DB_URL must be set when using database")
    return psycopg.connect(url, row_factory=dict_row)


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _row_to_vocab_dict(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(row["id"]) if row.get("id") is not None else None,
        "book_id": str(row.get("book_id") or ""),
        "user_id": row.get("user_id"),
        "word": (row.get("word") or "").strip(),
        "reading": (row.get("reading") or "").strip(),
        "meaning": (row.get("meaning") or "").strip(),
        "jlpt": row.get("jlpt"),
        "created_at": _iso(row.get("created_at")),
    }


def _row_to_book_dict(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(row.get("id") or ""),
        "title": (row.get("title") or "").strip(),
        "cover_url": (row.get("cover_url") or "").strip() or None,
    }


def get_vocab_for_book(book_id: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Vocab rows for one book, oldest first. Limited to user_id's rows when given."""
    sql = f"SELECT {VOCAB_COLUMNS} FROM vocab WHERE book_id = %s"
    params: List[Any] = [book_id]
    if user_id:
        sql += " AND user_id = %s"
        params.append(user_id)
    sql += " ORDER BY created_at ASC"
    conn = _get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
        return [_row_to_vocab_dict(r) for r in rows]
    finally:
        conn.close()


def get_book(book_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Title and cover for the flashcard header, or None."""
    sql = "SELECT id, title, cover_url FROM books WHERE id = %s"
    params: List[Any] = [book_id]
    if user_id:
        sql += " AND user_id = %s"
        params.append(user_id)
    conn = _get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
        return _row_to_book_dict(row) if row else None
    finally:
        conn.close()
