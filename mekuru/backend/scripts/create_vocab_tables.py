#!/usr/bin/env python3
"""
Create the books and vocab tables in Supabase that the flashcard card source
reads when the backend runs with USE_DATABASE=true.

Requires DATABASE_URL (or SUPABASE_DB_URL) in the environment.

Run from backend/:
  python scripts/create_vocab_tables.py
"""

import os
import sys
from pathlib import Path

import psycopg
from dotenv import load_dotenv

env_file = Path(__file__).resolve().parent.parent / ".env.local"
if env_file.exists():
    load_dotenv(env_file)


CREATE_BOOKS_SQL = """
CREATE TABLE IF NOT EXISTS books (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id uuid NOT NULL,
    title text NOT NULL,
    author text,
    translator text,
    illustrator text,
    cover_url text,
    started_at date,
    finished_at date,
    created_at timestamptz NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_books_user_created
    ON books (user_id, created_at DESC);
"""

# strokes holds [{"char": "学", "strokes": 8}, ...] per kanji in the word
CREATE_VOCAB_SQL = """
CREATE TABLE IF NOT EXISTS vocab (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    book_id uuid NOT NULL REFERENCES books (id) ON DELETE CASCADE,
    user_id uuid NOT NULL,
    word text NOT NULL,
    reading text,
    meaning text,
    jlpt text,
    is_common boolean NOT NULL DEFAULT false,
    page_number integer,
    chapter_number integer,
    chapter_name text,
    strokes jsonb,
    color_stage integer NOT NULL DEFAULT 0,
    lookup_count integer NOT NULL DEFAULT 1,
    created_at timestamptz NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_vocab_book_created
    ON vocab (book_id, created_at);
"""


def main():
    url = os.environ.get("DATABASE_URL") or os.environ.get("SUPABASE_DB_URL")
    if not url:
        print("DATABASE_URL or SUPABASE_DB_URL is not set.")
        sys.exit(1)

    conn = psycopg.connect(url)
    try:
        with conn.cursor() as cur:
            cur.execute(CREATE_BOOKS_SQL)
            cur.execute(CREATE_VOCAB_SQL)
        conn.commit()
        print("books and vocab tables created (or already exist).")
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


if __name__ == "__main__":
    main()
