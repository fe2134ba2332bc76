#!/usr/bin/env python3
"""
Export one book (and its vocab) from Supabase into the JSON snapshots the
backend reads when USE_DATABASE is off, so flashcards can be studied offline.

Existing rows for the same book are replaced; other books are kept.

Usage (from backend/):
  python scripts/export_book_vocab.py <book_id> [--user-id <uuid>] [--data-dir ../data]
"""

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

_backend_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_backend_dir))

env_file = _backend_dir / ".env.local"
if env_file.exists():
    load_dotenv(env_file)

import database as db  # noqa: E402


def _read_rows(path: Path):
    if not path.exists():
        return []
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_rows(path: Path, rows):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        json.dump(rows, f, ensure_ascii=False, indent=2)
        f.write("\n")


def main():
    parser = argparse.ArgumentParser(description="Export a book's vocab to the local JSON snapshots")
    parser.add_argument("book_id")
    parser.add_argument("--user-id", default=None, help="Only export this user's rows")
    parser.add_argument("--data-dir", type=Path, default=_backend_dir.parent / "data")
    args = parser.parse_args()

    book = db.get_book(args.book_id, args.user_id)
    if book is None:
        print(f"Book {args.book_id} not found.")
        sys.exit(1)
    vocab = db.get_vocab_for_book(args.book_id, args.user_id)

    books_path = args.data_dir / "books.json"
    vocab_path = args.data_dir / "vocab.json"

    books = [b for b in _read_rows(books_path) if str(b.get("id")) != args.book_id]
    if args.user_id:
        book["user_id"] = args.user_id
    books.append(book)
    _write_rows(books_path, books)

    rows = [r for r in _read_rows(vocab_path) if str(r.get("book_id")) != args.book_id]
    rows.extend(vocab)
    _write_rows(vocab_path, rows)

    print(f"✓ Exported '{book['title']}' with {len(vocab)} vocab rows to {args.data_dir}")


if __name__ == "__main__":
    main()
