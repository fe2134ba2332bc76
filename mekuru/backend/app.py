from flask import Flask, jsonify, request, g
from flask_cors import CORS
import json
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from jwt import InvalidTokenError

import auth as auth_module
from flashcards import (
    JLPT_FILTER_OPTIONS,
    MODE_LABELS,
    Card,
    Mode,
    parse_filter_token,
    parse_mode,
)
from study_session import EVENTS, SessionStore

# Local development settings live in .env.local (never committed)
load_dotenv('.env.local')

app = Flask(__name__)

# Backend is at: mekuru/backend/app.py
# JSON snapshots are at: mekuru/data/{vocab,books}.json
_backend_dir = Path(__file__).resolve().parent
BASE_DIR = _backend_dir.parent

DATA_DIR = Path(os.getenv('DATA_DIR', str(BASE_DIR / "data")))
VOCAB_JSON = DATA_DIR / "vocab.json"
BOOKS_JSON = DATA_DIR / "books.json"

LOGS_DIR = Path(os.getenv('LOGS_DIR', str(_backend_dir / "logs")))
SESSION_LOG_FILE = LOGS_DIR / "flashcard_sessions.log"

# Read books/vocab from Supabase instead of the JSON snapshots when set
USE_DATABASE = os.environ.get('USE_DATABASE', '').strip().lower() in ('1', 'true', 'yes')

CORS_ORIGINS = [origin.strip() for origin in os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',') if origin.strip()]
CORS(app, origins=CORS_ORIGINS, supports_credentials=True)

LOGS_DIR.mkdir(parents=True, exist_ok=True)
session_logger = logging.getLogger('flashcard_sessions')
session_logger.setLevel(logging.INFO)
if not session_logger.handlers:
    file_handler = logging.FileHandler(SESSION_LOG_FILE, encoding='utf-8')
    file_handler.setFormatter(logging.Formatter('%(message)s'))
    session_logger.addHandler(file_handler)

sessions = SessionStore()


def _log(event: str, **fields):
    payload = {"event": event, **fields}
    print(json.dumps(payload, ensure_ascii=False), flush=True)


def _log_session_event(event: str, user_id: str, view: Dict[str, Any], **fields):
    entry = {
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
        "event": event,
        "user_id": user_id,
        "book_id": view["book_id"],
        "session_id": view["session_id"],
        **fields,
    }
    session_logger.info(json.dumps(entry, ensure_ascii=False))


@app.before_request
def _before_request():
    g._start_time = time.time()
    g.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())


@app.after_request
def _after_request(response):
    latency_ms = int((time.time() - getattr(g, "_start_time", time.time())) * 1000)
    _log(
        "http_request",
        request_id=getattr(g, "request_id", None),
        method=request.method,
        path=request.path,
        status=response.status_code,
        latency_ms=latency_ms,
    )
    response.headers["X-Request-Id"] = getattr(g, "request_id", "")
    return response


# ----------------------------------------------------
# Card source: Supabase when USE_DATABASE, JSON snapshots otherwise
# ----------------------------------------------------

def _read_json_rows(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        print(f"Warning: snapshot not found at: {path}", flush=True)
        return []
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of rows in {path}")
    return [row for row in data if isinstance(row, dict)]


def _visible_to(row: Dict[str, Any], user_id: Optional[str]) -> bool:
    owner = row.get("user_id")
    return not owner or not user_id or owner == user_id


def load_cards(book_id: str, user_id: Optional[str] = None) -> List[Card]:
    """
    One-shot snapshot of a book's vocabulary as cards, oldest first.

    Load failures are logged and give an empty list; the viewer then shows
    its "No vocabulary yet." state.
    """
    try:
        if USE_DATABASE:
            import database as db
            rows = db.get_vocab_for_book(book_id, user_id)
        else:
            rows = [
                r for r in _read_json_rows(VOCAB_JSON)
                if str(r.get("book_id") or "") == book_id and _visible_to(r, user_id)
            ]
            # Stable sort keeps file order for rows without created_at
            rows.sort(key=lambda r: r.get("created_at") or "")
        return [Card.from_row(r) for r in rows]
    except Exception as e:
        print(f"[flashcards] Failed to load vocab for book {book_id}: {type(e).__name__}: {e}", flush=True)
        return []


def load_book(book_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Title and cover for the flashcard header. None when unknown or unavailable."""
    try:
        if USE_DATABASE:
            import database as db
            return db.get_book(book_id, user_id)
        for row in _read_json_rows(BOOKS_JSON):
            if str(row.get("id") or "") == book_id and _visible_to(row, user_id):
                return {
                    "id": book_id,
                    "title": (row.get("title") or "").strip(),
                    "cover_url": (row.get("cover_url") or "").strip() or None,
                }
        return None
    except Exception as e:
        print(f"[flashcards] Failed to load book {book_id}: {type(e).__name__}: {e}", flush=True)
        return None


# ----------------------------------------------------
# Auth
# ----------------------------------------------------

def _get_request_user():
    """Return (user, error). Falls back to FLASHCARDS_DEV_USER when no token is sent."""
    token = auth_module.extract_bearer_token(request.headers.get("Authorization"))
    if not token:
        dev_user = auth_module.get_dev_user()
        if dev_user is not None:
            return dev_user, None
        return None, "missing_authorization"
    try:
        return auth_module.verify_bearer_token(token), None
    except InvalidTokenError as e:
        return None, str(e) or type(e).__name__
    except Exception as e:
        return None, f"{type(e).__name__}: {e}"


def _require_user():
    user, err = _get_request_user()
    if user is None:
        _log("auth_failed", request_id=getattr(g, "request_id", None), error=err)
    return user


def _unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


def _no_session(book_id: str):
    return jsonify({"error": f"No open flashcard session for book {book_id}"}), 404


# ----------------------------------------------------
# Routes
# ----------------------------------------------------

@app.route('/api/health', methods=['GET'])
def health():
    """Health check endpoint"""
    return jsonify({
        'status': 'ok',
        'sessions_open': len(sessions),
        'use_database': USE_DATABASE,
    })


@app.route('/api/flashcards/filters', methods=['GET'])
def get_filters():
    """Options for the JLPT dropdown and the mode buttons."""
    return jsonify({
        'filters': [{'value': value, 'label': label} for value, label in JLPT_FILTER_OPTIONS],
        'modes': [{'value': mode.value, 'label': MODE_LABELS[mode]} for mode in Mode],
    })


def _json_body():
    """Parsed JSON object body. None when the body is JSON but not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def _bad_body():
    return jsonify({'error': 'Request body must be a JSON object'}), 400


@app.route('/api/flashcards/books/<book_id>/session', methods=['POST'])
def open_session(book_id):
    """Load the book's cards and start a fresh study session (replaces any open one)."""
    user = _require_user()
    if user is None:
        return _unauthorized()
    data = _json_body()
    if data is None:
        return _bad_body()
    try:
        mode = parse_mode(data.get('mode') or Mode.MEANING_ONLY.value)
        jlpt_filter = parse_filter_token(data.get('filter') or 'all')
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    try:
        cards = load_cards(book_id, user.user_id)
        book = load_book(book_id, user.user_id)
        sessions.open(user.user_id, book_id, cards, book=book, mode=mode, jlpt_filter=jlpt_filter)
        view = sessions.view(user.user_id, book_id)
    except Exception as e:
        return jsonify({'error': str(e)}), 500

    _log_session_event(
        "session_opened",
        user.user_id,
        view,
        cards=len(cards),
        mode=mode.value,
        filter=jlpt_filter,
    )
    return jsonify(view), 201


@app.route('/api/flashcards/books/<book_id>/session', methods=['GET'])
def get_session(book_id):
    user = _require_user()
    if user is None:
        return _unauthorized()
    view = sessions.view(user.user_id, book_id)
    if view is None:
        return _no_session(book_id)
    return jsonify(view)


@app.route('/api/flashcards/books/<book_id>/session/events', methods=['POST'])
def post_session_event(book_id):
    """
    Drive the session with one input event.

    Body: {"event": "advance" | "retreat" | "flip" | "key" | "set_mode" | "set_filter",
           "key": "ArrowRight", "mode": "both", "filter": "n3"}
    """
    user = _require_user()
    if user is None:
        return _unauthorized()
    data = _json_body()
    if data is None:
        return _bad_body()
    event = str(data.get('event') or '').strip()
    if event not in EVENTS:
        return jsonify({'error': f'Unknown event: {event!r}', 'events': list(EVENTS)}), 400

    try:
        view = sessions.apply(user.user_id, book_id, event, data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    if view is None:
        return _no_session(book_id)

    if event == 'set_mode':
        _log_session_event("mode_changed", user.user_id, view, mode=view["mode"])
    elif event == 'set_filter':
        _log_session_event("filter_changed", user.user_id, view, filter=view["filter"], cards=view["total"])
    return jsonify(view)


@app.route('/api/flashcards/books/<book_id>/session', methods=['DELETE'])
def close_session(book_id):
    user = _require_user()
    if user is None:
        return _unauthorized()
    view = sessions.view(user.user_id, book_id)
    if view is None or not sessions.close(user.user_id, book_id):
        return _no_session(book_id)
    _log_session_event("session_closed", user.user_id, view)
    return "", 204


if __name__ == '__main__':
    port = int(os.getenv('PORT', 5001))
    host = '0.0.0.0'

    print(f"\nStarting Flask server on http://{host}:{port}")
    print(f"Card source: {'Supabase (USE_DATABASE)' if USE_DATABASE else f'JSON snapshots in {DATA_DIR}'}")
    print(f"Session endpoint: http://{host}:{port}/api/flashcards/books/<book_id>/session")

    debug_enabled = os.getenv('FLASK_DEBUG', '').strip().lower() in ('1', 'true', 'yes', 'on')
    app.run(debug=debug_enabled, host=host, port=port)
