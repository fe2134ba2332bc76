"""
Study sessions: one live flashcard navigator per (user, book).

A session wraps the navigator with what the viewer page needs around it: the
book header, the "tap to study" hint shown until the first flip, and the
mapping from input events (buttons, taps, keys) to navigator steps.

Sessions are kept in memory only. They reset on backend restart.
"""

import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence, Tuple

from flashcards import (
    EMPTY_MESSAGES,
    Card,
    FlashcardNavigator,
    Mode,
    jlpt_label,
)

HINT_TEXT = "Tap or press space to study →"

# Keyboard shortcuts on the viewer page. Anything else is ignored.
KEY_ACTIONS = {
    "ArrowRight": "advance",
    "ArrowLeft": "retreat",
    " ": "flip",
}

EVENTS = ("advance", "retreat", "flip", "key", "set_mode", "set_filter")


class StudySession:
    def __init__(
        self,
        user_id: str,
        book_id: str,
        cards: Sequence[Card],
        book: Optional[Dict[str, Any]] = None,
        mode: Any = Mode.MEANING_ONLY,
        jlpt_filter: str = "all",
    ):
        self.session_id = str(uuid.uuid4())
        self.user_id = user_id
        self.book_id = book_id
        self.book_title = ((book or {}).get("title") or "").strip()
        self.cover_url = ((book or {}).get("cover_url") or "").strip()
        self.opened_at = datetime.now(timezone.utc)
        self.first_touch = True
        self.navigator = FlashcardNavigator(cards, mode=mode, jlpt_filter=jlpt_filter)

    @property
    def title(self) -> str:
        return f"{self.book_title} Flashcards" if self.book_title else "Flashcards"

    def flip(self):
        """Tap on the card: hides the first-touch hint, then steps forward."""
        self.first_touch = False
        return self.navigator.advance()

    def press_key(self, key: str) -> bool:
        """Dispatch a keydown. Returns False when the key has no binding."""
        action = KEY_ACTIONS.get(key)
        if action is None:
            return False
        if action == "flip":
            self.flip()
        elif action == "advance":
            self.navigator.advance()
        else:
            self.navigator.retreat()
        return True

    def handle_event(self, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        """
        Apply one input event.

        Raises ValueError for an unknown event name, mode or filter token.
        """
        payload = payload or {}
        if event == "advance":
            self.navigator.advance()
        elif event == "retreat":
            self.navigator.retreat()
        elif event == "flip":
            self.flip()
        elif event == "key":
            self.press_key(str(payload.get("key") or ""))
        elif event == "set_mode":
            self.navigator.set_mode(payload.get("mode"))
        elif event == "set_filter":
            self.navigator.set_filter(payload.get("filter"))
        else:
            raise ValueError(f"Unknown event: {event!r}")

    def view(self) -> Dict[str, Any]:
        nav = self.navigator
        view = {
            "session_id": self.session_id,
            "book_id": self.book_id,
            "title": self.title,
            "cover_url": self.cover_url or None,
            "mode": nav.mode.value,
            "filter": nav.filter,
            "show_hint": self.first_touch,
            "hint": HINT_TEXT if self.first_touch else None,
            "total": nav.total,
            "source_total": nav.source_total,
        }
        if nav.is_empty:
            reason = nav.empty_reason
            view.update({
                "empty": True,
                "empty_reason": reason,
                "message": EMPTY_MESSAGES[reason],
                "display": nav.current_display(),
                "side": None,
                "step": None,
                "index": None,
                "counter": None,
                "jlpt": None,
            })
            return view
        card = nav.current_card
        view.update({
            "empty": False,
            "empty_reason": None,
            "message": None,
            "display": nav.current_display(),
            "side": nav.side.name.lower(),
            "step": int(nav.side),
            "index": nav.index + 1,
            "counter": f"Card {nav.index + 1} / {nav.total}",
            "jlpt": jlpt_label(card.jlpt_tag) or None,
        })
        return view


class SessionStore:
    """In-memory sessions keyed by (user_id, book_id)."""

    def __init__(self):
        self._sessions: Dict[Tuple[str, str], StudySession] = {}
        self._lock = threading.Lock()

    def open(self, user_id: str, book_id: str, cards: Sequence[Card], book: Optional[Dict[str, Any]] = None, **options) -> StudySession:
        session = StudySession(user_id, book_id, cards, book=book, **options)
        with self._lock:
            self._sessions[(user_id, book_id)] = session
        return session

    def get(self, user_id: str, book_id: str) -> Optional[StudySession]:
        with self._lock:
            return self._sessions.get((user_id, book_id))

    def view(self, user_id: str, book_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            session = self._sessions.get((user_id, book_id))
            return session.view() if session is not None else None

    def apply(self, user_id: str, book_id: str, event: str, payload: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        Apply one event and return the resulting view, None when no session is open.

        Transition and view are both taken under the store lock, so a reader
        never sees a session halfway through a transition.
        """
        with self._lock:
            session = self._sessions.get((user_id, book_id))
            if session is None:
                return None
            session.handle_event(event, payload)
            return session.view()

    def close(self, user_id: str, book_id: str) -> bool:
        with self._lock:
            return self._sessions.pop((user_id, book_id), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
