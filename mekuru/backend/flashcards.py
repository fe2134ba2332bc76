"""
Flashcard navigator: step through a book's vocabulary one side at a time.

A card shows its word first, then (depending on mode) its reading, its meaning,
or both. Tapping advances to the next side; after the last side of a card the
navigator moves on to the next card's word, wrapping from the last card back to
the first. Going backwards walks the exact same path in reverse.

The JLPT filter narrows the card set:
- all      -> every card
- n5..n1   -> jlpt tag (case-insensitive) == "jlpt-n5" .. "jlpt-n1"
- nonjlpt  -> jlpt tag (case-insensitive) == "non-jlpt word"
A card without a jlpt tag only shows up under "all".
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Sequence, Tuple

NON_JLPT_TAG = "Non-JLPT word"

JLPT_FILTER_OPTIONS: List[Tuple[str, str]] = [
    ("all", "JLPT: All"),
    ("n5", "N5"),
    ("n4", "N4"),
    ("n3", "N3"),
    ("n2", "N2"),
    ("n1", "N1"),
    ("nonjlpt", "Non-JLPT"),
]
JLPT_FILTER_TOKENS = [token for token, _label in JLPT_FILTER_OPTIONS]

EMPTY_SOURCE = "no_vocab"
EMPTY_FILTER = "no_match"
EMPTY_MESSAGES = {
    EMPTY_SOURCE: "No vocabulary yet.",
    EMPTY_FILTER: "No cards match this JLPT filter.",
}


class Side(IntEnum):
    """Which field of the card is showing. The value is the step number shown to the user."""
    WORD = 1
    READING = 2
    MEANING = 3


class Mode(str, Enum):
    MEANING_ONLY = "meaning"
    READING_ONLY = "reading"
    BOTH = "both"


MODE_LABELS = {
    Mode.MEANING_ONLY: "Meanings Only",
    Mode.READING_ONLY: "Readings Only",
    Mode.BOTH: "Study Both",
}

# Order in which sides are shown for each mode. Every sequence starts at WORD.
SIDE_SEQUENCE: Dict[Mode, Tuple[Side, ...]] = {
    Mode.MEANING_ONLY: (Side.WORD, Side.MEANING),
    Mode.READING_ONLY: (Side.WORD, Side.READING),
    Mode.BOTH: (Side.WORD, Side.READING, Side.MEANING),
}


def _build_forward_table() -> Dict[Tuple[Mode, Side], Tuple[Side, int]]:
    """(mode, side) -> (next side, card offset). Offset 1 means move to the next card."""
    table = {}
    for mode, sides in SIDE_SEQUENCE.items():
        for pos, side in enumerate(sides):
            if pos + 1 < len(sides):
                table[(mode, side)] = (sides[pos + 1], 0)
            else:
                table[(mode, side)] = (sides[0], 1)
    return table


def _invert_table(forward: Dict[Tuple[Mode, Side], Tuple[Side, int]]) -> Dict[Tuple[Mode, Side], Tuple[Side, int]]:
    """Reverse every forward edge so that retreat() undoes advance() exactly."""
    backward = {}
    for (mode, side), (next_side, offset) in forward.items():
        backward[(mode, next_side)] = (side, -offset)
    return backward


FORWARD_TRANSITIONS = _build_forward_table()
BACKWARD_TRANSITIONS = _invert_table(FORWARD_TRANSITIONS)


def steps_per_card(mode: Mode) -> int:
    return len(SIDE_SEQUENCE[Mode(mode)])


@dataclass(frozen=True)
class Card:
    word: str
    reading: str
    meaning: str
    jlpt_tag: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Card":
        """Build a card from a vocab row (stored column for the tag is `jlpt`)."""
        tag = row.get("jlpt")
        if tag is None:
            tag = row.get("jlpt_tag")
        return cls(
            word=(row.get("word") or "").strip(),
            reading=(row.get("reading") or "").strip(),
            meaning=(row.get("meaning") or "").strip(),
            jlpt_tag=(tag.strip() or None) if isinstance(tag, str) else None,
        )

    def text_for(self, side: Side) -> str:
        if side == Side.WORD:
            return self.word
        if side == Side.READING:
            return self.reading
        return self.meaning


def parse_filter_token(token: Any) -> str:
    if token is not None and not isinstance(token, str):
        raise ValueError(f"Unknown JLPT filter: {token!r}")
    value = (token or "").strip().lower()
    if value not in JLPT_FILTER_TOKENS:
        raise ValueError(f"Unknown JLPT filter: {token!r}")
    return value


def parse_mode(value: Any) -> Mode:
    if isinstance(value, Mode):
        return value
    try:
        return Mode((value or "").strip().lower())
    except (AttributeError, ValueError):
        raise ValueError(f"Unknown mode: {value!r}") from None


def matches_jlpt_filter(card: Card, token: str) -> bool:
    token = parse_filter_token(token)
    if token == "all":
        return True
    if not card.jlpt_tag:
        return False
    tag = card.jlpt_tag.lower()
    if token == "nonjlpt":
        return tag == NON_JLPT_TAG.lower()
    return tag == f"jlpt-{token}"


def filter_cards(cards: Sequence[Card], token: str) -> List[Card]:
    token = parse_filter_token(token)
    return [c for c in cards if matches_jlpt_filter(c, token)]


def jlpt_label(tag: Optional[str]) -> str:
    """Short badge text: "jlpt-n3" -> "N3"; other tags are shown as stored."""
    if not tag:
        return ""
    if tag.lower().startswith("jlpt-"):
        return tag[len("jlpt-"):].upper()
    return tag


class FlashcardNavigator:
    """
    Study-loop state over one book's cards: (index, side, mode) plus the active filter.

    The source cards are a snapshot taken when the book was loaded; filtering
    never reloads them.
    """

    def __init__(self, cards: Sequence[Card], mode: Mode = Mode.MEANING_ONLY, jlpt_filter: str = "all"):
        self._source: Tuple[Card, ...] = tuple(cards)
        self._mode = parse_mode(mode)
        self._filter = parse_filter_token(jlpt_filter)
        self._cards: List[Card] = filter_cards(self._source, self._filter)
        self._index = 0
        self._side = Side.WORD

    @property
    def index(self) -> int:
        return self._index

    @property
    def side(self) -> Side:
        return self._side

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def filter(self) -> str:
        return self._filter

    @property
    def total(self) -> int:
        return len(self._cards)

    @property
    def source_total(self) -> int:
        return len(self._source)

    @property
    def is_empty(self) -> bool:
        return not self._cards

    @property
    def empty_reason(self) -> Optional[str]:
        if self._cards:
            return None
        return EMPTY_SOURCE if not self._source else EMPTY_FILTER

    @property
    def current_card(self) -> Optional[Card]:
        if not self._cards:
            return None
        return self._cards[self._index]

    @property
    def state(self) -> Tuple[int, Side]:
        return self._index, self._side

    def _step(self, table: Dict[Tuple[Mode, Side], Tuple[Side, int]]) -> Tuple[int, Side]:
        if not self._cards:
            return self.state
        next_side, offset = table[(self._mode, self._side)]
        self._index = (self._index + offset) % len(self._cards)
        self._side = next_side
        return self.state

    def advance(self) -> Tuple[int, Side]:
        return self._step(FORWARD_TRANSITIONS)

    def retreat(self) -> Tuple[int, Side]:
        return self._step(BACKWARD_TRANSITIONS)

    def set_mode(self, mode: Any) -> None:
        self._mode = parse_mode(mode)
        self._side = Side.WORD

    def set_filter(self, token: str) -> None:
        token = parse_filter_token(token)
        cards = filter_cards(self._source, token)
        # Every filter change restarts the study loop at the first card.
        self._index = 0
        self._side = Side.WORD
        self._filter = token
        self._cards = cards

    def current_display(self) -> str:
        card = self.current_card
        if card is None:
            return EMPTY_MESSAGES[self.empty_reason]
        return card.text_for(self._side)
