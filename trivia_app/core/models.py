"""Domain models for the trivia coordinator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import string
import unicodedata

_PUNCTUATION = string.punctuation + "¡¿“”‘’«»"


class GameState(str, Enum):
    """Lifecycle of a game session. Transitions only move forward."""

    QUEUED = "queued"
    READY = "ready"
    STARTED = "started"
    FINISHED = "finished"


class RoundState(str, Enum):
    CREATED = "created"
    STARTED = "started"
    FINISHED = "finished"


@dataclass(frozen=True, slots=True)
class Player:
    """A chat participant. Identity is the ``id``; names are display only."""

    id: str
    name: str
    username: str = ""


@dataclass(frozen=True, slots=True)
class Channel:
    id: str
    name: str = ""


def normalize_answer(text: str) -> str:
    """Fold case, drop diacritics and collapse whitespace for answer matching."""
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.split()).strip(_PUNCTUATION + " ")


@dataclass(frozen=True, slots=True)
class Answer:
    """One answer slot of a question: accepted spellings plus its point value."""

    texts: tuple[str, ...]
    score: int

    def __str__(self) -> str:
        return self.texts[0] if self.texts else ""

    def matches(self, text: str) -> bool:
        candidate = normalize_answer(text)
        if not candidate:
            return False
        return any(normalize_answer(variant) == candidate for variant in self.texts)


@dataclass(frozen=True, slots=True)
class Question:
    """Trivia question with a fixed, ordered list of answer slots."""

    id: int
    text: str
    answers: tuple[Answer, ...]

    def check_answer(self, text: str) -> int | None:
        """Return the index of the first slot accepting ``text``, if any."""
        for index, answer in enumerate(self.answers):
            if answer.matches(text):
                return index
        return None


@dataclass(frozen=True, slots=True)
class AnswerResult:
    """Outcome of submitting one answer to a round."""

    correct: bool
    already_claimed: bool = False
    slot_index: int = -1


@dataclass(frozen=True, slots=True)
class PlayerScore:
    player_id: str
    name: str
    score: int
    position: int = 0


@dataclass(frozen=True, slots=True)
class Rank:
    """Ordered player scores, best first, with 1-based positions."""

    entries: tuple[PlayerScore, ...] = ()

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index: int) -> PlayerScore:
        return self.entries[index]

    def get(self, player_id: str) -> PlayerScore | None:
        return next((entry for entry in self.entries if entry.player_id == player_id), None)

    def top(self, limit: int) -> Rank:
        return Rank(self.entries[:limit])

    def merge(self, other: Rank) -> Rank:
        """Add ``other``'s scores into a new rank.

        Equal totals keep this rank's order first, then the order in which
        new players appear in ``other``.
        """
        totals: dict[str, PlayerScore] = {entry.player_id: entry for entry in self.entries}
        for entry in other.entries:
            current = totals.get(entry.player_id)
            score = entry.score if current is None else current.score + entry.score
            name = entry.name if current is None else current.name
            totals[entry.player_id] = PlayerScore(player_id=entry.player_id, name=name, score=score)
        ordered = sorted(totals.values(), key=lambda entry: -entry.score)
        return Rank(
            tuple(
                PlayerScore(player_id=entry.player_id, name=entry.name, score=entry.score, position=position)
                for position, entry in enumerate(ordered, start=1)
            )
        )


@dataclass(frozen=True, slots=True)
class RevealedAnswer:
    """Presentation view of one answer slot."""

    text: str
    score: int
    answered: bool
    player_name: str = ""
    highlighted: bool = False


@dataclass(frozen=True, slots=True)
class RoundReveal:
    question_id: int
    question_text: str
    answers: tuple[RevealedAnswer, ...]
    show_unanswered: bool
    time_left: float


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Immutable view of a session handed to the handler instead of the session itself."""

    id: str
    channel: Channel
    state: GameState
    players: tuple[Player, ...]
    round_index: int
    rounds_total: int
    rank: Rank = field(default_factory=Rank)
    queued: bool = False


@dataclass(frozen=True, slots=True)
class JoinEvent:
    channel: Channel
    player: Player


@dataclass(frozen=True, slots=True)
class TextEvent:
    """Free-text chat message, usually an answer attempt."""

    channel_id: str
    player: Player
    text: str
    received_at: datetime | None = None
