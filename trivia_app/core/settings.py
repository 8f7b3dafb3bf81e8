"""Explicit configuration for the session coordinator."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import os

from trivia_app.constants.game_constants import (
    DEFAULT_BOT_NAME,
    DEFAULT_JOIN_BUFFER_SIZE,
    DEFAULT_MAX_ACTIVE_GAMES,
    DEFAULT_MESSAGE_BUFFER_SIZE,
    DEFAULT_NOTIFY_INTERVAL_SECONDS,
    DEFAULT_QUESTION_LIMIT,
    DEFAULT_QUORUM,
    DEFAULT_QUORUM_WAIT_SECONDS,
    DEFAULT_ROUND_DURATION_SECONDS,
    DEFAULT_ROUNDS_PER_GAME,
    DEFAULT_TIME_LEFT_WARNING_SECONDS,
)

_ENV_PREFIX = "TRIVIA_"


@dataclass(frozen=True, slots=True)
class GameSettings:
    """Tunables handed to the SessionManager and every session it creates."""

    quorum: int = DEFAULT_QUORUM
    rounds_per_game: int = DEFAULT_ROUNDS_PER_GAME
    quorum_wait_seconds: float = DEFAULT_QUORUM_WAIT_SECONDS
    notify_interval_seconds: float = DEFAULT_NOTIFY_INTERVAL_SECONDS
    round_duration_seconds: float = DEFAULT_ROUND_DURATION_SECONDS
    time_left_warning_seconds: float = DEFAULT_TIME_LEFT_WARNING_SECONDS
    max_active_games: int = DEFAULT_MAX_ACTIVE_GAMES
    join_buffer_size: int = DEFAULT_JOIN_BUFFER_SIZE
    message_buffer_size: int = DEFAULT_MESSAGE_BUFFER_SIZE
    tick_after_wrong_answer: bool = False
    question_limit: int = DEFAULT_QUESTION_LIMIT
    bot_name: str = DEFAULT_BOT_NAME

    def __post_init__(self) -> None:
        for name in ("quorum", "rounds_per_game", "max_active_games", "join_buffer_size", "message_buffer_size"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be a positive integer.")
        for name in ("quorum_wait_seconds", "round_duration_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive.")
        if self.notify_interval_seconds < 0 or self.time_left_warning_seconds < 0:
            raise ValueError("Intervals must not be negative.")
        if self.question_limit < 0:
            raise ValueError("question_limit must not be negative.")

    @classmethod
    def from_env(cls, environ=None) -> GameSettings:
        """Build settings from ``TRIVIA_*`` environment variables, falling back to defaults."""
        environ = os.environ if environ is None else environ
        values = {}
        for item in fields(cls):
            raw = environ.get(_ENV_PREFIX + item.name.upper())
            if raw is None:
                continue
            values[item.name] = _coerce(raw, type(item.default))
        return cls(**values)

    def with_overrides(self, **overrides) -> GameSettings:
        """Return a copy with every non-None override applied."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})


def _coerce(raw: str, kind: type):
    if kind is bool:
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if kind is int:
        return int(raw)
    if kind is float:
        return float(raw)
    return raw
