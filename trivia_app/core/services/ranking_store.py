"""Storage collaborator: per-channel progress, all-time ranking and channel config."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import random
from threading import Lock

from trivia_app.core.exceptions import PlayerScoreNotFound
from trivia_app.core.models import PlayerScore, Rank
from trivia_app.core.services.scoreboard import Scoreboard


class RankingStore(ABC):
    """Abstract contract the transport binding uses to persist game results."""

    @abstractmethod
    def next_game(self, channel_id: str) -> tuple[int, int]:
        """Return ``(seed, rounds_played)`` for the channel's question order."""

    @abstractmethod
    def record_round_played(self, channel_id: str) -> None: ...

    @abstractmethod
    def save_rank(self, channel_id: str, rank: Rank) -> None: ...

    @abstractmethod
    def channel_ranking(self, channel_id: str, top_n: int) -> Rank: ...

    @abstractmethod
    def player_channel_score(self, channel_id: str, player_id: str) -> PlayerScore: ...

    @abstractmethod
    def channel_config(self, channel_id: str, key: str, default: str = "") -> str: ...


@dataclass(slots=True)
class _ChannelRecord:
    seed: int
    rounds_played: int = 0
    games_played: int = 0
    scoreboard: Scoreboard = field(default_factory=Scoreboard)
    config: dict[str, str] = field(default_factory=dict)


class InMemoryRankingStore(RankingStore):
    """Process-local store, good for a single server and for tests."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._lock = Lock()
        self._rng = rng or random.Random()
        self._channels: dict[str, _ChannelRecord] = {}
        self._global_config: dict[str, str] = {}

    def _record(self, channel_id: str) -> _ChannelRecord:
        record = self._channels.get(channel_id)
        if record is None:
            record = _ChannelRecord(seed=self._rng.getrandbits(31))
            self._channels[channel_id] = record
        return record

    def next_game(self, channel_id: str) -> tuple[int, int]:
        with self._lock:
            record = self._record(channel_id)
            return record.seed, record.rounds_played

    def record_round_played(self, channel_id: str) -> None:
        with self._lock:
            self._record(channel_id).rounds_played += 1

    def save_rank(self, channel_id: str, rank: Rank) -> None:
        with self._lock:
            record = self._record(channel_id)
            record.scoreboard.add_rank(rank)
            record.games_played += 1

    def games_played(self, channel_id: str) -> int:
        with self._lock:
            record = self._channels.get(channel_id)
            return record.games_played if record else 0

    def channel_ranking(self, channel_id: str, top_n: int) -> Rank:
        with self._lock:
            record = self._channels.get(channel_id)
            if record is None:
                return Rank()
            return record.scoreboard.get_top_scorers(top_n)

    def player_channel_score(self, channel_id: str, player_id: str) -> PlayerScore:
        with self._lock:
            record = self._channels.get(channel_id)
            player_score = record.scoreboard.to_rank().get(player_id) if record else None
        if player_score is None:
            raise PlayerScoreNotFound(channel_id, player_id)
        return player_score

    def channel_config(self, channel_id: str, key: str, default: str = "") -> str:
        with self._lock:
            record = self._channels.get(channel_id)
            if record is not None and key in record.config:
                return record.config[key]
            return self._global_config.get(key, default)

    def set_channel_config(self, channel_id: str, key: str, value: str) -> None:
        with self._lock:
            self._record(channel_id).config[key] = value

    def set_global_config(self, key: str, value: str) -> None:
        with self._lock:
            self._global_config[key] = value
