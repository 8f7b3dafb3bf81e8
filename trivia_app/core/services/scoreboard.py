"""Service for aggregating player points into a ranking."""

from __future__ import annotations

from dataclasses import dataclass

from trivia_app.core.models import PlayerScore, Rank


@dataclass(slots=True)
class ScoreEntry:
    """Mutable scoreboard entry used internally."""

    player_id: str
    name: str
    score: int = 0


def build_rank(entries) -> Rank:
    """Sort entries by score (descending) and number them from 1.

    The sort is stable: entries with equal scores keep the order in which
    they were given, which is the order the players first scored.
    """
    sorted_entries = sorted(entries, key=lambda e: -e.score)
    return Rank(
        tuple(
            PlayerScore(
                player_id=entry.player_id,
                name=entry.name,
                score=entry.score,
                position=position,
            )
            for position, entry in enumerate(sorted_entries, start=1)
        )
    )


class Scoreboard:
    """Tracks running player totals in first-scored order."""

    def __init__(self) -> None:
        self._scores: dict[str, ScoreEntry] = {}

    def record_points(self, player_id: str, name: str, points: int) -> None:
        """Add points for a player, registering the player on first sight."""
        entry = self._scores.get(player_id)
        if entry is None:
            entry = ScoreEntry(player_id=player_id, name=name)
            self._scores[player_id] = entry
        entry.score += points

    def add_rank(self, rank: Rank) -> None:
        """Merge another ranking (e.g. one round's result) into the totals."""
        for player_score in rank:
            self.record_points(player_score.player_id, player_score.name, player_score.score)

    def to_rank(self) -> Rank:
        return build_rank(self._scores.values())

    def get_top_scorers(self, limit: int = 3) -> Rank:
        """Return the top N players of the current ranking."""
        return self.to_rank().top(limit)

    def __len__(self) -> int:
        return len(self._scores)
