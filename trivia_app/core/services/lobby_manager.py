"""Service for the pre-game waiting room: player roster, quorum timer and join notices."""

from __future__ import annotations

from dataclasses import dataclass

from trivia_app.core.models import Player


@dataclass(frozen=True, slots=True)
class JoinOutcome:
    """What a single join did to the lobby."""

    is_new: bool
    quorum_met: bool
    should_notify: bool


class Lobby:
    """Collects distinct players until the quorum is reached.

    Time is passed in explicitly (event-loop seconds) so the lobby itself
    holds no clock and no timers.
    """

    def __init__(self, quorum: int, wait_seconds: float, notify_interval_seconds: float, now: float) -> None:
        self._quorum = quorum
        self._wait_seconds = wait_seconds
        self._notify_interval = notify_interval_seconds
        self._players: dict[str, Player] = {}
        self._deadline: float | None = now + wait_seconds
        self._last_notified_at: float | None = None
        self._open = True

    @property
    def quorum(self) -> int:
        return self._quorum

    @property
    def deadline(self) -> float | None:
        """Quorum deadline, or None once the timer has been stopped."""
        return self._deadline

    @property
    def player_count(self) -> int:
        return len(self._players)

    def quorum_met(self) -> bool:
        return len(self._players) >= self._quorum

    def get_players(self) -> tuple[Player, ...]:
        return tuple(self._players.values())

    def register_player(self, player: Player, now: float) -> JoinOutcome:
        """Register a join.

        A new player resets the quorum timer to its full duration unless the
        quorum is now met, which stops the timer instead. Known players change
        nothing. The "players still needed" notice is debounced to one per
        notify interval.
        """
        if not self._open or player.id in self._players:
            return JoinOutcome(is_new=False, quorum_met=self.quorum_met(), should_notify=False)

        self._players[player.id] = player
        if self.quorum_met():
            self.stop_timer()
            return JoinOutcome(is_new=True, quorum_met=True, should_notify=False)

        self._deadline = now + self._wait_seconds
        should_notify = self._last_notified_at is None or now - self._last_notified_at >= self._notify_interval
        if should_notify:
            self._last_notified_at = now
        return JoinOutcome(is_new=True, quorum_met=False, should_notify=should_notify)

    def time_left(self, now: float) -> float:
        if self._deadline is None:
            return 0.0
        return max(0.0, self._deadline - now)

    def is_expired(self, now: float) -> bool:
        return self._deadline is not None and now >= self._deadline

    def stop_timer(self) -> None:
        self._deadline = None

    def close(self) -> tuple[Player, ...]:
        """Stop accepting players and return the final roster."""
        self._open = False
        self.stop_timer()
        return self.get_players()
