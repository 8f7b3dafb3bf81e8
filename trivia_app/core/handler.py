"""Capability interface between the coordinator and presentation/storage side effects."""

from __future__ import annotations

from abc import ABC, abstractmethod

from trivia_app.core.models import Player, RoundReveal, SessionSnapshot
from trivia_app.core.services.game_round import GameRound


class GameHandler(ABC):
    """Receives lifecycle notifications from sessions and supplies round content.

    Sessions never render text or touch storage themselves; a transport
    binding implements this class. Every call carries a ``SessionSnapshot``
    rather than the live session. Notifications default to no-ops.
    """

    @abstractmethod
    async def new_round(self, session: SessionSnapshot) -> GameRound:
        """Build the next round for ``session``.

        Raise a ``TriviaError`` (e.g. ``QuestionNotFound``) when no content
        is available; the session is then aborted.
        """

    async def game_queued(self, session: SessionSnapshot) -> None:
        pass

    async def notify_ready_after_queue(self, session: SessionSnapshot) -> None:
        pass

    async def notify_user_joined(self, session: SessionSnapshot, time_left: float) -> None:
        pass

    async def game_started(self, session: SessionSnapshot) -> None:
        pass

    async def round_started(self, session: SessionSnapshot, game_round: GameRound) -> None:
        pass

    async def round_time_left(self, session: SessionSnapshot, game_round: GameRound, time_left: float) -> None:
        pass

    async def answer_revealed(self, session: SessionSnapshot, reveal: RoundReveal) -> None:
        pass

    async def wrong_answer(self, session: SessionSnapshot, player: Player, time_left: float) -> None:
        pass

    async def round_finished(self, session: SessionSnapshot, game_round: GameRound, timeout: bool) -> None:
        pass

    async def game_finished(self, session: SessionSnapshot, timeout: bool) -> None:
        pass
