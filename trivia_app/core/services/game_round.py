"""One question cycle inside a game: slot claims, highlights and ranking."""

from __future__ import annotations

import random

from trivia_app.core.models import (
    AnswerResult,
    Player,
    Question,
    Rank,
    RevealedAnswer,
    RoundReveal,
    RoundState,
)
from trivia_app.core.services.scoreboard import Scoreboard


class GameRound:
    """Tracks which answer slots of a question have been claimed and by whom.

    The round is owned by a single session task; it keeps only the owning
    session's id, never a reference to the session.
    """

    def __init__(self, session_id: str, question: Question, duration_seconds: float, round_id: int | None = None) -> None:
        if not question.answers:
            raise ValueError("A round needs a question with at least one answer.")
        self.id: int = round_id if round_id is not None else random.getrandbits(31)
        self.session_id = session_id
        self.question = question
        self.duration_seconds = duration_seconds
        self._state = RoundState.CREATED
        self._correct: list[str | None] = [None] * len(question.answers)
        self._claim_order: list[int] = []
        self._highlighted: set[int] = set()
        self._players: dict[str, Player] = {}
        self._ends_at: float | None = None

    @property
    def state(self) -> RoundState:
        return self._state

    @property
    def ends_at(self) -> float | None:
        return self._ends_at

    @property
    def highlighted(self) -> frozenset[int]:
        return frozenset(self._highlighted)

    def start(self, now: float) -> None:
        if self._state is not RoundState.CREATED:
            return
        self._state = RoundState.STARTED
        self._ends_at = now + self.duration_seconds

    def finish(self) -> bool:
        """Close the round. Returns False when it was already finished."""
        if self._state is RoundState.FINISHED:
            return False
        self._state = RoundState.FINISHED
        return True

    def time_left(self, now: float) -> float:
        if self._ends_at is None:
            return self.duration_seconds
        return max(0.0, self._ends_at - now)

    def claimant(self, slot_index: int) -> str | None:
        return self._correct[slot_index]

    def submit_answer(self, player: Player, text: str) -> AnswerResult:
        if self._state is not RoundState.STARTED:
            return AnswerResult(correct=False)

        index = self.question.check_answer(text)
        if index is None:
            return AnswerResult(correct=False)
        if self._correct[index] is not None:
            return AnswerResult(correct=True, already_claimed=True, slot_index=index)

        self._players.setdefault(player.id, player)
        self._correct[index] = player.id
        self._claim_order.append(index)
        self._highlighted.add(index)
        return AnswerResult(correct=True, already_claimed=False, slot_index=index)

    def is_complete(self) -> bool:
        return all(player_id is not None for player_id in self._correct)

    def claims(self) -> list[tuple[str, str, int]]:
        """(player_id, name, points) for every claimed slot, in claim order."""
        claims = []
        for index in self._claim_order:
            player = self._players[self._correct[index]]
            claims.append((player.id, player.name, self.question.answers[index].score))
        return claims

    def ranking(self) -> Rank:
        """Per-player totals for this round; ties go to whoever claimed first."""
        scoreboard = Scoreboard()
        for player_id, name, points in self.claims():
            scoreboard.record_points(player_id, name, points)
        return scoreboard.to_rank()

    def reveal_state(self, show_unanswered: bool = False, now: float | None = None) -> RoundReveal:
        revealed = []
        for index, answer in enumerate(self.question.answers):
            player_id = self._correct[index]
            if player_id is not None:
                revealed.append(
                    RevealedAnswer(
                        text=str(answer),
                        score=answer.score,
                        answered=True,
                        player_name=self._players[player_id].name,
                        highlighted=index in self._highlighted,
                    )
                )
            elif show_unanswered:
                revealed.append(RevealedAnswer(text=str(answer), score=answer.score, answered=False))
            else:
                revealed.append(RevealedAnswer(text="", score=0, answered=False))
        return RoundReveal(
            question_id=self.question.id,
            question_text=self.question.text,
            answers=tuple(revealed),
            show_unanswered=show_unanswered,
            time_left=self.time_left(now) if now is not None else 0.0,
        )

    def take_reveal(self, now: float | None = None) -> RoundReveal | None:
        """Reveal newly claimed slots and clear the highlight set.

        Returns None when nothing was claimed since the previous reveal.
        """
        if not self._highlighted:
            return None
        reveal = self.reveal_state(show_unanswered=False, now=now)
        self._highlighted.clear()
        return reveal
