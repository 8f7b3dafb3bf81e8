"""Chat-facing GameHandler: formats game events as text and persists results."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import random

from trivia_app.constants.game_constants import FINAL_RANKING_TOP_N, OUTBOX_SIZE
from trivia_app.core.exceptions import PlayerScoreNotFound, QuestionNotFound, RoundCreationError
from trivia_app.core.handler import GameHandler
from trivia_app.core.models import Player, Rank, RoundReveal, SessionSnapshot
from trivia_app.core.services.game_round import GameRound
from trivia_app.core.services.quiz_repository import QuestionBank
from trivia_app.core.services.ranking_store import RankingStore
from trivia_app.core.settings import GameSettings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OutgoingMessage:
    """A formatted message waiting for the transport to deliver it."""

    channel_id: str
    text: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ephemeral: bool = False


class Outbox:
    """Bounded per-channel buffers of outgoing messages; oldest are dropped first."""

    def __init__(self, maxlen: int = OUTBOX_SIZE) -> None:
        self._maxlen = maxlen
        self._messages: dict[str, deque[OutgoingMessage]] = {}

    def send(self, channel_id: str, text: str, ephemeral: bool = False) -> None:
        queue = self._messages.setdefault(channel_id, deque(maxlen=self._maxlen))
        queue.append(OutgoingMessage(channel_id=channel_id, text=text, ephemeral=ephemeral))

    def drain(self, channel_id: str) -> list[OutgoingMessage]:
        queue = self._messages.pop(channel_id, None)
        return list(queue) if queue else []


def format_seconds(seconds: float) -> str:
    return f"{max(0, round(seconds))}s"


def format_reveal(reveal: RoundReveal) -> str:
    lines = [f"[id: {reveal.question_id}] {reveal.question_text}", ""]
    for number, answer in enumerate(reveal.answers, start=1):
        if answer.answered:
            marker = "*" if answer.highlighted else ""
            lines.append(f"{number}. {marker}{answer.text}{marker} [ {answer.score} ] - {answer.player_name}")
        elif reveal.show_unanswered:
            lines.append(f"{number}. {answer.text} [ {answer.score} ]")
        else:
            lines.append(f"{number}. ______________________")
    return "\n".join(lines)


def format_rank(rank: Rank) -> str:
    if not len(rank):
        return "\n(no points scored)"
    return "".join(f"\n{entry.position}. ({entry.score}) {entry.name}" for entry in rank)


class ChatHandler(GameHandler):
    """GameHandler for text chat transports.

    Round content comes from the question bank; the channel's question order
    and all-time ranking live in the ranking store. Everything the players
    should read ends up in the outbox.
    """

    def __init__(self, settings: GameSettings, bank: QuestionBank, store: RankingStore, outbox: Outbox | None = None) -> None:
        self._settings = settings
        self._bank = bank
        self._store = store
        self.outbox = outbox or Outbox()

    # --- Round content ---

    async def new_round(self, session: SessionSnapshot) -> GameRound:
        channel_id = session.channel.id
        seed, rounds_played = self._store.next_game(channel_id)
        limit = self._question_limit(channel_id)
        try:
            question = self._bank.next_question(seed, rounds_played, limit)
        except QuestionNotFound as exc:
            raise RoundCreationError(f"No question available for channel {channel_id}") from exc
        self._store.record_round_played(channel_id)
        game_round = GameRound(session.id, question, self._settings.round_duration_seconds)
        logger.info(
            "Round created for channel %s (game %s, round %s, question %s, limit %s)",
            channel_id,
            session.id,
            game_round.id,
            question.id,
            limit,
        )
        return game_round

    def _question_limit(self, channel_id: str) -> int:
        raw = self._store.channel_config(channel_id, "questionLimit", "")
        if raw:
            try:
                return max(0, int(raw))
            except ValueError:
                logger.warning("Invalid questionLimit %r for channel %s", raw, channel_id)
        return self._settings.question_limit

    # --- Lobby notices ---

    async def game_queued(self, session: SessionSnapshot) -> None:
        self.outbox.send(
            session.channel.id,
            f"All game slots are busy, you are in the queue. You can still /join@{self._settings.bot_name}.\n"
            f"The game starts once a slot frees up and at least {self._settings.quorum} players have joined.",
        )

    async def notify_ready_after_queue(self, session: SessionSnapshot) -> None:
        need = self._settings.quorum - len(session.players)
        text = "Out of the queue!"
        if need > 0:
            text += f" The game starts as soon as {need} more player(s) join."
        self.outbox.send(session.channel.id, text)

    async def notify_user_joined(self, session: SessionSnapshot, time_left: float) -> None:
        need = self._settings.quorum - len(session.players)
        if need <= 0:
            return
        names = ", ".join(player.name for player in session.players)
        self.outbox.send(
            session.channel.id,
            f"OK {names}, need {need} more player(s). Time left {format_seconds(time_left)}",
            ephemeral=True,
        )

    # --- Game and rounds ---

    async def game_started(self, session: SessionSnapshot) -> None:
        self.outbox.send(
            session.channel.id,
            f"Game (id: {session.id}) started!\nAnyone may answer, no /join needed.",
        )

    async def round_started(self, session: SessionSnapshot, game_round: GameRound) -> None:
        text = f"Round {session.round_index} of {session.rounds_total}\n\n"
        text += format_reveal(game_round.reveal_state())
        self.outbox.send(session.channel.id, text)

    async def round_time_left(self, session: SessionSnapshot, game_round: GameRound, time_left: float) -> None:
        self.outbox.send(session.channel.id, f"{format_seconds(time_left)} left")

    async def answer_revealed(self, session: SessionSnapshot, reveal: RoundReveal) -> None:
        self.outbox.send(session.channel.id, format_reveal(reveal), ephemeral=True)

    async def wrong_answer(self, session: SessionSnapshot, player: Player, time_left: float) -> None:
        self.outbox.send(session.channel.id, f"{format_seconds(time_left)} left", ephemeral=True)

    async def round_finished(self, session: SessionSnapshot, game_round: GameRound, timeout: bool) -> None:
        channel_id = session.channel.id
        if timeout:
            self.outbox.send(channel_id, "Time's up!\n\n" + format_reveal(game_round.reveal_state(show_unanswered=True)))
        else:
            self.outbox.send(channel_id, format_reveal(game_round.reveal_state()))

        if session.round_index < session.rounds_total:
            self.outbox.send(channel_id, "Current score:" + format_rank(session.rank))

    async def game_finished(self, session: SessionSnapshot, timeout: bool) -> None:
        channel_id = session.channel.id
        if session.round_index == 0:
            if timeout:
                self.outbox.send(channel_id, "Game cancelled, not enough players.")
            else:
                self.outbox.send(channel_id, "Game aborted, no question available.")
            return

        self._store.save_rank(channel_id, session.rank)
        text = "Final score:" + format_rank(session.rank)
        text += "\n\nTotal score" + format_rank(self.channel_leaderboard(channel_id, session.rank))
        text += "\n\nGame over!"
        motd = self.message_of_the_day(channel_id)
        if motd:
            text += f"\n\n{motd}"
        self.outbox.send(channel_id, text)

    # --- Helpers ---

    def channel_leaderboard(self, channel_id: str, game_rank: Rank) -> Rank:
        """Channel top N plus every player of the finished game."""
        top = self._store.channel_ranking(channel_id, FINAL_RANKING_TOP_N)
        entries = list(top)
        seen = {entry.player_id for entry in entries}
        for entry in game_rank:
            if entry.player_id in seen:
                continue
            try:
                entries.append(self._store.player_channel_score(channel_id, entry.player_id))
            except PlayerScoreNotFound:
                continue
        return Rank(tuple(sorted(entries, key=lambda entry: -entry.score)))

    def message_of_the_day(self, channel_id: str) -> str:
        raw = self._store.channel_config(channel_id, "motd", "")
        messages = [message.strip() for message in raw.split(";") if message.strip()]
        return random.choice(messages) if messages else ""
