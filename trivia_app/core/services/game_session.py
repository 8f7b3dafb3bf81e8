"""Per-channel game session: quorum wait, round loop and token handling.

Each session runs as its own asyncio task and is the only writer of its
state. The manager talks to it exclusively through two bounded queues
(joins and chat messages); everything the session wants the outside world
to see goes through the ``GameHandler``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable

from trivia_app.core.exceptions import InvalidStateTransition, TriviaError
from trivia_app.core.handler import GameHandler
from trivia_app.core.models import Channel, GameState, Player, Rank, SessionSnapshot, TextEvent
from trivia_app.core.services.game_round import GameRound
from trivia_app.core.services.lobby_manager import Lobby
from trivia_app.core.services.scoreboard import Scoreboard
from trivia_app.core.services.token_pool import TokenPool
from trivia_app.core.settings import GameSettings

logger = logging.getLogger(__name__)

_STATE_ORDER = (GameState.QUEUED, GameState.READY, GameState.STARTED, GameState.FINISHED)
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def new_session_id() -> str:
    """Random base-36 id. Collisions are harmless; sessions are keyed by channel."""
    value = random.getrandbits(63)
    digits = []
    while True:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
        if value == 0:
            break
    return "".join(reversed(digits))


class GameSession:
    """Runs one multi-round game for a channel."""

    def __init__(
        self,
        channel: Channel,
        settings: GameSettings,
        handler: GameHandler,
        token_pool: TokenPool,
        on_finished: Callable[[str, str], None] | None = None,
        session_id: str | None = None,
    ) -> None:
        self._loop = asyncio.get_running_loop()
        self.id = session_id or new_session_id()
        self.channel = channel
        self._settings = settings
        self._handler = handler
        self._token_pool = token_pool
        self._on_finished = on_finished
        self._state = GameState.QUEUED
        self._joins: asyncio.Queue[Player] = asyncio.Queue(maxsize=settings.join_buffer_size)
        self._messages: asyncio.Queue[TextEvent] = asyncio.Queue(maxsize=settings.message_buffer_size)
        self._lobby = Lobby(
            quorum=settings.quorum,
            wait_seconds=settings.quorum_wait_seconds,
            notify_interval_seconds=settings.notify_interval_seconds,
            now=self._loop.time(),
        )
        self._scoreboard = Scoreboard()
        self._round: GameRound | None = None
        self._round_index = 0
        self._holds_token = False
        self._was_queued = False
        self._timed_out = False
        self._task: asyncio.Task | None = None

    # --- Read-only views ---

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def player_count(self) -> int:
        return self._lobby.player_count

    @property
    def players(self) -> tuple[Player, ...]:
        return self._lobby.get_players()

    @property
    def round_index(self) -> int:
        return self._round_index

    @property
    def rank(self) -> Rank:
        return self._scoreboard.to_rank()

    @property
    def holds_token(self) -> bool:
        return self._holds_token

    @property
    def timed_out(self) -> bool:
        return self._timed_out

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            id=self.id,
            channel=self.channel,
            state=self._state,
            players=self._lobby.get_players(),
            round_index=self._round_index,
            rounds_total=self._settings.rounds_per_game,
            rank=self._scoreboard.to_rank(),
            queued=self._was_queued,
        )

    # --- Inbound (called from the manager, never blocks) ---

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = self._loop.create_task(self.run(), name=f"session-{self.channel.id}-{self.id}")
        return self._task

    def enqueue_join(self, player: Player) -> bool:
        try:
            self._joins.put_nowait(player)
        except asyncio.QueueFull:
            logger.warning("Join queue full for channel %s, dropping join from %s", self.channel.id, player.id)
            return False
        return True

    def enqueue_message(self, event: TextEvent) -> bool:
        try:
            self._messages.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Message queue full for channel %s, dropping message from %s", self.channel.id, event.player.id)
            return False
        return True

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()

    async def wait_closed(self) -> None:
        if self._task is not None:
            await asyncio.wait({self._task})

    # --- Session task ---

    async def run(self) -> None:
        try:
            if await self._wait_for_quorum():
                await self._play_game()
        except asyncio.CancelledError:
            logger.info("Session %s in channel %s cancelled", self.id, self.channel.id)
            raise
        except Exception:
            logger.exception("Session %s in channel %s crashed", self.id, self.channel.id)
        finally:
            self._release_token()
            self._state = GameState.FINISHED
            self._round = None
            if self._on_finished is not None:
                self._on_finished(self.channel.id, self.id)

    async def _wait_for_quorum(self) -> bool:
        """Collect players and a concurrency token. Returns True when the game may start."""
        acquire_task: asyncio.Task | None = None
        if self._token_pool.is_exhausted():
            self._was_queued = True
            logger.info("Session %s in channel %s queued, no free game slot", self.id, self.channel.id)
            await self._notify(self._handler.game_queued, self.snapshot())
            acquire_task = self._loop.create_task(self._token_pool.acquire())
        else:
            await self._token_pool.acquire()
            self._holds_token = True
            self._transition(GameState.READY)

        join_getter = self._loop.create_task(self._joins.get())
        message_getter = self._loop.create_task(self._messages.get())
        try:
            while True:
                if self._holds_token and self._lobby.quorum_met():
                    self._lobby.close()
                    self._transition(GameState.STARTED)
                    return True

                now = self._loop.time()
                if self._lobby.is_expired(now):
                    logger.info("Quorum timeout for channel %s (%s players)", self.channel.id, self._lobby.player_count)
                    await self._finish(timeout=True)
                    return False

                waiters = {join_getter, message_getter}
                if acquire_task is not None:
                    waiters.add(acquire_task)
                timeout = self._lobby.time_left(now) if self._lobby.deadline is not None else None
                done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)

                if acquire_task is not None and acquire_task in done:
                    acquire_task.result()
                    acquire_task = None
                    self._holds_token = True
                    self._transition(GameState.READY)
                    logger.info("Session %s in channel %s left the queue", self.id, self.channel.id)
                    await self._notify(self._handler.notify_ready_after_queue, self.snapshot())
                if join_getter in done:
                    await self._handle_join(join_getter.result())
                    join_getter = self._loop.create_task(self._joins.get())
                if message_getter in done:
                    event = message_getter.result()
                    logger.debug("Ignoring message from %s in channel %s, game not started", event.player.id, self.channel.id)
                    message_getter = self._loop.create_task(self._messages.get())
        finally:
            join_getter.cancel()
            message_getter.cancel()
            if acquire_task is not None:
                if acquire_task.done() and not acquire_task.cancelled() and acquire_task.exception() is None:
                    self._holds_token = True
                else:
                    acquire_task.cancel()

    async def _handle_join(self, player: Player) -> None:
        now = self._loop.time()
        outcome = self._lobby.register_player(player, now)
        if not outcome.is_new:
            return
        logger.info(
            "Player %s joined channel %s (%s/%s)",
            player.id,
            self.channel.id,
            self._lobby.player_count,
            self._lobby.quorum,
        )
        if outcome.should_notify:
            await self._notify(self._handler.notify_user_joined, self.snapshot(), self._lobby.time_left(now))

    async def _play_game(self) -> None:
        logger.info("Game %s started in channel %s with %s players", self.id, self.channel.id, self._lobby.player_count)
        await self._notify(self._handler.game_started, self.snapshot())

        for index in range(self._settings.rounds_per_game):
            try:
                game_round = await self._handler.new_round(self.snapshot())
            except TriviaError:
                logger.exception("Could not create round %s for channel %s, aborting game", index + 1, self.channel.id)
                await self._finish(timeout=False)
                return

            # Only rounds that were actually created count as played.
            self._round_index = index + 1
            self._round = game_round
            game_round.start(self._loop.time())
            await self._notify(self._handler.round_started, self.snapshot(), game_round)
            timeout = await self._play_round(game_round)
            await self._complete_round(game_round, timeout)

        await self._finish(timeout=False)

    async def _play_round(self, game_round: GameRound) -> bool:
        """Multiplex answers and timers until the round ends. Returns True on timeout."""
        ends_at = game_round.ends_at
        warning = self._settings.time_left_warning_seconds
        warn_at = ends_at - warning if 0 < warning < game_round.duration_seconds else None

        join_getter = self._loop.create_task(self._joins.get())
        message_getter = self._loop.create_task(self._messages.get())
        try:
            while True:
                now = self._loop.time()
                if now >= ends_at:
                    return True
                if warn_at is not None and now >= warn_at:
                    warn_at = None
                    await self._notify(self._handler.round_time_left, self.snapshot(), game_round, game_round.time_left(now))
                    continue

                next_deadline = ends_at if warn_at is None else min(ends_at, warn_at)
                done, _ = await asyncio.wait(
                    {join_getter, message_getter},
                    timeout=next_deadline - now,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if join_getter in done:
                    player = join_getter.result()
                    logger.debug("Join from %s rejected, game already running in channel %s", player.id, self.channel.id)
                    join_getter = self._loop.create_task(self._joins.get())
                if message_getter in done:
                    event = message_getter.result()
                    message_getter = self._loop.create_task(self._messages.get())
                    if await self._handle_answer(game_round, event):
                        return False
        finally:
            join_getter.cancel()
            message_getter.cancel()

    async def _handle_answer(self, game_round: GameRound, event: TextEvent) -> bool:
        """Feed one message to the round. Returns True once every slot is claimed."""
        result = game_round.submit_answer(event.player, event.text)
        if not result.correct:
            if self._settings.tick_after_wrong_answer:
                await self._notify(
                    self._handler.wrong_answer,
                    self.snapshot(),
                    event.player,
                    game_round.time_left(self._loop.time()),
                )
            return False
        if result.already_claimed:
            logger.debug(
                "Slot %s in channel %s already claimed by %s",
                result.slot_index,
                self.channel.id,
                game_round.claimant(result.slot_index),
            )
            return False

        logger.info(
            "Correct answer by %s in channel %s (game %s, round %s, slot %s)",
            event.player.id,
            self.channel.id,
            self.id,
            game_round.id,
            result.slot_index,
        )
        if game_round.is_complete():
            return True
        reveal = game_round.take_reveal(self._loop.time())
        if reveal is not None:
            await self._notify(self._handler.answer_revealed, self.snapshot(), reveal)
        return False

    async def _complete_round(self, game_round: GameRound, timeout: bool) -> None:
        if not game_round.finish():
            return
        for player_id, name, points in game_round.claims():
            self._scoreboard.record_points(player_id, name, points)
        self._round = None
        logger.info("Round %s of game %s finished (timeout=%s)", self._round_index, self.id, timeout)
        await self._notify(self._handler.round_finished, self.snapshot(), game_round, timeout)

    async def _finish(self, timeout: bool) -> None:
        self._transition(GameState.FINISHED)
        self._timed_out = timeout
        self._release_token()
        logger.info("Game %s in channel %s finished (timeout=%s)", self.id, self.channel.id, timeout)
        await self._notify(self._handler.game_finished, self.snapshot(), timeout)

    # --- Helpers ---

    def _transition(self, new_state: GameState) -> None:
        if _STATE_ORDER.index(new_state) <= _STATE_ORDER.index(self._state):
            raise InvalidStateTransition(f"Cannot move session {self.id} from {self._state.value} to {new_state.value}")
        logger.debug("Session %s: %s -> %s", self.id, self._state.value, new_state.value)
        self._state = new_state

    def _release_token(self) -> None:
        if self._holds_token:
            self._holds_token = False
            self._token_pool.release()

    async def _notify(self, callback, *args) -> None:
        try:
            await callback(*args)
        except Exception:
            logger.exception("Handler %s failed for channel %s", callback.__name__, self.channel.id)
