"""Entry point for inbound chat events; owns the channel -> session table."""

from __future__ import annotations

import asyncio
import logging

from trivia_app.core.handler import GameHandler
from trivia_app.core.models import Channel, GameState, JoinEvent, Player, SessionSnapshot, TextEvent
from trivia_app.core.services.game_session import GameSession
from trivia_app.core.services.token_pool import TokenPool
from trivia_app.core.settings import GameSettings

logger = logging.getLogger(__name__)


class SessionManager:
    """Routes joins and messages to per-channel sessions.

    Every public method is a dictionary lookup plus a non-blocking enqueue;
    all slow work happens inside the session tasks. Methods must be called
    from the event loop that runs the sessions.
    """

    def __init__(self, settings: GameSettings, handler: GameHandler) -> None:
        self._settings = settings
        self._handler = handler
        self._token_pool = TokenPool(settings.max_active_games)
        self._sessions: dict[str, GameSession] = {}
        self._closed = False

    @property
    def settings(self) -> GameSettings:
        return self._settings

    @property
    def token_pool(self) -> TokenPool:
        return self._token_pool

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def get_session(self, channel_id: str) -> GameSession | None:
        return self._sessions.get(channel_id)

    def snapshots(self) -> list[SessionSnapshot]:
        return [session.snapshot() for session in self._sessions.values()]

    # --- Inbound events ---

    def dispatch(self, event: object) -> bool:
        """Route any inbound event; unknown event types are dropped."""
        if isinstance(event, JoinEvent):
            return self.handle_join(event.channel, event.player)
        if isinstance(event, TextEvent):
            return self.handle_message(event.channel_id, event)
        logger.warning("Dropping unexpected inbound event %r", type(event).__name__)
        return False

    def handle_join(self, channel: Channel, player: Player) -> bool:
        if self._closed:
            logger.debug("Manager closed, ignoring join from %s in channel %s", player.id, channel.id)
            return False

        session = self._sessions.get(channel.id)
        if session is None or session.state is GameState.FINISHED:
            session = GameSession(
                channel=channel,
                settings=self._settings,
                handler=self._handler,
                token_pool=self._token_pool,
                on_finished=self.on_session_finished,
            )
            self._sessions[channel.id] = session
            session.start()
            logger.info("Created session %s for channel %s", session.id, channel.id)
        return session.enqueue_join(player)

    def handle_message(self, channel_id: str, event: TextEvent) -> bool:
        session = self._sessions.get(channel_id)
        if session is None:
            logger.debug("No game in channel %s, dropping message", channel_id)
            return False
        return session.enqueue_message(event)

    def on_session_finished(self, channel_id: str, session_id: str) -> None:
        """Forget a finished session so the next join creates a fresh one."""
        session = self._sessions.get(channel_id)
        if session is not None and session.id == session_id:
            del self._sessions[channel_id]
            logger.info("Removed session %s for channel %s", session_id, channel_id)

    # --- Shutdown ---

    async def close(self) -> None:
        """Cancel every running session and wait for them to unwind."""
        self._closed = True
        sessions = list(self._sessions.values())
        for session in sessions:
            session.cancel()
        tasks = [session.task for session in sessions if session.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Session manager closed (%s sessions cancelled)", len(sessions))
