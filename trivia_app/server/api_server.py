"""FastAPI server that binds chat channels to the session coordinator."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel
import uvicorn

from trivia_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION, HELP_TEXT
from trivia_app.constants.game_constants import FINAL_RANKING_TOP_N
from trivia_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from trivia_app.core.exceptions import PlayerScoreNotFound
from trivia_app.core.models import Channel, Player, TextEvent
from trivia_app.core.services.quiz_repository import QuestionBank
from trivia_app.core.services.ranking_store import InMemoryRankingStore, RankingStore
from trivia_app.core.session_manager import SessionManager
from trivia_app.core.settings import GameSettings
from trivia_app.server.chat_handler import ChatHandler, format_rank

logger = logging.getLogger(__name__)


class PlayerPayload(BaseModel):
    """Sender of a chat event."""

    player_id: str
    name: str
    username: str = ""

    def to_player(self) -> Player:
        return Player(id=self.player_id, name=self.name, username=self.username)


class JoinPayload(PlayerPayload):
    """Payload schema for an explicit join."""

    channel_name: str = ""


class MessagePayload(PlayerPayload):
    """Payload schema for a chat message forwarded by the transport."""

    text: str
    channel_name: str = ""
    received_at: datetime | None = None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _is_join_command(text: str, bot_name: str) -> bool:
    return text in ("/join", f"/join@{bot_name}")


def _is_command(text: str, command: str, bot_name: str) -> bool:
    return text in (f"/{command}", f"/{command}@{bot_name}")


def _get_manager(request: Request) -> SessionManager:
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Game server is not running.")
    return manager


def create_api_app(
    settings: GameSettings,
    bank: QuestionBank,
    store: RankingStore | None = None,
) -> FastAPI:
    """Create a FastAPI application wired to a fresh session manager."""
    store = store or InMemoryRankingStore()
    handler = ChatHandler(settings=settings, bank=bank, store=store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.manager = SessionManager(settings=settings, handler=handler)
        app.state.started_at = datetime.now(timezone.utc)
        logger.info("%s %s ready (%s questions loaded)", APP_NAME, APP_VERSION, bank.get_question_count())
        try:
            yield
        finally:
            await app.state.manager.close()
            app.state.manager = None

    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
        lifespan=lifespan,
    )
    app.state.handler = handler
    app.state.store = store

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"status": "healthy"}

    @app.get("/games")
    async def list_games(manager: SessionManager = Depends(_get_manager)) -> dict[str, object]:
        return {
            "active": manager.active_sessions,
            "running": manager.token_pool.in_flight,
            "capacity": manager.token_pool.capacity,
            "games": [
                {
                    "id": snapshot.id,
                    "channel_id": snapshot.channel.id,
                    "state": snapshot.state.value,
                    "players": [player.name for player in snapshot.players],
                    "round": snapshot.round_index,
                    "queued": snapshot.queued,
                }
                for snapshot in manager.snapshots()
            ],
        }

    @app.post("/channels/{channel_id}/join", status_code=202)
    async def join_channel(
        channel_id: str,
        payload: JoinPayload,
        manager: SessionManager = Depends(_get_manager),
    ) -> dict[str, object]:
        accepted = manager.handle_join(Channel(id=channel_id, name=payload.channel_name), payload.to_player())
        return {"accepted": accepted}

    @app.post("/channels/{channel_id}/messages", status_code=202)
    async def post_message(
        channel_id: str,
        payload: MessagePayload,
        request: Request,
        manager: SessionManager = Depends(_get_manager),
    ) -> dict[str, object]:
        received_at = _as_utc(payload.received_at) if payload.received_at else datetime.now(timezone.utc)
        if received_at < request.app.state.started_at:
            logger.debug("Discarding message from %s sent before startup", payload.player_id)
            return {"accepted": False, "reason": "stale"}

        text = payload.text.strip()
        player = payload.to_player()
        if _is_join_command(text, settings.bot_name):
            accepted = manager.handle_join(Channel(id=channel_id, name=payload.channel_name), player)
            return {"accepted": accepted}
        if _is_command(text, "score", settings.bot_name):
            rank = store.channel_ranking(channel_id, FINAL_RANKING_TOP_N)
            handler.outbox.send(channel_id, "Channel ranking:" + format_rank(rank))
            return {"accepted": True}
        if _is_command(text, "help", settings.bot_name):
            handler.outbox.send(channel_id, HELP_TEXT)
            return {"accepted": True}

        event = TextEvent(channel_id=channel_id, player=player, text=text, received_at=received_at)
        return {"accepted": manager.handle_message(channel_id, event)}

    @app.get("/channels/{channel_id}/outbox")
    async def drain_outbox(channel_id: str) -> dict[str, object]:
        messages = handler.outbox.drain(channel_id)
        return {
            "messages": [
                {
                    "text": message.text,
                    "created_at": message.created_at.isoformat(),
                    "ephemeral": message.ephemeral,
                }
                for message in messages
            ]
        }

    @app.get("/channels/{channel_id}/game")
    async def current_game(channel_id: str, manager: SessionManager = Depends(_get_manager)) -> dict[str, object]:
        session = manager.get_session(channel_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"No game in channel {channel_id}.")
        snapshot = session.snapshot()
        return {
            "id": snapshot.id,
            "state": snapshot.state.value,
            "players": [player.name for player in snapshot.players],
            "round": snapshot.round_index,
            "rounds_total": snapshot.rounds_total,
            "score": [{"player_id": entry.player_id, "name": entry.name, "score": entry.score} for entry in snapshot.rank],
        }

    @app.get("/channels/{channel_id}/players/{player_id}/score")
    def player_score(channel_id: str, player_id: str) -> dict[str, object]:
        try:
            entry = store.player_channel_score(channel_id, player_id)
        except PlayerScoreNotFound as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"player_id": entry.player_id, "name": entry.name, "score": entry.score, "position": entry.position}

    @app.get("/channels/{channel_id}/ranking")
    def channel_ranking(channel_id: str, top: int = Query(FINAL_RANKING_TOP_N, ge=1, le=100)) -> dict[str, object]:
        rank = store.channel_ranking(channel_id, top)
        return {
            "channel_id": channel_id,
            "ranking": [
                {"player_id": entry.player_id, "name": entry.name, "score": entry.score, "position": entry.position}
                for entry in rank
            ],
        }

    return app


def start_api_server(
    settings: GameSettings,
    bank: QuestionBank,
    store: RankingStore | None = None,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    log_level: str = "info",
) -> None:
    """Run the FastAPI server on the current thread until interrupted."""
    app = create_api_app(settings=settings, bank=bank, store=store)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level)
    server = uvicorn.Server(config)
    server.run()
