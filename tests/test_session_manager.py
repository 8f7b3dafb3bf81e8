import asyncio

from trivia_app.core.models import Channel, GameState, JoinEvent, Player, TextEvent
from trivia_app.core.session_manager import SessionManager

from conftest import RecordingHandler


async def _wait_until(predicate, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def test_message_without_session_is_dropped(fast_settings, players):
    async def scenario():
        manager = SessionManager(fast_settings, RecordingHandler(fast_settings))
        event = TextEvent(channel_id="nowhere", player=players[0], text="apple")
        return manager.handle_message("nowhere", event), manager.active_sessions

    assert asyncio.run(scenario()) == (False, 0)


def test_dispatch_routes_known_events_and_drops_others(fast_settings, channel, players):
    async def scenario():
        manager = SessionManager(fast_settings, RecordingHandler(fast_settings))
        joined = manager.dispatch(JoinEvent(channel=channel, player=players[0]))
        said = manager.dispatch(TextEvent(channel_id=channel.id, player=players[0], text="hello"))
        unknown = manager.dispatch("not an event")
        await manager.close()
        return joined, said, unknown

    assert asyncio.run(scenario()) == (True, True, False)


def test_one_session_per_channel(fast_settings, channel, players):
    async def scenario():
        manager = SessionManager(fast_settings, RecordingHandler(fast_settings))
        manager.handle_join(channel, players[0])
        first = manager.get_session(channel.id)
        manager.handle_join(channel, players[1])
        manager.handle_join(Channel(id="other"), players[2])
        await asyncio.sleep(0.02)
        result = (
            manager.get_session(channel.id) is first,
            manager.active_sessions,
            sorted(snapshot.channel.id for snapshot in manager.snapshots()),
            first.player_count,
        )
        await manager.close()
        return result

    same, active, channels, count = asyncio.run(scenario())

    assert same
    assert active == 2
    assert channels == ["chan-1", "other"]
    assert count == 2


def test_full_join_buffer_drops_the_join(fast_settings, channel, players):
    settings = fast_settings.with_overrides(join_buffer_size=1)

    async def scenario():
        manager = SessionManager(settings, RecordingHandler(settings))
        first = manager.handle_join(channel, players[0])
        second = manager.handle_join(channel, players[1])
        await manager.close()
        return first, second

    assert asyncio.run(scenario()) == (True, False)


def test_finished_session_is_forgotten_and_replaced(fast_settings, channel, players):
    settings = fast_settings.with_overrides(quorum_wait_seconds=0.1)

    async def scenario():
        handler = RecordingHandler(settings)
        manager = SessionManager(settings, handler)
        manager.handle_join(channel, players[0])
        first_id = manager.get_session(channel.id).id
        await handler.wait_for("game_finished")
        await _wait_until(lambda: manager.get_session(channel.id) is None)

        manager.handle_join(channel, players[0])
        second = manager.get_session(channel.id)
        await manager.close()
        return first_id, second

    first_id, second = asyncio.run(scenario())

    assert second is not None
    assert second.id != first_id


def test_stale_finish_callback_keeps_the_new_session(fast_settings, channel, players):
    async def scenario():
        manager = SessionManager(fast_settings, RecordingHandler(fast_settings))
        manager.handle_join(channel, players[0])
        session = manager.get_session(channel.id)
        manager.on_session_finished(channel.id, "some-older-session")
        kept = manager.get_session(channel.id) is session
        await manager.close()
        return kept

    assert asyncio.run(scenario())


def test_running_games_never_exceed_the_token_pool(fast_settings, players):
    settings = fast_settings.with_overrides(quorum=1, max_active_games=2, round_duration_seconds=0.1)

    async def scenario():
        handler = RecordingHandler(settings)
        manager = SessionManager(settings, handler)
        observed = []
        handler.hooks["game_started"] = lambda snapshot: observed.append(manager.token_pool.in_flight)

        for index in range(4):
            assert manager.handle_join(Channel(id=f"chan-{index}"), players[0])
        await handler.wait_for("game_finished", count=4)
        await _wait_until(lambda: manager.active_sessions == 0)
        return handler, manager, observed

    handler, manager, observed = asyncio.run(scenario())

    assert len(observed) == 4
    assert max(observed) <= 2
    assert len(handler.of("game_queued")) == 2
    assert len(handler.of("notify_ready_after_queue")) == 2
    assert manager.token_pool.in_flight == 0


def test_close_cancels_sessions_and_refuses_new_joins(fast_settings, channel, players):
    async def scenario():
        handler = RecordingHandler(fast_settings)
        manager = SessionManager(fast_settings, handler)
        manager.handle_join(channel, players[0])
        manager.handle_join(Channel(id="other"), players[1])
        await asyncio.sleep(0.02)
        sessions = [manager.get_session(channel.id), manager.get_session("other")]

        await manager.close()
        refused = manager.handle_join(channel, players[2])
        return handler, manager, sessions, refused

    handler, manager, sessions, refused = asyncio.run(scenario())

    assert not refused
    assert manager.active_sessions == 0
    assert manager.token_pool.in_flight == 0
    assert all(session.state is GameState.FINISHED for session in sessions)
    assert "game_finished" not in handler.names()
