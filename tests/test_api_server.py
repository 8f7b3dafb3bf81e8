import time

from fastapi.testclient import TestClient

from trivia_app.constants.about import HELP_TEXT
from trivia_app.core.models import Answer, Question
from trivia_app.core.services.quiz_repository import QuestionBank
from trivia_app.core.services.ranking_store import InMemoryRankingStore
from trivia_app.core.settings import GameSettings
from trivia_app.server.api_server import create_api_app


def _app():
    settings = GameSettings(
        quorum=2,
        rounds_per_game=1,
        quorum_wait_seconds=5.0,
        round_duration_seconds=5.0,
        time_left_warning_seconds=0.0,
    )
    bank = QuestionBank(
        [
            Question(
                id=1,
                text="Name something that is red",
                answers=(Answer(texts=("apple",), score=30), Answer(texts=("strawberry", "strawberries"), score=20)),
            )
        ]
    )
    return create_api_app(settings, bank, InMemoryRankingStore())


def _say(client, channel_id, player_id, text, **extra):
    payload = {"player_id": player_id, "name": player_id.title(), "text": text}
    payload.update(extra)
    return client.post(f"/channels/{channel_id}/messages", json=payload)


def _collect_until(client, channel_id, needle, seen, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        messages = client.get(f"/channels/{channel_id}/outbox").json()["messages"]
        seen.extend(message["text"] for message in messages)
        if any(needle in text for text in seen):
            return seen
        time.sleep(0.02)
    raise AssertionError(f"{needle!r} never showed up in {seen}")


def test_manager_unavailable_outside_lifespan():
    client = TestClient(_app())

    assert client.get("/games").status_code == 503


def test_full_game_over_http():
    with TestClient(_app()) as client:
        assert client.get("/health").json() == {"status": "healthy"}
        assert _say(client, "c1", "alice", "/join").json() == {"accepted": True}
        assert _say(client, "c1", "bob", "/join@trivia_bot").json() == {"accepted": True}

        seen = _collect_until(client, "c1", "Round 1 of 1", [])
        assert any("Game (id:" in text for text in seen)

        assert _say(client, "c1", "alice", "Apple").json() == {"accepted": True}
        assert _say(client, "c1", "bob", "strawberries").json() == {"accepted": True}
        seen = _collect_until(client, "c1", "Game over!", seen)

        final = next(text for text in seen if "Game over!" in text)
        assert "Final score:\n1. (30) Alice\n2. (20) Bob" in final

        ranking = client.get("/channels/c1/ranking").json()["ranking"]
        assert [(entry["player_id"], entry["score"], entry["position"]) for entry in ranking] == [
            ("alice", 30, 1),
            ("bob", 20, 2),
        ]

        assert client.get("/channels/c1/players/alice/score").json()["score"] == 30
        assert client.get("/channels/c1/players/nobody/score").status_code == 404


def test_join_endpoint_and_game_listing():
    with TestClient(_app()) as client:
        response = client.post("/channels/c2/join", json={"player_id": "carol", "name": "Carol"})
        assert response.status_code == 202
        assert response.json() == {"accepted": True}

        time.sleep(0.05)
        games = client.get("/games").json()
        assert games["active"] == 1
        assert games["capacity"] == GameSettings().max_active_games
        assert games["games"][0]["channel_id"] == "c2"
        assert games["games"][0]["state"] == "ready"
        assert games["games"][0]["players"] == ["Carol"]

        game = client.get("/channels/c2/game").json()
        assert game["state"] == "ready"
        assert game["rounds_total"] == 1
        assert client.get("/channels/c9/game").status_code == 404


def test_messages_without_game_or_sent_before_startup_are_dropped():
    with TestClient(_app()) as client:
        assert _say(client, "c3", "dave", "apple").json() == {"accepted": False}
        stale = _say(client, "c3", "dave", "/join", received_at="2000-01-01T00:00:00Z")
        assert stale.json() == {"accepted": False, "reason": "stale"}
        assert client.get("/games").json()["active"] == 0


def test_help_and_score_commands_answer_in_the_outbox():
    with TestClient(_app()) as client:
        _say(client, "c4", "erin", "/help")
        _say(client, "c4", "erin", "/score@trivia_bot")

        texts = [message["text"] for message in client.get("/channels/c4/outbox").json()["messages"]]

        assert texts == [HELP_TEXT, "Channel ranking:\n(no points scored)"]
        assert client.get("/channels/c4/outbox").json() == {"messages": []}


def test_malformed_payload_is_rejected():
    with TestClient(_app()) as client:
        response = client.post("/channels/c5/messages", json={"player_id": "frank", "name": "Frank"})

        assert response.status_code == 422
