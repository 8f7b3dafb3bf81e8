import asyncio

import pytest

from trivia_app.core.exceptions import QuestionNotFound
from trivia_app.core.handler import GameHandler
from trivia_app.core.models import Answer, Channel, Player, Question
from trivia_app.core.services.game_round import GameRound
from trivia_app.core.settings import GameSettings


def make_question(question_id=1, scores=(20, 15, 15, 10, 10)):
    answers = tuple(Answer(texts=(f"answer{i}", f"alt{i}"), score=score) for i, score in enumerate(scores))
    return Question(id=question_id, text=f"Question {question_id}", answers=answers)


class RecordingHandler(GameHandler):
    """Handler double that records every notification in order."""

    def __init__(self, settings, questions=None, fail_new_round=False):
        self.settings = settings
        self.questions = list(questions or [make_question()])
        self.fail_new_round = fail_new_round
        self.events = []
        self.rounds = []
        self.hooks = {}

    def _record(self, name, *args):
        self.events.append((name,) + args)
        hook = self.hooks.get(name)
        if hook is not None:
            hook(*args)

    def names(self):
        return [event[0] for event in self.events]

    def of(self, name):
        return [event for event in self.events if event[0] == name]

    async def wait_for(self, name, count=1, timeout=3.0):
        deadline = asyncio.get_running_loop().time() + timeout
        while len(self.of(name)) < count:
            if asyncio.get_running_loop().time() > deadline:
                raise AssertionError(f"timed out waiting for {name}; got {self.names()}")
            await asyncio.sleep(0.005)
        return self.of(name)

    async def new_round(self, session):
        if self.fail_new_round:
            raise QuestionNotFound("no questions")
        question = self.questions[len(self.rounds) % len(self.questions)]
        game_round = GameRound(session.id, question, self.settings.round_duration_seconds)
        self.rounds.append(game_round)
        return game_round

    async def game_queued(self, session):
        self._record("game_queued", session)

    async def notify_ready_after_queue(self, session):
        self._record("notify_ready_after_queue", session)

    async def notify_user_joined(self, session, time_left):
        self._record("notify_user_joined", session, time_left)

    async def game_started(self, session):
        self._record("game_started", session)

    async def round_started(self, session, game_round):
        self._record("round_started", session, game_round)

    async def round_time_left(self, session, game_round, time_left):
        self._record("round_time_left", session, game_round, time_left)

    async def answer_revealed(self, session, reveal):
        self._record("answer_revealed", session, reveal)

    async def wrong_answer(self, session, player, time_left):
        self._record("wrong_answer", session, player, time_left)

    async def round_finished(self, session, game_round, timeout):
        self._record("round_finished", session, game_round, timeout)

    async def game_finished(self, session, timeout):
        self._record("game_finished", session, timeout)


@pytest.fixture()
def fast_settings():
    return GameSettings(
        quorum=3,
        rounds_per_game=1,
        quorum_wait_seconds=1.0,
        notify_interval_seconds=0.2,
        round_duration_seconds=1.0,
        time_left_warning_seconds=0.0,
        max_active_games=4,
        join_buffer_size=10,
        message_buffer_size=50,
    )


@pytest.fixture()
def channel():
    return Channel(id="chan-1", name="Trivia Night")


@pytest.fixture()
def players():
    return [
        Player(id="a", name="Alice", username="alice"),
        Player(id="b", name="Bob", username="bob"),
        Player(id="c", name="Carol", username="carol"),
    ]


@pytest.fixture()
def question():
    return make_question()
