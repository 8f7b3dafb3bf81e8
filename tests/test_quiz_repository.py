import pytest

from trivia_app.core.exceptions import QuestionNotFound
from trivia_app.core.models import Answer, Question
from trivia_app.core.services.quiz_repository import QuestionBank

from conftest import make_question


def _bank(count=4):
    return QuestionBank([make_question(question_id=0) for _ in range(count)])


def test_missing_ids_are_assigned():
    bank = _bank(3)

    assert {bank.next_question(seed=1, rounds_played=n).id for n in range(3)} == {1, 2, 3}
    assert bank.add_question(make_question(question_id=0)).id == 4
    assert bank.add_question(make_question(question_id=99)).id == 99
    assert bank.get_question_count() == 5


def test_same_seed_gives_same_order():
    bank = _bank()

    first = [bank.next_question(seed=7, rounds_played=n).id for n in range(4)]
    second = [bank.next_question(seed=7, rounds_played=n).id for n in range(4)]

    assert first == second
    assert sorted(first) == [1, 2, 3, 4]


def test_every_pass_covers_the_whole_bank():
    bank = _bank()

    second_pass = [bank.next_question(seed=7, rounds_played=n).id for n in range(4, 8)]

    assert sorted(second_pass) == [1, 2, 3, 4]


def test_limit_restricts_the_pool():
    bank = _bank()

    picked = {bank.next_question(seed=3, rounds_played=n, limit=2).id for n in range(10)}

    assert picked == {1, 2}


def test_empty_bank_raises():
    bank = QuestionBank()

    with pytest.raises(QuestionNotFound):
        bank.next_question(seed=1, rounds_played=0)
    with pytest.raises(ValueError):
        bank.load_questions([])


def test_invalid_questions_are_rejected():
    bank = QuestionBank()

    with pytest.raises(ValueError):
        bank.add_question(Question(id=1, text="   ", answers=(Answer(texts=("a",), score=1),)))
    with pytest.raises(ValueError):
        bank.add_question(Question(id=1, text="Q", answers=(Answer(texts=("a",), score=0),)))
    with pytest.raises(ValueError):
        bank.add_question(Question(id=1, text="Q", answers=()))
