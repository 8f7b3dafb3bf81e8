"""Service for storing trivia questions and handing them out per channel."""

from __future__ import annotations

import random
from threading import Lock

from trivia_app.core.exceptions import QuestionNotFound
from trivia_app.core.models import Answer, Question


class QuestionBank:
    """Holds the loaded questions and picks the next one for a channel.

    The order is a seeded permutation, so a channel keeps walking through the
    bank without repeats until every question has been played once.
    """

    def __init__(self, questions: list[Question] | None = None) -> None:
        self._lock = Lock()
        self._questions: list[Question] = []
        self._question_counter: int = 0
        if questions:
            self.load_questions(questions)

    def load_questions(self, questions: list[Question]) -> None:
        """Replace the bank with a new list of questions."""
        if not questions:
            raise ValueError("Question bank must contain at least one question.")
        prepared = [self._prepare_question(q) for q in questions]
        with self._lock:
            self._questions = prepared

    def add_question(self, question: Question) -> Question:
        prepared = self._prepare_question(question)
        with self._lock:
            self._questions.append(prepared)
        return prepared

    def get_question_count(self) -> int:
        with self._lock:
            return len(self._questions)

    def next_question(self, seed: int, rounds_played: int, limit: int = 0) -> Question:
        """Return the question for a channel's ``rounds_played``-th round.

        ``limit`` restricts the pool to the first ``limit`` questions of the
        bank (0 means no restriction). Each full pass over the pool is
        reshuffled with a different seed.
        """
        with self._lock:
            pool = self._questions
            if 0 < limit < len(pool):
                pool = pool[:limit]
            if not pool:
                raise QuestionNotFound("The question bank is empty.")
            cycle, position = divmod(rounds_played, len(pool))
            order = list(range(len(pool)))
            random.Random(seed + cycle).shuffle(order)
            return pool[order[position]]

    def _prepare_question(self, question: Question) -> Question:
        """Validate and normalize a question before storage."""
        cleaned_text = question.text.strip()
        if not cleaned_text:
            raise ValueError("Question text must not be empty.")
        if not question.answers:
            raise ValueError("Each question needs at least one answer.")

        answers = tuple(self._validate_answer(answer) for answer in question.answers)
        question_id = question.id if question.id > 0 else self._next_question_id()
        return Question(id=question_id, text=cleaned_text, answers=answers)

    def _next_question_id(self) -> int:
        self._question_counter += 1
        return self._question_counter

    @staticmethod
    def _validate_answer(answer: Answer) -> Answer:
        texts = tuple(text.strip() for text in answer.texts if text.strip())
        if not texts:
            raise ValueError("Answer text cannot be empty.")
        if answer.score <= 0:
            raise ValueError("Answer score must be a positive integer.")
        return Answer(texts=texts, score=answer.score)
