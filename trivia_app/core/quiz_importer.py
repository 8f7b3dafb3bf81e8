"""Utilities for importing a trivia question bank from a plain text file.

File format (repeat blocks separated by blank lines or '---'):

    ID: number          (optional, assigned by the bank when omitted)
    Q: Question text. Additional lines until the next marker are treated as
       part of the question.
    A: accepted answer | alternative spelling = points
    A: another answer = points

Every ``A:`` line is one answer slot. Alternatives for the same slot are
separated by ``|`` and the slot's point value follows the last ``=``.

Example:

    Q: Name something that is red
    A: apple | apel = 30
    A: strawberry = 20
    A: fire truck | firetruck = 10
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path

from trivia_app.core.exceptions import TriviaError
from trivia_app.core.models import Answer, Question


class QuizImportError(TriviaError):
    """Raised when a question file cannot be parsed."""


@dataclass(slots=True)
class ImportedQuiz:
    """Container for imported question bank metadata and questions."""

    source_path: Path | Traversable
    questions: list[Question]


def bundled_question_file() -> Traversable:
    """Sample question bank shipped inside the package."""
    return resources.files("trivia_app.data").joinpath("questions.txt")


def load_quiz_from_file(file_path: Path | Traversable) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    questions = parse_quiz_text(text)
    if not questions:
        raise QuizImportError("Question file did not contain any questions.")
    return ImportedQuiz(source_path=file_path, questions=questions)


def parse_quiz_text(text: str) -> list[Question]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped.startswith("#"):
            continue
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            # Blank line encountered after content - finalize current block
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    return [_parse_block(block) for block in blocks if block]


def _parse_block(block: str) -> Question:
    question_id = 0
    question_lines: list[str] = []
    answers: list[Answer] = []
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("ID:"):
            raw_value = line.split(":", 1)[1].strip()
            try:
                question_id = int(raw_value)
            except ValueError as exc:
                raise QuizImportError(f"ID must be an integer, got '{raw_value}'.") from exc
            current_section = None
            continue

        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("A:"):
            answers.append(_parse_answer(line[2:].strip()))
            current_section = None
            continue

        if current_section == "Q":
            question_lines.append(line)
        else:
            raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text missing (Q: ...)")
    if not answers:
        raise QuizImportError(f"Question '{question_text}' defines no answers (A: ...).")

    return Question(id=question_id, text=question_text, answers=tuple(answers))


def _parse_answer(raw: str) -> Answer:
    if "=" not in raw:
        raise QuizImportError(f"Answer '{raw}' is missing its points (answer = points).")
    variants_part, score_part = raw.rsplit("=", 1)
    try:
        score = int(score_part.strip())
    except ValueError as exc:
        raise QuizImportError(f"Points must be an integer, got '{score_part.strip()}'.") from exc
    if score <= 0:
        raise QuizImportError("Points must be a positive integer.")

    texts = tuple(variant.strip() for variant in variants_part.split("|") if variant.strip())
    if not texts:
        raise QuizImportError("Answer text cannot be empty.")
    return Answer(texts=texts, score=score)
