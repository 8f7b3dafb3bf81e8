"""Application entry point for the channel trivia server."""

from __future__ import annotations

from pathlib import Path

import click

from trivia_app.constants.about import APP_NAME, APP_VERSION
from trivia_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from trivia_app.core.quiz_importer import QuizImportError, bundled_question_file, load_quiz_from_file
from trivia_app.core.services.quiz_repository import QuestionBank
from trivia_app.core.settings import GameSettings
from trivia_app.server.api_server import start_api_server
from trivia_app.utils.logging_config import configure_logging


@click.command()
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="Interface to bind.")
@click.option("--port", default=DEFAULT_PORT, show_default=True, type=int, help="Port to listen on.")
@click.option(
    "--questions",
    "questions_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Question bank file. Defaults to the bundled sample bank.",
)
@click.option("--quorum", type=int, default=None, help="Minimum players to start a game.")
@click.option("--round-duration", type=float, default=None, help="Round duration in seconds.")
@click.option("--question-limit", type=int, default=None, help="Only use the first N questions (0 = all).")
@click.option("--bot-name", default=None, help="Bot name accepted in /join@<bot-name>.")
@click.option(
    "--log-level",
    default="info",
    show_default=True,
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
)
def main(
    host: str,
    port: int,
    questions_path: Path | None,
    quorum: int | None,
    round_duration: float | None,
    question_limit: int | None,
    bot_name: str | None,
    log_level: str,
) -> None:
    """Load the question bank and serve the trivia API."""
    logger = configure_logging(log_level)
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    settings = GameSettings.from_env().with_overrides(
        quorum=quorum,
        round_duration_seconds=round_duration,
        question_limit=question_limit,
        bot_name=bot_name,
    )
    source = questions_path or bundled_question_file()
    try:
        imported = load_quiz_from_file(source)
    except QuizImportError as exc:
        raise click.ClickException(f"Could not load {source}: {exc}") from exc
    bank = QuestionBank(imported.questions)
    logger.info("Loaded %s questions from %s", bank.get_question_count(), source)

    start_api_server(settings=settings, bank=bank, host=host, port=port, log_level=log_level)


if __name__ == "__main__":
    main()
