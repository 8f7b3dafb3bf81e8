"""Game-related defaults shared by the coordinator and the transport layer."""

DEFAULT_QUORUM: int = 3
DEFAULT_ROUNDS_PER_GAME: int = 3
DEFAULT_QUORUM_WAIT_SECONDS: float = 120.0
DEFAULT_NOTIFY_INTERVAL_SECONDS: float = 5.0
DEFAULT_ROUND_DURATION_SECONDS: float = 90.0
DEFAULT_TIME_LEFT_WARNING_SECONDS: float = 30.0
DEFAULT_MAX_ACTIVE_GAMES: int = 400
DEFAULT_JOIN_BUFFER_SIZE: int = 100
DEFAULT_MESSAGE_BUFFER_SIZE: int = 1000
DEFAULT_QUESTION_LIMIT: int = 0
DEFAULT_BOT_NAME: str = "trivia_bot"

FINAL_RANKING_TOP_N: int = 3
OUTBOX_SIZE: int = 500
