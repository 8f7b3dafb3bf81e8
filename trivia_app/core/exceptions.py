"""Domain exceptions raised by the trivia coordinator and its collaborators."""


class TriviaError(Exception):
    """Base class for all trivia errors."""


class QuestionNotFound(TriviaError):
    """The question bank has nothing to offer for this round."""


class RoundCreationError(TriviaError):
    """A round could not be built for a session."""


class PlayerScoreNotFound(TriviaError):
    def __init__(self, channel_id: str, player_id: str):
        self.channel_id = channel_id
        self.player_id = player_id
        super().__init__(f"No score for player {player_id} in channel {channel_id}")


class InvalidStateTransition(TriviaError):
    """A session tried to move to a state that is not ahead of its current one."""
