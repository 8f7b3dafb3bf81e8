"""Static metadata describing the trivia server."""

APP_NAME = "ChannelTrivia"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "ChannelTrivia runs multiplayer trivia games inside chat channels. "
    "Players join until a quorum is reached, then race to name the answers "
    "hidden behind each question over several timed rounds."
)

HELP_TEXT = (
    "Send /join to join the next game in this channel and /score to see the channel ranking. "
    "Once the game starts anyone may answer, no /join needed.\n\n"
    "Question files use this format:\n\n"
    "Q: Name something that is red\n"
    "A: apple | apel = 30\n"
    "A: strawberry = 20\n"
    "A: fire truck | firetruck = 10"
)
