class ScoreError(Exception):
    """Base class for leaderboard failures surfaced to clients."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ScoreValidationError(ScoreError, ValueError):
    status_code = 400


class ScoreStorageError(ScoreError):
    status_code = 500
