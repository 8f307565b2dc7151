"""Leaderboard domain services: input cleanup, ranking and the score store.

HTTP routes and socket handlers import from here so the admission rule
and validation messages stay identical on every entry point.
"""

from .errors import ScoreError, ScoreStorageError, ScoreValidationError  # noqa: F401
from .ranking import SCORE_LIMIT, is_top_ten_candidate, rank_scores  # noqa: F401
