from typing import Any, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from candle_dash import db
from candle_dash.models import Score
from .errors import ScoreStorageError, ScoreValidationError
from .ranking import SCORE_LIMIT, is_top_ten_candidate
from .validation import validate_submission


def _ranked_query():
    return Score.query.order_by(
        Score.candles.desc(),
        Score.time_ms.asc(),
        Score.created_at.asc(),
        Score.id.asc(),
    )


def top_scores(limit: int = SCORE_LIMIT) -> List[Score]:
    """Current leaderboard, best first.

    Raises ScoreStorageError when the database cannot be read.
    """
    try:
        return _ranked_query().limit(limit).all()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[scores-load-failed] {exc}")
        raise ScoreStorageError('Unable to load scores.') from exc


def submit_score(payload: Any, require_email: Optional[bool] = None) -> List[Score]:
    """Validate and store one score, returning the refreshed top list.

    The eligibility read and the insert are separate statements; two
    concurrent submissions may both pass the check.
    """
    submission = validate_submission(payload)
    if require_email is None:
        require_email = bool(current_app.config.get('REQUIRE_EMAIL_FOR_TOP_TEN', True))

    try:
        current_top = _ranked_query().limit(SCORE_LIMIT).all()
        qualifies = is_top_ten_candidate(submission.candles, submission.time_ms, current_top)
        if require_email and qualifies and not submission.email:
            raise ScoreValidationError('Email required for top 10 scores.')

        score = Score(
            name=submission.name,
            candles=submission.candles,
            time_ms=submission.time_ms,
            email=submission.email,
        )
        db.session.add(score)
        db.session.commit()
        current_app.logger.info(
            f"[score-saved] id={score.id} name={score.name!r} candles={score.candles} "
            f"time_ms={score.time_ms} top_ten={qualifies}"
        )
        return _ranked_query().limit(SCORE_LIMIT).all()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[score-save-failed] {exc}")
        raise ScoreStorageError('Unable to save score.') from exc
