from typing import Any, Callable, Dict, List, Optional

from candle_dash.services.leaderboard import ScoreError, is_top_ten_candidate
from candle_dash.services.leaderboard.validation import clean_email, clean_name, is_valid_email
from .round import ENDED, GameRound


class PlayerSession:
    """Who is playing, and whether this round's score has been sent."""

    def __init__(self, require_email: bool = True):
        self.require_email = require_email
        self.name = ''
        self.name_confirmed = False
        self.email = ''
        self.email_confirmed = False
        self.submitted = False
        self.submit_attempted = False
        self.submitting = False
        self.message = ''
        self.error = ''

    def new_round(self) -> None:
        self.submitted = False
        self.submit_attempted = False
        self.message = ''
        self.error = ''

    def confirm_name(self, draft: Any) -> str:
        cleaned = clean_name(draft)
        if not cleaned:
            raise ValueError('Please enter a name.')
        self.name = cleaned
        self.name_confirmed = True
        return cleaned

    def confirm_email(self, draft: Any) -> str:
        cleaned = clean_email(draft)
        if not cleaned or not is_valid_email(cleaned):
            raise ValueError('Email must be valid.')
        self.email = cleaned
        self.email_confirmed = True
        return cleaned

    def needs_email(self, game_round: GameRound, top_scores: List[Any]) -> bool:
        if not self.require_email:
            return False
        return is_top_ten_candidate(game_round.candles_placed, game_round.final_time_ms(), top_scores)

    def should_auto_submit(self, game_round: GameRound, top_scores: List[Any]) -> bool:
        if (
            game_round.status != ENDED
            or not self.name_confirmed
            or game_round.candles_placed <= 0
            or self.submitted
            or self.submit_attempted
            or self.submitting
        ):
            return False
        if self.needs_email(game_round, top_scores) and not self.email_confirmed:
            return False
        return True

    def payload(self, game_round: GameRound) -> Dict:
        body = {
            'name': clean_name(self.name),
            'candles': game_round.candles_placed,
            'timeMs': game_round.final_time_ms(),
        }
        if self.email_confirmed and self.email:
            body['email'] = self.email
        return body

    def _send(self, game_round: GameRound, submit: Callable[[Dict], List[Any]],
              success_message: str) -> Optional[List[Any]]:
        self.submitting = True
        self.message = ''
        self.error = ''
        try:
            scores = submit(self.payload(game_round))
        except ScoreError as exc:
            self.error = exc.message
            return None
        finally:
            self.submitting = False
        self.submitted = True
        self.message = success_message
        return list(scores or [])

    def auto_submit(self, game_round: GameRound, top_scores: List[Any],
                    submit: Callable[[Dict], List[Any]]) -> Optional[List[Any]]:
        """Send the finished round once. Returns the refreshed board, or None."""
        if not self.should_auto_submit(game_round, top_scores):
            return None
        self.submit_attempted = True
        return self._send(game_round, submit, 'Score saved automatically!')

    def can_submit(self, game_round: GameRound) -> bool:
        return (
            game_round.status == ENDED
            and game_round.candles_placed > 0
            and self.name_confirmed
            and not self.submitted
            and not self.submitting
        )

    def manual_submit(self, game_round: GameRound, top_scores: List[Any],
                      submit: Callable[[Dict], List[Any]]) -> Optional[List[Any]]:
        """Player-triggered submit; also the retry after a failed auto-submit."""
        if not self.can_submit(game_round):
            return None
        if self.needs_email(game_round, top_scores) and not self.email_confirmed:
            self.message = ''
            self.error = 'Email required for top 10 scores.'
            return None
        self.submit_attempted = True
        return self._send(game_round, submit, 'Score saved! The cake is officially legendary.')

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'name_confirmed': self.name_confirmed,
            'email_confirmed': self.email_confirmed,
            'submitted': self.submitted,
            'message': self.message,
            'error': self.error,
        }
