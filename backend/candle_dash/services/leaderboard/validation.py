import math
import re
from typing import Any, NamedTuple, Optional

from .errors import ScoreValidationError

MAX_NAME_LENGTH = 40
MAX_CANDLES = 29
MAX_TIME_MS = 15000
MAX_EMAIL_LENGTH = 254
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
_WHITESPACE_RE = re.compile(r'\s+')


class ScoreSubmission(NamedTuple):
    name: str
    candles: int
    time_ms: int
    email: Optional[str]


def clean_name(value: Any) -> str:
    if not isinstance(value, str):
        return ''
    return _WHITESPACE_RE.sub(' ', value.strip())[:MAX_NAME_LENGTH]


def clean_email(value: Any) -> str:
    if not isinstance(value, str):
        return ''
    return value.strip().lower()[:MAX_EMAIL_LENGTH]


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


def parse_number(value: Any) -> Optional[float]:
    """Coerce a JSON scalar into a finite float, or None when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def _in_range(number: Optional[float], upper: int) -> bool:
    return number is not None and 0 <= number <= upper


def validate_submission(payload: Any) -> ScoreSubmission:
    """Clean a raw POST body and check it against the score bounds.

    Raises ScoreValidationError with the first failing field's message.
    """
    body = payload if isinstance(payload, dict) else {}
    name = clean_name(body.get('name'))
    candles = parse_number(body.get('candles'))
    time_ms = parse_number(body.get('timeMs'))
    email = clean_email(body.get('email'))

    if not name:
        raise ScoreValidationError('Name is required.')
    if not _in_range(candles, MAX_CANDLES):
        raise ScoreValidationError('Candles must be a valid number.')
    if not _in_range(time_ms, MAX_TIME_MS):
        raise ScoreValidationError('Time must be a valid number.')
    if email and not is_valid_email(email):
        raise ScoreValidationError('Email must be valid.')

    return ScoreSubmission(
        name=name,
        candles=math.floor(candles),
        time_ms=math.floor(time_ms),
        email=email or None,
    )
