from datetime import datetime
from typing import Any, Iterable, List

SCORE_LIMIT = 10


def _field(entry: Any, attr: str, key: str):
    # ORM rows expose snake_case attributes; serialized entries use the wire keys
    if isinstance(entry, dict):
        return entry.get(key)
    return getattr(entry, attr)


def entry_candles(entry: Any) -> int:
    return int(_field(entry, 'candles', 'candles') or 0)


def entry_time_ms(entry: Any) -> int:
    return int(_field(entry, 'time_ms', 'timeMs') or 0)


def _entry_created_at(entry: Any):
    value = _field(entry, 'created_at', 'createdAt')
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00')).replace(tzinfo=None)
    return value or datetime.max


def sort_key(entry: Any):
    """Leaderboard order: most candles, then fastest, then earliest."""
    entry_id = _field(entry, 'id', 'id')
    return (
        -entry_candles(entry),
        entry_time_ms(entry),
        _entry_created_at(entry),
        entry_id if entry_id is not None else float('inf'),
    )


def rank_scores(entries: Iterable[Any], limit: int = SCORE_LIMIT) -> List[Any]:
    return sorted(entries, key=sort_key)[:limit]


def is_top_ten_candidate(candles: int, time_ms: int, scores: List[Any]) -> bool:
    """Return True when (candles, time_ms) would enter the given top list.

    `scores` must already be ranked and limited to SCORE_LIMIT entries; only
    the last entry is compared. A tie on both candles and time does not
    qualify, since the earlier submission keeps its place.
    """
    if len(scores) < SCORE_LIMIT:
        return True
    last_entry = scores[-1]
    if last_entry is None:
        return True
    last_candles = entry_candles(last_entry)
    if candles > last_candles:
        return True
    if candles == last_candles and time_ms < entry_time_ms(last_entry):
        return True
    return False
