import random
import time
import uuid
from typing import Dict, List, Optional

GAME_SECONDS = 15
MAX_ALIVE_CANDLES = 12
SPAWN_MS = 420
CANDLE_LIFE_MS = 2600
INITIAL_CANDLES = 5
BOMB_CHANCE = 0.12
GOLDEN_CHANCE = 0.3
TARGET_CANDLES = 29
MAX_COMBO = 8
COMBO_RESET_MS = 1800
BLOWN_LINGER_MS = 320

IDLE = 'idle'
RUNNING = 'running'
ENDED = 'ended'


def now_ms() -> int:
    return int(time.time() * 1000)


class Candle:
    def __init__(self, id: str, x: float, y: float, is_golden: bool, is_bomb: bool,
                 born_at: int, delay: float):
        self.id = id
        self.x = x
        self.y = y
        self.is_golden = is_golden
        self.is_bomb = is_bomb
        self.born_at = born_at
        self.delay = delay
        self.state = 'alive'  # alive, blown, boom
        self.popped_at = None

    def is_expired(self, now: int) -> bool:
        return now - self.born_at >= CANDLE_LIFE_MS

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'x': round(self.x, 2),
            'y': round(self.y, 2),
            'is_golden': self.is_golden,
            'is_bomb': self.is_bomb,
            'born_at': self.born_at,
            'delay': round(self.delay, 2),
            'state': self.state,
        }


def make_candle(now: int, rng: random.Random) -> Candle:
    """Roll a new candle; one roll decides bomb first, then golden."""
    roll = rng.random()
    is_bomb = roll < BOMB_CHANCE
    return Candle(
        id=uuid.UUID(int=rng.getrandbits(128), version=4).hex,
        x=rng.uniform(12, 88),
        y=rng.uniform(8, 62),
        is_golden=not is_bomb and roll < GOLDEN_CHANCE,
        is_bomb=is_bomb,
        born_at=now,
        delay=rng.uniform(0, 1.2),
    )


class GameRound:
    """One timed round: idle -> running -> ended -> idle.

    The round never reads the clock on its own; callers pass `now` (ms) to
    `start`, `tick` and `pop` so timers can be driven by a background task
    or stepped deterministically in tests.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.reset()

    def reset(self) -> None:
        self.status = IDLE
        self.end_reason = None
        self.candles: List[Candle] = []
        self.time_left = GAME_SECONDS
        self.candles_placed = 0
        self.elapsed_ms = 0
        self.combo = 0
        self.golden_pops = 0
        self.started_at = None
        self.last_pop_at = None
        self._next_second_at = None
        self._next_spawn_at = None

    @property
    def is_running(self) -> bool:
        return self.status == RUNNING

    def start(self, now: int) -> None:
        self.reset()
        self.status = RUNNING
        self.started_at = now
        self.last_pop_at = now
        self._next_second_at = now + 1000
        self._next_spawn_at = now + SPAWN_MS
        self.candles = [make_candle(now, self.rng) for _ in range(INITIAL_CANDLES)]

    def end(self, reason: str, now: int) -> bool:
        """Finish the round once; later calls are ignored."""
        if self.status != RUNNING:
            return False
        self.status = ENDED
        self.end_reason = reason
        if self.started_at is not None:
            self.elapsed_ms = min(now - self.started_at, GAME_SECONDS * 1000)
        else:
            self.elapsed_ms = GAME_SECONDS * 1000
        if reason == 'time':
            self.time_left = 0
        if reason == 'bomb':
            # keep the exploded bomb visible
            self.candles = [c for c in self.candles if c.state == 'boom']
        else:
            self.candles = []
        return True

    def tick(self, now: int) -> None:
        if self.status != RUNNING:
            return

        while self.status == RUNNING and now >= self._next_second_at:
            self._next_second_at += 1000
            if self.time_left <= 1:
                self.time_left = 0
                self.end('time', now)
            else:
                self.time_left -= 1
        if self.status != RUNNING:
            return

        while now >= self._next_spawn_at:
            spawn_at = self._next_spawn_at
            self._next_spawn_at += SPAWN_MS
            alive = [c for c in self.candles if not c.is_expired(spawn_at)]
            if len(alive) < MAX_ALIVE_CANDLES:
                alive.append(make_candle(spawn_at, self.rng))
            self.candles = alive

        # blown candles linger only until their pop animation is done
        self.candles = [
            c for c in self.candles
            if not c.is_expired(now)
            and (c.state == 'alive' or now - c.popped_at < BLOWN_LINGER_MS)
        ]

        if self.last_pop_at is not None and now - self.last_pop_at > COMBO_RESET_MS:
            self.combo = 0

    def find_candle(self, candle_id: str) -> Optional[Candle]:
        for candle in self.candles:
            if candle.id == candle_id:
                return candle
        return None

    def pop(self, candle_id: str, now: int) -> bool:
        """Pop a live candle. Returns False when the click had no effect."""
        candle = self.find_candle(candle_id)
        if not self.is_running or candle is None or candle.state != 'alive':
            return False

        if candle.is_bomb:
            candle.state = 'boom'
            self.combo = 0
            self.end('bomb', now)
            return True

        if candle.is_golden:
            self.golden_pops += 1
        candle.state = 'blown'
        candle.popped_at = now
        self.candles_placed = min(self.candles_placed + 1, TARGET_CANDLES)
        self.last_pop_at = now
        self.combo = min(self.combo + 1, MAX_COMBO)
        if self.candles_placed >= TARGET_CANDLES:
            self.end('candles', now)
        return True

    def final_time_ms(self) -> int:
        fallback = max(0, (GAME_SECONDS - self.time_left) * 1000)
        return min(self.elapsed_ms or fallback, GAME_SECONDS * 1000)

    def to_dict(self) -> Dict:
        return {
            'status': self.status,
            'end_reason': self.end_reason,
            'time_left': self.time_left,
            'candles_placed': self.candles_placed,
            'target_candles': TARGET_CANDLES,
            'elapsed_ms': self.elapsed_ms,
            'combo': self.combo,
            'golden_pops': self.golden_pops,
            'candles': [c.to_dict() for c in self.candles],
        }
