from datetime import datetime, timezone

from candle_dash import db


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat_utc(value):
    """Render a naive UTC datetime the way browsers do (`...T..:..:...mmmZ`)."""
    if value is None:
        return None
    return value.isoformat(timespec='milliseconds') + 'Z'


class Score(db.Model):
    __tablename__ = 'scores'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(40), nullable=False)
    candles = db.Column(db.Integer, nullable=False, default=0)
    time_ms = db.Column(db.Integer, nullable=False, default=0)
    email = db.Column(db.String(254), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        db.Index('ix_scores_ranking', 'candles', 'time_ms'),
    )

    def __repr__(self):
        return f'<Score {self.id} {self.name!r} {self.candles}/{self.time_ms}ms>'

    def to_dict(self):
        # email stays private
        return {
            'id': self.id,
            'name': self.name,
            'candles': self.candles,
            'timeMs': self.time_ms,
            'createdAt': isoformat_utc(self.created_at),
        }
