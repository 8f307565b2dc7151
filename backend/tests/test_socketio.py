import pytest

from candle_dash import socketio_events
from candle_dash.models import Score
from candle_dash.services.game import round as round_module
from candle_dash.services.leaderboard import ScoreStorageError


class Clock:
    def __init__(self, now=5_000_000):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture()
def clock(monkeypatch):
    fake = Clock()
    monkeypatch.setattr(socketio_events, '_now_ms', fake)
    monkeypatch.setattr(round_module, 'BOMB_CHANCE', 0.0)
    return fake


def _events(sio_client, name):
    return [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def _last_state(packets):
    states = [pkt for pkt in packets if pkt['name'] == 'round_state']
    assert states
    return states[-1]['args'][0]


def _play_until_timeout(sio_client, clock, pops=1):
    sio_client.emit('start_round', namespace='/ws')
    state = _last_state(sio_client.get_received('/ws'))
    for candle in state['round']['candles'][:pops]:
        clock.now += 100
        sio_client.emit('pop_candle', {'candle_id': candle['id']}, namespace='/ws')
    clock.now += 15_000
    sio_client.emit('tick', namespace='/ws')


def test_socket_connect(sio_client):
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)


def test_start_round_and_pop(sio_client, clock):
    sio_client.get_received('/ws')
    sio_client.emit('start_round', namespace='/ws')
    state = _last_state(sio_client.get_received('/ws'))
    assert state['round']['status'] == 'running'
    assert len(state['round']['candles']) == round_module.INITIAL_CANDLES

    candle_id = state['round']['candles'][0]['id']
    clock.now += 200
    sio_client.emit('pop_candle', {'candle_id': candle_id}, namespace='/ws')
    state = _last_state(sio_client.get_received('/ws'))
    assert state['round']['candles_placed'] == 1
    assert state['round']['combo'] == 1


def test_pop_requires_candle_id(sio_client, clock):
    sio_client.get_received('/ws')
    sio_client.emit('pop_candle', {}, namespace='/ws')
    errors = _events(sio_client, 'error')
    assert errors[0]['args'][0]['message'] == 'candle_id is required'


def test_blank_name_is_rejected(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('confirm_name', {'name': '   '}, namespace='/ws')
    errors = _events(sio_client, 'error')
    assert errors[0]['args'][0]['message'] == 'Please enter a name.'


def test_round_end_prompts_for_name(sio_client, clock):
    sio_client.get_received('/ws')
    _play_until_timeout(sio_client, clock)
    received = sio_client.get_received('/ws')
    assert _last_state(received)['round']['status'] == 'ended'
    assert any(pkt['name'] == 'name_required' for pkt in received)
    assert Score.query.count() == 0


def test_auto_submit_after_email_confirmation(flask_app, sio_client, clock):
    sio_client.emit('confirm_name', {'name': 'Alex'}, namespace='/ws')
    sio_client.get_received('/ws')

    _play_until_timeout(sio_client, clock, pops=2)
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'email_required' for pkt in received)
    assert Score.query.count() == 0

    sio_client.emit('confirm_email', {'email': 'alex@example.com'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    scores = [pkt for pkt in received if pkt['name'] == 'scores']
    assert len(scores) == 1
    board = scores[0]['args'][0]['scores']
    assert board[0]['name'] == 'Alex'
    assert board[0]['candles'] == 2
    assert board[0]['timeMs'] == 15_000
    messages = [pkt['args'][0]['message'] for pkt in received if pkt['name'] == 'round_message']
    assert messages == ['Score saved automatically!']

    # further ticks do not resubmit
    sio_client.emit('tick', namespace='/ws')
    assert Score.query.count() == 1


def test_zero_candle_round_is_not_submitted(sio_client, clock):
    sio_client.emit('confirm_name', {'name': 'Alex'}, namespace='/ws')
    sio_client.emit('confirm_email', {'email': 'alex@example.com'}, namespace='/ws')
    sio_client.get_received('/ws')
    _play_until_timeout(sio_client, clock, pops=0)
    received = sio_client.get_received('/ws')
    assert not any(pkt['name'] == 'scores' for pkt in received)
    assert Score.query.count() == 0


def test_get_scores(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('get_scores', namespace='/ws')
    scores = _events(sio_client, 'scores')
    assert scores[0]['args'][0] == {'scores': []}


def test_manual_submit_after_failed_auto_submit(flask_app, sio_client, clock, monkeypatch):
    real_submit = socketio_events.submit_score
    failures = {'left': 1}

    def flaky_submit(payload, require_email=None):
        if failures['left']:
            failures['left'] -= 1
            raise ScoreStorageError('Unable to save score.')
        return real_submit(payload, require_email=require_email)

    monkeypatch.setattr(socketio_events, 'submit_score', flaky_submit)
    sio_client.emit('confirm_name', {'name': 'Alex'}, namespace='/ws')
    sio_client.emit('confirm_email', {'email': 'alex@example.com'}, namespace='/ws')
    sio_client.get_received('/ws')

    _play_until_timeout(sio_client, clock, pops=1)
    errors = _events(sio_client, 'error')
    assert [e['args'][0]['message'] for e in errors] == ['Unable to save score.']
    assert Score.query.count() == 0

    sio_client.emit('submit_score', namespace='/ws')
    received = sio_client.get_received('/ws')
    messages = [pkt['args'][0]['message'] for pkt in received if pkt['name'] == 'round_message']
    assert messages == ['Score saved! The cake is officially legendary.']
    assert Score.query.count() == 1

    sio_client.emit('submit_score', namespace='/ws')
    assert Score.query.count() == 1


def test_manual_submit_asks_for_email_on_top_ten(sio_client, clock):
    sio_client.get_received('/ws')
    _play_until_timeout(sio_client, clock, pops=1)
    sio_client.emit('confirm_name', {'name': 'Alex'}, namespace='/ws')
    sio_client.get_received('/ws')

    sio_client.emit('submit_score', namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'email_required' for pkt in received)
    errors = [pkt['args'][0]['message'] for pkt in received if pkt['name'] == 'error']
    assert errors == ['Email required for top 10 scores.']
    assert Score.query.count() == 0


def test_submit_without_finished_round(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('submit_score', namespace='/ws')
    errors = _events(sio_client, 'error')
    assert errors[0]['args'][0]['message'] == 'There is no finished round to submit.'


class SteppingClock:
    def __init__(self, now=5_000_000, step=1000):
        self.now = now
        self.step = step

    def __call__(self):
        current = self.now
        self.now += self.step
        return current


def _ws_ctx():
    return [ctx for ctx in socketio_events._sid_to_ctx.values() if ctx['namespace'] == '/ws'][-1]


def test_ticker_runs_round_to_timeout(ticker_sio_client, monkeypatch):
    monkeypatch.setattr(socketio_events, '_now_ms', SteppingClock())
    ticker_sio_client.get_received('/ws')
    ticker_sio_client.emit('start_round', namespace='/ws')
    state = _last_state(ticker_sio_client.get_received('/ws'))
    assert state['round']['status'] == 'ended'
    assert state['round']['end_reason'] == 'time'
    assert _ws_ctx()['ticker'] is False


def test_ticker_failure_does_not_block_next_round(ticker_sio_client, monkeypatch):
    monkeypatch.setattr(socketio_events, '_now_ms', SteppingClock())
    real_after_change = socketio_events._after_change
    failures = {'left': 1}

    def flaky_after_change(ctx):
        if failures['left']:
            failures['left'] -= 1
            raise RuntimeError('driver went away')
        real_after_change(ctx)

    monkeypatch.setattr(socketio_events, '_after_change', flaky_after_change)
    ticker_sio_client.get_received('/ws')
    ticker_sio_client.emit('start_round', namespace='/ws')
    assert _ws_ctx()['ticker'] is False
    assert _ws_ctx()['round'].status == 'running'

    ticker_sio_client.emit('start_round', namespace='/ws')
    state = _last_state(ticker_sio_client.get_received('/ws'))
    assert state['round']['status'] == 'ended'
