import threading
from typing import Any, Dict, List

from flask import current_app, request
from flask_socketio import emit

from candle_dash import socketio
from candle_dash.services.game.round import ENDED, GameRound, now_ms
from candle_dash.services.game.session import PlayerSession
from candle_dash.services.leaderboard import ScoreError
from candle_dash.services.leaderboard.store import submit_score, top_scores


_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _now_ms() -> int:
    return now_ms()


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _new_ctx(sid: str, namespace: str) -> Dict[str, Any]:
    require_email = bool(current_app.config.get('REQUIRE_EMAIL_FOR_TOP_TEN', True))
    return {
        'sid': sid,
        'namespace': namespace,
        'round': GameRound(),
        'session': PlayerSession(require_email=require_email),
        'lock': threading.Lock(),
        'ticker': False,
        'prompted': set(),
    }


def _get_ctx() -> Dict[str, Any]:
    sid = _get_sid()
    ctx = _sid_to_ctx.get(sid)
    if ctx is None:
        ctx = _sid_to_ctx[sid] = _new_ctx(sid, request.namespace)
    return ctx


def _send(ctx: Dict[str, Any], event: str, data: Dict) -> None:
    # socketio.emit works from both handlers and the background ticker
    socketio.emit(event, data, to=ctx['sid'], namespace=ctx['namespace'])


def _load_top() -> List[Any]:
    try:
        return top_scores()
    except ScoreError:
        return []


def _emit_state(ctx: Dict[str, Any]) -> None:
    _send(ctx, 'round_state', {
        'round': ctx['round'].to_dict(),
        'player': ctx['session'].to_dict(),
    })


def _prompt_once(ctx: Dict[str, Any], event: str, data: Dict) -> None:
    if event in ctx['prompted']:
        return
    ctx['prompted'].add(event)
    _send(ctx, event, data)


def _after_change(ctx: Dict[str, Any]) -> None:
    """Push state, then handle the end-of-round prompts and auto-submit."""
    game_round: GameRound = ctx['round']
    session: PlayerSession = ctx['session']
    _emit_state(ctx)
    if game_round.status != ENDED:
        return

    if not session.name_confirmed:
        _prompt_once(ctx, 'name_required', {'name': session.name})
        return
    if game_round.candles_placed <= 0 or session.submit_attempted:
        return

    top = _load_top()
    if session.needs_email(game_round, top) and not session.email_confirmed:
        _prompt_once(ctx, 'email_required', {
            'candles': game_round.candles_placed,
            'timeMs': game_round.final_time_ms(),
        })
        return

    scores = session.auto_submit(
        game_round, top,
        lambda payload: submit_score(payload, require_email=session.require_email),
    )
    _report_submit(ctx, scores)


def _report_submit(ctx: Dict[str, Any], scores) -> None:
    session: PlayerSession = ctx['session']
    if scores is not None:
        _send(ctx, 'scores', {'scores': [s.to_dict() for s in scores]})
        _send(ctx, 'round_message', {'message': session.message})
    elif session.error:
        _send(ctx, 'error', {'message': session.error})


def _ticker(app, sid: str) -> None:
    interval = max(10, int(app.config.get('ROUND_TICK_MS', 100))) / 1000.0
    ctx = _sid_to_ctx.get(sid)
    try:
        while True:
            socketio.sleep(interval)
            ctx = _sid_to_ctx.get(sid)
            if ctx is None:
                return
            with app.app_context():
                with ctx['lock']:
                    ctx['round'].tick(_now_ms())
                    _after_change(ctx)
                    if not ctx['round'].is_running:
                        return
    except Exception:
        app.logger.exception(f"[ticker-failed] sid={sid}")
    finally:
        if ctx is not None:
            ctx['ticker'] = False


def _start_ticker(ctx: Dict[str, Any]) -> None:
    """Drive the round's timers in the background.

    No-ops in TESTING mode unless ENABLE_TICKER_IN_TESTS is set, in which
    case the ticker runs inline until the round ends.
    """
    app = current_app._get_current_object()
    if app.config.get('TESTING') and not app.config.get('ENABLE_TICKER_IN_TESTS'):
        return
    if ctx['ticker']:
        return
    ctx['ticker'] = True
    app.logger.info(f"[ticker-start] sid={ctx['sid']}")
    if app.config.get('TESTING'):
        _ticker(app, ctx['sid'])
    else:
        socketio.start_background_task(_ticker, app, ctx['sid'])


def handle_connect(auth=None):
    _get_ctx()
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    _sid_to_ctx.pop(_get_sid(), None)


def handle_start_round(data=None):
    ctx = _get_ctx()
    with ctx['lock']:
        ctx['session'].new_round()
        ctx['prompted'].clear()
        ctx['round'].start(_now_ms())
        _emit_state(ctx)
    current_app.logger.info(f"[round-start] sid={ctx['sid']}")
    _start_ticker(ctx)


def handle_tick(data=None):
    ctx = _get_ctx()
    with ctx['lock']:
        ctx['round'].tick(_now_ms())
        _after_change(ctx)


def handle_pop_candle(data):
    candle_id = (data or {}).get('candle_id')
    if not candle_id:
        emit('error', {'message': 'candle_id is required'})
        return
    ctx = _get_ctx()
    with ctx['lock']:
        if ctx['round'].pop(candle_id, _now_ms()):
            if ctx['round'].status == ENDED:
                current_app.logger.info(
                    f"[round-end] sid={ctx['sid']} reason={ctx['round'].end_reason} "
                    f"candles={ctx['round'].candles_placed}"
                )
            _after_change(ctx)


def handle_reset_round(data=None):
    ctx = _get_ctx()
    with ctx['lock']:
        ctx['round'].reset()
        ctx['session'].new_round()
        ctx['prompted'].clear()
        _emit_state(ctx)


def handle_confirm_name(data):
    ctx = _get_ctx()
    with ctx['lock']:
        try:
            name = ctx['session'].confirm_name((data or {}).get('name'))
        except ValueError as exc:
            emit('error', {'message': str(exc)})
            return
        emit('name_confirmed', {'name': name})
        _after_change(ctx)


def handle_confirm_email(data):
    ctx = _get_ctx()
    with ctx['lock']:
        try:
            ctx['session'].confirm_email((data or {}).get('email'))
        except ValueError as exc:
            emit('error', {'message': str(exc)})
            return
        emit('email_confirmed', {})
        _after_change(ctx)


def handle_submit_score(data=None):
    ctx = _get_ctx()
    with ctx['lock']:
        game_round: GameRound = ctx['round']
        session: PlayerSession = ctx['session']
        if not session.can_submit(game_round):
            emit('error', {'message': 'There is no finished round to submit.'})
            return
        top = _load_top()
        scores = session.manual_submit(
            game_round, top,
            lambda payload: submit_score(payload, require_email=session.require_email),
        )
        if scores is None and session.needs_email(game_round, top) and not session.email_confirmed:
            _send(ctx, 'email_required', {
                'candles': game_round.candles_placed,
                'timeMs': game_round.final_time_ms(),
            })
        _report_submit(ctx, scores)
        _emit_state(ctx)


def handle_get_scores(data=None):
    emit('scores', {'scores': [s.to_dict() for s in _load_top()]})


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'start_round': handle_start_round,
    'tick': handle_tick,
    'pop_candle': handle_pop_candle,
    'reset_round': handle_reset_round,
    'confirm_name': handle_confirm_name,
    'confirm_email': handle_confirm_email,
    'submit_score': handle_submit_score,
    'get_scores': handle_get_scores,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
