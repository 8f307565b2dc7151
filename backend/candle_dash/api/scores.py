from flask import Blueprint, jsonify, request, current_app
from werkzeug.exceptions import BadRequest, HTTPException

from candle_dash.services.leaderboard import ScoreError
from candle_dash.services.leaderboard.store import submit_score, top_scores


scores = Blueprint('scores', __name__)


def _serialize(entries):
    return {'scores': [entry.to_dict() for entry in entries]}


@scores.errorhandler(Exception)
def handle_unexpected_error(exc):
    if isinstance(exc, HTTPException):
        return exc
    current_app.logger.exception(f"[scores-failed] {request.method} {request.path}")
    message = 'Unable to save score.' if request.method == 'POST' else 'Unable to load scores.'
    return jsonify({'error': message}), 500


@scores.route('', methods=['GET'])
def list_scores():
    try:
        entries = top_scores()
    except ScoreError as exc:
        return jsonify({'error': exc.message}), exc.status_code
    return jsonify(_serialize(entries))


@scores.route('', methods=['POST'])
def create_score():
    try:
        payload = request.get_json(force=True)
    except BadRequest:
        current_app.logger.warning("[score-rejected] unreadable JSON body")
        return jsonify({'error': 'Invalid JSON.'}), 500

    try:
        entries = submit_score(payload)
    except ScoreError as exc:
        if exc.status_code == 400:
            current_app.logger.info(f"[score-rejected] {exc.message}")
        return jsonify({'error': exc.message}), exc.status_code
    return jsonify(_serialize(entries))
