from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from sqlalchemy.exc import SQLAlchemyError
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from candle_dash.main import main
    flask_app.register_blueprint(main)

    from candle_dash.api.scores import scores
    flask_app.register_blueprint(scores, url_prefix='/api/scores')

    from candle_dash.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from candle_dash import models  # noqa: F401

    if flask_app.config.get('AUTO_CREATE_TABLES'):
        try:
            with flask_app.app_context():
                db.create_all()
            flask_app.logger.info("[db-sync] tables ensured")
        except SQLAlchemyError as exc:
            # Requests still answer with a 500 until the database is reachable
            flask_app.logger.warning(f"[db-sync] skipped: {exc}")

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the scores table."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            click.echo('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
