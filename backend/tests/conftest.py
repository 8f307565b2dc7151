import os
import sys
import pytest

# Ensure the backend root (containing the `candle_dash` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from candle_dash import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    AUTO_CREATE_TABLES = False
    REQUIRE_EMAIL_FOR_TOP_TEN = True
    CORS_ORIGINS = ['http://localhost:5173']


class UngatedConfig(TestConfig):
    REQUIRE_EMAIL_FOR_TOP_TEN = False


class TickerConfig(TestConfig):
    ENABLE_TICKER_IN_TESTS = True
    ROUND_TICK_MS = 10


def _make_app(config_class):
    application = create_app(config_class)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def flask_app():
    yield from _make_app(TestConfig)


@pytest.fixture()
def ungated_app():
    yield from _make_app(UngatedConfig)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def ungated_client(ungated_app):
    return ungated_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def ticker_app():
    yield from _make_app(TickerConfig)


@pytest.fixture()
def ticker_sio_client(ticker_app):
    test_client = socketio.test_client(ticker_app, namespace='/ws')
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
