import pytest

from app import app as flask_app


@pytest.fixture
def app():
    saved = dict(flask_app.config)
    flask_app.config.update(TESTING=True, STRICT_DECODE=False)
    yield flask_app
    flask_app.config.clear()
    flask_app.config.update(saved)


@pytest.fixture
def client(app):
    return app.test_client()
