import pytest

from citas import create_app, db

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "N8N_WEBHOOK_URL": None,
    "NOTIFY_ASYNC": False,
    "LOG_LEVEL": "DEBUG",
}

WEBHOOK_URL = "http://n8n.test/webhook/citas"


@pytest.fixture
def make_app():
    """Fábrica de apps con base SQLite en memoria; limpia las tablas al final."""
    apps = []

    def _make(**overrides):
        app = create_app({**TEST_CONFIG, **overrides})
        with app.app_context():
            db.create_all()
        apps.append(app)
        return app

    yield _make

    for app in apps:
        with app.app_context():
            db.session.remove()
            db.drop_all()


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def payload():
    def _payload(**overrides):
        data = {
            "nombre": "Ana",
            "apellido": "Quispe",
            "email": "ana@example.com",
            "telefono": "+51999888777",
            "fecha": "2025-06-01",
            "hora": "10:00",
            "motivo": "Primera consulta",
            "notas": "Prefiere WhatsApp",
        }
        data.update(overrides)
        return data
    return _payload


class FakeResponse:
    def __init__(self, status_code=200, reason="OK"):
        self.status_code = status_code
        self.reason = reason

    @property
    def ok(self):
        return self.status_code < 400


@pytest.fixture
def webhook_calls(monkeypatch):
    """Reemplaza Session.post y registra cada llamada al webhook."""
    calls = []

    def fake_post(self, url, json=None, timeout=None):
        calls.append({"url": url, "json": json, "timeout": timeout})
        return FakeResponse()

    monkeypatch.setattr("citas.webhook.requests.Session.post", fake_post)
    return calls
