"""Shared fixtures: a Flask app on a throwaway SQLite file, a fake Analyzer
and small row factories."""

from datetime import datetime

import pytest

from vivasmart import create_app
from vivasmart.database import db
from vivasmart.errors import AnalyzerError
from vivasmart.models import User
from vivasmart.models_coupon import Coupon
from vivasmart.services.analyzer import AnalysisResult

ADMIN_EMAIL = "admin@vivasmart.test"
ADMIN_SECRET = "s3cret-admin"

PROJECT_TEXT = (
    "Smart Irrigation System using Arduino and soil moisture sensors. "
    "The controller reads sensor values and drives a relay-operated pump."
)


class FakeAnalyzer:
    """Stands in for the LLM client; counts calls and can be told to fail."""

    def __init__(self):
        self.calls = 0
        self.fail = False

    def analyze(self, text):
        self.calls += 1
        if self.fail:
            raise AnalyzerError()
        return AnalysisResult(
            project_title="Smart Irrigation System",
            questions=[{"q": "What does the soil moisture sensor measure?", "a": "Water content of the soil."}],
            keywords=["Arduino", "Relay"],
            diagrams=[{"title": "Block diagram", "explanation": "Sensor to controller to pump."}],
        )


@pytest.fixture
def fake_analyzer():
    return FakeAnalyzer()


@pytest.fixture
def app(tmp_path, fake_analyzer):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'vivasmart-test.db'}",
        "SECRET_KEY": "test",
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_SECRET": ADMIN_SECRET,
        "FREE_TRIALS": 3,
        "MONTHLY_PLAN_DAYS": 30,
        "WRITE_ATTEMPTS": 3,
        "ANALYZER": fake_analyzer,
        "LOG_LEVEL": "WARNING",
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Secret": ADMIN_SECRET}


@pytest.fixture
def settings(app):
    return app.extensions["vivasmart.settings"]


@pytest.fixture
def project_text():
    return PROJECT_TEXT


@pytest.fixture
def now():
    return datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture
def make_user(app):
    """Insert a user and return its id."""

    def _make(email="student@college.in", **fields):
        fields.setdefault("name", email.split("@")[0])
        fields.setdefault("role", "student")
        fields.setdefault("trials_total", 3)
        fields.setdefault("trials_used", 0)
        fields.setdefault("subscribed", False)
        user = User(email=email, **fields)
        db.session.add(user)
        db.session.commit()
        return user.id

    return _make


@pytest.fixture
def make_coupon(app):
    """Insert a coupon and return its id."""

    def _make(code="VS-ABC12345", **fields):
        fields.setdefault("active", True)
        fields.setdefault("max_uses", 100)
        fields.setdefault("uses", 0)
        fields.setdefault("trial_grant", 0)
        fields.setdefault("plan_grant", "one_time")
        coupon = Coupon(code=code, **fields)
        db.session.add(coupon)
        db.session.commit()
        return coupon.id

    return _make
