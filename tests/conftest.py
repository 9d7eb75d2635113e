"""
Shared fixtures for statistics tests
"""
import time
from unittest.mock import MagicMock

import jwt
import pytest

from travelstats import create_app
from travelstats.config import settings
from travelstats.exceptions import SourceUnavailable
from travelstats.utils.time_windows import DomainKind

TEST_SECRET = "test-secret-key-with-enough-length-for-hs256"


class InMemorySource:
    """
    Sparse aggregate source backed by plain dicts

    series: {(metric, kind, username): {key: value}}, where HOUR keys are
    (date, hour) pairs so multi-day ranges can be summed like the store does.
    """

    def __init__(self):
        self.series = {}
        self.buyers = {}
        self.calls = []
        self.fail = False

    def add(self, metric, kind, key, value, username=None):
        self.series.setdefault((metric, kind, username), {})[key] = value

    def fetch_by_bucket(self, metric, kind, start, end, username=None):
        self.calls.append((metric, kind, start, end, username))
        if self.fail:
            raise SourceUnavailable("store down")
        data = self.series.get((metric, kind, username), {})
        buckets = {}
        for key, value in data.items():
            if kind == DomainKind.HOUR:
                day, hour = key
                if start <= day <= end:
                    buckets[hour] = buckets.get(hour, 0) + value
            elif kind == DomainKind.DAY:
                if start <= key <= end:
                    buckets[key] = value
            else:
                year, month = key
                if start.year <= year <= end.year:
                    buckets[month] = value
        # deliberately unordered
        return list(reversed(list(buckets.items())))

    def fetch_ranking(self, year, username=None):
        if self.fail:
            raise SourceUnavailable("store down")
        counts = self.buyers.get(year, {})
        if username:
            return [(username, counts[username])] if username in counts else []
        return list(counts.items())


@pytest.fixture
def source():
    return InMemorySource()


@pytest.fixture
def jwt_secret(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", TEST_SECRET)
    return TEST_SECRET


@pytest.fixture
def make_token(jwt_secret):
    """Mint session tokens the way the login service does"""

    def _make(username="customer1", roles=("CUSTOMER",), expires_in=900, secret=None):
        now = int(time.time())
        payload = {
            "sub": username,
            "roles": list(roles),
            "iat": now,
            "exp": now + expires_in,
            "iss": settings.JWT_ISSUER,
        }
        return jwt.encode(payload, secret or jwt_secret, algorithm=settings.JWT_ALGORITHM)

    return _make


@pytest.fixture
def storage():
    storage = MagicMock()
    storage.ping.return_value = True
    return storage


@pytest.fixture
def app(source, storage, jwt_secret):
    app = create_app(source=source, storage=storage)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers(make_token):
    return {"Authorization": f"Bearer {make_token('admin', roles=('ADMIN',))}"}


@pytest.fixture
def user_headers(make_token):
    return {"Authorization": f"Bearer {make_token('customer1')}"}
