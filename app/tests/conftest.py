import os

# Settings requires a secret; set before anything reads the environment
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.deps import build_services
from app.core.security import create_access_token
from app.main import create_app
from app.tests.factories import FakeChat, FakeDropbox, FakeHttp, FakeNotifier


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        jwt_secret_key="test-secret",
        storage_root=str(tmp_path / "data"),
        keys_dir=str(tmp_path / "keys"),
        course_url="https://course.test/start",
        team_chat_url="https://chat.test/join",
        dashboard_url="https://dashboard.test",
    )


@pytest.fixture
def dropbox():
    return FakeDropbox()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def services(settings, notifier):
    # local storage only; Dropbox-backed wiring is covered by the resolver/writer tests
    return build_services(settings, http=FakeHttp(), notifier=notifier, chat=FakeChat())


@pytest.fixture
def contract_service(services):
    return services.contracts


@pytest.fixture
def client(settings, services):
    app = create_app(settings, services)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(settings):
    def _headers(email: str, role: str = "vendor"):
        token = create_access_token(email, {"email": email, "role": role}, settings=settings)
        return {"Authorization": f"Bearer {token}"}
    return _headers
