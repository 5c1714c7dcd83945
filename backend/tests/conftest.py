import os
import tempfile

# must be set before sweetshop.config is imported
_TMP = tempfile.mkdtemp(prefix="sweetshop-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["STOCK_LOCKS_DIR"] = os.path.join(_TMP, "locks")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from sweetshop.db import SessionLocal, init_db  # noqa: E402
from sweetshop.main import app  # noqa: E402
from sweetshop.models.user import User, UserRole  # noqa: E402
from sweetshop.services.auth_service import AuthService  # noqa: E402
from sweetshop.services.sweet_service import SweetService  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_db():
    init_db(reset=True)
    yield


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def make_user(email="user@example.com", password="secret123", role=UserRole.USER.value):
    with SessionLocal() as s:
        result = AuthService(s).register(email, password)
        if role != UserRole.USER.value:
            user = s.get(User, result.user.id)
            user.role = role
            s.commit()
        return result.user.id


def make_sweet(quantity=10, price="100.00", name="Kaju Katli", category="Traditional Sweets", acting_user_id=None):
    with SessionLocal() as s:
        sweet = SweetService(s).create_sweet(
            {"name": name, "category": category, "price": Decimal(price), "quantity": quantity},
            acting_user_id=acting_user_id,
        )
        return sweet.id


def login_headers(client, email, password="secret123"):
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['accessToken']}"}


@pytest.fixture
def user_id():
    return make_user("user@example.com")


@pytest.fixture
def admin_id():
    return make_user("admin@example.com", role=UserRole.ADMIN.value)


@pytest.fixture
def user_headers(client, user_id):
    return login_headers(client, "user@example.com")


@pytest.fixture
def admin_headers(client, admin_id):
    return login_headers(client, "admin@example.com")
