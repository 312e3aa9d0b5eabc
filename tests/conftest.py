import itertools
import os

os.environ.setdefault("EXPIRATION_CHECK_INTERVAL_SECONDS", "0")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from eprojects.auth.security import get_password_hash
from eprojects.database import build_engine, get_db, init_db
from eprojects.main import app
from eprojects.models.user import User

PASSWORD = "segredo123"


def make_cpf(base: int) -> str:
    """CPF válido a partir de 9 dígitos, calculado aqui sem usar o código da aplicação."""
    digits = [int(d) for d in f"{base:09d}"]
    for weight in (10, 11):
        total = sum(d * w for d, w in zip(digits, range(weight, 1, -1)))
        remainder = (total * 10) % 11
        digits.append(0 if remainder == 10 else remainder)
    return "".join(str(d) for d in digits)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'eprojects-test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    clients = []

    def _make():
        # Cada cliente é um "navegador" com seu próprio cookie
        client = TestClient(app)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.close()
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role="E-BASIC", role_expiry_date=None, password=PASSWORD, cpf=None, **fields):
        i = next(counter)
        user = User(
            username=fields.pop("username", f"usuario{i}"),
            email=fields.pop("email", f"usuario{i}@exemplo.com"),
            cpf=cpf or make_cpf(123456000 + i),
            hashed_password=get_password_hash(password),
            role=role,
            role_expiry_date=role_expiry_date,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def login(client, user, password=PASSWORD):
    response = client.post("/api/login", json={"email": user.email, "password": password})
    assert response.status_code == 200, response.text
    return response


@pytest.fixture
def login_as(make_client):
    def _login(user, password=PASSWORD):
        client = make_client()
        login(client, user, password)
        return client

    return _login
