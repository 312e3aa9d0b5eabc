from datetime import timedelta

from eprojects.auth import sessions
from eprojects.models.user import ActiveSession
from eprojects.utils.dates import utcnow

from conftest import PASSWORD, login


def test_current_session_gets_user_payload(make_user, login_as):
    user = make_user(role="E-MASTER")
    client = login_as(user)

    response = client.get("/api/user")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == user.id
    assert body["effectiveRole"] == "E-MASTER"
    assert body["isEMaster"] is True
    assert body["isAdmin"] is False
    assert "hashedPassword" not in body


def test_new_login_supersedes_previous_session(db, make_user, make_client):
    user = make_user()
    laptop = make_client()
    phone = make_client()

    login(laptop, user)
    login(phone, user)

    stale = laptop.get("/api/user")
    assert stale.status_code == 401
    assert stale.json()["sessionExpired"] is True
    assert "outro dispositivo" in stale.json()["message"]

    assert phone.get("/api/user").status_code == 200
    assert db.query(ActiveSession).filter(ActiveSession.user_id == user.id).count() == 1


def test_superseded_session_is_rejected_on_any_protected_route(make_user, make_client):
    user = make_user()
    old = make_client()
    login(old, user)
    login(make_client(), user)

    response = old.get("/api/notifications")

    assert response.status_code == 401
    assert response.json()["sessionExpired"] is True


def test_anonymous_user_gets_plain_401(client):
    response = client.get("/api/user")

    assert response.status_code == 401
    assert "sessionExpired" not in response.json()


def test_garbage_cookie_is_anonymous(client):
    client.cookies.set("access_token", "Bearer nao-e-um-jwt")
    assert client.get("/api/user").status_code == 401
    assert client.get("/api/session-status").json() == {"authenticated": False}


def test_session_status(make_user, make_client):
    user = make_user()
    old = make_client()
    login(old, user)

    status = old.get("/api/session-status").json()
    assert status["authenticated"] is True
    assert status["userId"] == user.id

    login(make_client(), user)
    assert old.get("/api/session-status").json() == {"authenticated": False, "sessionExpired": True}


def test_logout_closes_session(db, make_user, login_as):
    user = make_user()
    client = login_as(user)

    assert client.post("/api/logout").status_code == 200
    assert client.get("/api/user").status_code == 401
    assert sessions.user_sessions(db, user.id) == []


def test_logout_from_stale_device_keeps_current_session(make_user, make_client):
    user = make_user()
    old = make_client()
    login(old, user)
    current = make_client()
    login(current, user)

    old.post("/api/logout")

    assert current.get("/api/user").status_code == 200


def test_wrong_password(make_user, client):
    user = make_user()
    response = client.post("/api/login", json={"email": user.email, "password": "errada"})
    assert response.status_code == 401


def test_login_records_last_login(db, make_user, login_as):
    user = make_user()
    login_as(user)
    db.refresh(user)
    assert user.last_login is not None


def test_open_session_replaces_rows(db, make_user):
    user = make_user()
    first = sessions.open_session(db, user, "pytest", "127.0.0.1")
    second = sessions.open_session(db, user, "pytest", "127.0.0.1")

    assert not sessions.is_current(db, user.id, first.session_id)
    assert sessions.is_current(db, user.id, second.session_id)
    assert [s.session_id for s in sessions.user_sessions(db, user.id)] == [second.session_id]
    assert not sessions.is_current(db, user.id + 1, second.session_id)
    assert not sessions.is_current(db, user.id, None)


def _register(client, **overrides):
    data = {
        "username": "engenheira",
        "email": "engenheira@exemplo.com",
        "password": PASSWORD,
        "cpf": "11144477735",
    }
    data.update(overrides)
    return client.post("/api/register", json=data)


def test_register_logs_in_as_basic(client):
    response = _register(client)

    assert response.status_code == 201
    assert response.json()["role"] == "E-BASIC"
    assert client.get("/api/user").json()["username"] == "engenheira"


def test_register_rejects_duplicates_and_invalid_cpf(make_client, make_user):
    existing = make_user()

    assert _register(make_client(), email=existing.email).status_code == 400
    assert _register(make_client(), username=existing.username).status_code == 400
    assert _register(make_client(), cpf=existing.cpf).status_code == 400
    assert _register(make_client(), cpf="12345678900").status_code == 400
    assert _register(make_client(), password="123").status_code == 422


def test_password_recovery_flow(db, make_user, client):
    user = make_user()

    wrong = client.post("/api/recover-password", json={"identifier": user.username, "cpf": "52998224725"})
    assert wrong.status_code == 400

    step1 = client.post("/api/recover-password", json={"identifier": user.email, "cpf": user.cpf})
    assert step1.status_code == 200
    token = step1.json()["token"]

    step2 = client.post("/api/reset-password", json={"token": token, "password": "novasenha1"})
    assert step2.status_code == 200

    login(client, user, password="novasenha1")
    assert client.post("/api/reset-password", json={"token": token, "password": "outrasenha"}).status_code == 404


def test_password_recovery_disabled(make_user, client):
    user = make_user(disable_password_recovery=True)
    response = client.post("/api/recover-password", json={"identifier": user.email, "cpf": user.cpf})
    assert response.status_code == 403


def test_expired_reset_token(db, make_user, client):
    user = make_user()
    user.reset_token = "token-antigo"
    user.reset_token_expiry = utcnow() - timedelta(minutes=5)
    db.commit()

    response = client.post("/api/reset-password", json={"token": "token-antigo", "password": "novasenha1"})
    assert response.status_code == 400
