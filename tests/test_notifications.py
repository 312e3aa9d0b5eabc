from datetime import timedelta

from eprojects.models.notification import Notification
from eprojects.utils.dates import utcnow


def _notify(db, **fields):
    data = {"title": "Aviso", "message": "Manutenção programada no sábado"}
    data.update(fields)
    notification = Notification(**data)
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def test_visibility_by_role_and_recipient(db, make_user, login_as):
    basic = make_user()
    other = make_user()
    master = make_user(role="E-MASTER")

    everyone = _notify(db, target_role="all")
    for_master = _notify(db, target_role="E-MASTER")
    for_basic = _notify(db, target_role="E-BASIC")
    personal = _notify(db, target_role="individual", user_id=basic.id)
    _notify(db, target_role="individual", user_id=other.id)

    seen = {n["id"] for n in login_as(basic).get("/api/notifications").json()}
    assert seen == {everyone.id, for_basic.id, personal.id}

    seen = {n["id"] for n in login_as(master).get("/api/notifications").json()}
    assert seen == {everyone.id, for_master.id}


def test_expired_role_sees_basic_notifications(db, make_user, login_as):
    lapsed = make_user(role="E-TOOL", role_expiry_date=utcnow() - timedelta(days=1))
    for_tool = _notify(db, target_role="E-TOOL")
    for_basic = _notify(db, target_role="E-BASIC")

    seen = {n["id"] for n in login_as(lapsed).get("/api/notifications").json()}
    assert for_basic.id in seen
    assert for_tool.id not in seen


def test_expired_notifications_are_hidden(db, make_user, login_as):
    user = make_user()
    _notify(db, expires_at=utcnow() - timedelta(hours=1))
    current = _notify(db, expires_at=utcnow() + timedelta(days=1))

    assert [n["id"] for n in login_as(user).get("/api/notifications").json()] == [current.id]


def test_mark_as_read_only_for_recipient(db, make_user, login_as):
    owner = make_user()
    stranger = make_user()
    personal = _notify(db, target_role="individual", user_id=owner.id)

    assert login_as(stranger).patch(f"/api/notifications/{personal.id}/read").status_code == 404

    response = login_as(owner).patch(f"/api/notifications/{personal.id}/read")
    assert response.status_code == 200
    assert response.json()["isRead"] is True


def test_listing_requires_login(client):
    assert client.get("/api/notifications").status_code == 401


def test_admin_creates_individual_notification(db, make_user, login_as):
    admin = login_as(make_user(role="admin"))
    target = make_user()

    response = admin.post(
        "/api/notifications",
        json={"title": "Bem-vindo", "message": "Sua conta está pronta", "targetRole": "E-MASTER", "userId": target.id},
    )
    assert response.status_code == 201
    assert response.json()["targetRole"] == "individual"
    assert response.json()["userId"] == target.id

    missing = admin.post(
        "/api/notifications",
        json={"title": "Bem-vindo", "message": "Sua conta está pronta", "userId": 9999},
    )
    assert missing.status_code == 404


def test_bulk_creates_one_notification_per_user(db, make_user, login_as):
    admin_user = make_user(role="admin")
    make_user(role="E-TOOL")
    make_user(role="E-TOOL")
    make_user()
    admin = login_as(admin_user)

    response = admin.post(
        "/api/notifications/bulk",
        json={"title": "Novidade", "message": "Nova ferramenta liberada", "targetRole": "E-TOOL"},
    )
    assert response.status_code == 201
    assert response.json()["count"] == 2

    rows = db.query(Notification).all()
    assert len(rows) == 2
    assert all(row.target_role == "individual" and row.user_id for row in rows)

    everyone = admin.post(
        "/api/notifications/bulk",
        json={"title": "Novidade", "message": "Manutenção concluída"},
    )
    assert everyone.json() == {"message": "Notificação enviada para 4 usuários", "count": 4}


def test_non_admin_cannot_create_or_delete(db, make_user, login_as):
    basic = login_as(make_user())
    notification = _notify(db)

    assert basic.post("/api/notifications", json={"title": "Olá a todos", "message": "Teste de envio"}).status_code == 403
    assert basic.delete(f"/api/notifications/{notification.id}").status_code == 403


def test_admin_deletes_notification(db, make_user, login_as):
    admin = login_as(make_user(role="admin"))
    notification = _notify(db)

    assert admin.delete(f"/api/notifications/{notification.id}").status_code == 200
    assert admin.delete(f"/api/notifications/{notification.id}").status_code == 404
