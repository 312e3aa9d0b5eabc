from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from eprojects.models.course import Course, CoursePurchase, Lesson, Material
from eprojects.services.course_access import (
    check_course_access,
    deactivate_expired_purchases,
    new_purchase,
)
from eprojects.users.tiers import resolve_tier
from eprojects.utils.dates import utcnow

COURSE_PAYLOAD = {
    "title": "Automação Industrial",
    "description": "CLPs, sensores e atuadores do zero",
    "category": "electrical",
    "instructor": "Carlos Lima",
    "duration": "12h",
    "level": "intermediate",
}


def _course(db, **fields):
    data = {
        "title": "Resistência dos Materiais",
        "description": "Tensão, deformação e flexão",
        "category": "mechanical",
        "instructor": "Marina Prado",
        "duration": "8h",
        "level": "advanced",
    }
    data.update(fields)
    course = Course(**data)
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def _principal(user):
    return SimpleNamespace(user=user, tier=resolve_tier(user.role, user.role_expiry_date))


def test_access_rules(db, make_user):
    free = _course(db)
    coded = _course(db, requires_promo_code=True)
    paid = _course(db, price=Decimal("99.90"))
    hidden = _course(db, is_hidden=True)

    basic = _principal(make_user())
    master = _principal(make_user(role="E-MASTER"))
    admin = _principal(make_user(role="admin"))

    assert check_course_access(db, free, None).has_access is False
    assert check_course_access(db, free, basic).has_access is True

    result = check_course_access(db, coded, basic)
    assert result.has_access is False
    assert result.requires_promo_code is True
    assert "código promocional" in result.message

    assert check_course_access(db, coded, master).has_access is True
    assert check_course_access(db, paid, master).has_access is False
    assert "compra" in check_course_access(db, paid, basic).message

    assert check_course_access(db, hidden, master).has_access is False
    assert check_course_access(db, hidden, admin).has_access is True
    assert check_course_access(db, paid, admin).has_access is True


def test_active_purchase_grants_access(db, make_user):
    paid = _course(db, price=Decimal("50"))
    user = make_user()

    db.add(new_purchase(user.id, paid))
    db.commit()

    result = check_course_access(db, paid, _principal(user))
    assert result.has_access is True
    assert result.has_purchased is True


def test_expired_purchase_does_not_grant_access(db, make_user):
    paid = _course(db, price=Decimal("50"))
    user = make_user()
    past = utcnow() - timedelta(days=40)
    db.add(new_purchase(user.id, paid, days=30, now=past))
    db.commit()

    assert check_course_access(db, paid, _principal(user)).has_access is False

    assert deactivate_expired_purchases(db) == 1
    assert db.query(CoursePurchase).filter(CoursePurchase.active.is_(True)).count() == 0


def test_listing_hides_hidden_courses(db, make_user, login_as, client):
    visible = _course(db)
    hidden = _course(db, is_hidden=True)
    admin = login_as(make_user(role="admin"))

    assert [c["id"] for c in client.get("/api/courses").json()] == [visible.id]
    assert {c["id"] for c in admin.get("/api/courses").json()} == {visible.id, hidden.id}

    assert client.get(f"/api/courses/{hidden.id}").status_code == 404
    assert admin.get(f"/api/courses/{hidden.id}").status_code == 200


def test_course_detail_reports_access(db, make_user, login_as, client):
    course = _course(db, requires_promo_code=True)
    master = login_as(make_user(role="E-MASTER"))
    basic = login_as(make_user())

    assert master.get(f"/api/courses/{course.id}").json()["hasAccess"] is True
    assert basic.get(f"/api/courses/{course.id}").json()["hasAccess"] is False
    assert client.get(f"/api/courses/{course.id}").json()["hasAccess"] is False

    access = basic.get(f"/api/courses/{course.id}/access").json()
    assert access == {
        "hasAccess": False,
        "hasPurchased": False,
        "requiresPromoCode": True,
        "message": "Este curso requer um código promocional para acesso",
    }
    assert client.get(f"/api/courses/{course.id}/access").status_code == 401


def test_admin_course_management(make_user, login_as):
    admin = login_as(make_user(role="admin"))

    created = admin.post("/api/courses", json=COURSE_PAYLOAD)
    assert created.status_code == 201
    course_id = created.json()["id"]
    assert created.json()["price"] is None

    patched = admin.patch(f"/api/courses/{course_id}", json={"duration": "14h"})
    assert patched.json()["duration"] == "14h"

    hidden = admin.patch(f"/api/courses/{course_id}/toggle-visibility", json={"isHidden": True})
    assert hidden.json()["isHidden"] is True
    assert admin.patch(f"/api/courses/{course_id}/toggle-visibility", json={}).status_code == 422

    priced = admin.post(f"/api/courses/{course_id}/set-price", json={"price": "149.90"})
    assert priced.json()["course"]["price"] == 149.9

    assert admin.delete(f"/api/courses/{course_id}").status_code == 200
    assert admin.get(f"/api/courses/{course_id}").status_code == 404


def test_non_admin_cannot_manage_courses(make_user, login_as, client):
    basic = login_as(make_user())
    assert basic.post("/api/courses", json=COURSE_PAYLOAD).status_code == 403
    assert client.post("/api/courses", json=COURSE_PAYLOAD).status_code == 401


def test_lessons_and_materials(db, make_user, login_as, client):
    course = _course(db)
    admin = login_as(make_user(role="admin"))

    second = admin.post(
        f"/api/courses/{course.id}/lessons",
        json={"title": "Aula dois", "description": "Flexão em vigas biapoiadas", "youtubeUrl": "https://youtu.be/b", "order": 2},
    )
    first = admin.post(
        f"/api/courses/{course.id}/lessons",
        json={"title": "Aula um", "description": "Introdução e conceitos básicos", "youtubeUrl": "https://youtu.be/a", "order": 1},
    )
    assert first.status_code == 201 and second.status_code == 201
    lesson_id = first.json()["id"]

    lessons = client.get(f"/api/courses/{course.id}/lessons").json()
    assert [l["title"] for l in lessons] == ["Aula um", "Aula dois"]

    course_material = admin.post(
        f"/api/courses/{course.id}/materials",
        json={"title": "Apostila", "fileUrl": "https://arquivos.exemplo.com/apostila.pdf", "fileType": "pdf"},
    )
    lesson_material = admin.post(
        f"/api/courses/{course.id}/materials",
        json={
            "title": "Planilha",
            "fileUrl": "https://arquivos.exemplo.com/planilha.xls",
            "fileType": "xls",
            "lessonId": lesson_id,
        },
    )
    assert course_material.status_code == 201
    assert course_material.json()["lessonId"] is None
    assert lesson_material.status_code == 201

    assert len(client.get(f"/api/courses/{course.id}/materials").json()) == 2
    per_lesson = client.get(f"/api/courses/{course.id}/lessons/{lesson_id}/materials").json()
    assert [m["title"] for m in per_lesson] == ["Planilha"]

    renamed = admin.put(f"/api/courses/{course.id}/lessons/{lesson_id}", json={"title": "Aula inicial"})
    assert renamed.json()["title"] == "Aula inicial"

    assert admin.delete(f"/api/courses/{course.id}/lessons/{lesson_id}").status_code == 200
    db.expire_all()
    assert db.query(Lesson).filter(Lesson.course_id == course.id).count() == 1
    assert db.query(Material).filter(Material.course_id == course.id).count() == 1

    assert client.get(f"/api/courses/{course.id}/lessons/{lesson_id}").status_code == 404


def test_material_must_belong_to_course_lesson(db, make_user, login_as):
    course = _course(db)
    other = _course(db)
    lesson = Lesson(course_id=other.id, title="Outra", description="Aula de outro curso", youtube_url="https://youtu.be/x", order=1)
    db.add(lesson)
    db.commit()
    admin = login_as(make_user(role="admin"))

    response = admin.post(
        f"/api/courses/{course.id}/materials",
        json={"title": "Errado", "fileUrl": "https://exemplo.com/a.pdf", "fileType": "pdf", "lessonId": lesson.id},
    )
    assert response.status_code == 404


@pytest.mark.parametrize("field", ["title", "description", "category", "instructor", "duration", "level", "isHidden"])
def test_course_update_rejects_null_on_required_fields(db, make_user, login_as, field):
    course = _course(db)
    admin = login_as(make_user(role="admin"))

    assert admin.patch(f"/api/courses/{course.id}", json={field: None}).status_code == 422
    db.refresh(course)
    assert course.title == "Resistência dos Materiais"


def test_course_update_clears_price_with_null(db, make_user, login_as):
    course = _course(db, price=Decimal("80"), image_url="https://img.exemplo.com/capa.png")
    admin = login_as(make_user(role="admin"))

    response = admin.patch(f"/api/courses/{course.id}", json={"price": None, "imageUrl": None})
    assert response.status_code == 200
    assert response.json()["price"] is None
    assert response.json()["imageUrl"] is None


@pytest.mark.parametrize("field", ["title", "description", "youtubeUrl", "videoSource", "order"])
def test_lesson_update_rejects_null(db, make_user, login_as, field):
    course = _course(db)
    lesson = Lesson(course_id=course.id, title="Aula um", description="Introdução ao curso", youtube_url="https://youtu.be/a", order=1)
    db.add(lesson)
    db.commit()
    admin = login_as(make_user(role="admin"))

    assert admin.put(f"/api/courses/{course.id}/lessons/{lesson.id}", json={field: None}).status_code == 422
    db.refresh(lesson)
    assert lesson.youtube_url == "https://youtu.be/a"


def test_material_update_null_rules(db, make_user, login_as):
    course = _course(db)
    lesson = Lesson(course_id=course.id, title="Aula um", description="Introdução ao curso", youtube_url="https://youtu.be/a", order=1)
    db.add(lesson)
    db.commit()
    material = Material(
        course_id=course.id,
        lesson_id=lesson.id,
        title="Apostila",
        description="Resumo da aula",
        file_url="https://arquivos.exemplo.com/apostila.pdf",
        file_type="pdf",
    )
    db.add(material)
    db.commit()
    admin = login_as(make_user(role="admin"))
    url = f"/api/courses/{course.id}/materials/{material.id}"

    for field in ("title", "fileUrl", "fileType", "downloadable"):
        assert admin.put(url, json={field: None}).status_code == 422

    moved = admin.put(url, json={"lessonId": None, "description": None})
    assert moved.status_code == 200
    assert moved.json()["lessonId"] is None
    assert moved.json()["description"] is None
    assert moved.json()["fileUrl"] == "https://arquivos.exemplo.com/apostila.pdf"
