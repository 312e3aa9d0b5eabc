import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from eprojects.auth.security import Principal, get_optional_principal, get_principal, require_admin
from eprojects.database import get_db
from eprojects.models.course import Course, Lesson, Material
from eprojects.schemas.course import (
    CourseCreate,
    CourseOut,
    CourseUpdate,
    LessonCreate,
    LessonOut,
    LessonUpdate,
    MaterialCreate,
    MaterialOut,
    MaterialUpdate,
    PriceRequest,
    VisibilityRequest,
)
from eprojects.services.course_access import check_course_access

logger = logging.getLogger("eprojects.courses")

router = APIRouter(prefix="/api/courses", tags=["Cursos"])


def _get_course(db: Session, course_id: int) -> Course:
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Curso não encontrado")
    return course


def _get_lesson(db: Session, course_id: int, lesson_id: int) -> Lesson:
    lesson = db.query(Lesson).filter(Lesson.id == lesson_id, Lesson.course_id == course_id).first()
    if not lesson:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Aula não encontrada")
    return lesson


def _get_material(db: Session, course_id: int, material_id: int) -> Material:
    material = db.query(Material).filter(Material.id == material_id, Material.course_id == course_id).first()
    if not material:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Material não encontrado")
    return material


def _visible_course(db: Session, course_id: int, principal: Principal | None) -> Course:
    # Curso oculto é invisível para quem não é admin
    course = _get_course(db, course_id)
    if course.is_hidden and (principal is None or not principal.is_admin):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Curso não encontrado")
    return course


@router.get("", response_model=list[CourseOut])
async def list_courses(
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
):
    query = db.query(Course)
    if principal is None or not principal.is_admin:
        query = query.filter(Course.is_hidden.is_(False))
    return query.order_by(Course.id.asc()).all()


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    course = Course(**payload.model_dump(), created_by=admin.user.id)
    db.add(course)
    db.commit()
    db.refresh(course)
    logger.info("Curso criado: %s (%s)", course.id, course.title)
    return course


@router.get("/{course_id}")
async def get_course(
    course_id: int,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
):
    course = _visible_course(db, course_id, principal)
    access = check_course_access(db, course, principal)

    return {
        "course": CourseOut.model_validate(course).model_dump(by_alias=True, mode="json"),
        "lessons": [LessonOut.model_validate(l).model_dump(by_alias=True, mode="json") for l in course.lessons],
        "materials": [MaterialOut.model_validate(m).model_dump(by_alias=True, mode="json") for m in course.materials],
        "hasAccess": access.has_access,
    }


@router.patch("/{course_id}", response_model=CourseOut)
async def update_course(
    course_id: int,
    payload: CourseUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    course = _get_course(db, course_id)
    for field, value in payload.changes().items():
        setattr(course, field, value)
    db.commit()
    db.refresh(course)
    return course


@router.delete("/{course_id}")
async def delete_course(
    course_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    course = _get_course(db, course_id)
    db.delete(course)
    db.commit()
    logger.info("Curso %s excluído por %s", course_id, admin.user.id)
    return {"success": True, "message": "Curso excluído com sucesso"}


@router.patch("/{course_id}/toggle-visibility", response_model=CourseOut)
async def toggle_visibility(
    course_id: int,
    payload: VisibilityRequest,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    course = _get_course(db, course_id)
    course.is_hidden = payload.is_hidden
    db.commit()
    db.refresh(course)
    return course


@router.post("/{course_id}/set-price")
async def set_price(
    course_id: int,
    payload: PriceRequest,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    course = _get_course(db, course_id)
    course.price = payload.price
    db.commit()
    db.refresh(course)
    return {"success": True, "course": CourseOut.model_validate(course).model_dump(by_alias=True, mode="json")}


@router.get("/{course_id}/access")
async def course_access(
    course_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    course = _get_course(db, course_id)
    return check_course_access(db, course, principal).as_dict()


# Aulas


@router.get("/{course_id}/lessons", response_model=list[LessonOut])
async def list_lessons(
    course_id: int,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
):
    return _visible_course(db, course_id, principal).lessons


@router.get("/{course_id}/lessons/{lesson_id}", response_model=LessonOut)
async def get_lesson(
    course_id: int,
    lesson_id: int,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
):
    _visible_course(db, course_id, principal)
    return _get_lesson(db, course_id, lesson_id)


@router.post("/{course_id}/lessons", response_model=LessonOut, status_code=status.HTTP_201_CREATED)
async def create_lesson(
    course_id: int,
    payload: LessonCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    _get_course(db, course_id)
    lesson = Lesson(course_id=course_id, **payload.model_dump())
    db.add(lesson)
    db.commit()
    db.refresh(lesson)
    return lesson


@router.put("/{course_id}/lessons/{lesson_id}", response_model=LessonOut)
async def update_lesson(
    course_id: int,
    lesson_id: int,
    payload: LessonUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    lesson = _get_lesson(db, course_id, lesson_id)
    for field, value in payload.changes().items():
        setattr(lesson, field, value)
    db.commit()
    db.refresh(lesson)
    return lesson


@router.delete("/{course_id}/lessons/{lesson_id}")
async def delete_lesson(
    course_id: int,
    lesson_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    lesson = _get_lesson(db, course_id, lesson_id)
    db.delete(lesson)
    db.commit()
    return {"success": True, "message": "Aula excluída com sucesso"}


@router.get("/{course_id}/lessons/{lesson_id}/materials", response_model=list[MaterialOut])
async def lesson_materials(
    course_id: int,
    lesson_id: int,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
):
    _visible_course(db, course_id, principal)
    return _get_lesson(db, course_id, lesson_id).materials


# Materiais


@router.get("/{course_id}/materials", response_model=list[MaterialOut])
async def list_materials(
    course_id: int,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
):
    return _visible_course(db, course_id, principal).materials


@router.get("/{course_id}/materials/{material_id}", response_model=MaterialOut)
async def get_material(
    course_id: int,
    material_id: int,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
):
    _visible_course(db, course_id, principal)
    return _get_material(db, course_id, material_id)


@router.post("/{course_id}/materials", response_model=MaterialOut, status_code=status.HTTP_201_CREATED)
async def create_material(
    course_id: int,
    payload: MaterialCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    _get_course(db, course_id)
    if payload.lesson_id is not None:
        _get_lesson(db, course_id, payload.lesson_id)

    material = Material(course_id=course_id, **payload.model_dump())
    db.add(material)
    db.commit()
    db.refresh(material)
    return material


@router.put("/{course_id}/materials/{material_id}", response_model=MaterialOut)
async def update_material(
    course_id: int,
    material_id: int,
    payload: MaterialUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    material = _get_material(db, course_id, material_id)
    data = payload.changes()
    if data.get("lesson_id") is not None:
        _get_lesson(db, course_id, data["lesson_id"])

    for field, value in data.items():
        setattr(material, field, value)
    db.commit()
    db.refresh(material)
    return material


@router.delete("/{course_id}/materials/{material_id}")
async def delete_material(
    course_id: int,
    material_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    material = _get_material(db, course_id, material_id)
    db.delete(material)
    db.commit()
    return {"success": True, "message": "Material excluído com sucesso"}
