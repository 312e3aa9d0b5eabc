from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from eprojects.models.course import Course, CoursePurchase
from eprojects.utils.dates import add_days, utcnow

logger = logging.getLogger("eprojects.courses")

# Compras de curso dão acesso por uma janela fixa
PURCHASE_DAYS = 30


@dataclass
class CourseAccess:
    has_access: bool
    has_purchased: bool
    requires_promo_code: bool
    message: str

    def as_dict(self) -> dict:
        return {
            "hasAccess": self.has_access,
            "hasPurchased": self.has_purchased,
            "requiresPromoCode": self.requires_promo_code,
            "message": self.message,
        }


def active_purchase(db: Session, user_id: int, course_id: int, now: datetime | None = None) -> CoursePurchase | None:
    now = now or utcnow()
    return (
        db.query(CoursePurchase)
        .filter(
            CoursePurchase.user_id == user_id,
            CoursePurchase.course_id == course_id,
            CoursePurchase.active.is_(True),
            CoursePurchase.expires_at >= now,
        )
        .order_by(CoursePurchase.expires_at.desc())
        .first()
    )


def has_active_purchase(db: Session, user_id: int, course_id: int, now: datetime | None = None) -> bool:
    return active_purchase(db, user_id, course_id, now) is not None


def check_course_access(db: Session, course: Course, principal, now: datetime | None = None) -> CourseAccess:
    requires_code = bool(course.requires_promo_code)

    if principal is None:
        return CourseAccess(False, False, requires_code, "Faça login para acessar este curso")

    if principal.tier.is_admin:
        return CourseAccess(True, False, requires_code, "Acesso de administrador")

    if has_active_purchase(db, principal.user.id, course.id, now):
        return CourseAccess(True, True, requires_code, "Curso comprado")

    if course.is_hidden:
        return CourseAccess(False, False, requires_code, "Você não tem acesso a este curso")

    # E-MASTER acessa todos os cursos gratuitos visíveis, mesmo os que pedem código
    if principal.tier.is_emaster and course.is_free:
        return CourseAccess(True, False, False, "Acesso com papel E-MASTER")

    if course.is_free and not requires_code:
        return CourseAccess(True, False, False, "Acesso disponível")

    if requires_code:
        message = "Este curso requer um código promocional para acesso"
    elif not course.is_free:
        message = "Este curso requer compra para acesso"
    else:
        message = "Você não tem acesso a este curso"
    return CourseAccess(False, False, requires_code, message)


def new_purchase(
    user_id: int,
    course: Course,
    days: int = PURCHASE_DAYS,
    price=None,
    payment_reference: str | None = None,
    now: datetime | None = None,
) -> CoursePurchase:
    now = now or utcnow()
    return CoursePurchase(
        user_id=user_id,
        course_id=course.id,
        payment_reference=payment_reference,
        purchased_at=now,
        expires_at=add_days(now, days),
        active=True,
        price=course.price if price is None else price,
    )


def deactivate_expired_purchases(db: Session, now: datetime | None = None) -> int:
    now = now or utcnow()
    count = (
        db.query(CoursePurchase)
        .filter(CoursePurchase.active.is_(True), CoursePurchase.expires_at < now)
        .update({CoursePurchase.active: False}, synchronize_session=False)
    )
    db.commit()
    if count:
        logger.info("%d compra(s) de curso expirada(s) desativada(s)", count)
    return count
