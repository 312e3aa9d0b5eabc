"""
Resgate de códigos promocionais.

O único portão contra excesso de usos é o UPDATE condicional em
promo_codes: `used_count = used_count + 1 WHERE used_count < max_uses`.
O incremento, o registro em promo_usage e o efeito (papel ou curso) são
gravados no mesmo commit; qualquer falha desfaz os três.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eprojects.models.course import Course, CoursePurchase
from eprojects.models.promo import PromoCode, PromoUsage
from eprojects.models.user import User
from eprojects.services.course_access import new_purchase
from eprojects.users.tiers import extend_role
from eprojects.utils.dates import is_past, utcnow

logger = logging.getLogger("eprojects.promo")


class PromoCodeError(Exception):
    reason = "invalid"
    message = "Código promocional inválido."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class PromoNotFound(PromoCodeError):
    reason = "not_found"
    message = "Código promocional não encontrado."


class PromoInactive(PromoCodeError):
    reason = "inactive"
    message = "Código promocional inválido ou inativo."


class PromoExhausted(PromoCodeError):
    reason = "exhausted"
    message = "Este código promocional já atingiu o limite máximo de usos."


class PromoExpired(PromoCodeError):
    reason = "expired"
    message = "Este código promocional expirou."


class PromoAlreadyRedeemed(PromoCodeError):
    reason = "already_redeemed"
    message = "Você já usou este código promocional."


class PromoMisconfigured(PromoCodeError):
    reason = "wrong_type"
    message = "Código promocional inválido: curso não especificado."


@dataclass
class Redemption:
    promo: PromoCode
    user: User
    message: str
    days: int
    purchase: CoursePurchase | None = None


def get_by_code(db: Session, code: str) -> PromoCode | None:
    return db.query(PromoCode).filter(PromoCode.code == code).first()


def _expired(promo: PromoCode, now: datetime) -> bool:
    return is_past(promo.valid_until, now) or is_past(promo.expiry_date, now)


def _check(db: Session, promo: PromoCode | None, user: User, now: datetime) -> PromoCode:
    if promo is None:
        raise PromoNotFound()
    if not promo.is_active:
        raise PromoInactive()
    if promo.used_count >= promo.max_uses:
        raise PromoExhausted()
    if _expired(promo, now):
        raise PromoExpired()
    if promo.promo_type == "course" and not promo.course_id:
        raise PromoMisconfigured()

    already = (
        db.query(PromoUsage.id)
        .filter(PromoUsage.promo_id == promo.id, PromoUsage.user_id == user.id)
        .first()
    )
    if already:
        raise PromoAlreadyRedeemed()
    return promo


def _claim_slot(db: Session, promo_id: int) -> bool:
    result = db.execute(
        update(PromoCode)
        .where(
            PromoCode.id == promo_id,
            PromoCode.is_active.is_(True),
            PromoCode.used_count < PromoCode.max_uses,
        )
        .values(used_count=PromoCode.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _apply_effect(db: Session, promo: PromoCode, user: User, now: datetime) -> Redemption:
    if promo.promo_type == "course":
        course = db.query(Course).filter(Course.id == promo.course_id).first()
        if course is None:
            raise PromoMisconfigured("Curso do código promocional não encontrado.")

        purchase = new_purchase(user.id, course, days=promo.days, price=Decimal("0"), now=now)
        db.add(purchase)
        message = f'Código promocional ativado! Você ganhou acesso ao curso "{course.title}" por {promo.days} dias.'
        return Redemption(promo=promo, user=user, message=message, days=promo.days, purchase=purchase)

    extend_role(user, promo.target_role, promo.days, now)
    message = f"Código promocional ativado! Seu plano foi atualizado para {user.role} por {promo.days} dias."
    return Redemption(promo=promo, user=user, message=message, days=promo.days)


def redeem(db: Session, code: str, user: User, now: datetime | None = None) -> Redemption:
    now = now or utcnow()
    code = (code or "").strip()

    promo = _check(db, get_by_code(db, code), user, now)

    try:
        if not _claim_slot(db, promo.id):
            raise PromoExhausted()

        db.add(PromoUsage(promo_id=promo.id, user_id=user.id, used_at=now))
        redemption = _apply_effect(db, promo, user, now)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Código %s recusado para usuário %s: already_redeemed", code, user.id)
        raise PromoAlreadyRedeemed()
    except PromoCodeError as e:
        db.rollback()
        logger.info("Código %s recusado para usuário %s: %s", code, user.id, e.reason)
        raise
    except Exception:
        db.rollback()
        raise

    db.refresh(promo)
    db.refresh(user)
    logger.info("Código %s resgatado pelo usuário %s (%s/%s usos)", code, user.id, promo.used_count, promo.max_uses)
    return redemption


def create_promo_code(
    db: Session,
    *,
    code: str,
    days: int,
    max_uses: int,
    promo_type: str = "role",
    target_role: str = "E-TOOL",
    course_id: int | None = None,
    valid_until: datetime | None = None,
    created_by: int | None = None,
) -> PromoCode:
    promo = PromoCode(
        code=code.strip(),
        days=days,
        max_uses=max_uses,
        used_count=0,
        is_active=True,
        promo_type=promo_type,
        target_role=target_role or "E-TOOL",
        course_id=course_id if promo_type == "course" else None,
        valid_until=valid_until,
        created_by=created_by,
    )
    db.add(promo)
    db.commit()
    db.refresh(promo)
    logger.info("Código promocional criado: %s (%s, %d dias, %d usos)", promo.code, promo.promo_type, days, max_uses)
    return promo


def delete_promo_code(db: Session, promo: PromoCode) -> None:
    # Primeiro os registros de uso, depois o próprio código
    db.query(PromoUsage).filter(PromoUsage.promo_id == promo.id).delete(synchronize_session=False)
    db.delete(promo)
    db.commit()
