from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from eprojects.utils.dates import add_days, as_utc, utcnow

logger = logging.getLogger("eprojects.tiers")

BASIC = "E-BASIC"
TOOL = "E-TOOL"
MASTER = "E-MASTER"
ADMIN = "admin"

ROLES = (BASIC, TOOL, MASTER, ADMIN)
PREMIUM_ROLES = (TOOL, MASTER)

# Desconto aplicado quando um E-TOOL faz upgrade para E-MASTER
UPGRADE_DISCOUNT = 0.8


@dataclass(frozen=True)
class AccessTier:
    is_admin: bool
    is_emaster: bool
    is_etool: bool
    is_ebasic: bool

    @property
    def rank(self) -> int:
        return sum((self.is_ebasic, self.is_etool, self.is_emaster, self.is_admin))

    def dominates(self, required_role: str) -> bool:
        required = role_rank(required_role)
        if required == 0:
            return False
        return self.rank >= required

    def as_dict(self) -> dict:
        return {
            "isAdmin": self.is_admin,
            "isEMaster": self.is_emaster,
            "isETool": self.is_etool,
            "isEBasic": self.is_ebasic,
        }


@dataclass(frozen=True)
class Plano:
    nome: str
    descricao: str


PLANOS: dict[str, Plano] = {
    TOOL: Plano(
        nome="Plano E-TOOL",
        descricao="Acesso a todas as ferramentas E-BASIC e E-TOOL",
    ),
    MASTER: Plano(
        nome="Plano E-MASTER",
        descricao="Acesso a todas as ferramentas e cursos da plataforma",
    ),
}


def role_rank(role: str | None) -> int:
    """0 para papéis desconhecidos; 1..4 de E-BASIC até admin."""
    try:
        return ROLES.index(role) + 1
    except ValueError:
        return 0


def role_expired(role: str | None, role_expiry_date: datetime | None, now: datetime | None = None) -> bool:
    if role not in PREMIUM_ROLES or role_expiry_date is None:
        return False
    return as_utc(role_expiry_date) < (now or utcnow())


def effective_role(role: str | None, role_expiry_date: datetime | None, now: datetime | None = None) -> str | None:
    # Papel premium vencido volta a valer como E-BASIC já na leitura,
    # mesmo antes do downgrade ser gravado no banco.
    if role_expired(role, role_expiry_date, now):
        return BASIC
    return role


def resolve_tier(role: str | None, role_expiry_date: datetime | None = None, now: datetime | None = None) -> AccessTier:
    role = effective_role(role, role_expiry_date, now)

    is_admin = role == ADMIN
    is_emaster = role == MASTER or is_admin
    is_etool = role == TOOL or is_emaster
    is_ebasic = role == BASIC or is_etool
    return AccessTier(is_admin=is_admin, is_emaster=is_emaster, is_etool=is_etool, is_ebasic=is_ebasic)


def tier_for_user(user, now: datetime | None = None) -> AccessTier:
    return resolve_tier(getattr(user, "role", None), getattr(user, "role_expiry_date", None), now)


def extend_role(user, role: str, days: int, now: datetime | None = None):
    """Define o papel e estende a expiração a partir do maior entre agora e a expiração atual."""
    now = now or utcnow()
    current = as_utc(getattr(user, "role_expiry_date", None))
    base = current if current and current > now else now

    # Admin nunca é rebaixado por código promocional ou plano
    if user.role != ADMIN:
        user.role = role
    user.role_expiry_date = add_days(base, days)
    return user


def upgrade_offers(current_role: str | None, monthly_prices: dict[str, float]) -> dict[str, dict]:
    offers: dict[str, dict] = {}

    if current_role == BASIC:
        candidates = [(TOOL, 1.0), (MASTER, 1.0)]
    elif current_role == TOOL:
        candidates = [(MASTER, UPGRADE_DISCOUNT)]
    else:
        candidates = []

    for plan_type, factor in candidates:
        if plan_type not in monthly_prices:
            continue
        plano = PLANOS[plan_type]
        monthly = round(monthly_prices[plan_type] * factor, 2)
        offers[plan_type] = {
            "name": plano.nome,
            "description": plano.descricao,
            "price": int(round(monthly * 100)),
            "monthlyPrice": monthly,
            "days": 30,
            "minMonths": 1,
            "maxMonths": 12,
        }
    return offers


def downgrade_expired_users(db, now: datetime | None = None) -> list:
    from eprojects.models.notification import Notification
    from eprojects.models.user import User

    now = now or utcnow()
    expired = (
        db.query(User)
        .filter(User.role.in_(PREMIUM_ROLES))
        .filter(User.role_expiry_date.isnot(None))
        .filter(User.role_expiry_date < now)
        .all()
    )

    for user in expired:
        previous = user.role
        user.role = BASIC
        user.role_expiry_date = None
        db.add(
            Notification(
                title="Plano Expirado",
                message=(
                    f"Seu upgrade para {previous} expirou e sua conta foi revertida para E-BASIC. "
                    "Para continuar usando as funcionalidades avançadas, adquira um novo plano "
                    "ou use um código promocional."
                ),
                type="warning",
                target_role="individual",
                user_id=user.id,
            )
        )
        logger.info("Plano expirado: usuário %s (%s) revertido de %s para E-BASIC", user.id, user.username, previous)

    db.commit()
    return expired
