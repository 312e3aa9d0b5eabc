from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from eprojects.models.notification import Notification
from eprojects.users.tiers import (
    ADMIN,
    BASIC,
    MASTER,
    PLANOS,
    TOOL,
    downgrade_expired_users,
    effective_role,
    extend_role,
    resolve_tier,
    upgrade_offers,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "role, expected",
    [
        (ADMIN, (True, True, True, True)),
        (MASTER, (False, True, True, True)),
        (TOOL, (False, False, True, True)),
        (BASIC, (False, False, False, True)),
        ("visitante", (False, False, False, False)),
        (None, (False, False, False, False)),
    ],
)
def test_resolve_tier_flags(role, expected):
    tier = resolve_tier(role, None, NOW)
    assert (tier.is_admin, tier.is_emaster, tier.is_etool, tier.is_ebasic) == expected


@pytest.mark.parametrize("role", [ADMIN, MASTER, TOOL, BASIC, "outro"])
def test_tier_flags_are_nested(role):
    tier = resolve_tier(role, None, NOW)
    assert not tier.is_admin or tier.is_emaster
    assert not tier.is_emaster or tier.is_etool
    assert not tier.is_etool or tier.is_ebasic


def test_expired_premium_role_reads_as_basic():
    yesterday = NOW - timedelta(days=1)
    assert effective_role(MASTER, yesterday, NOW) == BASIC
    tier = resolve_tier(TOOL, yesterday, NOW)
    assert tier.is_ebasic and not tier.is_etool


def test_future_or_missing_expiry_keeps_role():
    assert effective_role(MASTER, NOW + timedelta(days=1), NOW) == MASTER
    assert effective_role(TOOL, None, NOW) == TOOL


def test_admin_never_expires():
    assert resolve_tier(ADMIN, NOW - timedelta(days=365), NOW).is_admin


def test_naive_expiry_is_treated_as_utc():
    naive_past = (NOW - timedelta(hours=1)).replace(tzinfo=None)
    assert effective_role(TOOL, naive_past, NOW) == BASIC


def test_dominates():
    master = resolve_tier(MASTER, None, NOW)
    assert master.dominates(TOOL)
    assert master.dominates(MASTER)
    assert not master.dominates(ADMIN)
    assert not resolve_tier(TOOL, None, NOW).dominates(MASTER)
    # Nível exigido desconhecido nunca é satisfeito
    assert not resolve_tier(ADMIN, None, NOW).dominates("E-ULTRA")


def test_extend_role_starts_from_now_when_no_future_expiry():
    user = SimpleNamespace(role=BASIC, role_expiry_date=None)
    extend_role(user, TOOL, 30, NOW)
    assert user.role == TOOL
    assert user.role_expiry_date == NOW + timedelta(days=30)


def test_extend_role_stacks_on_future_expiry():
    user = SimpleNamespace(role=TOOL, role_expiry_date=NOW + timedelta(days=10))
    extend_role(user, TOOL, 30, NOW)
    assert user.role_expiry_date == NOW + timedelta(days=40)


def test_extend_role_ignores_past_expiry():
    user = SimpleNamespace(role=TOOL, role_expiry_date=NOW - timedelta(days=10))
    extend_role(user, MASTER, 7, NOW)
    assert user.role == MASTER
    assert user.role_expiry_date == NOW + timedelta(days=7)


def test_extend_role_keeps_admin():
    user = SimpleNamespace(role=ADMIN, role_expiry_date=None)
    extend_role(user, TOOL, 30, NOW)
    assert user.role == ADMIN


def test_upgrade_offers_per_role():
    prices = {TOOL: 29.9, MASTER: 49.9}

    basic = upgrade_offers(BASIC, prices)
    assert set(basic) == {TOOL, MASTER}
    assert basic[TOOL]["price"] == 2990

    tool = upgrade_offers(TOOL, prices)
    assert set(tool) == {MASTER}
    assert tool[MASTER]["monthlyPrice"] == pytest.approx(39.92)

    assert upgrade_offers(MASTER, prices) == {}
    assert upgrade_offers(ADMIN, prices) == {}


def test_upgrade_offers_skip_plans_without_price():
    assert set(upgrade_offers(BASIC, {MASTER: 10})) == {MASTER}


def test_downgrade_expired_users_persists_and_notifies(db, make_user):
    expired = make_user(role=TOOL, role_expiry_date=NOW - timedelta(days=1))
    active = make_user(role=MASTER, role_expiry_date=NOW + timedelta(days=1))
    admin = make_user(role=ADMIN, role_expiry_date=NOW - timedelta(days=1))

    processed = downgrade_expired_users(db, NOW)

    assert [u.id for u in processed] == [expired.id]
    db.refresh(expired)
    db.refresh(active)
    db.refresh(admin)
    assert expired.role == BASIC and expired.role_expiry_date is None
    assert active.role == MASTER
    assert admin.role == ADMIN

    notes = db.query(Notification).filter(Notification.user_id == expired.id).all()
    assert len(notes) == 1
    assert notes[0].title == "Plano Expirado"
    assert notes[0].target_role == "individual"


def test_upgrade_offers_use_catalogue_text():
    offer = upgrade_offers(BASIC, {MASTER: 50.0})[MASTER]
    assert offer["name"] == PLANOS[MASTER].nome
    assert offer["description"] == PLANOS[MASTER].descricao
    assert offer["days"] == 30
    assert (offer["minMonths"], offer["maxMonths"]) == (1, 12)
