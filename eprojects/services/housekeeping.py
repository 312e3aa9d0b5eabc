import asyncio
import logging

from eprojects import database
from eprojects.services.course_access import deactivate_expired_purchases
from eprojects.users.tiers import downgrade_expired_users

logger = logging.getLogger("eprojects.housekeeping")


def run_expiration_check(db) -> dict:
    """Rebaixa papéis vencidos e desativa compras de curso expiradas."""
    downgraded = downgrade_expired_users(db)
    deactivated = deactivate_expired_purchases(db)
    return {"processedUsers": len(downgraded), "deactivatedPurchases": deactivated}


def _check_once(session_factory) -> dict:
    db = session_factory()
    try:
        return run_expiration_check(db)
    finally:
        db.close()


async def expiration_loop(interval: float, session_factory=None):
    session_factory = session_factory or database.SessionLocal
    while True:
        await asyncio.sleep(interval)
        try:
            # SQLAlchemy síncrono roda fora do event loop
            result = await asyncio.to_thread(_check_once, session_factory)
            logger.info("Verificação de expirações: %s", result)
        except Exception:
            logger.exception("Erro ao verificar planos expirados")
