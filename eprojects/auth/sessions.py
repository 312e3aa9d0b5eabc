"""
Sessões ativas: uma conta tem no máximo uma sessão vigente.

Um novo login apaga as sessões anteriores do usuário; o cliente antigo
descobre isso na próxima consulta a /api/user (401 + sessionExpired).
"""

import logging
import secrets

from sqlalchemy.orm import Session

from eprojects.models.user import ActiveSession, User
from eprojects.utils.dates import utcnow

logger = logging.getLogger("eprojects.sessions")


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def open_session(db: Session, user: User, user_agent: str | None = None, ip_address: str | None = None) -> ActiveSession:
    previous = user_sessions(db, user.id)
    if previous:
        logger.info(
            "Desconectando %d sessão(ões) existente(s) do usuário %s (%s)",
            len(previous),
            user.id,
            user.username,
        )
    for old in previous:
        db.delete(old)

    now = utcnow()
    active = ActiveSession(
        user_id=user.id,
        session_id=new_session_id(),
        user_agent=user_agent or "unknown",
        ip_address=ip_address or "unknown",
        last_activity=now,
        created_at=now,
    )
    db.add(active)
    user.last_login = now
    db.commit()
    db.refresh(active)

    logger.info("Novo login: usuário %s - sessão %s... IP: %s", user.id, active.session_id[:8], active.ip_address)
    return active


def get_session(db: Session, session_id: str) -> ActiveSession | None:
    return db.query(ActiveSession).filter(ActiveSession.session_id == session_id).first()


def is_current(db: Session, user_id: int, session_id: str | None) -> bool:
    if not session_id:
        return False
    active = get_session(db, session_id)
    return active is not None and active.user_id == user_id


def touch(db: Session, session_id: str) -> None:
    db.query(ActiveSession).filter(ActiveSession.session_id == session_id).update(
        {ActiveSession.last_activity: utcnow()}, synchronize_session=False
    )
    db.commit()


def user_sessions(db: Session, user_id: int) -> list[ActiveSession]:
    return db.query(ActiveSession).filter(ActiveSession.user_id == user_id).all()


def close_sessions(db: Session, user_id: int) -> int:
    count = db.query(ActiveSession).filter(ActiveSession.user_id == user_id).delete(synchronize_session=False)
    db.commit()
    return count
