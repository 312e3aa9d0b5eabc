from passlib.context import CryptContext
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
import logging
import os
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from eprojects.auth import sessions
from eprojects.database import get_db
from eprojects.models.user import User
from eprojects.users.tiers import ADMIN, AccessTier, tier_for_user
from eprojects.utils.cpf import clean_cpf, parse_cpf_list

logger = logging.getLogger("eprojects.security")

# pbkdf2_sha256 é seguro e não tem o bug de compatibilidade do bcrypt no Windows.
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SECRET_KEY = os.getenv("SECRET_KEY", "eprojects-chave-de-desenvolvimento")
ALGORITHM = "HS256"
SESSION_DAYS = int(os.getenv("SESSION_DAYS", "30"))
COOKIE_NAME = "access_token"

SESSION_EXPIRED_MESSAGE = "Sua conta foi acessada em outro dispositivo. Por favor, faça login novamente."


class SessionExpiredError(Exception):
    """A sessão do chamador foi substituída por um login mais recente."""

    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE):
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class Principal:
    user: User
    session_id: str
    tier: AccessTier

    @property
    def is_admin(self) -> bool:
        return self.tier.is_admin


def get_password_hash(password: str):
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str):
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(days=SESSION_DAYS)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def session_token(user: User, session_id: str) -> str:
    return create_access_token({"sub": str(user.id), "sid": session_id})


def set_session_cookie(response, token: str) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=f"Bearer {token}",
        httponly=True,
        max_age=SESSION_DAYS * 24 * 60 * 60,
        samesite="lax",
        secure=os.getenv("ENV", "development") == "production",
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(key=COOKIE_NAME)


def read_session_cookie(request: Request) -> dict | None:
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None

    try:
        token_clean = token.replace("Bearer ", "")
        payload = jwt.decode(token_clean, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None

    if payload.get("sub") is None or payload.get("sid") is None:
        return None
    return payload


def load_principal(request: Request, db: Session) -> Principal | None:
    payload = read_session_cookie(request)
    if payload is None:
        return None

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        return None

    session_id = payload["sid"]
    if not sessions.is_current(db, user.id, session_id):
        logger.info(
            "Sessão inválida detectada para %s (ID: %s) em %s - sessão %s...",
            user.username,
            user.id,
            request.url.path,
            session_id[:8],
        )
        raise SessionExpiredError()

    sessions.touch(db, session_id)
    return Principal(user=user, session_id=session_id, tier=tier_for_user(user))


def get_optional_principal(request: Request, db: Session = Depends(get_db)) -> Principal | None:
    return load_principal(request, db)


def get_principal(request: Request, db: Session = Depends(get_db)) -> Principal:
    principal = load_principal(request, db)
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Não autenticado")
    return principal


def require_tier(role: str, detail: str | None = None):
    """Dependência de rota: exige que o papel efetivo do chamador domine `role`."""

    def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if not principal.tier.dominates(role):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail or f"Requer o plano {role}")
        return principal

    dependency.__name__ = f"require_{role.lower().replace('-', '_')}"
    return dependency


require_admin = require_tier(ADMIN, "Acesso restrito ao admin")


def can_access_tool(tool, principal: Principal | None) -> bool:
    if principal is None:
        return False
    if principal.tier.is_admin:
        return True

    # Com lista de CPFs definida, só os CPFs listados acessam
    allowed = parse_cpf_list(getattr(tool, "restricted_cpfs", None))
    if allowed:
        return clean_cpf(principal.user.cpf) in allowed

    return principal.tier.dominates(tool.access_level)


def is_owner_or_admin(principal: Principal, owner_id: int) -> bool:
    return principal.user.id == owner_id or principal.tier.is_admin
