import logging
import secrets
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from eprojects.auth import sessions
from eprojects.auth.security import (
    Principal,
    SessionExpiredError,
    clear_session_cookie,
    get_optional_principal,
    get_password_hash,
    load_principal,
    read_session_cookie,
    session_token,
    set_session_cookie,
    verify_password,
)
from eprojects.database import get_db
from eprojects.models.user import User
from eprojects.schemas.auth import (
    LoginRequest,
    RecoverPasswordRequest,
    RegisterRequest,
    ResetPasswordRequest,
    user_payload,
)
from eprojects.services import promo_service
from eprojects.utils.cpf import clean_cpf, validate_cpf
from eprojects.utils.dates import is_past, utcnow

logger = logging.getLogger("eprojects.auth")

router = APIRouter(prefix="/api", tags=["Autenticação"])

RESET_TOKEN_HOURS = 1


def _client_info(request: Request) -> tuple[str, str]:
    user_agent = request.headers.get("user-agent") or "unknown"
    ip_address = request.client.host if request.client else "unknown"
    return user_agent, ip_address


def _start_session(db: Session, user: User, request: Request, response: Response) -> None:
    user_agent, ip_address = _client_info(request)
    active = sessions.open_session(db, user, user_agent=user_agent, ip_address=ip_address)
    set_session_cookie(response, session_token(user, active.session_id))


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    email_clean = str(payload.email).strip().lower()
    username = payload.username.strip()
    cpf = clean_cpf(payload.cpf)

    if db.query(User).filter(User.email == email_clean).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email já está em uso")

    if db.query(User).filter(User.username == username).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nome de usuário já está em uso")

    if not validate_cpf(cpf):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CPF inválido")

    if db.query(User).filter(User.cpf == cpf).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CPF já cadastrado no sistema. Se você já possui uma conta, faça login ou entre em contato com o suporte.",
        )

    # Todo cadastro começa como E-BASIC
    user = User(
        username=username,
        email=email_clean,
        cpf=cpf,
        hashed_password=get_password_hash(payload.password),
        role="E-BASIC",
        disable_password_recovery=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Novo cadastro: usuário %s (%s)", user.id, user.username)

    promo_message = None
    if payload.promo_code:
        try:
            promo_message = promo_service.redeem(db, payload.promo_code, user).message
        except promo_service.PromoCodeError as e:
            # O cadastro vale mesmo com código recusado
            promo_message = e.message

    _start_session(db, user, request, response)

    data = user_payload(user)
    if payload.promo_code:
        data["promoCodeMessage"] = promo_message
    return data


@router.post("/login")
async def login(payload: LoginRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    email_clean = payload.email.strip().lower()
    user = db.query(User).filter(User.email == email_clean).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Email ou senha incorretos")

    # Um login novo derruba qualquer sessão anterior da conta
    _start_session(db, user, request, response)
    return user_payload(user)


@router.post("/logout")
async def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    payload = read_session_cookie(request)
    if payload is not None:
        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            user_id = None

        # Uma sessão já substituída não derruba a sessão atual da conta
        if user_id is not None and sessions.is_current(db, user_id, payload["sid"]):
            sessions.close_sessions(db, user_id)
            logger.info("Logout: usuário %s", user_id)

    clear_session_cookie(response)
    return {"success": True}


@router.get("/user")
async def current_user(principal: Principal | None = Depends(get_optional_principal)):
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Não autenticado")
    return user_payload(principal.user)


@router.get("/session-status")
async def session_status(request: Request, db: Session = Depends(get_db)):
    try:
        principal = load_principal(request, db)
    except SessionExpiredError:
        return {"authenticated": False, "sessionExpired": True}

    if principal is None:
        return {"authenticated": False}

    return {
        "authenticated": True,
        "sessionId": principal.session_id,
        "userId": principal.user.id,
    }


@router.post("/recover-password")
async def recover_password(payload: RecoverPasswordRequest, db: Session = Depends(get_db)):
    identifier = payload.identifier.strip()
    if "@" in identifier:
        user = db.query(User).filter(User.email == identifier.lower()).first()
    else:
        user = db.query(User).filter(User.username == identifier).first()

    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuário não encontrado")

    if user.disable_password_recovery:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Recuperação de senha desativada. Entre em contato com o administrador para obter assistência.",
        )

    if clean_cpf(user.cpf) != clean_cpf(payload.cpf):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CPF inválido")

    user.reset_token = secrets.token_hex(32)
    user.reset_token_expiry = utcnow() + timedelta(hours=RESET_TOKEN_HOURS)
    db.commit()

    return {
        "success": True,
        "token": user.reset_token,
        "message": "Verificação realizada com sucesso. Prossiga para redefinir sua senha.",
    }


@router.post("/reset-password")
async def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.reset_token == payload.token).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Token inválido ou expirado")

    if is_past(user.reset_token_expiry):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token expirado. Inicie o processo de recuperação novamente.",
        )

    user.hashed_password = get_password_hash(payload.password)
    user.reset_token = None
    user.reset_token_expiry = None
    db.commit()

    return {"success": True, "message": "Senha redefinida com sucesso"}
