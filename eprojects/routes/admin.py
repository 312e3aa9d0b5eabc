import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from eprojects.auth.security import Principal, get_password_hash, get_principal, is_owner_or_admin, require_admin
from eprojects.database import get_db
from eprojects.models.chat import ChatMessage
from eprojects.models.course import Course
from eprojects.models.notification import Notification
from eprojects.models.plan_price import PlanPrice
from eprojects.models.promo import PromoCode
from eprojects.models.tool import Tool, ToolRating
from eprojects.models.user import User
from eprojects.schemas.admin import (
    AdminUserCreate,
    AdminUserUpdate,
    PasswordRecoveryToggle,
    PasswordReset,
    PlanPriceRequest,
)
from eprojects.schemas.auth import UserOut
from eprojects.services.housekeeping import run_expiration_check
from eprojects.services.ratings import recompute_tool_rating
from eprojects.users.tiers import BASIC, PREMIUM_ROLES, downgrade_expired_users, extend_role
from eprojects.utils.cpf import clean_cpf, validate_cpf

logger = logging.getLogger("eprojects.admin")

router = APIRouter(prefix="/api", tags=["Admin"])


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuário não encontrado")
    return user


def _check_unique(db: Session, user_id: int | None, email: str | None, username: str | None, cpf: str | None):
    def taken(column, value):
        query = db.query(User.id).filter(column == value)
        if user_id is not None:
            query = query.filter(User.id != user_id)
        return query.first() is not None

    if email and taken(User.email, email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email já está em uso")
    if username and taken(User.username, username):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nome de usuário já está em uso")
    if cpf is not None:
        if not validate_cpf(cpf):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CPF inválido")
        if taken(User.cpf, cpf):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CPF já cadastrado no sistema")


@router.get("/users", response_model=list[UserOut])
async def list_users(db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    return db.query(User).order_by(User.id.asc()).all()


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: AdminUserCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    email = str(payload.email).strip().lower()
    cpf = clean_cpf(payload.cpf)
    _check_unique(db, None, email, payload.username, cpf)

    user = User(
        username=payload.username.strip(),
        email=email,
        cpf=cpf,
        hashed_password=get_password_hash(payload.password),
        role=payload.role,
    )
    if payload.pro_days and payload.role in PREMIUM_ROLES:
        extend_role(user, payload.role, payload.pro_days)

    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Admin %s criou o usuário %s (%s)", admin.user.id, user.id, user.role)
    return user


@router.patch("/users/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    payload: AdminUserUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    user = _get_user(db, user_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nenhum dado fornecido para atualização")

    email = str(data["email"]).strip().lower() if "email" in data else None
    cpf = clean_cpf(data["cpf"]) if "cpf" in data else None
    _check_unique(db, user.id, email, data.get("username"), cpf)

    if email:
        user.email = email
    if data.get("username"):
        user.username = data["username"].strip()
    if cpf is not None:
        user.cpf = cpf

    role = data.get("role")
    if role:
        user.role = role
        if role == BASIC:
            user.role_expiry_date = None

    pro_days = data.get("pro_days")
    if pro_days and user.role in PREMIUM_ROLES:
        extend_role(user, user.role, pro_days)

    db.commit()
    db.refresh(user)
    return user


@router.patch("/users/{user_id}/reset-password")
async def admin_reset_password(
    user_id: int,
    payload: PasswordReset,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    user = _get_user(db, user_id)
    user.hashed_password = get_password_hash(payload.password)
    db.commit()
    return {"success": True, "message": "Senha redefinida com sucesso"}


@router.patch("/users/{user_id}/password-recovery", response_model=UserOut)
async def toggle_password_recovery(
    user_id: int,
    payload: PasswordRecoveryToggle,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    # O próprio usuário ou um admin
    if not is_owner_or_admin(principal, user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você só pode alterar as suas próprias configurações",
        )

    user = _get_user(db, user_id)
    user.disable_password_recovery = payload.disable_password_recovery
    db.commit()
    db.refresh(user)
    return user


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    if user_id == admin.user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Você não pode excluir sua própria conta")

    user = _get_user(db, user_id)
    rated_tools = [tool_id for (tool_id,) in db.query(ToolRating.tool_id).filter(ToolRating.user_id == user.id)]

    # Registros que apontam para o usuário sem pertencer a ele
    for model in (Tool, Course, PromoCode, Notification):
        db.query(model).filter(model.created_by == user.id).update({model.created_by: None}, synchronize_session=False)
    db.query(PlanPrice).filter(PlanPrice.updated_by == user.id).update({PlanPrice.updated_by: None}, synchronize_session=False)
    db.query(ChatMessage).filter(ChatMessage.user_id == user.id).delete(synchronize_session=False)
    db.query(Notification).filter(Notification.user_id == user.id).delete(synchronize_session=False)

    db.delete(user)
    db.flush()

    for tool in db.query(Tool).filter(Tool.id.in_(rated_tools)).all():
        recompute_tool_rating(db, tool)
    db.commit()

    logger.info("Admin %s excluiu o usuário %s", admin.user.id, user_id)
    return {"success": True, "message": "Usuário excluído com sucesso"}


@router.post("/admin/check-expired-plans")
async def check_expired_plans(db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    processed = downgrade_expired_users(db)
    return {
        "success": True,
        "message": f"Verificação executada com sucesso. {len(processed)} usuários processados.",
        "processedUsers": len(processed),
    }


@router.post("/admin/force-expiration-check")
async def force_expiration_check(db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    logger.info("Verificação manual de planos expirados iniciada pelo admin %s", admin.user.username)
    result = run_expiration_check(db)
    return {"success": True, "message": "Verificação de planos expirados executada com sucesso", **result}


@router.post("/admin/plan-prices")
async def set_plan_price(
    payload: PlanPriceRequest,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    price = db.query(PlanPrice).filter(PlanPrice.plan_type == payload.plan_type).first()
    if price:
        price.monthly_price = payload.monthly_price
        price.updated_by = admin.user.id
    else:
        db.add(PlanPrice(plan_type=payload.plan_type, monthly_price=payload.monthly_price, updated_by=admin.user.id))
    db.commit()

    return {"success": True, "planType": payload.plan_type, "monthlyPrice": float(payload.monthly_price)}
