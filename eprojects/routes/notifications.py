import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from eprojects.auth.security import Principal, get_principal, require_admin
from eprojects.database import get_db
from eprojects.models.notification import Notification
from eprojects.models.user import User
from eprojects.schemas.notification import BulkNotificationCreate, NotificationCreate, NotificationOut
from eprojects.users.tiers import effective_role
from eprojects.utils.dates import utcnow

logger = logging.getLogger("eprojects.notifications")

router = APIRouter(prefix="/api/notifications", tags=["Notificações"])


def _visible_to(principal: Principal):
    user = principal.user
    role = effective_role(user.role, user.role_expiry_date)
    return or_(
        Notification.user_id == user.id,
        and_(Notification.user_id.is_(None), Notification.target_role.in_(("all", role))),
    )


def _not_expired():
    return or_(Notification.expires_at.is_(None), Notification.expires_at >= utcnow())


@router.get("", response_model=list[NotificationOut])
async def list_notifications(db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    return (
        db.query(Notification)
        .filter(_visible_to(principal), _not_expired())
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .all()
    )


@router.post("", response_model=NotificationOut, status_code=status.HTTP_201_CREATED)
async def create_notification(
    payload: NotificationCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    if payload.user_id is not None:
        if not db.query(User).filter(User.id == payload.user_id).first():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuário não encontrado")
        target_role = "individual"
    else:
        target_role = payload.target_role

    notification = Notification(
        title=payload.title,
        message=payload.message,
        type=payload.type,
        link=payload.link,
        target_role=target_role,
        user_id=payload.user_id,
        expires_at=payload.expires_at,
        created_by=admin.user.id,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
async def create_bulk_notifications(
    payload: BulkNotificationCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    # Em massa sempre vira uma notificação individual por usuário
    query = db.query(User)
    if payload.target_role != "all":
        query = query.filter(User.role == payload.target_role)
    users = query.all()

    for user in users:
        db.add(
            Notification(
                title=payload.title,
                message=payload.message,
                type=payload.type,
                link=payload.link,
                target_role="individual",
                user_id=user.id,
                created_by=admin.user.id,
            )
        )
    db.commit()

    if payload.target_role == "all":
        message = f"Notificação enviada para {len(users)} usuários"
    else:
        message = f"Notificação enviada para {len(users)} usuários com papel {payload.target_role}"
    logger.info(message)
    return {"message": message, "count": len(users)}


@router.patch("/{notification_id}/read", response_model=NotificationOut)
async def mark_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    # Só quem recebe a notificação pode marcá-la como lida
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, _visible_to(principal))
        .first()
    )
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notificação não encontrada")

    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notificação não encontrada")

    db.delete(notification)
    db.commit()
    return {"success": True, "message": "Notificação excluída com sucesso"}
