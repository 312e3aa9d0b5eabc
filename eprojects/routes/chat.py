import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from eprojects.auth.security import Principal, get_principal, is_owner_or_admin, require_admin
from eprojects.database import get_db
from eprojects.models.chat import ChatMessage, ChatThread
from eprojects.models.notification import Notification
from eprojects.schemas.chat import MessageCreate, MessageOut, ThreadCreate, ThreadOut
from eprojects.utils.dates import utcnow

logger = logging.getLogger("eprojects.chat")

router = APIRouter(prefix="/api/chat", tags=["Suporte"])


def _thread_out(thread: ChatThread, with_user: bool = False) -> ThreadOut:
    item = ThreadOut.model_validate(thread)
    if with_user and thread.user is not None:
        item.user_name = thread.user.username
    return item


def _get_thread(db: Session, thread_id: int, principal: Principal) -> ChatThread:
    thread = db.query(ChatThread).filter(ChatThread.id == thread_id).first()
    if not thread:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversa não encontrada")
    if not is_owner_or_admin(principal, thread.user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Você não tem acesso a esta conversa")
    return thread


@router.get("/threads", response_model=list[ThreadOut])
async def my_threads(db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    return (
        db.query(ChatThread)
        .filter(ChatThread.user_id == principal.user.id)
        .order_by(ChatThread.last_message_at.desc())
        .all()
    )


@router.get("/admin/threads", response_model=list[ThreadOut])
async def admin_threads(db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    threads = db.query(ChatThread).order_by(ChatThread.last_message_at.desc()).all()
    return [_thread_out(t, with_user=True) for t in threads]


@router.get("/admin/unread-count")
async def admin_unread_count(db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    count = db.query(ChatThread).filter(ChatThread.is_admin_unread.is_(True)).count()
    return {"count": count}


@router.get("/unread-count")
async def unread_count(db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    count = (
        db.query(ChatThread)
        .filter(ChatThread.user_id == principal.user.id, ChatThread.is_user_unread.is_(True))
        .count()
    )
    return {"count": count}


@router.post("/threads", response_model=ThreadOut, status_code=status.HTTP_201_CREATED)
async def create_thread(
    payload: ThreadCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    thread = ChatThread(
        user_id=principal.user.id,
        subject=payload.subject.strip(),
        status="open",
        is_user_unread=False,
        is_admin_unread=True,
    )
    db.add(thread)
    db.commit()
    db.refresh(thread)
    return thread


@router.get("/threads/{thread_id}")
async def get_thread(
    thread_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    thread = _get_thread(db, thread_id, principal)

    # Abrir a conversa marca como lida para o lado de quem está vendo
    if thread.user_id == principal.user.id:
        thread.is_user_unread = False
    elif principal.is_admin:
        thread.is_admin_unread = False
    db.commit()
    db.refresh(thread)

    return {"thread": _thread_out(thread, with_user=principal.is_admin).model_dump(by_alias=True, mode="json")}


@router.get("/threads/{thread_id}/messages", response_model=list[MessageOut])
async def thread_messages(
    thread_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return _get_thread(db, thread_id, principal).messages


@router.post("/threads/{thread_id}/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def post_message(
    thread_id: int,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    thread = _get_thread(db, thread_id, principal)
    is_admin_message = principal.is_admin

    if thread.status == "closed":
        if not is_admin_message:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Esta conversa está fechada")
        # Resposta do admin reabre a conversa
        thread.status = "open"

    if is_admin_message:
        thread.is_admin_unread = False
        thread.is_user_unread = True
    else:
        thread.is_user_unread = False
        thread.is_admin_unread = True

    message = ChatMessage(
        thread_id=thread.id,
        user_id=principal.user.id,
        message=payload.message,
        is_admin_message=is_admin_message,
    )
    thread.last_message_at = utcnow()
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


@router.patch("/threads/{thread_id}/close", response_model=ThreadOut)
async def close_thread(
    thread_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    thread = _get_thread(db, thread_id, principal)
    thread.status = "closed"

    if principal.is_admin and thread.user_id != principal.user.id:
        db.add(
            Notification(
                title="Ticket fechado",
                message=f'Seu ticket "{thread.subject}" foi fechado pelo administrador',
                type="chat",
                target_role="individual",
                user_id=thread.user_id,
                link=f"/chat/{thread.id}",
                created_by=principal.user.id,
            )
        )

    db.commit()
    db.refresh(thread)
    return thread


@router.delete("/threads/{thread_id}")
async def delete_thread(
    thread_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    thread = _get_thread(db, thread_id, admin)
    db.delete(thread)
    db.commit()
    logger.info("Conversa %s excluída por %s", thread_id, admin.user.id)
    return {"success": True, "message": "Conversa excluída com sucesso"}
