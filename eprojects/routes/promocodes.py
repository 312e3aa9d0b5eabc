from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from eprojects.auth.security import Principal, get_principal, require_admin
from eprojects.database import get_db
from eprojects.models.course import Course
from eprojects.models.promo import PromoCode
from eprojects.schemas.auth import user_payload
from eprojects.schemas.promo import PromoCodeCreate, PromoCodeOut, PromoCodeUse
from eprojects.services import promo_service

router = APIRouter(prefix="/api/promocodes", tags=["Códigos promocionais"])

# Motivo de recusa -> status HTTP
REASON_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "exhausted": status.HTTP_409_CONFLICT,
    "already_redeemed": status.HTTP_409_CONFLICT,
}


@router.get("", response_model=list[PromoCodeOut])
async def list_promo_codes(db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    return db.query(PromoCode).order_by(PromoCode.created_at.desc()).all()


@router.post("", response_model=PromoCodeOut, status_code=status.HTTP_201_CREATED)
async def create_promo_code(
    payload: PromoCodeCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    if promo_service.get_by_code(db, payload.code.strip()):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Código promocional já existe")

    if payload.promo_type == "course":
        if payload.course_id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Informe o curso do código promocional")
        if not db.query(Course).filter(Course.id == payload.course_id).first():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Curso não encontrado")

    return promo_service.create_promo_code(
        db,
        code=payload.code,
        days=payload.days,
        max_uses=payload.max_uses,
        promo_type=payload.promo_type,
        target_role=payload.target_role,
        course_id=payload.course_id,
        valid_until=payload.expiry_date,
        created_by=admin.user.id,
    )


@router.post("/use")
async def use_promo_code(
    payload: PromoCodeUse,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    try:
        redemption = promo_service.redeem(db, payload.code, principal.user)
    except promo_service.PromoCodeError as e:
        raise HTTPException(
            status_code=REASON_STATUS.get(e.reason, status.HTTP_400_BAD_REQUEST),
            detail=e.message,
        )

    result = {
        "success": True,
        "message": redemption.message,
        "days": redemption.days,
        "user": user_payload(redemption.user),
    }
    if redemption.purchase is not None:
        result["courseId"] = redemption.purchase.course_id
        result["expiresAt"] = redemption.purchase.expires_at
    return result


@router.delete("/{promo_id}")
async def delete_promo_code(
    promo_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    promo = db.query(PromoCode).filter(PromoCode.id == promo_id).first()
    if not promo:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Código promocional não encontrado")

    promo_service.delete_promo_code(db, promo)
    return {"success": True, "message": "Código promocional excluído com sucesso"}
