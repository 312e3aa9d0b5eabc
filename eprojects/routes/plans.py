from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eprojects.auth.security import Principal, get_principal
from eprojects.database import get_db
from eprojects.models.plan_price import PlanPrice
from eprojects.users.tiers import effective_role, upgrade_offers

router = APIRouter(prefix="/api/upgrade", tags=["Planos"])


def monthly_prices(db: Session) -> dict[str, float]:
    return {p.plan_type: float(p.monthly_price) for p in db.query(PlanPrice).all()}


@router.get("/plans/prices")
async def plan_prices(db: Session = Depends(get_db)):
    return {plan_type: {"monthlyPrice": price} for plan_type, price in monthly_prices(db).items()}


@router.get("/plans")
async def available_plans(db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    user = principal.user
    return upgrade_offers(effective_role(user.role, user.role_expiry_date), monthly_prices(db))
