from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from eprojects.schemas.common import ApiModel


class PromoCodeCreate(ApiModel):
    code: str = Field(min_length=3)
    days: int = Field(ge=1)
    max_uses: int = Field(ge=1)
    promo_type: Literal["role", "course"] = "role"
    target_role: Literal["E-TOOL", "E-MASTER"] = "E-TOOL"
    course_id: Optional[int] = None
    # O formulário do admin envia `expiryDate`; no banco vira valid_until
    expiry_date: Optional[datetime] = None


class PromoCodeOut(ApiModel):
    id: int
    code: str
    days: int
    max_uses: int
    used_count: int
    is_active: bool
    target_role: str
    promo_type: str
    course_id: Optional[int] = None
    expiry_date: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PromoCodeUse(ApiModel):
    code: str = Field(min_length=1)
