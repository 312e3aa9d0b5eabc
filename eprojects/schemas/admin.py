from decimal import Decimal
from typing import Literal, Optional

from pydantic import EmailStr, Field

from eprojects.schemas.common import ApiModel

Role = Literal["E-BASIC", "E-TOOL", "E-MASTER", "admin"]


class AdminUserCreate(ApiModel):
    username: str = Field(min_length=3)
    email: EmailStr
    password: str = Field(min_length=6)
    cpf: str
    role: Role = "E-BASIC"
    pro_days: Optional[int] = Field(default=None, ge=0)


class AdminUserUpdate(ApiModel):
    username: Optional[str] = Field(default=None, min_length=3)
    email: Optional[EmailStr] = None
    cpf: Optional[str] = None
    role: Optional[Role] = None
    pro_days: Optional[int] = Field(default=None, ge=0)


class PasswordReset(ApiModel):
    password: str = Field(min_length=6)


class PasswordRecoveryToggle(ApiModel):
    disable_password_recovery: bool


class PlanPriceRequest(ApiModel):
    plan_type: Literal["E-TOOL", "E-MASTER"]
    monthly_price: Decimal = Field(ge=0)
