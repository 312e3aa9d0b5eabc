from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from eprojects.schemas.common import ApiModel
from eprojects.users.tiers import effective_role, tier_for_user


class RegisterRequest(ApiModel):
    username: str = Field(min_length=3)
    email: EmailStr
    password: str = Field(min_length=6)
    cpf: str
    promo_code: Optional[str] = None


class LoginRequest(ApiModel):
    email: str
    password: str


class RecoverPasswordRequest(ApiModel):
    identifier: str
    cpf: str


class ResetPasswordRequest(ApiModel):
    token: str
    password: str = Field(min_length=6)


class UserOut(ApiModel):
    id: int
    username: str
    email: str
    cpf: str
    role: str
    role_expiry_date: Optional[datetime] = None
    disable_password_recovery: bool = False
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


def user_payload(user, now: datetime | None = None) -> dict:
    """Dados públicos do usuário mais o papel efetivo e os flags de nível."""
    data = UserOut.model_validate(user).model_dump(by_alias=True, mode="json")
    data["effectiveRole"] = effective_role(user.role, user.role_expiry_date, now)
    data.update(tier_for_user(user, now).as_dict())
    return data
