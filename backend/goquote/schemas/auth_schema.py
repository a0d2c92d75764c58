# 요청/응답 스키마 정의 (Pydantic 모델)
# - 클라이언트와는 camelCase (fullName, debugOtpCode ...) 로 주고받습니다
# - 파이썬 코드에서는 snake_case 필드명 그대로 사용 (populate_by_name)

from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, StringConstraints, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from ..models.otp import OtpPurpose

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


Email = Annotated[EmailStr, BeforeValidator(_strip)]
FullName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
Password = Annotated[str, Field(min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)]
Code = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=32)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---- 요청 ----

class SignUpRequest(CamelModel):
    full_name: FullName
    email: Email
    password: Password


class SignInRequest(CamelModel):
    email: Email
    password: str = Field(min_length=1)


class EmailRequest(CamelModel):
    email: Email


class VerifyOtpRequest(CamelModel):
    email: Email
    code: Code
    # 선택: 지정하면 코드의 용도가 정확히 일치해야 합니다
    purpose: Optional[OtpPurpose] = None


class ResetPasswordRequest(CamelModel):
    email: Email
    code: Code
    new_password: Password
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.new_password != self.confirm_password:
            raise PydanticCustomError("password_mismatch", "Passwords do not match.")
        return self


# ---- 응답 ----

class MessageResponse(CamelModel):
    message: str
    # 개발 환경에서만 채워집니다 (운영에서는 항상 None → 응답에서 제외)
    debug_otp_code: Optional[str] = None


class SignUpResponse(MessageResponse):
    email: str


class PublicUser(CamelModel):
    email: str
    full_name: str
    is_email_verified: bool


class SignInResponse(CamelModel):
    token: str
    user: PublicUser
