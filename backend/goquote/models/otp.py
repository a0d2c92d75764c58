# OTP 코드 모델
# - 평문 코드는 저장하지 않고 SHA-256 해시만 저장
# - consumed_at 이 None 이면 아직 사용 가능
# - 한 사용자/용도에 여러 개의 유효 코드가 공존할 수 있음 (재발송)

from datetime import datetime
from enum import Enum
from typing import Optional

import pymongo
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel

from .user import utcnow


class OtpPurpose(str, Enum):
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"


class OtpCode(BaseModel):
    id: Optional[str] = None
    user_id: str
    code_hash: str
    purpose: OtpPurpose
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    consumed_at: Optional[datetime] = None

    def is_usable(self, now: datetime) -> bool:
        return self.consumed_at is None and now < self.expires_at


class OtpCodeDocument(Document):
    user_id: PydanticObjectId
    code_hash: str
    purpose: OtpPurpose
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    consumed_at: Optional[datetime] = None

    class Settings:
        name = "otp_codes"
        indexes = [
            # 사용자별 최신 코드 조회용
            IndexModel([("user_id", pymongo.ASCENDING), ("created_at", pymongo.DESCENDING)]),
        ]

    @classmethod
    def from_domain(cls, otp: OtpCode) -> "OtpCodeDocument":
        return cls(
            user_id=PydanticObjectId(otp.user_id),
            code_hash=otp.code_hash,
            purpose=otp.purpose,
            created_at=otp.created_at,
            expires_at=otp.expires_at,
            consumed_at=otp.consumed_at,
        )

    def to_domain(self) -> OtpCode:
        return OtpCode(
            id=str(self.id),
            user_id=str(self.user_id),
            code_hash=self.code_hash,
            purpose=self.purpose,
            created_at=self.created_at,
            expires_at=self.expires_at,
            consumed_at=self.consumed_at,
        )
