# User 도메인 모델
# - User: 저장소와 무관한 도메인 레코드 (서비스 계층은 이것만 다룹니다)
# - UserDocument: MongoDB 저장용 Beanie Document
# - 이메일은 소문자/trim 정규화 후 저장, unique 인덱스

from datetime import datetime, timezone

from beanie import Document, Indexed
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class User(BaseModel):
    id: str
    email: str
    full_name: str
    password_hash: str = Field(repr=False)
    is_email_verified: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserDocument(Document):
    email: Indexed(str, unique=True)  # 중복 방지 인덱스
    full_name: str
    password_hash: str = Field(repr=False)
    is_email_verified: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "users"  # 컬렉션명

    def to_domain(self) -> User:
        return User(
            id=str(self.id),
            email=self.email,
            full_name=self.full_name,
            password_hash=self.password_hash,
            is_email_verified=self.is_email_verified,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
