# MongoDB 저장소 (Beanie ODM + motor)
# - 데이터 접근(조회/생성/변경)만 담당 (서비스 로직 분리)
# - 복합 연산은 motor 세션 트랜잭션으로 처리합니다
#
# 주의: MongoDB 트랜잭션은 replica set (또는 Atlas) 에서만 동작합니다.
# 로컬 단일 mongod 라면 `mongod --replSet rs0` 후 rs.initiate() 가 필요합니다.

from datetime import datetime
from typing import Any, Dict, Optional

from beanie import PydanticObjectId
from beanie.operators import Set
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession
from pymongo.errors import DuplicateKeyError

from .credential_store import CredentialStore, normalize_email
from ..core.config import Settings, settings
from ..models.otp import OtpCode, OtpCodeDocument, OtpPurpose
from ..models.user import User, UserDocument, utcnow


def _object_id(value: str) -> Optional[PydanticObjectId]:
    if not ObjectId.is_valid(value):
        return None
    return PydanticObjectId(value)


class MongoCredentialStore(CredentialStore):
    def __init__(self, client: AsyncIOMotorClient, config: Settings = settings):
        super().__init__(config)
        self.client = client

    # ---- User ----

    async def create_user(self, full_name: str, email: str, password: str) -> Optional[User]:
        email = normalize_email(email)
        if await UserDocument.find_one(UserDocument.email == email):
            return None
        password_hash = await self.hash_password(password)
        user = UserDocument(email=email, full_name=full_name, password_hash=password_hash)
        try:
            await user.insert()
        except DuplicateKeyError:
            # 동시 가입 경합은 unique 인덱스가 최종 판정
            return None
        return user.to_domain()

    async def find_by_email(self, email: str) -> Optional[User]:
        user = await UserDocument.find_one(UserDocument.email == normalize_email(email))
        return user.to_domain() if user else None

    async def get_user(self, user_id: str) -> Optional[User]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        user = await UserDocument.get(oid)
        return user.to_domain() if user else None

    async def set_password(self, email: str, new_password: str) -> Optional[User]:
        password_hash = await self.hash_password(new_password)
        return await self._update_user(
            email,
            {UserDocument.password_hash: password_hash, UserDocument.is_email_verified: True},
        )

    async def set_email_verified(self, email: str) -> Optional[User]:
        return await self._update_user(email, {UserDocument.is_email_verified: True})

    async def _update_user(self, email: str, fields: Dict[Any, Any]) -> Optional[User]:
        email = normalize_email(email)
        query = UserDocument.find_one(UserDocument.email == email)
        await query.update(Set({**fields, UserDocument.updated_at: utcnow()}))
        return await self.find_by_email(email)

    # ---- OtpCode ----

    async def add_otp(self, otp: OtpCode) -> OtpCode:
        doc = OtpCodeDocument.from_domain(otp)
        await doc.insert()
        return doc.to_domain()

    async def find_latest_otp(
        self,
        user_id: str,
        code_hash: str,
        now: datetime,
        purpose: Optional[OtpPurpose] = None,
    ) -> Optional[OtpCode]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        conditions = [
            OtpCodeDocument.user_id == oid,
            OtpCodeDocument.code_hash == code_hash,
            OtpCodeDocument.consumed_at == None,  # noqa: E711 (beanie 쿼리 표현식)
            OtpCodeDocument.expires_at > now,
        ]
        if purpose is not None:
            conditions.append(OtpCodeDocument.purpose == purpose)
        doc = await OtpCodeDocument.find(*conditions).sort(-OtpCodeDocument.created_at).first_or_none()
        return doc.to_domain() if doc else None

    async def consume_otp(self, otp_id: str, now: datetime) -> bool:
        return await self._consume(otp_id, now)

    # ---- 원자적 복합 연산 ----

    async def verify_email_with_otp(self, user_id: str, otp_id: str, now: datetime) -> bool:
        async def _callback(session: AsyncIOMotorClientSession) -> bool:
            if not await self._consume(otp_id, now, session=session):
                return False
            await self._set_user_fields(user_id, {"is_email_verified": True, "updated_at": now}, session)
            return True

        return await self._run_in_transaction(_callback)

    async def reset_password_with_otp(
        self, user_id: str, new_password: str, otp_id: str, now: datetime
    ) -> bool:
        # 해싱은 트랜잭션 밖에서 (트랜잭션을 오래 열어두지 않기 위해)
        password_hash = await self.hash_password(new_password)

        async def _callback(session: AsyncIOMotorClientSession) -> bool:
            if not await self._consume(otp_id, now, session=session):
                return False
            fields = {"password_hash": password_hash, "is_email_verified": True, "updated_at": now}
            await self._set_user_fields(user_id, fields, session)
            return True

        return await self._run_in_transaction(_callback)

    async def _run_in_transaction(self, callback) -> bool:
        async with await self.client.start_session() as session:
            # with_transaction 은 TransientTransactionError 시 자동 재시도
            return await session.with_transaction(callback)

    async def _consume(
        self,
        otp_id: str,
        now: datetime,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> bool:
        oid = _object_id(otp_id)
        if oid is None:
            return False
        result = await OtpCodeDocument.get_motor_collection().update_one(
            {"_id": oid, "consumed_at": None},
            {"$set": {"consumed_at": now}},
            session=session,
        )
        return result.modified_count == 1

    async def _set_user_fields(
        self,
        user_id: str,
        fields: Dict[str, Any],
        session: AsyncIOMotorClientSession,
    ) -> None:
        result = await UserDocument.get_motor_collection().update_one(
            {"_id": _object_id(user_id)},
            {"$set": fields},
            session=session,
        )
        if result.matched_count != 1:
            # 트랜잭션 전체를 되돌리기 위해 예외로 빠져나갑니다
            raise LookupError(f"user {user_id} not found")
