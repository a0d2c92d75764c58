# 메모리 저장소
# - STORE_BACKEND=memory 일 때 사용 (로컬 개발, 테스트)
# - 프로세스가 끝나면 데이터도 사라집니다
# - 복합 연산은 스냅샷/복원으로 all-or-nothing 을 보장합니다

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, Optional
from uuid import uuid4

from .credential_store import CredentialStore, normalize_email
from ..core.config import Settings, settings
from ..models.otp import OtpCode, OtpPurpose
from ..models.user import User, utcnow


class InMemoryCredentialStore(CredentialStore):
    def __init__(self, config: Settings = settings):
        super().__init__(config)
        self._users: Dict[str, User] = {}
        self._user_ids_by_email: Dict[str, str] = {}
        self._otps: Dict[str, OtpCode] = {}
        # 임계 구역 안에서는 await 하지 않으므로 스레드 락으로 충분합니다
        self._lock = threading.RLock()

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        with self._lock:
            users = {k: v.model_copy() for k, v in self._users.items()}
            otps = {k: v.model_copy() for k, v in self._otps.items()}
            try:
                yield
            except BaseException:
                self._users = users
                self._otps = otps
                raise

    # ---- User ----

    async def create_user(self, full_name: str, email: str, password: str) -> Optional[User]:
        email = normalize_email(email)
        if email in self._user_ids_by_email:
            return None
        password_hash = await self.hash_password(password)
        with self._lock:
            # 해싱 도중 같은 이메일이 먼저 가입했을 수 있음
            if email in self._user_ids_by_email:
                return None
            user = User(id=uuid4().hex, email=email, full_name=full_name, password_hash=password_hash)
            self._users[user.id] = user
            self._user_ids_by_email[email] = user.id
            return user.model_copy()

    async def find_by_email(self, email: str) -> Optional[User]:
        user_id = self._user_ids_by_email.get(normalize_email(email))
        return await self.get_user(user_id) if user_id else None

    async def get_user(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def set_password(self, email: str, new_password: str) -> Optional[User]:
        user = await self.find_by_email(email)
        if user is None:
            return None
        password_hash = await self.hash_password(new_password)
        with self._transaction():
            self._replace_password_hash(user.id, password_hash, utcnow())
        return await self.get_user(user.id)

    async def set_email_verified(self, email: str) -> Optional[User]:
        user = await self.find_by_email(email)
        if user is None:
            return None
        with self._transaction():
            self._mark_verified(user.id, utcnow())
        return await self.get_user(user.id)

    # ---- OtpCode ----

    async def add_otp(self, otp: OtpCode) -> OtpCode:
        stored = otp.model_copy(update={"id": uuid4().hex})
        with self._lock:
            self._otps[stored.id] = stored
        return stored.model_copy()

    async def find_latest_otp(
        self,
        user_id: str,
        code_hash: str,
        now: datetime,
        purpose: Optional[OtpPurpose] = None,
    ) -> Optional[OtpCode]:
        with self._lock:
            candidates = [
                otp
                for otp in reversed(list(self._otps.values()))
                if otp.user_id == user_id
                and otp.code_hash == code_hash
                and otp.is_usable(now)
                and (purpose is None or otp.purpose == purpose)
            ]
        if not candidates:
            return None
        # 생성 시각이 같으면 나중에 저장된 코드가 우선
        return max(candidates, key=lambda otp: otp.created_at).model_copy()

    async def consume_otp(self, otp_id: str, now: datetime) -> bool:
        with self._transaction():
            return self._consume(otp_id, now)

    # ---- 원자적 복합 연산 ----

    async def verify_email_with_otp(self, user_id: str, otp_id: str, now: datetime) -> bool:
        with self._transaction():
            if not self._consume(otp_id, now):
                return False
            self._mark_verified(user_id, now)
            return True

    async def reset_password_with_otp(
        self, user_id: str, new_password: str, otp_id: str, now: datetime
    ) -> bool:
        password_hash = await self.hash_password(new_password)
        with self._transaction():
            if not self._consume(otp_id, now):
                return False
            self._replace_password_hash(user_id, password_hash, now)
            return True

    # ---- 단일 쓰기 단계 (반드시 _transaction 안에서 호출) ----

    def _consume(self, otp_id: str, now: datetime) -> bool:
        otp = self._otps.get(otp_id)
        if otp is None or otp.consumed_at is not None:
            return False
        otp.consumed_at = now
        return True

    def _mark_verified(self, user_id: str, now: datetime) -> None:
        user = self._users[user_id]
        user.is_email_verified = True
        user.updated_at = now

    def _replace_password_hash(self, user_id: str, password_hash: str, now: datetime) -> None:
        user = self._users[user_id]
        user.password_hash = password_hash
        user.is_email_verified = True
        user.updated_at = now
