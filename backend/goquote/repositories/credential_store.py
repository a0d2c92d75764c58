# 자격 증명 저장소 계약 (Credential Store)
# - User / OtpCode 영속화는 저장소만 담당 (서비스는 아래 메서드로만 데이터 변경)
# - 비밀번호 해싱도 저장소가 담당
# - "인증 완료 + 코드 사용", "비밀번호 변경 + 코드 사용"은 반드시 하나의 트랜잭션

import abc
from datetime import datetime
from typing import Optional

from starlette.concurrency import run_in_threadpool

from ..core.config import Settings, settings
from ..core.security import build_password_context, dummy_verify, get_password_hash, verify_password
from ..models.otp import OtpCode, OtpPurpose
from ..models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore(abc.ABC):

    def __init__(self, config: Settings = settings):
        self.pwd_context = build_password_context(config)

    # ---- 비밀번호 해싱 (bcrypt는 의도적으로 느리므로 스레드풀에서 실행) ----

    async def hash_password(self, password: str) -> str:
        return await run_in_threadpool(get_password_hash, password, self.pwd_context)

    async def check_password(self, email: str, password: str) -> bool:
        user = await self.find_by_email(email)
        if user is None:
            await run_in_threadpool(dummy_verify, self.pwd_context)
            return False
        return await run_in_threadpool(verify_password, password, user.password_hash, self.pwd_context)

    # ---- User ----

    @abc.abstractmethod
    async def create_user(self, full_name: str, email: str, password: str) -> Optional[User]:
        """새 사용자 생성. 이미 가입된 이메일이면 덮어쓰지 않고 None 을 반환합니다."""

    @abc.abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        ...

    @abc.abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abc.abstractmethod
    async def set_password(self, email: str, new_password: str) -> Optional[User]:
        """해시 교체 + 이메일 인증 처리 (재설정 코드를 받았다는 것은 메일 수신이 증명된 것)"""

    @abc.abstractmethod
    async def set_email_verified(self, email: str) -> Optional[User]:
        ...

    # ---- OtpCode ----

    @abc.abstractmethod
    async def add_otp(self, otp: OtpCode) -> OtpCode:
        ...

    @abc.abstractmethod
    async def find_latest_otp(
        self,
        user_id: str,
        code_hash: str,
        now: datetime,
        purpose: Optional[OtpPurpose] = None,
    ) -> Optional[OtpCode]:
        """미사용 + 미만료 + 해시 일치 (+ 용도 일치) 코드 중 가장 최근 것"""

    @abc.abstractmethod
    async def consume_otp(self, otp_id: str, now: datetime) -> bool:
        """이번 호출로 사용 처리되었으면 True. 이미 사용된 코드는 아무것도 바꾸지 않습니다."""

    # ---- 원자적 복합 연산 ----

    @abc.abstractmethod
    async def verify_email_with_otp(self, user_id: str, otp_id: str, now: datetime) -> bool:
        ...

    @abc.abstractmethod
    async def reset_password_with_otp(
        self, user_id: str, new_password: str, otp_id: str, now: datetime
    ) -> bool:
        ...
