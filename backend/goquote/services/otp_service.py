# OTP 엔진
# - 6자리 숫자 코드 생성 (secrets, 균등 분포)
# - SHA-256 해시만 저장, 평문은 발급 시점에 한 번만 반환
# - 검증(verify)은 코드를 소모하지 않음. 소모(consume)는 별도의 명시적 단계

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from ..core.config import Settings
from ..models.otp import OtpCode, OtpPurpose
from ..models.user import User, utcnow
from ..repositories.credential_store import CredentialStore

logger = logging.getLogger(__name__)

OTP_DIGITS = 6


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


class OtpEngine:
    def __init__(
        self,
        store: CredentialStore,
        config: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.ttl = timedelta(minutes=config.OTP_TTL_MINUTES)
        self.clock = clock

    @staticmethod
    def generate() -> Tuple[str, str]:
        # randbelow 는 모듈로 편향 없이 000000~999999 를 균등하게 뽑습니다
        plaintext = f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"
        return plaintext, hash_code(plaintext)

    def expiry(self, now: datetime) -> datetime:
        return now + self.ttl

    async def issue(self, user: User, purpose: OtpPurpose) -> Tuple[OtpCode, str]:
        """새 코드를 저장하고 (저장된 코드, 평문) 을 반환합니다.

        기존에 발급된 유효 코드는 그대로 둡니다. 재발송 요청이 겹쳐도
        각 코드는 만료되거나 사용될 때까지 독립적으로 유효합니다.
        """
        plaintext, code_hash = self.generate()
        now = self.clock()
        otp = OtpCode(
            user_id=user.id,
            code_hash=code_hash,
            purpose=purpose,
            created_at=now,
            expires_at=self.expiry(now),
        )
        stored = await self.store.add_otp(otp)
        logger.info("Issued %s code for user %s (expires %s)", purpose.value, user.id, stored.expires_at.isoformat())
        return stored, plaintext

    async def find_valid(
        self,
        user: User,
        plaintext: str,
        purpose: Optional[OtpPurpose] = None,
    ) -> Optional[OtpCode]:
        return await self.store.find_latest_otp(user.id, hash_code(plaintext.strip()), self.clock(), purpose)

    async def verify(self, user: User, plaintext: str, purpose: Optional[OtpPurpose] = None) -> bool:
        return await self.find_valid(user, plaintext, purpose) is not None

    async def consume(self, otp_id: str) -> None:
        # 이미 사용된 코드면 아무 일도 일어나지 않음 (멱등)
        await self.store.consume_otp(otp_id, self.clock())
