# 테스트 공통 설정
# - goquote 모듈 import 전에 환경변수를 먼저 세팅해야 합니다 (settings 가 import 시점에 생성됨)
# - DB 없이 메모리 저장소 + 가짜 시계 + 기록용 메일러로 서비스 조립

import os

os.environ["ENV"] = "test"
os.environ["STORE_BACKEND"] = "memory"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-enough-length"
os.environ["SMTP_HOST"] = ""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest

from goquote.core.config import settings
from goquote.core.security import TokenIssuer
from goquote.repositories.memory_store import InMemoryCredentialStore
from goquote.services.auth_service import AuthService
from goquote.services.otp_service import OtpEngine


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingMailer:
    def __init__(self):
        self.sent: List[Tuple[str, str, str]] = []

    async def send_verification_code(self, to_email: str, code: str, full_name: Optional[str] = None) -> bool:
        self.sent.append(("verification", to_email, code))
        return True

    async def send_password_reset_code(self, to_email: str, code: str) -> bool:
        self.sent.append(("password_reset", to_email, code))
        return True


@pytest.fixture
def store():
    return InMemoryCredentialStore()


@pytest.fixture
def clock():
    return FakeClock(datetime.now(tz=timezone.utc))


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def otp_engine(store, clock):
    return OtpEngine(store, settings, clock=clock)


def build_service(store, otp_engine, mailer, config=settings) -> AuthService:
    return AuthService(store, TokenIssuer(config), config, mailer=mailer, otp_engine=otp_engine)


@pytest.fixture
def service(store, otp_engine, mailer):
    return build_service(store, otp_engine, mailer)


@pytest.fixture
def production_service(store, otp_engine, mailer):
    return build_service(store, otp_engine, mailer, settings.model_copy(update={"ENV": "production"}))
