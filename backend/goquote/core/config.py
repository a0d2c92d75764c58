# 설정 모듈
# - .env 값들을 한 곳에서 관리
# - 기본값을 제공하여 로컬 실행 편의성 확보
# - Settings 는 불변(frozen) 객체로, 서비스 생성 시 명시적으로 주입합니다

from pathlib import Path
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 프로젝트 루트 디렉토리 경로 찾기
# 주니어 개발자님께: 이 파일은 backend/goquote/core/config.py에 있으므로,
# 4단계 상위로 올라가면 프로젝트 루트가 됩니다.
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
ENV_FILE_PATH = PROJECT_ROOT / ".env"

class Settings(BaseSettings):
    APP_NAME: str = "GoQuote Backend API"
    APP_VERSION: str = "1.0.0"
    ENV: Literal["development", "test", "production"] = "development"
    HOST: str = "0.0.0.0"
    PORT: int = 4000
    LOG_LEVEL: str = "INFO"

    # 저장소 선택: mongo (운영) 또는 memory (로컬 개발/테스트)
    STORE_BACKEND: Literal["mongo", "memory"] = "mongo"
    MONGODB_URI: str = "mongodb://localhost:27017/goquote"

    JWT_SECRET_KEY: str = Field(
        ...,
        min_length=16,
        description="세션 토큰 서명 비밀키. 최소 16자 이상의 랜덤 문자열로 설정하세요.",
    )
    JWT_ALGORITHM: str = "HS256"
    SESSION_TOKEN_EXPIRE_DAYS: int = 7

    # OTP 유효시간 (분). 이메일 인증과 비밀번호 재설정 모두 같은 값을 사용합니다.
    OTP_TTL_MINUTES: int = 10
    # bcrypt cost factor (10 이상)
    PASSWORD_HASH_ROUNDS: int = Field(default=10, ge=10, le=15)

    CORS_ALLOW_ORIGINS: str = "http://localhost:8081"

    # SMTP_HOST 가 비어 있으면 메일 발송을 건너뜁니다 (로컬 개발)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "GoQuote <noreply@example.com>"
    SMTP_TLS: bool = True
    SMTP_TIMEOUT_SECONDS: float = 30.0
    SMTP_MAX_ATTEMPTS: int = 3

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH) if ENV_FILE_PATH.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"

    @property
    def expose_debug_otp(self) -> bool:
        # 개발 편의 기능: 운영 환경에서는 절대 평문 코드를 응답에 넣지 않습니다
        return not self.is_production

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ALLOW_ORIGINS.split(",") if o.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.SMTP_HOST)

settings = Settings()
