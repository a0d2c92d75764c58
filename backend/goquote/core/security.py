# 보안/인증 유틸리티
# - 비밀번호 해싱/검증 (bcrypt, passlib)
# - 세션 토큰 발급/검증 (JWT, 7일)
# - Authorization: Bearer 헤더 추출 (의존성)

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from .config import Settings, settings
from .exceptions import Unauthorized
from ..models.user import User

INVALID_TOKEN_MESSAGE = "Invalid or expired token."


# bcrypt cost 는 주입된 Settings 의 PASSWORD_HASH_ROUNDS 를 따릅니다
def build_password_context(config: Settings) -> CryptContext:
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=config.PASSWORD_HASH_ROUNDS,
    )


pwd_context = build_password_context(settings)
# auto_error=False: 헤더 누락/형식 오류를 직접 Unauthorized 로 변환하기 위함
bearer_scheme = HTTPBearer(auto_error=False)

def verify_password(plain_password: str, hashed_password: str, context: CryptContext = pwd_context) -> bool:
    return context.verify(plain_password, hashed_password)

def get_password_hash(password: str, context: CryptContext = pwd_context) -> str:
    return context.hash(password)

def dummy_verify(context: CryptContext = pwd_context) -> None:
    # 없는 이메일도 틀린 비밀번호와 비슷한 시간이 걸리도록
    context.dummy_verify()


class TokenIssuer:
    """세션 토큰의 유일한 발급자/검증자. 서명 키는 이 클래스만 다룹니다."""

    def __init__(self, config: Settings):
        self._secret = config.JWT_SECRET_KEY
        self._algorithm = config.JWT_ALGORITHM
        self.lifetime = timedelta(days=config.SESSION_TOKEN_EXPIRE_DAYS)

    def issue(self, user: User, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(tz=timezone.utc)
        payload = {
            "sub": user.id,
            "email": user.email,
            "iat": now,
            "exp": now + self.lifetime,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        # 서명 오류, 만료, 형식 오류 모두 같은 Unauthorized 로 합칩니다
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.PyJWTError:
            raise Unauthorized(INVALID_TOKEN_MESSAGE)


def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(settings)

async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise Unauthorized("Authentication required.")
    return credentials.credentials
