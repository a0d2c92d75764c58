# 인증 서비스 레이어
# - 회원가입 (이메일 중복 체크 + 인증 코드 발급)
# - 로그인 (비밀번호 검증, 세션 토큰 발급)
# - 비밀번호 찾기 / 코드 검증 / 비밀번호 재설정
# - 요청 사이에 상태를 갖지 않음: 모든 판단은 저장소 데이터로 다시 구성합니다
#
# 계정 존재 여부가 응답으로 드러나면 안 됩니다 (forgot/verify/reset 실패 응답은 모두 동일).

import logging
from typing import Any, Optional, Type, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..core.config import Settings, settings
from ..core.exceptions import (
    INVALID_CREDENTIALS_MESSAGE,
    Conflict,
    InternalError,
    InvalidOtp,
    Unauthorized,
    ValidationError,
)
from ..core.security import INVALID_TOKEN_MESSAGE, TokenIssuer, get_token_issuer
from ..models.otp import OtpPurpose
from ..models.user import User
from ..repositories.credential_store import CredentialStore
from ..schemas.auth_schema import (
    EmailRequest,
    MessageResponse,
    PublicUser,
    ResetPasswordRequest,
    SignInRequest,
    SignInResponse,
    SignUpRequest,
    SignUpResponse,
    VerifyOtpRequest,
)
from .email_service import EmailService
from .otp_service import OtpEngine

logger = logging.getLogger(__name__)

SIGNUP_MESSAGE = "Account created. Enter the verification code sent to your email."
CODE_SENT_MESSAGE = "If an account exists for this email, a verification code has been sent."
EMAIL_VERIFIED_MESSAGE = "Email verified successfully."
RESET_CODE_CONFIRMED_MESSAGE = "Code verified. You can now reset your password."
PASSWORD_RESET_MESSAGE = "Password has been reset successfully."

M = TypeVar("M", bound=BaseModel)


def _parse(model: Type[M], **data: Any) -> M:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)


def to_public_user(user: User) -> PublicUser:
    return PublicUser(email=user.email, full_name=user.full_name, is_email_verified=user.is_email_verified)


class AuthService:
    def __init__(
        self,
        store: CredentialStore,
        tokens: TokenIssuer,
        config: Settings,
        mailer: Optional[EmailService] = None,
        otp_engine: Optional[OtpEngine] = None,
    ):
        self.store = store
        self.tokens = tokens
        self.config = config
        self.mailer = mailer or EmailService(config)
        self.otp = otp_engine or OtpEngine(store, config)

    def _debug_code(self, code: str) -> Optional[str]:
        return code if self.config.expose_debug_otp else None

    async def sign_up(self, full_name: str, email: str, password: str) -> SignUpResponse:
        payload = _parse(SignUpRequest, full_name=full_name, email=email, password=password)
        user = await self.store.create_user(payload.full_name, payload.email, payload.password)
        if user is None:
            logger.info("Signup rejected: email already registered")
            raise Conflict()

        _, code = await self.otp.issue(user, OtpPurpose.EMAIL_VERIFICATION)
        await self.mailer.send_verification_code(user.email, code, user.full_name)
        logger.info("User %s signed up", user.id)
        return SignUpResponse(message=SIGNUP_MESSAGE, email=user.email, debug_otp_code=self._debug_code(code))

    async def sign_in(self, email: str, password: str) -> SignInResponse:
        payload = _parse(SignInRequest, email=email, password=password)
        # 이메일 없음 / 비밀번호 불일치를 구분하지 않습니다
        if not await self.store.check_password(payload.email, payload.password):
            logger.info("Signin failed")
            raise Unauthorized(INVALID_CREDENTIALS_MESSAGE)
        user = await self.store.find_by_email(payload.email)
        if user is None:
            raise Unauthorized(INVALID_CREDENTIALS_MESSAGE)
        # 이메일 미인증 사용자도 로그인 가능 (isEmailVerified 로 클라이언트가 판단)
        return SignInResponse(token=self.tokens.issue(user), user=to_public_user(user))

    async def forgot_password(self, email: str) -> MessageResponse:
        payload = _parse(EmailRequest, email=email)
        user = await self.store.find_by_email(payload.email)
        debug_code = None
        if user is not None:
            _, code = await self.otp.issue(user, OtpPurpose.PASSWORD_RESET)
            await self.mailer.send_password_reset_code(user.email, code)
            debug_code = self._debug_code(code)
        return MessageResponse(message=CODE_SENT_MESSAGE, debug_otp_code=debug_code)

    async def resend_verification(self, email: str) -> MessageResponse:
        payload = _parse(EmailRequest, email=email)
        user = await self.store.find_by_email(payload.email)
        debug_code = None
        if user is not None and not user.is_email_verified:
            _, code = await self.otp.issue(user, OtpPurpose.EMAIL_VERIFICATION)
            await self.mailer.send_verification_code(user.email, code, user.full_name)
            debug_code = self._debug_code(code)
        return MessageResponse(message=CODE_SENT_MESSAGE, debug_otp_code=debug_code)

    async def verify_otp(self, email: str, code: str, purpose: Optional[OtpPurpose] = None) -> MessageResponse:
        payload = _parse(VerifyOtpRequest, email=email, code=code, purpose=purpose)
        user = await self.store.find_by_email(payload.email)
        if user is None:
            raise InvalidOtp()
        otp = await self.otp.find_valid(user, payload.code, payload.purpose)
        if otp is None:
            logger.info("OTP verification failed for user %s", user.id)
            raise InvalidOtp()

        if otp.purpose is OtpPurpose.PASSWORD_RESET:
            # 확인만 하고 소모하지 않음. 소모는 reset_password 에서
            return MessageResponse(message=RESET_CODE_CONFIRMED_MESSAGE)
        if otp.purpose is OtpPurpose.EMAIL_VERIFICATION:
            # 인증 처리 + 코드 소모를 하나의 트랜잭션으로
            if not await self.store.verify_email_with_otp(user.id, otp.id, self.otp.clock()):
                # 동시 요청이 먼저 같은 코드를 사용한 경우
                raise InvalidOtp()
            logger.info("User %s verified email", user.id)
            return MessageResponse(message=EMAIL_VERIFIED_MESSAGE)
        raise InvalidOtp()

    async def reset_password(
        self,
        email: str,
        code: str,
        new_password: str,
        confirm_password: str,
    ) -> MessageResponse:
        payload = _parse(
            ResetPasswordRequest,
            email=email,
            code=code,
            new_password=new_password,
            confirm_password=confirm_password,
        )
        user = await self.store.find_by_email(payload.email)
        if user is None:
            raise InvalidOtp()
        otp = await self.otp.find_valid(user, payload.code, OtpPurpose.PASSWORD_RESET)
        if otp is None:
            logger.info("Password reset rejected for user %s", user.id)
            raise InvalidOtp()
        if not await self.store.reset_password_with_otp(user.id, payload.new_password, otp.id, self.otp.clock()):
            raise InvalidOtp()
        logger.info("User %s reset password", user.id)
        return MessageResponse(message=PASSWORD_RESET_MESSAGE)

    async def authenticate(self, token: str) -> User:
        claims = self.tokens.verify(token)
        user = await self.store.get_user(str(claims["sub"]))
        if user is None:
            raise Unauthorized(INVALID_TOKEN_MESSAGE)
        return user


def get_credential_store(request: Request) -> CredentialStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise InternalError("Credential store is not initialised")
    return store


def get_auth_service(
    store: CredentialStore = Depends(get_credential_store),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> AuthService:
    return AuthService(store, tokens, settings)
