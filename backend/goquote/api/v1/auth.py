# 인증 라우터 (/api/auth)
# - 회원가입: POST /signup
# - 로그인: POST /signin
# - 비밀번호 찾기: POST /forgot-password
# - 인증 코드 재발송: POST /resend-verification
# - 코드 검증: POST /verify-otp
# - 비밀번호 재설정: POST /reset-password
# - 내 정보: GET /me (Bearer 토큰 필요)

from fastapi import APIRouter, Depends, status

from ...core.security import get_bearer_token
from ...schemas.auth_schema import (
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
from ...services.auth_service import AuthService, get_auth_service, to_public_user

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post(
    "/signup",
    response_model=SignUpResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="회원가입 (이메일 중복 체크 + 인증 코드 발급)",
)
async def signup(payload: SignUpRequest, service: AuthService = Depends(get_auth_service)):
    return await service.sign_up(payload.full_name, payload.email, payload.password)

@router.post("/signin", response_model=SignInResponse, summary="로그인 (세션 토큰 발급)")
async def signin(payload: SignInRequest, service: AuthService = Depends(get_auth_service)):
    return await service.sign_in(payload.email, payload.password)

@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    summary="비밀번호 재설정 코드 발급 (가입 여부와 무관하게 항상 200)",
)
async def forgot_password(payload: EmailRequest, service: AuthService = Depends(get_auth_service)):
    return await service.forgot_password(payload.email)

@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    summary="이메일 인증 코드 재발송",
)
async def resend_verification(payload: EmailRequest, service: AuthService = Depends(get_auth_service)):
    return await service.resend_verification(payload.email)

@router.post(
    "/verify-otp",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    summary="인증 코드 검증",
)
async def verify_otp(payload: VerifyOtpRequest, service: AuthService = Depends(get_auth_service)):
    return await service.verify_otp(payload.email, payload.code, payload.purpose)

@router.post(
    "/reset-password",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    summary="비밀번호 재설정",
)
async def reset_password(payload: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)):
    return await service.reset_password(
        payload.email, payload.code, payload.new_password, payload.confirm_password
    )

@router.get("/me", response_model=PublicUser, summary="현재 사용자 (로그인 필요)")
async def me(token: str = Depends(get_bearer_token), service: AuthService = Depends(get_auth_service)):
    user = await service.authenticate(token)
    return to_public_user(user)
