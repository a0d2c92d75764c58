# 커스텀 예외 클래스 정의
# - 서비스 계층은 아래 예외를 raise 하고, HTTP 경계(main.py)에서 상태 코드와 메시지로 변환합니다
# - 계정 존재 여부가 드러나지 않도록 OTP 관련 실패는 모두 같은 메시지를 사용합니다

from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

INVALID_OTP_MESSAGE = "Invalid or expired code."
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."


class AuthServiceError(Exception):
    """인증 서비스 관련 기본 예외 클래스

    Attributes:
        status_code: HTTP 경계에서 사용할 상태 코드
        message: 사용자에게 그대로 노출되는 메시지
    """
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


class ValidationError(AuthServiceError):
    """입력 형식 검증 실패 (400)

    Attributes:
        issues: 필드별 상세 오류 목록 (loc, msg, type)
    """
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, issues: Optional[List[Dict[str, Any]]] = None):
        self.issues = issues or []
        super().__init__(message)

    @classmethod
    def from_errors(cls, errors: Sequence[Mapping[str, Any]]) -> "ValidationError":
        # pydantic / FastAPI 요청 검증 오류 목록을 {loc, msg, type} 로 평탄화
        issues = [
            {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
            for err in errors
        ]
        message = issues[0]["msg"] if issues else None
        return cls(message, issues)

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        return cls.from_errors(exc.errors())

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.issues:
            data["issues"] = self.issues
        return data


class Conflict(AuthServiceError):
    """이미 가입된 이메일 (409)"""
    status_code = 409
    default_message = "An account with this email already exists."


class Unauthorized(AuthServiceError):
    """잘못된 자격 증명, 또는 잘못되거나 만료된 토큰 (401)"""
    status_code = 401
    default_message = "Authentication required."


class InvalidOtp(AuthServiceError):
    """잘못된/만료된/사용된 코드, 또는 복구 과정의 알 수 없는 이메일 (400)

    주니어 개발자님께: "코드 틀림", "만료", "없는 사용자"를 구분하지 않습니다.
    구분하면 응답만 보고 가입 여부를 알아낼 수 있기 때문입니다.
    """
    status_code = 400
    default_message = INVALID_OTP_MESSAGE


class InternalError(AuthServiceError):
    status_code = 500
