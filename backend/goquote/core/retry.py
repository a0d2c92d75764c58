# 재시도 로직 유틸리티
# 주니어 개발자님께: SMTP 서버 호출은 네트워크 오류나 일시적 서버 오류로
# 실패할 수 있습니다. 이런 경우 몇 번 재시도하면 성공할 수 있습니다.
# tenacity 라이브러리를 사용하여 재시도 로직을 구현합니다.

import logging
import smtplib
from typing import Tuple, Type

from tenacity import (
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

# 재시도 대상: SMTP 프로토콜 오류와 소켓/타임아웃 오류
TRANSIENT_SMTP_ERRORS: Tuple[Type[Exception], ...] = (smtplib.SMTPException, OSError)


def create_smtp_retry_decorator(
    max_attempts: int = 3,
    initial_wait: float = 1.0,
    max_wait: float = 10.0,
    exceptions: Tuple[Type[Exception], ...] = TRANSIENT_SMTP_ERRORS,
):
    """
    메일 발송용 재시도 데코레이터를 생성하는 팩토리 함수입니다.

    1. max_attempts: 최대 시도 횟수 (3이면 처음 1번 + 재시도 2번)
    2. initial_wait: 첫 재시도 전 대기 시간 (초)
    3. max_wait: 최대 대기 시간 (초)
    4. exceptions: 재시도할 예외 타입

    모든 시도가 실패하면 마지막 예외를 그대로 다시 발생시킵니다 (reraise=True).

    사용 예시:
        @create_smtp_retry_decorator(max_attempts=3)
        def send():
            ...
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        # 지수 백오프: 1초 → 2초 → 4초 ... 최대 max_wait
        wait=wait_exponential(multiplier=2, min=initial_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        after=after_log(logger, logging.ERROR),
        reraise=True,
    )
