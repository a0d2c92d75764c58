# 메일 발송 서비스
# - 인증 코드 / 비밀번호 재설정 코드를 SMTP 로 발송
# - SMTP_HOST 가 비어 있으면 발송하지 않음 (로컬 개발은 debugOtpCode 로 확인)
# - 발송 실패는 로그만 남기고 응답에는 영향을 주지 않습니다

import logging
import smtplib
from email.mime.text import MIMEText
from typing import Optional

from starlette.concurrency import run_in_threadpool

from ..core.config import Settings
from ..core.retry import create_smtp_retry_decorator

logger = logging.getLogger(__name__)

BRAND_NAME = "GoQuote"


class EmailService:
    def __init__(self, config: Settings):
        self.config = config
        self._send_with_retry = create_smtp_retry_decorator(
            max_attempts=config.SMTP_MAX_ATTEMPTS,
        )(self._send_email)

    def _send_email(self, to_email: str, subject: str, body: str) -> None:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.config.SMTP_FROM
        msg["To"] = to_email

        server = smtplib.SMTP(self.config.SMTP_HOST, self.config.SMTP_PORT, timeout=self.config.SMTP_TIMEOUT_SECONDS)
        try:
            if self.config.SMTP_TLS:
                server.starttls()
            if self.config.SMTP_USER and self.config.SMTP_PASSWORD:
                server.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD)
            server.sendmail(self.config.SMTP_FROM, [to_email], msg.as_string())
        finally:
            server.quit()

    async def send(self, to_email: str, subject: str, body: str) -> bool:
        if not self.config.email_enabled:
            logger.info("SMTP not configured; skipping email to %s", to_email)
            return False
        try:
            await run_in_threadpool(self._send_with_retry, to_email, subject, body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to_email, e)
            return False
        logger.info("Email sent to %s", to_email)
        return True

    async def send_verification_code(self, to_email: str, code: str, full_name: Optional[str] = None) -> bool:
        greeting = f"Hi {full_name}," if full_name else "Hi,"
        body = (
            f"{greeting}\n\n"
            f"Your verification code is: {code}\n\n"
            f"This code expires in {self.config.OTP_TTL_MINUTES} minutes. "
            "If you didn't create an account, you can ignore this email.\n\n"
            f"- {BRAND_NAME}"
        )
        return await self.send(to_email, f"Verify your email - {BRAND_NAME}", body)

    async def send_password_reset_code(self, to_email: str, code: str) -> bool:
        body = (
            "You requested a password reset.\n\n"
            f"Your reset code is: {code}\n\n"
            f"This code expires in {self.config.OTP_TTL_MINUTES} minutes. "
            "If you didn't request this, you can ignore this email.\n\n"
            f"- {BRAND_NAME}"
        )
        return await self.send(to_email, f"Password reset code - {BRAND_NAME}", body)
