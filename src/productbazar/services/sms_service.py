"""One-time passwords over SMS.

Production delivery uses the Twilio Verify REST API. Everywhere else the code
is generated locally, kept in Redis for the OTP lifetime and written to the
log so developers can sign in without a phone.
"""

import hmac
import secrets

import httpx
import redis.asyncio as aioredis
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from productbazar.config import get_settings
from productbazar.exceptions import ServiceUnavailableError, TooManyRequestsError
from productbazar.realtime.pubsub import get_redis
from productbazar.utils.text import mask_phone

logger = structlog.get_logger()

TWILIO_VERIFY_URL = "https://verify.twilio.com/v2/Services/{service_sid}"


def otp_key(phone: str) -> str:
    return f"otp:code:{phone}"


def otp_sends_key(phone: str) -> str:
    return f"otp:sends:{phone}"


def otp_failures_key(phone: str) -> str:
    return f"otp:failed:{phone}"


def generate_otp() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


class SmsService:
    """Send and check OTP codes."""

    def __init__(self, redis: aioredis.Redis | None = None):
        self.settings = get_settings()
        self._redis = redis

    @property
    def redis(self) -> aioredis.Redis | None:
        if self._redis is not None:
            return self._redis
        try:
            return get_redis()
        except RuntimeError:
            return None

    async def _check_send_limit(self, phone: str) -> None:
        """Allow a bounded number of sends per phone per window."""
        redis = self.redis
        if redis is None:
            return
        key = otp_sends_key(phone)
        try:
            sends = await redis.incr(key)
            if sends == 1:
                await redis.expire(key, self.settings.otp_send_window_seconds)
        except aioredis.RedisError as e:
            logger.warning("otp_send_limit_unavailable", error=str(e))
            return
        if sends > self.settings.otp_max_sends:
            logger.warning("otp_send_limit_reached", phone=mask_phone(phone), sends=sends)
            raise TooManyRequestsError(
                "Too many verification codes requested. Please try again later.",
                code="OTP_SEND_LIMIT",
            )

    async def send_otp(self, phone: str) -> None:
        await self._check_send_limit(phone)
        if self.settings.sms_provider_enabled:
            await self._twilio_request(
                "Verifications", {"To": phone, "Channel": "sms"}
            )
            logger.info("otp_sent", phone=mask_phone(phone), provider="twilio")
            return

        redis = self.redis
        if redis is None:
            raise ServiceUnavailableError("Verification service is temporarily unavailable.")
        code = generate_otp()
        await redis.set(otp_key(phone), code, ex=self.settings.otp_ttl_seconds)
        logger.info("otp_generated_locally", phone=mask_phone(phone), code=code)

    async def verify_otp(self, phone: str, code: str) -> bool:
        if self.settings.sms_provider_enabled:
            result = await self._twilio_request(
                "VerificationCheck", {"To": phone, "Code": code}
            )
            approved = result.get("status") == "approved"
            logger.info("otp_checked", phone=mask_phone(phone), approved=approved)
            return approved

        redis = self.redis
        if redis is None:
            raise ServiceUnavailableError("Verification service is temporarily unavailable.")
        stored = await redis.get(otp_key(phone))
        if stored is None or not hmac.compare_digest(str(stored), code):
            return False
        await redis.delete(otp_key(phone))
        return True

    async def failed_attempts(self, phone: str) -> int:
        redis = self.redis
        if redis is None:
            return 0
        value = await redis.get(otp_failures_key(phone))
        return int(value or 0)

    async def record_failure(self, phone: str) -> int:
        redis = self.redis
        if redis is None:
            return 0
        key = otp_failures_key(phone)
        failures = await redis.incr(key)
        if failures == 1:
            await redis.expire(key, self.settings.otp_send_window_seconds)
        return failures

    async def clear_failures(self, phone: str) -> None:
        redis = self.redis
        if redis is not None:
            await redis.delete(otp_failures_key(phone))

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.HTTPStatusError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def _twilio_request(self, resource: str, data: dict) -> dict:
        url = f"{TWILIO_VERIFY_URL.format(service_sid=self.settings.twilio_verify_service_sid)}/{resource}"
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.post(
                url,
                data=data,
                auth=(self.settings.twilio_account_sid, self.settings.twilio_auth_token),
            )
        if response.status_code >= 500:
            response.raise_for_status()
        if response.status_code >= 400:
            logger.warning(
                "twilio_request_rejected", resource=resource, status_code=response.status_code
            )
            # Verify answers 404 once a code has expired or been used
            if resource == "VerificationCheck":
                return {"status": "expired"}
            raise ServiceUnavailableError("Could not send verification code. Please try again.")
        return response.json()
