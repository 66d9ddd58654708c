"""
OTP orchestration: generate → deliver → persist (background) → verify.

request_otp() returns as soon as delivery resolves. Persistence runs as a
background task whose failure is logged and swallowed; what the caller sees
is decided by delivery alone. Until a record is safely stored, verification
for its key fails closed with StoreUnavailableError rather than checking the
code against an older, superseded record.

verify_otp() raises one typed error per failure reason; nothing here is
fatal to the process.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from config import AppSettings
from errors import (
    AttemptsExhaustedError,
    DeliveryFailedError,
    InvalidCodeError,
    InvalidOrExpiredError,
    RateLimitError,
    StoreUnavailableError,
    ValidationError,
)
from infrastructure.cache.cooldown import CooldownTracker
from infrastructure.delivery.channel import DeliveryDispatcher
from infrastructure.delivery.protocol import DeliveryResult
from repositories.otp_repository import STORE_UNAVAILABLE_MESSAGE
from repositories.protocol import OtpStore
from schemas.dto.responses.otp import (
    OtpOutcomeTotals,
    OtpStatsResponse,
    OtpStatusResponse,
)
from schemas.models.otp import (
    DeliveryStatus,
    OtpChannel,
    OtpPurpose,
    OtpRecordDoc,
)
from shared.crypto import code_matches, hash_token
from shared.generators import generate_otp_code, generate_request_id
from shared.logging import get_logger, log_with_context, mask_destination

log = get_logger(__name__)

INVALID_OR_EXPIRED_MESSAGE = (
    "Verification code expired or not found. Please request a new one."
)
ATTEMPTS_EXHAUSTED_MESSAGE = (
    "Too many failed attempts. Please request a new verification code."
)

STATS_PERIODS = {"day": 1, "week": 7, "month": 30}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OtpPolicy:
    code_length: int = 6
    ttl_seconds: int = 600
    cooldown_seconds: int = 60
    max_attempts: int = 3
    disclose_code: bool = False

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "OtpPolicy":
        otp = settings.otp
        return cls(
            code_length=otp.otp_length,
            ttl_seconds=otp.otp_ttl_seconds,
            cooldown_seconds=otp.otp_cooldown_seconds,
            max_attempts=otp.otp_max_attempts,
            disclose_code=not settings.is_production,
        )


@dataclass(frozen=True)
class SendResult:
    request_id: str
    expires_at: datetime
    delivery: DeliveryResult
    code: Optional[str] = None


@dataclass(frozen=True)
class VerifyResult:
    request_id: str
    purpose: OtpPurpose
    owner_id: Optional[str]
    verified_at: datetime


PersistKey = tuple[str, str]


class OtpService:
    def __init__(
        self,
        store: OtpStore,
        dispatcher: DeliveryDispatcher,
        cooldown: CooldownTracker,
        policy: Optional[OtpPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._cooldown = cooldown
        self.policy = policy or OtpPolicy()
        self._clock = clock
        self._tasks: set[asyncio.Task] = set()
        self._pending: dict[PersistKey, int] = {}
        self._unpersisted: dict[PersistKey, datetime] = {}

    @staticmethod
    def cooldown_key(lookup_key: str, purpose: OtpPurpose) -> str:
        return f"{purpose.value}:{lookup_key}"

    def _cooldown_keys(
        self, destination: str, owner_id: Optional[str], purpose: OtpPurpose
    ) -> list[str]:
        # The destination is always throttled, whoever claims to own it
        keys = [self.cooldown_key(destination, purpose)]
        if owner_id and owner_id != destination:
            keys.append(self.cooldown_key(owner_id, purpose))
        return keys

    async def _claim_cooldowns(self, keys: list[str]) -> int:
        """Claim every key or none; returns the wait in seconds when one is held."""
        claimed: list[str] = []
        for key in keys:
            retry_after = await self._cooldown.acquire(key, self.policy.cooldown_seconds)
            if retry_after:
                await self._release_cooldowns(claimed)
                return retry_after
            claimed.append(key)
        return 0

    async def _release_cooldowns(self, keys: list[str]) -> None:
        for key in keys:
            await self._cooldown.release(key)

    # ── Send ─────────────────────────────────────────────────────────────────

    async def request_otp(
        self,
        destination: str,
        channel: OtpChannel,
        purpose: OtpPurpose,
        owner_id: Optional[str] = None,
        request_id: Optional[str] = None,
        resend: bool = False,
    ) -> SendResult:
        request_id = request_id or generate_request_id()
        lookup_key = owner_id or destination
        olog = log_with_context(
            log,
            request_id=request_id,
            channel=channel.value,
            purpose=purpose.value,
            destination=mask_destination(destination),
            resend=resend,
        )

        # Malformed destinations never consume a cooldown slot
        self._dispatcher.validate(channel, destination)

        cooldown_keys = self._cooldown_keys(destination, owner_id, purpose)
        retry_after = await self._claim_cooldowns(cooldown_keys)
        if retry_after:
            olog.warning("otp_cooldown_active", retry_after=retry_after)
            raise RateLimitError(
                f"Please wait {retry_after} seconds before requesting a new code",
                retry_after=retry_after,
            )

        code = generate_otp_code(self.policy.code_length)
        now = self._clock()
        record = OtpRecordDoc(
            owner_id=owner_id,
            lookup_key=lookup_key,
            channel=channel,
            destination=destination,
            purpose=purpose,
            code_hash=hash_token(code),
            created_at=now,
            expires_at=now + timedelta(seconds=self.policy.ttl_seconds),
            max_attempts=self.policy.max_attempts,
            request_id=request_id,
        )

        try:
            delivery = await self._dispatcher.send(channel, destination, code, purpose)
        except ValidationError:
            await self._release_cooldowns(cooldown_keys)
            raise

        if not delivery.success:
            status = DeliveryStatus.FAILED
        elif delivery.fallback:
            status = DeliveryStatus.FALLBACK
        else:
            status = DeliveryStatus.SENT
        record = record.model_copy(
            update={
                "delivery_status": status,
                "provider": delivery.provider,
                "message_id": delivery.message_id,
            }
        )
        self._schedule_persist(record)

        if not delivery.success:
            await self._release_cooldowns(cooldown_keys)
            olog.error(
                "otp_delivery_failed", provider=delivery.provider, error=delivery.error
            )
            raise DeliveryFailedError(
                "Failed to send verification code. Please try again."
            )

        olog.info(
            "otp_sent",
            provider=delivery.provider,
            fallback=delivery.fallback,
            message_id=delivery.message_id,
            expires_at=record.expires_at.isoformat(),
        )
        return SendResult(
            request_id=request_id,
            expires_at=record.expires_at,
            delivery=delivery,
            code=code if self.policy.disclose_code else None,
        )

    # ── Background persistence ───────────────────────────────────────────────

    @staticmethod
    def _persist_keys(record: OtpRecordDoc) -> set[PersistKey]:
        purpose = record.purpose.value
        return {(record.lookup_key, purpose), (record.destination, purpose)}

    def _schedule_persist(self, record: OtpRecordDoc) -> None:
        self._prune_unpersisted(self._clock())
        keys = self._persist_keys(record)
        for key in keys:
            self._pending[key] = self._pending.get(key, 0) + 1
        task = asyncio.create_task(self._persist(record, keys))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _persist(self, record: OtpRecordDoc, keys: set[PersistKey]) -> None:
        try:
            saved = await self._store.save(record)
            for key in keys:
                self._unpersisted.pop(key, None)
            log.debug(
                "otp_persisted",
                request_id=record.request_id,
                record_id=str(saved.id),
            )
        except Exception as e:
            for key in keys:
                self._unpersisted[key] = record.expires_at
            log.error(
                "otp_persist_failed",
                request_id=record.request_id,
                purpose=record.purpose.value,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            for key in keys:
                left = self._pending.get(key, 1) - 1
                if left > 0:
                    self._pending[key] = left
                else:
                    self._pending.pop(key, None)

    def _prune_unpersisted(self, now: datetime) -> None:
        expired = [key for key, expires_at in self._unpersisted.items() if now >= expires_at]
        for key in expired:
            del self._unpersisted[key]

    def _awaiting_persistence(self, key: PersistKey, now: datetime) -> bool:
        if self._pending.get(key):
            return True
        expires_at = self._unpersisted.get(key)
        if expires_at is None:
            return False
        if now >= expires_at:
            del self._unpersisted[key]
            return False
        return True

    async def drain(self) -> None:
        """Wait for every scheduled persistence task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()

    # ── Verify ───────────────────────────────────────────────────────────────

    async def verify_otp(
        self,
        key: str,
        purpose: OtpPurpose,
        code: str,
        request_id: Optional[str] = None,
    ) -> VerifyResult:
        request_id = request_id or generate_request_id()
        olog = log_with_context(
            log,
            request_id=request_id,
            purpose=purpose.value,
            key=mask_destination(key),
        )
        now = self._clock()

        if self._awaiting_persistence((key, purpose.value), now):
            olog.warning("otp_verify_failed", reason="not_yet_persisted")
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE)

        record = await self._store.find_current(key, purpose)

        if record is None:
            olog.info("otp_verify_failed", reason="not_found")
            raise InvalidOrExpiredError(INVALID_OR_EXPIRED_MESSAGE)
        olog = olog.bind(record_id=str(record.id))
        if record.consumed:
            olog.info("otp_verify_failed", reason="consumed")
            raise InvalidOrExpiredError(INVALID_OR_EXPIRED_MESSAGE)
        if record.is_expired(now):
            olog.info("otp_verify_failed", reason="expired")
            raise InvalidOrExpiredError(INVALID_OR_EXPIRED_MESSAGE)
        if record.attempts_exhausted:
            olog.warning(
                "otp_verify_failed",
                reason="attempts_exhausted",
                attempts=record.attempts,
                max_attempts=record.max_attempts,
            )
            raise AttemptsExhaustedError(ATTEMPTS_EXHAUSTED_MESSAGE)

        if not code_matches(code, record.code_hash):
            updated = await self._store.increment_attempts(record.id)
            remaining = updated.attempts_remaining if updated is not None else 0
            olog.info(
                "otp_verify_failed", reason="code_mismatch", attempts_remaining=remaining
            )
            raise InvalidCodeError(
                "Invalid verification code",
                details={"attempts_remaining": remaining},
            )

        consumed = await self._store.consume(record.id, now)
        if consumed is None:
            # Lost a race with a concurrent verify of the same record
            olog.info("otp_verify_failed", reason="consumed_concurrently")
            raise InvalidOrExpiredError(INVALID_OR_EXPIRED_MESSAGE)

        olog.info("otp_verified", attempts=consumed.attempts)
        return VerifyResult(
            request_id=request_id,
            purpose=purpose,
            owner_id=consumed.owner_id,
            verified_at=now,
        )

    # ── Read models ──────────────────────────────────────────────────────────

    async def otp_status(self, key: str, purpose: OtpPurpose) -> OtpStatusResponse:
        record = await self._store.find_current(key, purpose)
        keys = {key}
        if record is not None:
            keys.update((record.lookup_key, record.destination))
        resend_in = 0
        for k in keys:
            resend_in = max(
                resend_in, await self._cooldown.remaining(self.cooldown_key(k, purpose))
            )
        now = self._clock()
        if record is None or not record.is_active(now):
            return OtpStatusResponse(active=False, resend_available_in=resend_in)
        return OtpStatusResponse(
            active=True,
            expires_at=record.expires_at,
            attempts_remaining=record.attempts_remaining,
            resend_available_in=resend_in,
        )

    async def otp_stats(self, period: str = "week") -> OtpStatsResponse:
        """Aggregate outcomes for the admin dashboard over *period*."""
        if period not in STATS_PERIODS:
            raise ValidationError(
                f"period must be one of: {', '.join(STATS_PERIODS)}", field="period"
            )
        now = self._clock()
        since = now - timedelta(days=STATS_PERIODS[period])
        rows = await self._store.outcome_counts(since, now)

        by_channel: dict[str, OtpOutcomeTotals] = {}
        totals = OtpOutcomeTotals()
        for row in rows:
            counts = {
                name: int(row.get(name, 0))
                for name in ("generated", "verified", "expired", "exhausted", "delivery_failed")
            }
            counts["pending"] = max(
                counts["generated"]
                - counts["verified"]
                - counts["expired"]
                - counts["exhausted"],
                0,
            )
            by_channel[str(row["_id"])] = OtpOutcomeTotals(**counts)
            for name, value in counts.items():
                setattr(totals, name, getattr(totals, name) + value)

        success_rate = (
            round(totals.verified / totals.generated * 100, 2) if totals.generated else 0.0
        )
        return OtpStatsResponse(
            period=period,
            since=since,
            totals=totals,
            success_rate=success_rate,
            by_channel=by_channel,
        )
