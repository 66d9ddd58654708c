"""OtpStore protocol — the service depends on this, not on MongoDB."""

from datetime import datetime
from typing import Optional, Protocol

from bson import ObjectId

from schemas.models.otp import OtpPurpose, OtpRecordDoc


class OtpStore(Protocol):
    async def save(self, record: OtpRecordDoc) -> OtpRecordDoc: ...

    async def find_current(
        self, key: str, purpose: OtpPurpose
    ) -> Optional[OtpRecordDoc]: ...

    async def increment_attempts(self, record_id: ObjectId) -> Optional[OtpRecordDoc]: ...

    async def consume(
        self, record_id: ObjectId, now: datetime
    ) -> Optional[OtpRecordDoc]: ...

    async def outcome_counts(self, since: datetime, now: datetime) -> list[dict]: ...

    async def purge_expired(self, before: datetime) -> int: ...

    async def ensure_indexes(self) -> None: ...
