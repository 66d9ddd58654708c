"""
In-process OTP record store.

Selected with ``OTP_STORAGE_MODE=memory`` for local development, and used by
the test-suite. Same contract as OtpRepository; records live until the
process exits or purge_expired() removes them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId

from schemas.models.otp import DeliveryStatus, OtpPurpose, OtpRecordDoc


class InMemoryOtpRepository:
    def __init__(self) -> None:
        self._records: dict[ObjectId, OtpRecordDoc] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def save(self, record: OtpRecordDoc) -> OtpRecordDoc:
        stored = record.model_copy(update={"id": record.id or ObjectId()})
        self._records[stored.id] = stored
        return stored

    def _newest(self, predicate) -> Optional[OtpRecordDoc]:
        matches = [r for r in self._records.values() if predicate(r)]
        if not matches:
            return None
        return max(matches, key=lambda r: (r.created_at, r.id))

    async def find_current(
        self, key: str, purpose: OtpPurpose
    ) -> Optional[OtpRecordDoc]:
        return self._newest(
            lambda r: r.purpose == purpose
            and key in (r.lookup_key, r.owner_id, r.destination)
        )

    async def increment_attempts(self, record_id: ObjectId) -> Optional[OtpRecordDoc]:
        record = self._records.get(record_id)
        if record is None or record.consumed or record.attempts_exhausted:
            return None
        updated = record.model_copy(update={"attempts": record.attempts + 1})
        self._records[record_id] = updated
        return updated

    async def consume(
        self, record_id: ObjectId, now: datetime
    ) -> Optional[OtpRecordDoc]:
        record = self._records.get(record_id)
        if record is None or record.consumed or record.attempts_exhausted:
            return None
        updated = record.model_copy(update={"consumed": True, "consumed_at": now})
        self._records[record_id] = updated
        return updated

    async def outcome_counts(self, since: datetime, now: datetime) -> list[dict]:
        groups: dict[str, dict] = {}
        for record in self._records.values():
            if record.created_at < since:
                continue
            group = groups.setdefault(
                record.channel.value,
                {
                    "_id": record.channel.value,
                    "generated": 0,
                    "verified": 0,
                    "exhausted": 0,
                    "expired": 0,
                    "delivery_failed": 0,
                },
            )
            group["generated"] += 1
            if record.consumed:
                group["verified"] += 1
            elif record.attempts_exhausted:
                group["exhausted"] += 1
            elif record.is_expired(now):
                group["expired"] += 1
            if record.delivery_status == DeliveryStatus.FAILED:
                group["delivery_failed"] += 1
        return list(groups.values())

    async def purge_expired(self, before: datetime) -> int:
        doomed = [rid for rid, r in self._records.items() if r.expires_at < before]
        for rid in doomed:
            del self._records[rid]
        return len(doomed)

    async def ensure_indexes(self) -> None:
        return None
