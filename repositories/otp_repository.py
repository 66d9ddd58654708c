"""
MongoDB-backed OTP record store.

Every call is bounded twice: server-side with ``max_time_ms`` and client-side
with ``asyncio.wait_for``. Driver errors and timeouts surface as
StoreUnavailableError so the service can fail closed instead of reporting a
wrong code.

Attempt increments and consumption are single ``find_one_and_update`` calls
with conditional filters; MongoDB arbitrates concurrent verifications of the
same record.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Sequence

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import PyMongoError

from errors import StoreUnavailableError
from schemas.models.otp import OtpPurpose, OtpRecordDoc
from shared.logging import get_logger

log = get_logger(__name__)

STORE_UNAVAILABLE_MESSAGE = "Verification is temporarily unavailable. Please try again."

_NEWEST_FIRST = [("created_at", DESCENDING)]


@dataclass(frozen=True)
class LookupStrategy:
    """One tier of the current-record lookup: a filter plus its own time budget."""

    name: str
    timeout_seconds: float
    build_filter: Callable[[str, OtpPurpose], dict]


def _by_lookup_key(key: str, purpose: OtpPurpose) -> dict:
    # A destination also matches records keyed by an owner, so a newer
    # authenticated send supersedes an older anonymous one
    return {
        "purpose": purpose.value,
        "$or": [{"lookup_key": key}, {"destination": key}],
    }


def _by_identity(key: str, purpose: OtpPurpose) -> dict:
    # Only reached when the key index misses or times out
    return {
        "purpose": purpose.value,
        "$or": [{"owner_id": key}, {"destination": key}],
    }


def default_lookup_strategies(
    index_timeout: float = 2.0, scan_timeout: float = 1.5
) -> list[LookupStrategy]:
    return [
        LookupStrategy("key_index", index_timeout, _by_lookup_key),
        LookupStrategy("identity_scan", scan_timeout, _by_identity),
    ]


def _outcome_pipeline(since: datetime, now: datetime) -> list[dict]:
    not_consumed = {"$not": ["$consumed"]}
    exhausted = {"$gte": ["$attempts", "$max_attempts"]}
    return [
        {"$match": {"created_at": {"$gte": since}}},
        {
            "$group": {
                "_id": "$channel",
                "generated": {"$sum": 1},
                "verified": {"$sum": {"$cond": ["$consumed", 1, 0]}},
                "exhausted": {
                    "$sum": {"$cond": [{"$and": [not_consumed, exhausted]}, 1, 0]}
                },
                "expired": {
                    "$sum": {
                        "$cond": [
                            {
                                "$and": [
                                    not_consumed,
                                    {"$not": [exhausted]},
                                    {"$lte": ["$expires_at", now]},
                                ]
                            },
                            1,
                            0,
                        ]
                    }
                },
                "delivery_failed": {
                    "$sum": {"$cond": [{"$eq": ["$delivery_status", "failed"]}, 1, 0]}
                },
            }
        },
    ]


class OtpRepository:
    def __init__(
        self,
        collection: AsyncCollection,
        timeout_seconds: float = 5.0,
        lookup_strategies: Optional[Sequence[LookupStrategy]] = None,
    ) -> None:
        self._collection = collection
        self._timeout = timeout_seconds
        self._max_time_ms = int(timeout_seconds * 1000)
        self._strategies = list(lookup_strategies or default_lookup_strategies())

    async def _bounded(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError:
            log.error("otp_store_timeout", operation=operation, timeout_seconds=self._timeout)
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE) from None
        except PyMongoError as e:
            log.error(
                "otp_store_error",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE) from e

    async def save(self, record: OtpRecordDoc) -> OtpRecordDoc:
        result = await self._bounded("save", self._collection.insert_one(record.to_mongo()))
        return record.model_copy(update={"id": result.inserted_id})

    async def find_current(
        self, key: str, purpose: OtpPurpose
    ) -> Optional[OtpRecordDoc]:
        """Newest record for *key* and *purpose*, trying each strategy in order.

        Raises StoreUnavailableError when nothing was found and at least one
        strategy could not complete.
        """
        failed: list[str] = []
        for strategy in self._strategies:
            try:
                doc = await asyncio.wait_for(
                    self._collection.find_one(
                        strategy.build_filter(key, purpose),
                        sort=_NEWEST_FIRST,
                        max_time_ms=int(strategy.timeout_seconds * 1000),
                    ),
                    timeout=strategy.timeout_seconds,
                )
            except (asyncio.TimeoutError, PyMongoError) as e:
                failed.append(strategy.name)
                log.warning(
                    "otp_lookup_strategy_failed",
                    strategy=strategy.name,
                    purpose=purpose.value,
                    error=str(e) or "timeout",
                    error_type=type(e).__name__,
                )
                continue
            if doc is not None:
                log.debug("otp_lookup_hit", strategy=strategy.name, purpose=purpose.value)
                return OtpRecordDoc.from_mongo(doc)

        if failed:
            log.error("otp_lookup_unavailable", failed_strategies=failed)
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE)
        return None

    async def increment_attempts(self, record_id: ObjectId) -> Optional[OtpRecordDoc]:
        doc = await self._bounded(
            "increment_attempts",
            self._collection.find_one_and_update(
                {
                    "_id": record_id,
                    "consumed": False,
                    "$expr": {"$lt": ["$attempts", "$max_attempts"]},
                },
                {"$inc": {"attempts": 1}},
                return_document=ReturnDocument.AFTER,
                max_time_ms=self._max_time_ms,
            ),
        )
        return OtpRecordDoc.from_mongo(doc)

    async def consume(
        self, record_id: ObjectId, now: datetime
    ) -> Optional[OtpRecordDoc]:
        doc = await self._bounded(
            "consume",
            self._collection.find_one_and_update(
                {
                    "_id": record_id,
                    "consumed": False,
                    "$expr": {"$lt": ["$attempts", "$max_attempts"]},
                },
                {"$set": {"consumed": True, "consumed_at": now}},
                return_document=ReturnDocument.AFTER,
                max_time_ms=self._max_time_ms,
            ),
        )
        return OtpRecordDoc.from_mongo(doc)

    async def outcome_counts(self, since: datetime, now: datetime) -> list[dict]:
        async def _run() -> list[dict]:
            cursor = await self._collection.aggregate(
                _outcome_pipeline(since, now), maxTimeMS=self._max_time_ms
            )
            return await cursor.to_list()

        return await self._bounded("outcome_counts", _run())

    async def purge_expired(self, before: datetime) -> int:
        result = await self._bounded(
            "purge_expired",
            self._collection.delete_many({"expires_at": {"$lt": before}}),
        )
        return result.deleted_count

    async def ensure_indexes(self) -> None:
        await self._collection.create_index(
            [("lookup_key", ASCENDING), ("purpose", ASCENDING), ("created_at", DESCENDING)]
        )
        await self._collection.create_index(
            [("owner_id", ASCENDING), ("purpose", ASCENDING), ("created_at", DESCENDING)]
        )
        await self._collection.create_index(
            [("destination", ASCENDING), ("purpose", ASCENDING), ("created_at", DESCENDING)]
        )
        await self._collection.create_index([("expires_at", ASCENDING)])
        await self._collection.create_index([("created_at", DESCENDING)])
