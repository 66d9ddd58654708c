"""
OTP housekeeping worker.

Deletes records whose expiry lies more than OTP_RETENTION_DAYS in the past.
Records are kept past expiry so /otp/stats can still count them.

Run with:
    python -m workers.otp_cleanup          # loop every OTP_CLEANUP_INTERVAL_SECONDS
    python -m workers.otp_cleanup --once   # single pass, e.g. from cron
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import StoreUnavailableError
from repositories.otp_repository import OtpRepository
from repositories.protocol import OtpStore
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def run_cleanup(
    store: OtpStore,
    retention_days: int,
    clock: Callable[[], datetime] = _utcnow,
) -> int:
    """Run one purge pass and return how many records were deleted."""
    cutoff = clock() - timedelta(days=retention_days)
    deleted = await store.purge_expired(cutoff)
    log.info("otp_cleanup_pass", deleted=deleted, cutoff=cutoff.isoformat())
    return deleted


async def cleanup_loop(
    store: OtpStore,
    retention_days: int,
    interval_seconds: float,
    stop: Optional[asyncio.Event] = None,
) -> None:
    """Purge every *interval_seconds* until *stop* is set.

    A store outage skips the pass; the next one retries.
    """
    stop = stop or asyncio.Event()
    while not stop.is_set():
        try:
            await run_cleanup(store, retention_days)
        except StoreUnavailableError:
            log.warning("otp_cleanup_skipped", reason="store_unavailable")
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            pass


async def run_worker(settings: AppSettings, once: bool = False) -> None:
    client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri, tz_aware=True)
    try:
        store = OtpRepository(
            client[settings.db.db_name][settings.db.otp_collection],
            timeout_seconds=settings.db.store_timeout_seconds,
        )
        if once:
            await run_cleanup(store, settings.otp.otp_retention_days)
        else:
            await cleanup_loop(
                store,
                settings.otp.otp_retention_days,
                settings.otp.otp_cleanup_interval_seconds,
            )
    finally:
        await client.close()


def main(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    settings = AppSettings()
    setup_logging(settings.logging.log_level, settings.logging.log_format)

    if settings.otp.otp_storage_mode == "memory":
        log.error("otp_cleanup_not_applicable", storage_mode="memory")
        return 1

    log.info("otp_cleanup_worker_starting", once="--once" in argv)
    try:
        asyncio.run(run_worker(settings, once="--once" in argv))
    except KeyboardInterrupt:
        log.info("otp_cleanup_worker_stopped")
    except StoreUnavailableError:
        log.error("otp_cleanup_failed", reason="store_unavailable")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
