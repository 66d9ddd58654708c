"""
FastAPI application factory.
create_app() is the single entry point for building the app.

The lifespan owns every long-lived collaborator: the Mongo client (or the
in-memory store), Redis, one HttpClient per delivery provider and the
OtpService. Shutdown drains pending persistence before closing them.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient
from pymongo.errors import PyMongoError

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.cooldown import (
    CooldownTracker,
    InMemoryCooldownTracker,
    RedisCooldownTracker,
)
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.delivery.channel import DeliveryChannel, DeliveryDispatcher
from infrastructure.delivery.console import ConsoleFallbackProvider
from infrastructure.delivery.protocol import DeliveryProvider
from infrastructure.delivery.sendgrid_mail import SendGridProvider
from infrastructure.delivery.sms_gateway import SmsGatewayProvider
from infrastructure.delivery.twilio_sms import TwilioSmsProvider
from infrastructure.delivery.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from repositories.memory_otp_repository import InMemoryOtpRepository
from repositories.otp_repository import OtpRepository, default_lookup_strategies
from routes.health_routes import router as health_router
from routes.otp_routes import router as otp_router
from schemas.models.otp import OtpChannel
from services.otp_service import OtpPolicy, OtpService
from shared.generators import generate_request_id
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def build_dispatcher(
    settings: AppSettings, sms_http: HttpClient, email_http: HttpClient
) -> DeliveryDispatcher:
    """Wire one DeliveryChannel per channel.

    Order: the primary provider, the secondary transport when it is
    configured, then the console provider.
    """
    disclose = not settings.is_production
    brand = settings.brand_name
    ttl = settings.otp.otp_ttl_seconds
    timeout = settings.otp.otp_delivery_timeout_seconds

    sms_chain: list[DeliveryProvider] = [
        TwilioSmsProvider(settings.sms, sms_http, brand=brand, ttl_seconds=ttl)
    ]
    if settings.sms.gateway_configured:
        sms_chain.append(
            SmsGatewayProvider(settings.sms, sms_http, brand=brand, ttl_seconds=ttl)
        )
    sms_chain.append(ConsoleFallbackProvider(OtpChannel.SMS, disclose_code=disclose))

    email_chain: list[DeliveryProvider] = [
        ZeptoMailProvider(settings.email, email_http, brand=brand, ttl_seconds=ttl)
    ]
    if settings.email.sendgrid_configured:
        email_chain.append(
            SendGridProvider(settings.email, email_http, brand=brand, ttl_seconds=ttl)
        )
    email_chain.append(ConsoleFallbackProvider(OtpChannel.EMAIL, disclose_code=disclose))

    return DeliveryDispatcher(
        {
            OtpChannel.SMS: DeliveryChannel(OtpChannel.SMS, sms_chain, timeout),
            OtpChannel.EMAIL: DeliveryChannel(OtpChannel.EMAIL, email_chain, timeout),
        }
    )


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging.log_level, settings.logging.log_format)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            environment=settings.env,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        app.state.settings = settings

        mongo_client: Optional[AsyncMongoClient] = None
        if settings.otp.otp_storage_mode == "memory":
            store = InMemoryOtpRepository()
            app.state.db = None
            log.warning("otp_store_in_memory", env=settings.env)
        else:
            mongo_client = AsyncMongoClient(
                settings.db.mongodb_uri,
                tz_aware=True,
                serverSelectionTimeoutMS=int(settings.db.store_timeout_seconds * 1000),
            )
            app.state.db = mongo_client[settings.db.db_name]
            store = OtpRepository(
                app.state.db[settings.db.otp_collection],
                timeout_seconds=settings.db.store_timeout_seconds,
                lookup_strategies=default_lookup_strategies(
                    settings.otp.otp_lookup_index_timeout_seconds,
                    settings.otp.otp_lookup_scan_timeout_seconds,
                ),
            )
            # Delivery does not depend on the store, so a down database must
            # not keep the service from starting
            try:
                await store.ensure_indexes()
            except PyMongoError as e:
                log.error("otp_ensure_indexes_failed", error=str(e))
        app.state.otp_store = store

        # Redis is optional; without it cooldowns are per process
        redis_timeout = settings.redis.redis_timeout_seconds
        redis_client = await create_redis_client(
            settings.redis.redis_uri, timeout_seconds=redis_timeout
        )
        app.state.redis = redis_client
        cooldown: CooldownTracker = (
            RedisCooldownTracker(redis_client, timeout_seconds=redis_timeout)
            if redis_client is not None
            else InMemoryCooldownTracker()
        )

        timeout = settings.otp.otp_delivery_timeout_seconds
        sms_http = HttpClient("sms", timeout=timeout)
        email_http = HttpClient("email", timeout=timeout)

        dispatcher = build_dispatcher(settings, sms_http, email_http)
        service = OtpService(
            store,
            dispatcher,
            cooldown,
            OtpPolicy.from_settings(settings),
        )
        app.state.otp_service = service
        app.state.dispatcher = dispatcher

        log.info(
            "app_started",
            env=settings.env,
            storage_mode=settings.otp.otp_storage_mode,
            providers=dispatcher.provider_names(),
            redis_configured=redis_client is not None,
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await service.aclose()
        await sms_http.aclose()
        await email_http.aclose()
        if mongo_client is not None:
            await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()
        log.info("app_stopped")

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next):
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = incoming if 0 < len(incoming) <= 64 else generate_request_id()
        request.state.request_id = request_id
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id, path=request.url.path, method=request.method
        )
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(otp_router)

    return app
