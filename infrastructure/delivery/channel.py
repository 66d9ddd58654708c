"""Delivery channels: destination validation, timeouts and fallback.

A DeliveryChannel owns an ordered chain of providers for a single channel
(SMS or email): the primary first, then any secondary transports, and the
console fallback last. Every provider call is raced against the channel
timeout; a timed-out call is abandoned, never retried. Each failed or
timed-out provider hands over to the next one in the chain. A result from
anything but the first provider is marked ``fallback=True``.
DeliveryChannel.send() only raises for a malformed destination.
"""

import asyncio
from dataclasses import replace
from typing import Callable, Mapping, Sequence

from errors import ValidationError
from infrastructure.delivery.protocol import DeliveryProvider, DeliveryResult
from schemas.models.otp import OtpChannel, OtpPurpose
from shared.logging import get_logger, mask_destination
from shared.validators import validate_e164, validate_email

log = get_logger(__name__)

_VALIDATORS: dict[OtpChannel, tuple[Callable[[str], bool], str]] = {
    OtpChannel.SMS: (
        validate_e164,
        "Invalid phone number format. Must include country code (e.g., +15550001111)",
    ),
    OtpChannel.EMAIL: (validate_email, "Invalid email address format"),
}


class DeliveryChannel:
    def __init__(
        self,
        channel: OtpChannel,
        providers: Sequence[DeliveryProvider],
        timeout_seconds: float = 5.0,
    ) -> None:
        if not providers:
            raise ValueError(f"{channel.value} channel needs at least one provider")
        self.channel = channel
        self._providers = list(providers)
        self._timeout = timeout_seconds

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self._providers]

    def validate(self, destination: str) -> None:
        check, message = _VALIDATORS[self.channel]
        if not check(destination):
            raise ValidationError(message, field="destination")

    async def send(
        self, destination: str, code: str, purpose: OtpPurpose
    ) -> DeliveryResult:
        self.validate(destination)

        result: DeliveryResult
        for position, provider in enumerate(self._providers):
            result = await self._attempt(provider, destination, code, purpose)
            if position:
                result = replace(result, fallback=True)
            if result.success:
                return result
            log.warning(
                "otp_provider_delivery_failed",
                channel=self.channel.value,
                provider=result.provider,
                position=position,
                destination=mask_destination(destination),
                error=result.error,
            )
        return result

    async def _attempt(
        self,
        provider: DeliveryProvider,
        destination: str,
        code: str,
        purpose: OtpPurpose,
    ) -> DeliveryResult:
        try:
            return await asyncio.wait_for(
                provider.send(destination, code, purpose), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            log.warning(
                "otp_delivery_timeout",
                channel=self.channel.value,
                provider=provider.name,
                timeout_seconds=self._timeout,
            )
            return DeliveryResult(success=False, provider=provider.name, error="timeout")
        except Exception as e:
            log.error(
                "otp_delivery_error",
                channel=self.channel.value,
                provider=provider.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeliveryResult(success=False, provider=provider.name, error=str(e))


class DeliveryDispatcher:
    """Routes a send to the channel adapter registered for it."""

    def __init__(self, channels: Mapping[OtpChannel, DeliveryChannel]) -> None:
        self._channels = dict(channels)

    def _get(self, channel: OtpChannel) -> DeliveryChannel:
        try:
            return self._channels[channel]
        except KeyError:
            raise ValidationError(
                f"Channel '{channel.value}' is not available", field="channel"
            ) from None

    def provider_names(self) -> dict[str, list[str]]:
        return {c.value: dc.provider_names for c, dc in self._channels.items()}

    def validate(self, channel: OtpChannel, destination: str) -> None:
        self._get(channel).validate(destination)

    async def send(
        self,
        channel: OtpChannel,
        destination: str,
        code: str,
        purpose: OtpPurpose,
    ) -> DeliveryResult:
        return await self._get(channel).send(destination, code, purpose)
