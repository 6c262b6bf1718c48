"""
Notification Delivery.

Hand-off of accepted notifications to a transport. The transport itself
(push, email, SMS, in-app) lives outside this package behind the
DeliveryChannel protocol.

RetryingDelivery wraps any channel with tenacity exponential backoff and
jitter for transient failures.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ..core.config import get_settings
from ..core.errors import EventConnectError
from ..core.logging import get_logger
from ..models import User
from .types import Notification

logger = get_logger(__name__)

DEFAULT_INITIAL_WAIT = 1.0  # seconds
DEFAULT_MAX_WAIT = 30.0  # seconds


class DeliveryError(EventConnectError):
    """Raised by a channel when delivery fails and may be retried."""


@runtime_checkable
class DeliveryChannel(Protocol):
    """Transport collaborator invoked after the gate accepts a notification."""

    async def deliver(self, user: User, notification: Notification) -> None:
        """
        Deliver a personalized notification.

        Raises:
            DeliveryError: On a transient failure
        """
        ...


class LoggingDelivery:
    """Default channel: records deliveries in the log and in memory."""

    def __init__(self) -> None:
        self.delivered: list[tuple[str, Notification]] = []

    async def deliver(self, user: User, notification: Notification) -> None:
        logger.info(
            "Notification for %s [%s]: %s",
            user.user_id,
            notification.category.value,
            notification.title,
        )
        self.delivered.append((user.user_id, notification))


class RetryingDelivery:
    """
    Retry wrapper around another channel.

    Only DeliveryError is retried; any other exception propagates on the
    first attempt.
    """

    def __init__(
        self,
        channel: DeliveryChannel,
        max_attempts: int | None = None,
        wait: Any = None,
    ):
        self.channel = channel
        self.max_attempts = max_attempts or get_settings().delivery_max_attempts
        self.wait = wait or wait_exponential_jitter(initial=DEFAULT_INITIAL_WAIT, max=DEFAULT_MAX_WAIT)

    async def deliver(self, user: User, notification: Notification) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception_type(DeliveryError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self.channel.deliver(user, notification)
