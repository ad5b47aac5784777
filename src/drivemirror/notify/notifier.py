"""ChangeNotifier: turns provider push notifications into reconciliation passes."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Any, Mapping, Optional

from drivemirror.errors import DriveMirrorError, InvalidStateError, WebhookValidationError
from drivemirror.gateway.base import DriveGateway
from drivemirror.models import ChannelLease
from drivemirror.sync.reconciler import Reconciler
from drivemirror.sync.scheduler import JobScheduler
from drivemirror.util.ids import new_channel_id, new_channel_token
from drivemirror.util.time import now_utc

logger = logging.getLogger(__name__)

CHANNEL_ID_HEADER = "x-goog-channel-id"
CHANNEL_TOKEN_HEADER = "x-goog-channel-token"
RESOURCE_STATE_HEADER = "x-goog-resource-state"
MESSAGE_NUMBER_HEADER = "x-goog-message-number"

#: Sent once right after subscribing; carries no change.
HANDSHAKE_STATE = "sync"

RENEWAL_JOB_ID = "drivemirror-webhook-renewal"
DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_RENEW_MARGIN_SECONDS = 10 * 60
RENEW_RETRY_SECONDS = 60


class ChangeNotifier:
    """
    Holds the push-notification lease and forwards valid notifications to
    Reconciler.sync_now().

    The lease is renewed before it expires; a missed renewal only delays
    propagation, since the timer-driven pass keeps running regardless.
    """

    def __init__(
        self,
        gateway: DriveGateway,
        reconciler: Reconciler,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        renew_margin_seconds: int = DEFAULT_RENEW_MARGIN_SECONDS,
        scheduler: Optional[JobScheduler] = None,
    ) -> None:
        if renew_margin_seconds >= ttl_seconds:
            raise ValueError("renew_margin_seconds must be smaller than ttl_seconds")
        self._gateway = gateway
        self._reconciler = reconciler
        self._ttl_seconds = ttl_seconds
        self._renew_margin = timedelta(seconds=renew_margin_seconds)
        self._scheduler = scheduler

        self._lock = threading.Lock()
        self._lease: Optional[ChannelLease] = None
        self._callback_url: Optional[str] = None
        self._last_message_number: Optional[int] = None

    @property
    def lease(self) -> Optional[ChannelLease]:
        with self._lock:
            return self._lease

    # ----------------------------
    # Subscription lifecycle
    # ----------------------------
    def register_webhook(self, callback_url: str) -> ChannelLease:
        """
        Open a new channel for callback_url and schedule its renewal.

        Raises:
            ProviderError: the provider refused the subscription (including
                NotSupportedError for providers without push).
        """
        if not callback_url:
            raise ValueError("callback_url must be a non-empty string")

        lease = self._gateway.watch(
            callback_url,
            new_channel_id(),
            new_channel_token(),
            self._ttl_seconds,
        )
        with self._lock:
            previous = self._lease
            self._lease = lease
            self._callback_url = callback_url
            self._last_message_number = None

        logger.info(
            "Push channel %s registered (expires %s)",
            lease.channel_id,
            lease.expires_at.isoformat(),
        )
        self._schedule_renewal(lease)
        if previous is not None:
            self._release(previous)
        return lease

    def renew(self) -> Optional[ChannelLease]:
        """Replace the current channel with a fresh one. Failures are logged and retried."""
        with self._lock:
            callback_url = self._callback_url
        if callback_url is None:
            raise InvalidStateError("No webhook registered. Call register_webhook() first.")

        try:
            return self.register_webhook(callback_url)
        except DriveMirrorError:
            logger.exception(
                "Push channel renewal failed; retrying in %ds (timer sync continues)",
                RENEW_RETRY_SECONDS,
            )
            if self._scheduler is not None:
                self._scheduler.at(
                    RENEWAL_JOB_ID,
                    self._renew_job,
                    now_utc() + timedelta(seconds=RENEW_RETRY_SECONDS),
                    name="Push channel renewal (retry)",
                )
            return None

    def stop(self) -> None:
        """Cancel renewal and close the current channel."""
        if self._scheduler is not None:
            self._scheduler.cancel(RENEWAL_JOB_ID)
        with self._lock:
            lease = self._lease
            self._lease = None
            self._callback_url = None
        if lease is not None:
            self._release(lease)

    # ----------------------------
    # Notifications
    # ----------------------------
    def handle_notification(self, headers: Mapping[str, str]) -> bool:
        """
        Process one notification. Never raises: the transport must always be
        acknowledged, whatever happens here.

        Returns:
            True if a reconciliation pass was triggered.
        """
        try:
            state = self.validate(headers)
        except WebhookValidationError as exc:
            logger.debug("Ignoring push notification: %s", exc)
            return False

        if state == HANDSHAKE_STATE:
            logger.debug("Push channel handshake received")
            return False

        logger.info("Drive change notification (%s), triggering sync", state or "unknown")
        try:
            result = self._reconciler.sync_now()
        except Exception:
            logger.exception("Sync triggered by push notification failed")
            return False
        if result.skipped:
            logger.debug("Notification collapsed into the running pass")
        return True

    def validate(self, headers: Mapping[str, str]) -> str:
        """
        Check that a notification belongs to the active channel and was not
        seen before.

        Returns:
            The resource state carried by the notification.

        Raises:
            WebhookValidationError: stale, foreign, expired or duplicate notification.
        """
        normalized = {str(k).lower(): str(v) for k, v in headers.items()}
        channel_id = normalized.get(CHANNEL_ID_HEADER)
        token = normalized.get(CHANNEL_TOKEN_HEADER)
        number = _parse_message_number(normalized.get(MESSAGE_NUMBER_HEADER))

        with self._lock:
            lease = self._lease
            if lease is None:
                raise WebhookValidationError("No active push channel")
            if channel_id != lease.channel_id:
                raise WebhookValidationError(
                    "Unknown push channel",
                    details={"channel_id": channel_id},
                )
            if lease.token and token != lease.token:
                raise WebhookValidationError(
                    "Channel token mismatch",
                    details={"channel_id": channel_id},
                )
            if lease.is_expired(now_utc()):
                raise WebhookValidationError(
                    "Push channel expired",
                    details={"channel_id": channel_id},
                )
            if number is not None:
                if self._last_message_number is not None and number <= self._last_message_number:
                    raise WebhookValidationError(
                        "Duplicate notification",
                        details={"message_number": number},
                    )
                self._last_message_number = number

        return normalized.get(RESOURCE_STATE_HEADER, "")

    def status(self) -> dict[str, Any]:
        lease = self.lease
        if lease is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "channel_id": lease.channel_id,
            "expiration": lease.expires_at.isoformat(),
            "expired": lease.is_expired(now_utc()),
        }

    # ----------------------------
    # Internals
    # ----------------------------
    def _schedule_renewal(self, lease: ChannelLease) -> None:
        if self._scheduler is None:
            logger.warning(
                "No scheduler configured; push channel %s will lapse at %s",
                lease.channel_id,
                lease.expires_at.isoformat(),
            )
            return
        self._scheduler.at(
            RENEWAL_JOB_ID,
            self._renew_job,
            lease.expires_at - self._renew_margin,
            name="Push channel renewal",
        )

    def _renew_job(self) -> None:
        self.renew()

    def _release(self, lease: ChannelLease) -> None:
        try:
            self._gateway.stop_watch(lease)
            logger.info("Push channel %s stopped", lease.channel_id)
        except DriveMirrorError as exc:
            logger.warning("Could not stop push channel %s: %s", lease.channel_id, exc)


def _parse_message_number(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
