from __future__ import annotations

import enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, TypeVar

from loguru import logger

from src.config import get_settings
from src.notifications.base import PushMessage, PushReceipt, PushTicket
from src.notifications.expo import ExpoPushClient, PushGatewayError
from src.notifications.tokens import is_valid_token

# Errors Expo answers an empty receipt query with; they prove the service is up
REACHABLE_ERROR_CODES = frozenset({"PUSH_TOO_MANY_EXPERIENCE_IDS", "VALIDATION_ERROR"})

T = TypeVar("T")


class GatewayState(enum.Enum):
    uninitialized = "uninitialized"
    probing = "probing"
    available = "available"
    unavailable = "unavailable"


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    size = max(1, size)
    for i in range(0, len(items), size):
        yield list(items[i : i + size])


class PushDispatcher:
    """Batches push messages through the Expo gateway.

    The gateway is probed once on construction. If the probe fails the
    dispatcher stays ``unavailable`` and every send becomes a no-op until the
    process restarts.
    """

    def __init__(self, gateway: ExpoPushClient, probe: bool = True):
        self.gateway = gateway
        self.settings = get_settings()
        self.state = GatewayState.uninitialized
        if probe:
            self.initialize()

    @property
    def available(self) -> bool:
        return self.state is GatewayState.available

    def initialize(self) -> GatewayState:
        """Probe the gateway and settle on ``available`` or ``unavailable``."""
        self.state = GatewayState.probing
        if not self.gateway.access_token:
            logger.warning(
                "No Expo access token configured - push notifications may be rate limited"
            )

        logger.info("Testing Expo service connection...")
        try:
            self.gateway.probe()
        except PushGatewayError as e:
            if e.code in REACHABLE_ERROR_CODES:
                logger.info(f"Expo push service is available (expected error {e.code})")
                self.state = GatewayState.available
            else:
                logger.error(f"Push notification service initialization failed: {e}")
                self.state = GatewayState.unavailable
        else:
            logger.info("Expo push service is available")
            self.state = GatewayState.available

        return self.state

    def create_message(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[PushMessage]:
        """Build a message with the configured delivery defaults.

        Returns None when the token is not a valid push token.
        """
        if not is_valid_token(token):
            return None

        return PushMessage(
            to=token,
            title=title,
            body=body,
            data=dict(data or {}),
            sound=self.settings.push_default_sound,
            priority=self.settings.push_default_priority,
            ttl=self.settings.push_default_ttl,
            badge=self.settings.push_default_badge,
            channel_id=self.settings.push_default_channel_id,
            mutable_content=self.settings.push_mutable_content,
        )

    def send(self, messages: Sequence[Optional[PushMessage]]) -> List[PushTicket]:
        """Send messages in gateway-sized batches.

        A failed batch is logged and skipped; the remaining batches still go
        out. Returns the tickets of the successful batches in submission order.
        """
        pending = [message for message in messages or [] if message is not None]
        if not pending:
            logger.warning("No messages to send")
            return []

        if not self.available:
            logger.error("Push notification service is not available")
            return []

        tickets: List[PushTicket] = []
        for index, batch in enumerate(chunked(pending, self.settings.push_batch_size), 1):
            try:
                batch_tickets = self.gateway.send_batch(batch)
            except PushGatewayError as e:
                logger.error(
                    f"Failed to send notification batch {index} ({len(batch)} messages): {e}"
                )
                continue

            logger.debug(f"Batch {index} sent: {len(batch_tickets)} tickets")
            for message, ticket in zip(batch, batch_tickets):
                if not ticket.is_ok:
                    logger.warning(
                        f"Push to {message.to} rejected: {ticket.error or ticket.message}"
                    )
            tickets.extend(batch_tickets)

        logger.info(f"Push notifications sent: {len(tickets)}/{len(pending)} tickets")
        return tickets

    def fetch_receipts(self, tickets: Sequence[PushTicket]) -> List[PushReceipt]:
        """Fetch delivery receipts for tickets that carry a receipt id."""
        receipt_ids = [ticket.id for ticket in tickets or [] if ticket.id]
        if not receipt_ids:
            return []

        if not self.available:
            logger.error("Push notification service is not available")
            return []

        receipts: List[PushReceipt] = []
        for index, batch in enumerate(
            chunked(receipt_ids, self.settings.receipt_batch_size), 1
        ):
            try:
                receipts.extend(self.gateway.fetch_receipt_batch(batch))
            except PushGatewayError as e:
                logger.error(f"Failed to get receipts for batch {index}: {e}")

        return receipts

    def send_to_tokens(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> List[PushTicket]:
        messages = [self.create_message(token, title, body, data) for token in tokens]
        return self.send(messages)

    def send_to_device(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> List[PushTicket]:
        message = self.create_message(token, title, body, data)
        return self.send([message]) if message else []
