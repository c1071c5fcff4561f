from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Sequence

import httpx
from loguru import logger

from src.config import get_settings
from src.notifications.base import PushMessage, PushReceipt, PushTicket

SEND_PATH = "/push/send"
RECEIPTS_PATH = "/push/getReceipts"


class PushGatewayError(Exception):
    """A request to the Expo push API failed."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.retryable = retryable

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.code:
            parts.append(f"code={self.code}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        return " ".join(parts)


class ExpoPushClient:
    """HTTP client for the Expo push notification service."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        settings = get_settings()
        self.access_token = (
            settings.expo_access_token if access_token is None else access_token
        )
        self.base_url = (base_url or settings.expo_api_base_url).rstrip("/")
        self.max_retries = max(
            1, settings.push_max_retries if max_retries is None else max_retries
        )
        self.retry_delay = (
            settings.push_retry_delay if retry_delay is None else retry_delay
        )

        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        self.client = httpx.Client(
            timeout=settings.push_request_timeout if timeout is None else timeout,
            headers=headers,
        )

    def send_batch(self, messages: Sequence[PushMessage]) -> List[PushTicket]:
        """Send one batch of messages and return one ticket per message.

        Raises:
            PushGatewayError: the request failed after all retries, or the
                response did not contain a ticket per message.
        """
        body = self._post(SEND_PATH, [message.to_payload() for message in messages])
        data = body.get("data")
        if isinstance(data, dict):
            # A single message request may be answered with a single ticket
            data = [data]
        if not isinstance(data, list) or len(data) != len(messages):
            raise PushGatewayError(
                f"Expected {len(messages)} tickets, got "
                f"{len(data) if isinstance(data, list) else 'none'}"
            )
        if not all(isinstance(item, dict) for item in data):
            raise PushGatewayError("Malformed ticket in send response")
        return [PushTicket.from_payload(item) for item in data]

    def fetch_receipt_batch(self, receipt_ids: Sequence[str]) -> List[PushReceipt]:
        """Look up delivery receipts for one batch of ticket ids."""
        body = self._post(RECEIPTS_PATH, {"ids": list(receipt_ids)})
        data = body.get("data") or {}
        if not isinstance(data, dict) or not all(
            isinstance(payload, dict) for payload in data.values()
        ):
            raise PushGatewayError("Malformed receipts response")
        return [
            PushReceipt.from_payload(receipt_id, payload)
            for receipt_id, payload in data.items()
        ]

    def probe(self) -> None:
        """Harmless request used to check the service is reachable.

        Raises:
            PushGatewayError: with the gateway's error code when it rejects the query.
        """
        self._post(RECEIPTS_PATH, {"ids": []})

    def close(self) -> None:
        self.client.close()

    def _post(self, path: str, payload: Any) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        last_error: Optional[PushGatewayError] = None

        for attempt in range(self.max_retries):
            try:
                response = self.client.post(url, json=payload)
                return self._parse_response(response)
            except httpx.RequestError as e:
                last_error = PushGatewayError(f"Request to {path} failed: {e}", retryable=True)
            except PushGatewayError as e:
                if not e.retryable:
                    raise
                last_error = e

            logger.warning(
                f"Expo request attempt {attempt + 1}/{self.max_retries} "
                f"to {path} failed: {last_error}"
            )
            if attempt < self.max_retries - 1:
                time.sleep(self.retry_delay)

        raise last_error

    @staticmethod
    def _parse_response(response: httpx.Response) -> Dict[str, Any]:
        status_code = response.status_code
        retryable = status_code == 429 or status_code >= 500

        try:
            body = response.json()
        except ValueError:
            raise PushGatewayError(
                f"Invalid JSON from Expo: {response.text[:200]}",
                status_code=status_code,
                retryable=retryable,
            )

        if not isinstance(body, dict):
            raise PushGatewayError(
                "Unexpected response body", status_code=status_code, retryable=retryable
            )

        errors = body.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) else errors
            if not isinstance(first, dict):
                first = {"message": str(first)}
            raise PushGatewayError(
                first.get("message", "Expo request error"),
                code=first.get("code"),
                status_code=status_code,
                retryable=retryable,
            )

        if status_code >= 400:
            raise PushGatewayError(
                f"Expo HTTP error {status_code}",
                status_code=status_code,
                retryable=retryable,
            )

        return body
