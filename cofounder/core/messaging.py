"""Outbound message channel used to execute reminders and lead responses."""

from abc import ABC, abstractmethod

import httpx

from cofounder.core.config import Settings
from cofounder.core.errors import ExternalServiceError
from cofounder.core.logging import get_logger

logger = get_logger(__name__)


class MessageChannel(ABC):
    @abstractmethod
    def send(self, to: str, body: str) -> str | None:
        """
        Send a message.

        Returns:
            The gateway's message id, if it reports one

        Raises:
            ExternalServiceError: If the message could not be sent
        """


class HttpSmsChannel(MessageChannel):
    """Posts messages to the SMS gateway's HTTP send endpoint."""

    def __init__(self, settings: Settings):
        self.url = settings.SMS_SEND_URL
        self.timeout = settings.SMS_TIMEOUT_SECONDS
        self._headers = {"Content-Type": "application/json"}
        if settings.SMS_API_TOKEN:
            self._headers["Authorization"] = f"Bearer {settings.SMS_API_TOKEN}"

    def send(self, to: str, body: str) -> str | None:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(self.url, headers=self._headers, json={"to": to, "body": body})
                resp.raise_for_status()
                data = resp.json() if resp.content else {}
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                f"SMS gateway returned {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError(f"SMS send failed: {e}") from e

        message_sid = data.get("messageSid") if isinstance(data, dict) else None
        logger.info(f"Sent SMS to {to[-4:].rjust(len(to), '*')} sid={message_sid}")
        return message_sid
