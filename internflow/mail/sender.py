"""Client for the HTTP send endpoint that relays mail over SMTP."""

import logging
from abc import ABC, abstractmethod

import httpx
from pydantic import BaseModel

from internflow.core.config import MailConfig
from internflow.mail.template import normalize_recipients

logger = logging.getLogger(__name__)


class MailError(Exception):
    """The send endpoint rejected the message or could not be reached."""


class MailMessage(BaseModel):
    """One outgoing application mail."""

    to: str
    subject: str
    html: str
    reply_to: str = ""
    from_name: str = ""


class MailSender(ABC):
    """Base class for anything that can deliver a MailMessage."""

    @abstractmethod
    async def send(self, message: MailMessage) -> str:
        """Deliver the message and return the provider's message id.

        Raises:
            MailError: Delivery failed; the message is the error string.
        """


class HttpMailSender(MailSender):
    """POSTs ``{to, subject, html, replyTo, fromName, smtpUser, smtpPass}`` as JSON.

    The endpoint answers ``{"messageId": ...}`` on success and
    ``{"error": ...}`` otherwise.
    """

    def __init__(self, config: MailConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client

    def _payload(self, message: MailMessage) -> dict[str, str]:
        return {
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
            "replyTo": message.reply_to,
            "fromName": message.from_name or self._config.from_name,
            "smtpUser": self._config.smtp_user,
            "smtpPass": self._config.smtp_password,
        }

    async def send(self, message: MailMessage) -> str:
        recipients = normalize_recipients(message.to)
        if not recipients:
            msg = "No valid recipients parsed"
            raise MailError(msg)
        message = message.model_copy(update={"to": recipients})

        try:
            if self._client is not None:
                response = await self._post(self._client, message)
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                    response = await self._post(client, message)
        except httpx.HTTPError as e:
            msg = f"Network error: {e}"
            raise MailError(msg) from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.is_success:
            message_id = str(data.get("messageId", ""))
            logger.info("Mail sent to %s (%s)", recipients, message_id)
            return message_id

        msg = data.get("error") or f"HTTP {response.status_code}"
        raise MailError(msg)

    async def _post(self, client: httpx.AsyncClient, message: MailMessage) -> httpx.Response:
        return await client.post(self._config.endpoint, json=self._payload(message))
