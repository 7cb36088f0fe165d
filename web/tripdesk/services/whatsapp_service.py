from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import httpx
import phonenumbers
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import get_settings, ExternalServiceError, ValidationError
from ..models import WhatsAppMessageLog


logger = logging.getLogger(__name__)


def normalize_phone(raw: str, region: Optional[str] = None) -> str:
    """Return *raw* as E.164 digits without the leading ``+`` (WhatsApp ``to`` format)."""
    region = region or get_settings().DEFAULT_PHONE_REGION
    try:
        parsed = phonenumbers.parse(raw or "", region)
    except phonenumbers.NumberParseException as exc:
        raise ValidationError(f"Invalid phone number: {raw!r}", field="phone") from exc
    if not phonenumbers.is_possible_number(parsed):
        raise ValidationError(f"Invalid phone number: {raw!r}", field="phone")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164).lstrip("+")


class WhatsAppService:
    """Lightweight async client for the WhatsApp Cloud API."""

    def __init__(
        self,
        phone_number_id: Optional[str] = None,
        access_token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        settings = get_settings()
        self.phone_number_id = phone_number_id or settings.WHATSAPP_PHONE_NUMBER_ID
        self.access_token = access_token or settings.WHATSAPP_ACCESS_TOKEN
        self._api_base = (api_url or settings.WHATSAPP_API_URL).rstrip("/")
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.phone_number_id and self.access_token)

    async def send_text(self, phone: str, body: str) -> Optional[str]:
        """Send a plain text message and return the provider message id.

        Raises:
            ValidationError: phone number cannot be parsed
            ExternalServiceError: provider unreachable or rejected the message
        """
        if not self.configured:
            raise ExternalServiceError("whatsapp", "WhatsApp credentials not configured")

        payload = {
            "messaging_product": "whatsapp",
            "to": normalize_phone(phone),
            "type": "text",
            "text": {"body": body},
        }
        headers = {"Authorization": f"Bearer {self.access_token}"}

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            try:
                response = await client.post(
                    f"{self._api_base}/{self.phone_number_id}/messages",
                    json=payload,
                    headers=headers,
                )
            except httpx.HTTPError as exc:
                raise ExternalServiceError("whatsapp", str(exc)) from exc

        if response.status_code >= 400:
            raise ExternalServiceError("whatsapp", f"[{response.status_code}] {response.text[:500]}")

        data = response.json()
        messages = data.get("messages") or [{}]
        return messages[0].get("id")


async def send_logged(
    session: AsyncSession,
    sender: WhatsAppService,
    *,
    phone: str,
    body: str,
    message_type: str,
    booking_id: Optional[int] = None,
    user_id: Optional[int] = None,
    broadcast_id: Optional[int] = None,
) -> bool:
    """Send one message and append a ``whatsapp_message_logs`` row for the attempt.

    Delivery failures are recorded and reported as ``False``; they never raise.
    """
    log = WhatsAppMessageLog(
        broadcast_id=broadcast_id,
        booking_id=booking_id,
        recipient_phone=phone or "",
        recipient_user_id=user_id,
        message_type=message_type,
        message_body=body,
    )
    try:
        log.whatsapp_message_id = await sender.send_text(phone, body)
        log.status = "sent"
        log.sent_at = datetime.utcnow()
    except (ExternalServiceError, ValidationError) as exc:
        logger.error("WhatsApp %s to booking %s failed: %s", message_type, booking_id, exc.message)
        log.status = "failed"
        log.error_message = exc.message[:2000]
    session.add(log)
    await session.flush()
    return log.status == "sent"
