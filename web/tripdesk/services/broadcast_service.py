"""Broadcast service for WhatsApp messaging to opted-in users."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.base import BaseService
from ..core.exceptions import ValidationError
from ..models import BroadcastMessage, WhatsAppConsent
from ..statuses import BroadcastStatus
from .audit_service import AuditService
from .whatsapp_service import WhatsAppService, send_logged

logger = logging.getLogger(__name__)


class BroadcastService(BaseService):
    """Service for broadcast operations."""

    def __init__(self, session: AsyncSession, sender: Optional[WhatsAppService] = None):
        super().__init__(session)
        self.sender = sender or WhatsAppService()

    async def queue_broadcast(self, message: str, staff_id: int) -> BroadcastMessage:
        """Queue a message for every opted-in contact.

        Args:
            message: Message body
            staff_id: User queuing the broadcast

        Returns:
            The queued broadcast row
        """
        message = (message or "").strip()
        if not message:
            raise ValidationError("Message cannot be empty", field="message")

        broadcast = BroadcastMessage(
            message_template=message,
            audience_type="all_opted_in",
            status=BroadcastStatus.queued.value,
            created_by=staff_id,
        )
        self.session.add(broadcast)
        await self.session.flush()
        await AuditService(self.session).record(
            user_id=staff_id,
            action_type="broadcast_queued",
            entity_type="broadcast",
            entity_id=broadcast.id,
        )
        return broadcast

    async def send_queued(self) -> Dict[str, Any]:
        """Send every queued broadcast; one failed recipient never stops the rest."""
        queued: List[BroadcastMessage] = list((await self.session.scalars(
            select(BroadcastMessage)
            .where(BroadcastMessage.status == BroadcastStatus.queued.value)
            .order_by(BroadcastMessage.id)
        )).all())
        results = {"broadcasts": 0, "sent": 0, "failed": 0}
        if not queued:
            return results

        recipients = list((await self.session.scalars(
            select(WhatsAppConsent).where(WhatsAppConsent.opted_in == True)  # noqa: E712
        )).all())
        # One message per phone number even if several consents share it
        unique = list({c.phone: c for c in recipients}.values())

        for broadcast in queued:
            broadcast.status = BroadcastStatus.sending.value
            broadcast.recipient_count = len(unique)
            await self.session.commit()

            for consent in unique:
                ok = await send_logged(
                    self.session,
                    self.sender,
                    phone=consent.phone,
                    body=broadcast.message_template,
                    message_type="broadcast",
                    user_id=consent.user_id,
                    broadcast_id=broadcast.id,
                )
                if ok:
                    broadcast.sent_count += 1
                else:
                    broadcast.failed_count += 1

            broadcast.status = BroadcastStatus.sent.value
            broadcast.sent_at = datetime.utcnow()
            await self.session.commit()

            results["broadcasts"] += 1
            results["sent"] += broadcast.sent_count
            results["failed"] += broadcast.failed_count
            logger.info(
                "Broadcast %s sent: %s delivered, %s failed",
                broadcast.id, broadcast.sent_count, broadcast.failed_count,
            )
        return results
