from typing import Annotated
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tripdesk.infrastructure import get_session
from tripdesk.services.whatsapp_service import WhatsAppService


def get_whatsapp_sender() -> WhatsAppService:
    """Outbound WhatsApp client; overridden in tests"""
    return WhatsAppService()


# Type aliases for dependency injection
SessionDep = Annotated[AsyncSession, Depends(get_session)]
SenderDep = Annotated[WhatsAppService, Depends(get_whatsapp_sender)]
