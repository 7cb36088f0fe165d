from __future__ import annotations

from typing import Any, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.base import BaseService
from ..models import AuditLog


class AuditService(BaseService):
    """Append-only trail of staff actions."""

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def record(
        self,
        *,
        user_id: Optional[int],
        action_type: str,
        entity_type: str,
        entity_id: Any,
        meta: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            action_type=action_type,
            entity_type=entity_type,
            entity_id=str(entity_id),
            meta=meta or {},
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_recent(
        self,
        *,
        entity_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AuditLog]:
        stmt = select(AuditLog)
        if entity_type:
            stmt = stmt.where(AuditLog.entity_type == entity_type)
        stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit)
        return list((await self.session.scalars(stmt)).all())
