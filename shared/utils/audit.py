"""
shared/utils/audit.py
Append-only admin action log.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import AdminLog, User


def log_admin_action(
    db: AsyncSession,
    admin: User,
    action: str,
    entity_type: str,
    entity_id: Optional[object] = None,
    details: Optional[dict] = None,
) -> AdminLog:
    """Stage an AdminLog row; the caller's commit persists it."""
    entry = AdminLog(
        admin_id=admin.id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details or {},
    )
    db.add(entry)
    return entry
