"""Shared audit links: audit snapshots stored under a short public id."""

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from aigeo.database.supabase import SupabaseClient

logger = logging.getLogger(__name__)

SHARES_TABLE = "shared_audits"
SHARE_ID_LENGTH = 12
SHARE_ID_ALPHABET = string.ascii_letters + string.digits


def generate_share_id(length: int = SHARE_ID_LENGTH) -> str:
    return "".join(secrets.choice(SHARE_ID_ALPHABET) for _ in range(length))


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def is_expired(share: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    expires_at = _parse_timestamp(share.get("expires_at"))
    if expires_at is None:
        return False
    return expires_at <= (now or datetime.now(timezone.utc))


async def create_share(db: SupabaseClient, audit_data: Any, ttl_days: int = 30) -> Dict[str, Any]:
    """Store audit data; returns the created row (share_id, expires_at, ...)."""
    now = datetime.now(timezone.utc)
    record = {
        "share_id": generate_share_id(),
        "audit_data": audit_data,
        "created_at": now.isoformat(),
        "expires_at": (now + timedelta(days=ttl_days)).isoformat(),
    }
    created = await db.execute(db.table(SHARES_TABLE).insert(record))
    row = created[0] if created else record
    logger.info(f"Created shared audit {row.get('share_id')} (expires {row.get('expires_at')})")
    return row


async def get_share(db: SupabaseClient, share_id: str) -> Optional[Dict[str, Any]]:
    """The share row, or None when missing or expired."""
    rows = await db.execute(db.table(SHARES_TABLE).select("*").eq("share_id", share_id).limit(1))
    if not rows:
        return None
    if is_expired(rows[0]):
        logger.info(f"Shared audit {share_id} has expired")
        return None
    return rows[0]
