"""Insert-only audit trail for administrator actions on matches and syncs.

Nothing here updates or deletes audit_logs entries.
"""

import logging
from typing import Optional

from fastapi import Request

import app.database as _db
from app.utils import utcnow

logger = logging.getLogger("matchsync.audit")


def _mask_ip(ip: str) -> str:
    """Replace the host part of an address.

    IPv4: 10.0.0.42    -> 10.0.0.xxx
    IPv6: fe80::1      -> fe80::xxx
    """
    if not ip:
        return ""
    if "." in ip:
        octets = ip.split(".")
        return ".".join(octets[:3] + ["xxx"]) if len(octets) == 4 else ip
    if ":" in ip:
        head, _, _tail = ip.rpartition(":")
        return f"{head}:xxx" if head else ip
    return ip


def _client_ip(request: Optional[Request]) -> str:
    if request is None:
        return ""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


async def log_audit(
    *,
    actor_id: str,
    target_id: str,
    action: str,
    metadata: Optional[dict] = None,
    request: Optional[Request] = None,
) -> None:
    """Append one audit entry.

    Args:
        actor_id: Admin id, or "SYSTEM" for scheduled jobs.
        target_id: Match id, external id or sync scope affected.
        action: e.g. "MATCH_ALLOW_SYNC_TOGGLED", "SYNC_FULL_TRIGGERED".
        metadata: Optional before/after values or result counters.
        request: Optional request used for the masked client address.
    """
    doc = {
        "timestamp": utcnow(),
        "actor_id": actor_id,
        "target_id": target_id,
        "action": action,
        "metadata": metadata or {},
        "ip_truncated": _mask_ip(_client_ip(request)),
    }
    try:
        await _db.db.audit_logs.insert_one(doc)
    except Exception:
        # The audited action has already happened; never fail it here.
        logger.exception("Failed to write audit log: action=%s actor=%s", action, actor_id)
