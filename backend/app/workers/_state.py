"""Last-run bookkeeping for scheduled sync jobs.

One document per job in ``worker_state``; survives restarts so a redeploy
does not trigger an immediate extra provider sweep.
"""

from datetime import datetime, timedelta

import app.database as _db
from app.utils import ensure_utc, utcnow


async def get_synced_at(worker_id: str) -> datetime | None:
    doc = await _db.db.worker_state.find_one({"_id": worker_id})
    if not doc or doc.get("synced_at") is None:
        return None
    return ensure_utc(doc["synced_at"])


async def set_synced(worker_id: str, summary: dict | None = None) -> None:
    """Stamp a finished run, optionally with its result counters."""
    fields: dict = {"synced_at": utcnow()}
    if summary is not None:
        fields["last_summary"] = summary
    await _db.db.worker_state.update_one({"_id": worker_id}, {"$set": fields}, upsert=True)


async def recently_synced(worker_id: str, max_age: timedelta) -> bool:
    last = await get_synced_at(worker_id)
    return last is not None and utcnow() - last < max_age
