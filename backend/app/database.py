"""
backend/app/database.py

Purpose:
    MongoDB connection bootstrap and index management for the football match
    store, admin users, audit log and worker state collections.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - app.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure

from app.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("matchsync.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=2,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def get_db() -> AsyncIOMotorDatabase:
    return db


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""

    # ---- Football matches ----
    # Reconciliation join key. Sparse: hard-deleted records drop external_id
    # so the provider id can be created again.
    try:
        await db.football_matches.create_index(
            "external_id",
            unique=True,
            sparse=True,
            name="external_id_unique",
        )
    except (DuplicateKeyError, OperationFailure) as exc:
        logger.warning(
            "Skipped unique external_id index due to duplicate data: %s",
            exc,
        )
        await db.football_matches.create_index(
            "external_id",
            name="external_id_lookup",
            unique=False,
        )
    await db.football_matches.create_index(
        [("record_status", 1), ("lifecycle_state", 1), ("kickoff_time", 1)],
    )
    await db.football_matches.create_index([("record_status", 1), ("kickoff_time", 1)])
    await db.football_matches.create_index("allow_sync")

    # ---- Admin users ----
    await db.admin_users.create_index("email", unique=True)

    # ---- Audit log (insert-only) ----
    await db.audit_logs.create_index([("target_id", 1), ("timestamp", -1)])
    await db.audit_logs.create_index([("actor_id", 1), ("timestamp", -1)])

    logger.info("MongoDB indexes ensured")
