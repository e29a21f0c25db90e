from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.database import Database
from typing import Optional
import config

# Collections
SENDER_ACCOUNTS = "sender_accounts"
SENDER_DAILY_STATS = "sender_daily_stats"
SENDER_WARMUP_STATS = "sender_warmup_stats"  # kept apart so warm-up never gates outreach
WORKSPACE_USAGE_COUNTERS = "workspace_usage_counters"

_client: Optional[MongoClient] = None


def get_client() -> MongoClient:
    """Shared client, created on first use (MongoClient connects lazily)"""
    global _client
    if _client is None:
        _client = MongoClient(
            config.DATABASE_URL,
            serverSelectionTimeoutMS=config.MONGO_TIMEOUT_MS,
        )
    return _client


def get_db() -> Database:
    return get_client().get_default_database(default=config.DATABASE_NAME)


def ensure_indexes(db: Database = None):
    """Create the indexes the counter store and sender registry rely on"""
    db = db if db is not None else get_db()

    db[SENDER_ACCOUNTS].create_index("id", unique=True)
    db[SENDER_ACCOUNTS].create_index([
        ("workspace_id", ASCENDING),
        ("status", ASCENDING),
        ("use_for_outreach", ASCENDING),
    ])
    db[SENDER_ACCOUNTS].create_index([("workspace_id", ASCENDING), ("is_default", DESCENDING)])

    db[SENDER_DAILY_STATS].create_index([("sender_id", ASCENDING), ("date", ASCENDING)], unique=True)
    db[SENDER_WARMUP_STATS].create_index([("sender_id", ASCENDING), ("date", ASCENDING)], unique=True)

    db[WORKSPACE_USAGE_COUNTERS].create_index(
        [("workspace_id", ASCENDING), ("date_key", ASCENDING)], unique=True
    )
    db[WORKSPACE_USAGE_COUNTERS].create_index([("workspace_id", ASCENDING), ("month_key", ASCENDING)])
