"""
Counter Store — daily (per sender) and monthly (per workspace) send counters.

Counters are bucketed by calendar keys, so a new day or month simply starts
a fresh document at zero; there is no reset job.

Failure semantics:
    - reads fail OPEN: a storage error reads as 0 so a hiccup never blocks sends
    - writes are fire-and-forget from the engine's side: errors propagate to
      the orchestrator, which logs and swallows them
"""

import logging
from datetime import datetime

import pytz
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
import database
from sending.models import UsageTotals

logger = logging.getLogger("outbound.counter_store")


def _now(now: datetime = None) -> datetime:
    tz = pytz.timezone(config.COUNTER_TIMEZONE)
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        now = pytz.UTC.localize(now)
    return now.astimezone(tz)


def today_key(now: datetime = None) -> str:
    """'2026-02-27'"""
    return _now(now).strftime("%Y-%m-%d")


def current_month_key(now: datetime = None) -> str:
    """'2026-02'"""
    return _now(now).strftime("%Y-%m")


def _totals(row: dict) -> UsageTotals:
    return UsageTotals(
        emails_sent=int(row.get("emails_sent") or 0),
        linkedin_actions=int(row.get("linkedin_actions") or 0),
        ai_credits_used=int(row.get("ai_credits_used") or 0),
        warmup_emails_sent=int(row.get("warmup_emails_sent") or 0),
    )


class CounterStore:
    """
    Storage port for the quota engine. Implementations must make each
    increment atomic on its own; the engine never holds locks across calls.
    """

    def get_sender_daily_sent(self, sender_id: str, date_key: str = None) -> int:
        raise NotImplementedError

    def get_workspace_monthly_usage(self, workspace_id: str, month_key: str = None) -> UsageTotals:
        raise NotImplementedError

    def get_workspace_daily_usage(self, workspace_id: str, date_key: str = None) -> UsageTotals:
        raise NotImplementedError

    def get_workspace_monthly_sent(self, workspace_id: str, month_key: str = None) -> int:
        return self.get_workspace_monthly_usage(workspace_id, month_key).emails_sent

    def get_sender_warmup_sent(self, sender_id: str, date_key: str = None) -> int:
        raise NotImplementedError

    def increment_sender_daily(self, sender_id: str, date_key: str = None) -> int:
        """Add one send to today's counter and return the new value."""
        raise NotImplementedError

    def increment_sender_warmup(self, sender_id: str, date_key: str = None) -> int:
        raise NotImplementedError

    def increment_workspace_usage(
        self,
        workspace_id: str,
        date_key: str,
        month_key: str,
        emails: int = 0,
        linkedin: int = 0,
        ai_credits: int = 0,
        warmup: int = 0,
    ):
        raise NotImplementedError


class MongoCounterStore(CounterStore):
    """Counter store backed by MongoDB `$inc` upserts."""

    def __init__(self, db: Database = None):
        self._db = db

    @property
    def db(self) -> Database:
        if self._db is None:
            self._db = database.get_db()
        return self._db

    @property
    def _daily(self):
        return self.db[database.SENDER_DAILY_STATS]

    @property
    def _warmup(self):
        return self.db[database.SENDER_WARMUP_STATS]

    @property
    def _usage(self):
        return self.db[database.WORKSPACE_USAGE_COUNTERS]

    # ── reads (fail open) ────────────────────────────────────────────

    def get_sender_daily_sent(self, sender_id: str, date_key: str = None) -> int:
        date_key = date_key or today_key()
        try:
            record = self._daily.find_one({"sender_id": sender_id, "date": date_key})
        except PyMongoError as e:
            logger.warning(
                "counter_read_failed",
                extra={"counter": "sender_daily", "sender_id": sender_id, "error": str(e)[:200]},
            )
            return 0
        return int(record.get("count", 0)) if record else 0

    def get_sender_warmup_sent(self, sender_id: str, date_key: str = None) -> int:
        date_key = date_key or today_key()
        try:
            record = self._warmup.find_one({"sender_id": sender_id, "date": date_key})
        except PyMongoError as e:
            logger.warning(
                "counter_read_failed",
                extra={"counter": "sender_warmup", "sender_id": sender_id, "error": str(e)[:200]},
            )
            return 0
        return int(record.get("count", 0)) if record else 0

    def get_workspace_daily_usage(self, workspace_id: str, date_key: str = None) -> UsageTotals:
        date_key = date_key or today_key()
        try:
            row = self._usage.find_one({"workspace_id": workspace_id, "date_key": date_key})
        except PyMongoError as e:
            logger.warning(
                "counter_read_failed",
                extra={"counter": "workspace_daily", "workspace_id": workspace_id, "error": str(e)[:200]},
            )
            return UsageTotals()
        return _totals(row) if row else UsageTotals()

    def get_workspace_monthly_usage(self, workspace_id: str, month_key: str = None) -> UsageTotals:
        month = month_key or current_month_key()
        pipeline = [
            {"$match": {"workspace_id": workspace_id, "month_key": month}},
            {"$group": {
                "_id": None,
                "emails_sent": {"$sum": "$emails_sent"},
                "linkedin_actions": {"$sum": "$linkedin_actions"},
                "ai_credits_used": {"$sum": "$ai_credits_used"},
                "warmup_emails_sent": {"$sum": "$warmup_emails_sent"},
            }},
        ]
        try:
            result = list(self._usage.aggregate(pipeline))
        except PyMongoError as e:
            logger.warning(
                "counter_read_failed",
                extra={"counter": "workspace_monthly", "workspace_id": workspace_id, "error": str(e)[:200]},
            )
            return UsageTotals()

        return _totals(result[0]) if result else UsageTotals()

    # ── increments ───────────────────────────────────────────────────

    def increment_sender_daily(self, sender_id: str, date_key: str = None) -> int:
        return self._increment(self._daily, sender_id, date_key or today_key())

    def increment_sender_warmup(self, sender_id: str, date_key: str = None) -> int:
        return self._increment(self._warmup, sender_id, date_key or today_key())

    def increment_workspace_usage(
        self,
        workspace_id: str,
        date_key: str,
        month_key: str,
        emails: int = 0,
        linkedin: int = 0,
        ai_credits: int = 0,
        warmup: int = 0,
    ):
        self._usage.update_one(
            {"workspace_id": workspace_id, "date_key": date_key},
            {
                "$inc": {
                    "emails_sent": emails,
                    "linkedin_actions": linkedin,
                    "ai_credits_used": ai_credits,
                    "warmup_emails_sent": warmup,
                },
                "$set": {"month_key": month_key, "updated_at": datetime.utcnow()},
                "$setOnInsert": {"created_at": datetime.utcnow()},
            },
            upsert=True,
        )

    @staticmethod
    def _increment(collection, sender_id: str, date_key: str) -> int:
        record = collection.find_one_and_update(
            {"sender_id": sender_id, "date": date_key},
            {
                "$inc": {"count": 1},
                "$setOnInsert": {"created_at": datetime.utcnow()},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(record.get("count", 0)) if record else 0
