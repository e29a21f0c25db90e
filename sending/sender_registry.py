"""
Sender Registry — read-only view of a workspace's connected inboxes.

Accounts are created and removed by the provider connection flows; the quota
engine only lists them.
"""

import logging
from typing import List, Optional

from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import AutoReconnect

import database
from sending.models import SenderAccount, SenderStatus
from utils.logging_utils import retry_with_backoff

logger = logging.getLogger("outbound.sender_registry")


class SenderRegistry:
    def list_outreach_enabled_senders(self, workspace_id: str) -> List[SenderAccount]:
        raise NotImplementedError

    def get_sender(self, sender_id: str) -> Optional[SenderAccount]:
        raise NotImplementedError

    def count_outreach_inboxes(self, workspace_id: str) -> int:
        raise NotImplementedError


class MongoSenderRegistry(SenderRegistry):
    """Sender accounts stored in the `sender_accounts` collection."""

    def __init__(self, db: Database = None):
        self._db = db

    @property
    def _collection(self):
        if self._db is None:
            self._db = database.get_db()
        return self._db[database.SENDER_ACCOUNTS]

    @retry_with_backoff(max_retries=2, initial_delay=0.5, exceptions=(AutoReconnect,), log=logger)
    def list_outreach_enabled_senders(self, workspace_id: str) -> List[SenderAccount]:
        cursor = self._collection.find({
            "workspace_id": workspace_id,
            "use_for_outreach": True,
            "status": SenderStatus.CONNECTED,
        }).sort("is_default", DESCENDING)

        senders = [SenderAccount.from_document(doc) for doc in cursor]
        logger.debug("outreach_senders_listed", extra={"workspace_id": workspace_id, "count": len(senders)})
        return senders

    @retry_with_backoff(max_retries=2, initial_delay=0.5, exceptions=(AutoReconnect,), log=logger)
    def get_sender(self, sender_id: str) -> Optional[SenderAccount]:
        doc = self._collection.find_one({"id": sender_id})
        return SenderAccount.from_document(doc) if doc else None

    def count_outreach_inboxes(self, workspace_id: str) -> int:
        """Inboxes that count toward the plan's inbox allowance (anything not disabled)."""
        return self._collection.count_documents({
            "workspace_id": workspace_id,
            "use_for_outreach": True,
            "status": {"$ne": SenderStatus.DISABLED},
        })
