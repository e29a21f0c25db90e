"""
Unit tests for sending/inbox_selector.py

Tests cover:
- Least-loaded selection and tie-breaking by listing order
- Inboxes at their daily cap are skipped
- Denials: monthly cap, no inbox, every inbox exhausted, registry failure
- Volume spreads evenly across inboxes over repeated sends
"""

import unittest
from unittest.mock import patch, MagicMock
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fakes import InMemoryCounterStore, InMemorySenderRegistry, make_sender

from sending.models import PlanLimits

TEN_PER_DAY = PlanLimits(
    max_inboxes=5,
    emails_per_day_per_inbox=10,
    emails_per_month=1000,
    linkedin_per_day=10,
    linkedin_per_month=100,
)


class TestSelectInbox(unittest.TestCase):

    def setUp(self):
        from sending.inbox_selector import InboxSelector

        self.counters = InMemoryCounterStore()
        self.registry = InMemorySenderRegistry([make_sender("s1"), make_sender("s2"), make_sender("s3")])
        self.selector = InboxSelector(self.counters, self.registry)

    @patch("sending.inbox_selector.resolve_limits", return_value=TEN_PER_DAY)
    def test_picks_least_loaded(self, _):
        self.counters.set_daily("s1", 5)
        self.counters.set_daily("s2", 2)
        self.counters.set_daily("s3", 8)

        selection = self.selector.select_inbox("ws_1", "Growth")

        self.assertTrue(selection.ok)
        self.assertEqual(selection.sender.id, "s2")
        self.assertEqual(selection.daily_sent, 2)
        self.assertEqual(selection.daily_max, 10)

    @patch("sending.inbox_selector.resolve_limits", return_value=TEN_PER_DAY)
    def test_skips_inboxes_at_cap(self, _):
        self.counters.set_daily("s1", 10)
        self.counters.set_daily("s2", 9)
        self.counters.set_daily("s3", 12)

        selection = self.selector.select_inbox("ws_1", "Growth")
        self.assertEqual(selection.sender.id, "s2")

    def test_tie_keeps_listing_order(self):
        """Equal load: the default inbox (listed first) wins."""
        from sending.inbox_selector import InboxSelector

        registry = InMemorySenderRegistry([
            make_sender("s1"),
            make_sender("s2", is_default=True),
        ])
        selection = InboxSelector(self.counters, registry).select_inbox("ws_1", "Growth")
        self.assertEqual(selection.sender.id, "s2")

    @patch("sending.inbox_selector.resolve_limits", return_value=TEN_PER_DAY)
    def test_all_inboxes_exhausted(self, _):
        from sending.models import SendLimitCode

        for sender_id in ("s1", "s2", "s3"):
            self.counters.set_daily(sender_id, 10)

        selection = self.selector.select_inbox("ws_1", "Growth")

        self.assertFalse(selection.ok)
        self.assertEqual(selection.error.code, SendLimitCode.DAILY_EMAIL_PER_INBOX)
        self.assertEqual(selection.error.details, {"dailySent": 10, "dailyMax": 10})

    def test_monthly_cap_checked_first(self):
        """Registry is never consulted once the workspace is out of monthly quota."""
        from sending.inbox_selector import InboxSelector
        from sending.models import SendLimitCode

        self.counters.set_monthly("ws_1", emails=500)
        registry = MagicMock()

        selection = InboxSelector(self.counters, registry).select_inbox("ws_1", "Starter")

        self.assertEqual(selection.error.code, SendLimitCode.MONTHLY_EMAIL_WORKSPACE)
        registry.list_outreach_enabled_senders.assert_not_called()

    def test_no_senders(self):
        from sending.inbox_selector import InboxSelector
        from sending.models import SendLimitCode

        selection = InboxSelector(self.counters, InMemorySenderRegistry()).select_inbox("ws_1", "Growth")
        self.assertEqual(selection.error.code, SendLimitCode.NO_AVAILABLE_INBOX)
        self.assertIsNone(selection.sender)

    def test_disconnected_senders_ignored(self):
        from sending.inbox_selector import InboxSelector
        from sending.models import SendLimitCode

        registry = InMemorySenderRegistry([
            make_sender("s1", status="needs_reauth"),
            make_sender("s2", use_for_outreach=False),
        ])
        selection = InboxSelector(self.counters, registry).select_inbox("ws_1", "Growth")
        self.assertEqual(selection.error.code, SendLimitCode.NO_AVAILABLE_INBOX)

    def test_registry_failure(self):
        from sending.models import SendLimitCode

        self.registry.fail = True
        selection = self.selector.select_inbox("ws_1", "Growth")
        self.assertEqual(selection.error.code, SendLimitCode.NO_AVAILABLE_INBOX)
        self.assertIn("registry unavailable", selection.error.message)

    def test_spreads_load_evenly(self):
        picks = []
        for _ in range(9):
            selection = self.selector.select_inbox("ws_1", "Growth")
            picks.append(selection.sender.id)
            self.counters.increment_sender_daily(selection.sender.id)

        self.assertEqual(picks[:3], ["s1", "s2", "s3"])
        for sender_id in ("s1", "s2", "s3"):
            self.assertEqual(self.counters.get_sender_daily_sent(sender_id), 3)

    def test_does_not_mutate_counters(self):
        self.selector.select_inbox("ws_1", "Growth")
        self.assertEqual(sum(self.counters.daily.values()), 0)


if __name__ == "__main__":
    unittest.main()
