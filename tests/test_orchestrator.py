"""
Unit tests for sending/orchestrator.py

Tests cover:
- Select → send → track on the happy path
- Preferred sender: admission check, no fallback to other inboxes
- Counters untouched when a send is denied or the transport fails
- Tracking failures never turn a delivered email into a failure
- Daily overshoot from concurrent workers is logged
- Warm-up traffic counted separately from outreach
- End-to-end quota scenarios on the Starter plan
"""

import unittest
from unittest.mock import MagicMock
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fakes import (
    FakeTransport,
    InMemoryCounterStore,
    InMemorySenderRegistry,
    make_sender,
    run_async,
)


def make_request(**kwargs):
    from sending.models import SequenceSendRequest

    defaults = dict(
        workspace_id="ws_1",
        plan_name="Starter",
        recipient_email="lead@acme.com",
        subject="Quick question",
        html_body="<p>Hi there</p>",
        campaign_id="camp_1",
        sequence_step_id="step_1",
    )
    defaults.update(kwargs)
    return SequenceSendRequest(**defaults)


class OrchestratorTestCase(unittest.TestCase):

    def setUp(self):
        from sending.orchestrator import SendOrchestrator

        self.counters = InMemoryCounterStore()
        self.registry = InMemorySenderRegistry([make_sender("s1"), make_sender("s2")])
        self.transport = FakeTransport()
        self.orchestrator = SendOrchestrator(self.counters, self.registry, self.transport)


class TestSendSequenceEmail(OrchestratorTestCase):

    def test_success_tracks_both_counters(self):
        self.counters.set_daily("s1", 4)
        self.counters.set_daily("s2", 1)

        result = run_async(self.orchestrator.send_sequence_email(make_request()))

        self.assertTrue(result.success)
        self.assertEqual(result.sender_account_id, "s2")
        self.assertIsNone(result.error)
        self.assertEqual(self.counters.get_sender_daily_sent("s2"), 2)
        self.assertEqual(self.counters.get_workspace_monthly_sent("ws_1"), 1)

    def test_message_passed_to_transport(self):
        run_async(self.orchestrator.send_sequence_email(make_request()))

        self.assertEqual(len(self.transport.sent), 1)
        message = self.transport.sent[0]
        self.assertEqual(message.sender_account_id, "s1")
        self.assertEqual(message.to, "lead@acme.com")
        self.assertEqual(message.html, "<p>Hi there</p>")
        self.assertEqual(message.campaign_id, "camp_1")
        self.assertEqual(message.sequence_step_id, "step_1")

    def test_preferred_sender_used(self):
        self.counters.set_daily("s2", 10)

        result = run_async(self.orchestrator.send_sequence_email(make_request(preferred_sender_id="s2")))

        self.assertTrue(result.success)
        self.assertEqual(result.sender_account_id, "s2")
        self.assertEqual(self.counters.get_sender_daily_sent("s2"), 11)

    def test_preferred_sender_at_cap_no_fallback(self):
        """A pinned inbox at its cap is denied even if another inbox is free."""
        from sending.models import SendLimitCode

        self.counters.set_daily("s1", 50)

        result = run_async(self.orchestrator.send_sequence_email(make_request(preferred_sender_id="s1")))

        self.assertFalse(result.success)
        self.assertEqual(result.sender_account_id, "s1")
        self.assertEqual(result.error.code, SendLimitCode.DAILY_EMAIL_PER_INBOX)
        self.assertEqual(self.transport.sent, [])

    def test_monthly_cap_denies_without_sending(self):
        from sending.models import SendLimitCode

        self.counters.set_monthly("ws_1", emails=500)

        result = run_async(self.orchestrator.send_sequence_email(make_request()))

        self.assertFalse(result.success)
        self.assertEqual(result.sender_account_id, "")
        self.assertEqual(result.error.code, SendLimitCode.MONTHLY_EMAIL_WORKSPACE)
        self.assertEqual(self.transport.sent, [])
        self.assertEqual(self.counters.get_workspace_monthly_sent("ws_1"), 500)

    def test_monthly_cap_applies_to_preferred_sender(self):
        from sending.models import SendLimitCode

        self.counters.set_monthly("ws_1", emails=500)
        result = run_async(self.orchestrator.send_sequence_email(make_request(preferred_sender_id="s1")))
        self.assertEqual(result.error.code, SendLimitCode.MONTHLY_EMAIL_WORKSPACE)

    def test_transport_failure_not_counted(self):
        from sending.models import SendLimitCode, TransportResult

        self.transport.result = TransportResult(success=False, error="550 mailbox unavailable", error_code=550)

        result = run_async(self.orchestrator.send_sequence_email(make_request()))

        self.assertFalse(result.success)
        self.assertEqual(result.sender_account_id, "s1")
        self.assertEqual(result.error.code, SendLimitCode.NO_AVAILABLE_INBOX)
        self.assertEqual(result.error.message, "550 mailbox unavailable")
        self.assertEqual(result.error.details, {"transportCode": 550})
        self.assertEqual(self.counters.get_sender_daily_sent("s1"), 0)
        self.assertEqual(self.counters.get_workspace_monthly_sent("ws_1"), 0)

    def test_transport_exception_is_classified(self):
        from sending.models import SendLimitCode

        self.transport.exc = ConnectionResetError("connection reset by peer")

        result = run_async(self.orchestrator.send_sequence_email(make_request()))

        self.assertFalse(result.success)
        self.assertEqual(result.error.code, SendLimitCode.NO_AVAILABLE_INBOX)
        self.assertIn("connection reset", result.error.message)
        self.assertEqual(self.counters.get_workspace_monthly_sent("ws_1"), 0)

    def test_tracking_failure_still_success(self):
        """The email already left; a counter outage must not report failure."""
        self.counters.fail_writes = True

        with self.assertLogs("outbound.orchestrator", level="ERROR") as logs:
            result = run_async(self.orchestrator.send_sequence_email(make_request()))

        self.assertTrue(result.success)
        self.assertEqual(len(self.transport.sent), 1)
        self.assertTrue(any("tracking_failed" in line for line in logs.output))

    def test_selector_injected(self):
        from sending.models import Selection
        from sending.orchestrator import SendOrchestrator

        selector = MagicMock()
        selector.select_inbox.return_value = Selection(sender=make_sender("s2"), daily_sent=0, daily_max=50)
        orchestrator = SendOrchestrator(self.counters, self.registry, self.transport, selector=selector)

        result = run_async(orchestrator.send_sequence_email(make_request()))
        self.assertEqual(result.sender_account_id, "s2")
        selector.select_inbox.assert_called_once_with("ws_1", "Starter")

    def test_result_to_dict(self):
        self.counters.set_monthly("ws_1", emails=500)
        result = run_async(self.orchestrator.send_sequence_email(make_request()))
        data = result.to_dict()
        self.assertFalse(data["success"])
        self.assertEqual(data["error"]["code"], "MONTHLY_EMAIL_WORKSPACE")


class TestTracking(OrchestratorTestCase):

    def test_overshoot_logged(self):
        """Two workers passing the check at 49 both send; the 51st is logged."""
        self.counters.set_daily("s1", 50)

        with self.assertLogs("outbound.orchestrator", level="WARNING") as logs:
            ok = self.orchestrator.track_email_sent("ws_1", "s1", "Starter")

        self.assertTrue(ok)
        self.assertEqual(self.counters.get_sender_daily_sent("s1"), 51)
        self.assertTrue(any("daily_cap_overshoot" in line for line in logs.output))

    def test_track_returns_false_on_failure(self):
        self.counters.fail_writes = True
        with self.assertLogs("outbound.orchestrator", level="ERROR"):
            self.assertFalse(self.orchestrator.track_email_sent("ws_1", "s1"))

    def test_track_warmup_leaves_outreach_counters(self):
        self.orchestrator.track_warmup_sent("ws_1", "s1")

        self.assertEqual(self.counters.get_sender_warmup_sent("s1"), 1)
        self.assertEqual(self.counters.get_sender_daily_sent("s1"), 0)
        usage = self.counters.get_workspace_monthly_usage("ws_1")
        self.assertEqual(usage.emails_sent, 0)
        self.assertEqual(usage.warmup_emails_sent, 1)


class TestWarmup(OrchestratorTestCase):

    def test_warmup_not_gated_by_outreach_caps(self):
        self.counters.set_daily("s1", 50)
        self.counters.set_monthly("ws_1", emails=500)

        result = run_async(self.orchestrator.send_warmup_email(
            "ws_1", "s1", "peer@example.com", "hello", "<p>hello</p>"
        ))

        self.assertTrue(result.success)
        self.assertEqual(self.counters.get_sender_daily_sent("s1"), 50)
        self.assertEqual(self.counters.get_workspace_monthly_sent("ws_1"), 500)
        self.assertEqual(self.counters.get_sender_warmup_sent("s1"), 1)

    def test_warmup_failure_not_counted(self):
        from sending.models import TransportResult

        self.transport.result = TransportResult(success=False, error="auth failed")
        result = run_async(self.orchestrator.send_warmup_email("ws_1", "s1", "p@x.com", "s", "b"))

        self.assertFalse(result.success)
        self.assertEqual(self.counters.get_sender_warmup_sent("s1"), 0)


class TestStarterScenarios(OrchestratorTestCase):

    def test_monthly_cap_reached_mid_run(self):
        """480 of 500 used: the next 20 go out, the 21st is denied."""
        from sending.models import SendLimitCode

        self.counters.set_monthly("ws_1", emails=480, date_key="2000-01-01")

        results = [run_async(self.orchestrator.send_sequence_email(make_request())) for _ in range(25)]

        self.assertTrue(all(r.success for r in results[:20]))
        for r in results[20:]:
            self.assertFalse(r.success)
            self.assertEqual(r.error.code, SendLimitCode.MONTHLY_EMAIL_WORKSPACE)
        self.assertEqual(self.counters.get_workspace_monthly_sent("ws_1"), 500)
        self.assertEqual(self.counters.get_sender_daily_sent("s1"), 10)
        self.assertEqual(self.counters.get_sender_daily_sent("s2"), 10)
        self.assertEqual(len(self.transport.sent), 20)

    def test_capped_inbox_skipped_until_month_runs_out(self):
        """One inbox at 50/50, the other at 10: all 20 remaining sends use the second."""
        from sending.models import SendLimitCode

        self.counters.set_monthly("ws_1", emails=480, date_key="2000-01-01")
        self.counters.set_daily("s1", 50)
        self.counters.set_daily("s2", 10)

        self.assertEqual(self.orchestrator.selector.select_inbox("ws_1", "Starter").sender.id, "s2")

        for _ in range(20):
            result = run_async(self.orchestrator.send_sequence_email(make_request()))
            self.assertEqual(result.sender_account_id, "s2")

        self.assertEqual(self.counters.get_workspace_monthly_sent("ws_1"), 500)
        self.assertEqual(self.counters.get_sender_daily_sent("s1"), 50)
        self.assertEqual(self.counters.get_sender_daily_sent("s2"), 30)

        selection = self.orchestrator.selector.select_inbox("ws_1", "Starter")
        self.assertEqual(selection.error.code, SendLimitCode.MONTHLY_EMAIL_WORKSPACE)

    def test_both_inboxes_exhausted(self):
        from sending.models import SendLimitCode

        self.counters.set_daily("s1", 50)
        self.counters.set_daily("s2", 50)

        result = run_async(self.orchestrator.send_sequence_email(make_request()))

        self.assertEqual(result.error.code, SendLimitCode.DAILY_EMAIL_PER_INBOX)
        self.assertEqual(self.transport.sent, [])


if __name__ == "__main__":
    unittest.main()
