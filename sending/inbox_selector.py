"""
Inbox Selector — least-loaded round robin across a workspace's inboxes.

Every call re-reads the counters: sends from other workers change the
ordering between calls, so nothing is cached. Picking the inbox with the
fewest sends today spreads volume evenly over the day instead of draining
one inbox before moving to the next.
"""

import logging

from sending.counter_store import CounterStore, current_month_key
from sending.models import Selection, SendLimitCode, SendLimitError
from sending.plan_limits import resolve_limits
from sending.sender_registry import SenderRegistry

logger = logging.getLogger("outbound.inbox_selector")


class InboxSelector:
    def __init__(self, counters: CounterStore, registry: SenderRegistry):
        self.counters = counters
        self.registry = registry

    def select_inbox(self, workspace_id: str, plan_name: str) -> Selection:
        limits = resolve_limits(plan_name)
        daily_max = limits.emails_per_day_per_inbox

        # 1. Workspace monthly cap (no point loading senders)
        monthly_sent = self.counters.get_workspace_monthly_sent(workspace_id, current_month_key())
        if monthly_sent >= limits.emails_per_month:
            logger.info(
                "inbox_selection_denied",
                extra={"workspace_id": workspace_id, "code": SendLimitCode.MONTHLY_EMAIL_WORKSPACE},
            )
            return Selection(error=SendLimitError(
                SendLimitCode.MONTHLY_EMAIL_WORKSPACE,
                "Monthly email limit reached. Sending resumes next month.",
                {"monthlySent": monthly_sent, "monthlyMax": limits.emails_per_month},
            ))

        # 2. Connected, outreach-enabled inboxes
        try:
            senders = self.registry.list_outreach_enabled_senders(workspace_id)
        except Exception as e:
            logger.error(f"sender_listing_failed: workspace={workspace_id} error={e}", exc_info=True)
            return Selection(error=SendLimitError(
                SendLimitCode.NO_AVAILABLE_INBOX,
                f"Could not load sender accounts: {e}",
            ))

        if not senders:
            logger.warning(f"no_outreach_senders: workspace={workspace_id}")
            return Selection(error=SendLimitError(
                SendLimitCode.NO_AVAILABLE_INBOX,
                "No connected sender accounts available. Add a sending account in Settings.",
            ))

        # 3. Daily capacity per inbox
        available = []
        for sender in senders:
            daily_sent = self.counters.get_sender_daily_sent(sender.id)
            if daily_sent < daily_max:
                available.append((sender, daily_sent))
            else:
                logger.debug(
                    "inbox_at_daily_cap",
                    extra={"sender_id": sender.id, "daily_sent": daily_sent, "daily_max": daily_max},
                )

        if not available:
            logger.info(f"all_inboxes_exhausted: workspace={workspace_id} inboxes={len(senders)}")
            return Selection(error=SendLimitError(
                SendLimitCode.DAILY_EMAIL_PER_INBOX,
                "All inboxes have reached their daily sending limit. Sending resumes tomorrow.",
                {"dailySent": daily_max, "dailyMax": daily_max},
            ))

        # 4. Least-loaded first; sorted() is stable so ties keep listing order
        available = sorted(available, key=lambda pair: pair[1])
        sender, daily_sent = available[0]

        logger.info(
            "inbox_selected",
            extra={
                "workspace_id": workspace_id,
                "sender_id": sender.id,
                "daily_sent": daily_sent,
                "daily_max": daily_max,
                "available": len(available),
            },
        )
        return Selection(sender=sender, daily_sent=daily_sent, daily_max=daily_max)
