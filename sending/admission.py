"""
Admission Controller — pre-flight "may this workspace send one more email?".

Pure predicates over the current counter state: nothing here mutates a
counter, so the checks are safe to call from dashboards as well as the send path.
The monthly workspace cap is the outer constraint and is always checked
before any per-inbox cap.
"""

import logging
from typing import List

import config
from sending.counter_store import CounterStore, current_month_key, today_key
from sending.models import Decision, SendLimitCode, UsageWarning
from sending.plan_limits import resolve_limits
from sending.sender_registry import SenderRegistry

logger = logging.getLogger("outbound.admission")


class AdmissionController:
    def __init__(self, counters: CounterStore, registry: SenderRegistry = None):
        self.counters = counters
        self.registry = registry

    def check_send_allowed(self, workspace_id: str, plan_name: str, sender_id: str = None) -> Decision:
        limits = resolve_limits(plan_name)

        monthly_sent = self.counters.get_workspace_monthly_sent(workspace_id, current_month_key())
        if monthly_sent >= limits.emails_per_month:
            logger.info(
                "send_denied",
                extra={
                    "workspace_id": workspace_id,
                    "code": SendLimitCode.MONTHLY_EMAIL_WORKSPACE,
                    "monthly_sent": monthly_sent,
                    "monthly_max": limits.emails_per_month,
                },
            )
            return Decision.deny(
                SendLimitCode.MONTHLY_EMAIL_WORKSPACE,
                "Monthly email limit reached for this workspace.",
                {"monthlySent": monthly_sent, "monthlyMax": limits.emails_per_month},
            )

        if sender_id:
            daily_sent = self.counters.get_sender_daily_sent(sender_id)
            daily_max = limits.emails_per_day_per_inbox
            if daily_sent >= daily_max:
                logger.info(
                    "send_denied",
                    extra={
                        "workspace_id": workspace_id,
                        "code": SendLimitCode.DAILY_EMAIL_PER_INBOX,
                        "sender_id": sender_id,
                        "daily_sent": daily_sent,
                        "daily_max": daily_max,
                    },
                )
                return Decision.deny(
                    SendLimitCode.DAILY_EMAIL_PER_INBOX,
                    "Daily sending limit reached for this inbox.",
                    {"senderId": sender_id, "dailySent": daily_sent, "dailyMax": daily_max},
                )

        return Decision.allow()

    def check_inbox_capacity(self, workspace_id: str, plan_name: str) -> Decision:
        """Can the workspace connect one more outreach inbox under its plan?"""
        limits = resolve_limits(plan_name)
        current = self.registry.count_outreach_inboxes(workspace_id)
        if current >= limits.max_inboxes:
            return Decision.deny(
                SendLimitCode.INBOX_LIMIT_REACHED,
                "Inbox limit reached for this plan. Upgrade to connect more sending accounts.",
                {"current": current, "max": limits.max_inboxes},
            )
        return Decision.allow()

    def usage_warnings(self, workspace_id: str, plan_name: str) -> List[UsageWarning]:
        """Caps (monthly email, daily and monthly LinkedIn) used to at least USAGE_WARNING_PERCENT."""
        limits = resolve_limits(plan_name)
        month = self.counters.get_workspace_monthly_usage(workspace_id, current_month_key())
        today = self.counters.get_workspace_daily_usage(workspace_id, today_key())

        checks = [
            ("MONTHLY_EMAIL", month.emails_sent, limits.emails_per_month),
            ("DAILY_LINKEDIN", today.linkedin_actions, limits.linkedin_per_day),
            ("MONTHLY_LINKEDIN", month.linkedin_actions, limits.linkedin_per_month),
        ]

        warnings = []
        for kind, current, limit in checks:
            if limit == 0:
                continue
            percent = round(current / limit * 100)
            if percent >= config.USAGE_WARNING_PERCENT:
                warnings.append(UsageWarning(type=kind, current=current, limit=limit, percent=percent))
        return warnings
