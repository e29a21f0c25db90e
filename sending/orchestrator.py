"""
Send Orchestrator — one outbound sequence email, end to end.

    preferred sender?  ── yes ──> admission check on that sender (no fallback)
          │ no
          └──────────────────────> inbox selector (monthly cap, least-loaded inbox)
    transport.send_email()
    success ──> track: sender daily +1, workspace monthly emails +1

Nothing here raises to the caller: every denial or failure comes back as a
SendResult carrying a SendLimitError.

The check and the increment are two separate steps against shared counters.
Concurrent workers can both pass a check at dailyMax - 1 and both send, so
caps are soft (overshoot by the number of racing workers). The daily
increment returns the new value and an overshoot is logged, never reversed.
"""

import logging

from sending.admission import AdmissionController
from sending.counter_store import CounterStore, today_key, current_month_key
from sending.inbox_selector import InboxSelector
from sending.models import (
    OutboundMessage,
    SendLimitCode,
    SendLimitError,
    SendResult,
    SequenceSendRequest,
)
from sending.plan_limits import resolve_limits
from sending.sender_registry import SenderRegistry
from sending.transport import Transport

logger = logging.getLogger("outbound.orchestrator")


class SendOrchestrator:
    def __init__(
        self,
        counters: CounterStore,
        registry: SenderRegistry,
        transport: Transport,
        admission: AdmissionController = None,
        selector: InboxSelector = None,
    ):
        self.counters = counters
        self.registry = registry
        self.transport = transport
        self.admission = admission or AdmissionController(counters, registry)
        self.selector = selector or InboxSelector(counters, registry)

    async def send_sequence_email(self, req: SequenceSendRequest) -> SendResult:
        # 1. Resolve the sending inbox
        if req.preferred_sender_id:
            decision = self.admission.check_send_allowed(
                req.workspace_id, req.plan_name, req.preferred_sender_id
            )
            if not decision.allowed:
                return SendResult(success=False, sender_account_id=req.preferred_sender_id, error=decision.error)
            sender_id = req.preferred_sender_id
        else:
            selection = self.selector.select_inbox(req.workspace_id, req.plan_name)
            if not selection.ok:
                return SendResult(success=False, sender_account_id="", error=selection.error)
            sender_id = selection.sender.id

        # 2. Deliver
        message = OutboundMessage(
            sender_account_id=sender_id,
            to=req.recipient_email,
            subject=req.subject,
            html=req.html_body,
            campaign_id=req.campaign_id,
            sequence_step_id=req.sequence_step_id,
        )
        failure = await self._deliver(message)
        if failure:
            return SendResult(success=False, sender_account_id=sender_id, error=failure)

        # 3. Track
        self.track_email_sent(req.workspace_id, sender_id, req.plan_name)

        logger.info(
            "email_sent",
            extra={
                "workspace_id": req.workspace_id,
                "sender_id": sender_id,
                "to": req.recipient_email,
                "campaign_id": req.campaign_id,
                "step_id": req.sequence_step_id,
            },
        )
        return SendResult(success=True, sender_account_id=sender_id)

    async def send_warmup_email(self, workspace_id: str, sender_id: str, to: str, subject: str, html: str) -> SendResult:
        """
        Deliver a deliverability-priming message through a pinned inbox.
        Warm-up traffic is never gated by outreach caps and never counted in them.
        """
        message = OutboundMessage(sender_account_id=sender_id, to=to, subject=subject, html=html)
        failure = await self._deliver(message)
        if failure:
            return SendResult(success=False, sender_account_id=sender_id, error=failure)

        self.track_warmup_sent(workspace_id, sender_id)
        logger.info("warmup_sent", extra={"workspace_id": workspace_id, "sender_id": sender_id, "to": to})
        return SendResult(success=True, sender_account_id=sender_id)

    async def _deliver(self, message: OutboundMessage):
        """Run the transport; returns None on success or the classified error."""
        try:
            result = await self.transport.send_email(message)
        except Exception as e:
            logger.error(
                f"transport_exception: sender={message.sender_account_id} to={message.to} error={e}",
                exc_info=True,
            )
            return SendLimitError(SendLimitCode.NO_AVAILABLE_INBOX, str(e) or "Email send failed.")

        if not result.success:
            logger.error(
                "transport_failed",
                extra={
                    "sender_id": message.sender_account_id,
                    "to": message.to,
                    "error": (result.error or "")[:200],
                    "error_code": result.error_code,
                },
            )
            details = {"transportCode": result.error_code} if result.error_code is not None else {}
            return SendLimitError(
                SendLimitCode.NO_AVAILABLE_INBOX,
                result.error or "Email send failed.",
                details,
            )
        return None

    # ── post-send tracking ───────────────────────────────────────────

    def track_email_sent(self, workspace_id: str, sender_id: str, plan_name: str = None) -> bool:
        """
        Count one delivered outreach email against the sender's day and the
        workspace's month. Failures are logged and swallowed: the email is
        already out and must not be reported as failed or re-sent.
        Returns True when both counters persisted.
        """
        date_key = today_key()
        month = current_month_key()
        ok = True

        try:
            new_daily = self.counters.increment_sender_daily(sender_id, date_key)
        except Exception as e:
            ok = False
            logger.error(f"tracking_failed: counter=sender_daily sender={sender_id} error={e}")
        else:
            if plan_name is not None and new_daily is not None:
                daily_max = resolve_limits(plan_name).emails_per_day_per_inbox
                if new_daily > daily_max:
                    logger.warning(
                        "daily_cap_overshoot",
                        extra={"sender_id": sender_id, "daily_sent": new_daily, "daily_max": daily_max},
                    )

        try:
            self.counters.increment_workspace_usage(workspace_id, date_key, month, emails=1)
        except Exception as e:
            ok = False
            logger.error(f"tracking_failed: counter=workspace_usage workspace={workspace_id} error={e}")

        return ok

    def track_warmup_sent(self, workspace_id: str, sender_id: str) -> bool:
        """Warm-up sends touch only the warm-up counters."""
        date_key = today_key()
        month = current_month_key()
        ok = True

        try:
            self.counters.increment_sender_warmup(sender_id, date_key)
        except Exception as e:
            ok = False
            logger.error(f"tracking_failed: counter=sender_warmup sender={sender_id} error={e}")

        try:
            self.counters.increment_workspace_usage(workspace_id, date_key, month, warmup=1)
        except Exception as e:
            ok = False
            logger.error(f"tracking_failed: counter=workspace_warmup workspace={workspace_id} error={e}")

        return ok
