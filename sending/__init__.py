"""
Outbound Send Quota & Inbox Rotation Engine

Decides, for every outbound email an automation wants to send, whether it may
go out now and through which inbox. All state lives in the counter store, so
any number of workers can run these functions side by side.

Modules:
    plan_limits.py     — plan name → PlanLimits (fails closed to the smallest tier)
    counter_store.py   — daily per-sender / monthly per-workspace counters (MongoDB)
    sender_registry.py — connected, outreach-enabled inboxes of a workspace
    admission.py       — pre-flight checks (monthly, daily, inbox count, usage warnings)
    inbox_selector.py  — least-loaded round robin over available inboxes
    orchestrator.py    — select → send → track, one sequence email at a time
    transport.py       — SMTP (aiosmtplib) and hosted-function (aiohttp) delivery
    pacing.py          — random delays between consecutive sends
    alerts.py          — webhook alerts for quota events
"""

from sending.models import (
    Decision,
    PlanLimits,
    Selection,
    SenderAccount,
    SendLimitCode,
    SendLimitError,
    SendResult,
    SequenceSendRequest,
)

__all__ = [
    "Decision",
    "PlanLimits",
    "Selection",
    "SenderAccount",
    "SendLimitCode",
    "SendLimitError",
    "SendResult",
    "SequenceSendRequest",
]
