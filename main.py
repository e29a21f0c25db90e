#!/usr/bin/env python3
"""
Outbound Send Quota & Inbox Rotation — operator CLI
====================================================

Usage:
    python main.py init-db
    python main.py check <workspace_id> --plan Growth [--sender <sender_id>]
    python main.py select <workspace_id> --plan Growth
    python main.py capacity <workspace_id> --plan Growth
    python main.py usage <workspace_id> --plan Growth [--alert]
    python main.py send <workspace_id> --plan Growth --to a@b.com --subject "Hi" --html "<p>Hi</p>"
"""

import argparse
import asyncio
import json
import logging
import sys

import config
import database
from sending.admission import AdmissionController
from sending.alerts import alert_send_denied, alert_usage_warnings
from sending.counter_store import MongoCounterStore, current_month_key
from sending.inbox_selector import InboxSelector
from sending.models import SequenceSendRequest
from sending.orchestrator import SendOrchestrator
from sending.plan_limits import resolve_limits, resolve_plan_name
from sending.sender_registry import MongoSenderRegistry
from sending.transport import build_transport
from utils import setup_elk_logging, setup_logging

logger = logging.getLogger("outbound.cli")


def configure_logging():
    if config.LOG_FORMAT == "json":
        setup_elk_logging(config.LOG_LEVEL, config.LOG_FILE)
    else:
        setup_logging(config.LOG_LEVEL, config.LOG_FILE)


def _print_json(data: dict):
    print(json.dumps(data, indent=2, default=str))


def init_db():
    database.ensure_indexes()
    print("✅ Indexes created")


def check(workspace_id: str, plan: str, sender_id: str = None) -> int:
    admission = AdmissionController(MongoCounterStore(), MongoSenderRegistry())
    decision = admission.check_send_allowed(workspace_id, plan, sender_id)
    _print_json({
        "allowed": decision.allowed,
        "error": decision.error.to_dict() if decision.error else None,
    })
    return 0 if decision.allowed else 2


def select(workspace_id: str, plan: str) -> int:
    selector = InboxSelector(MongoCounterStore(), MongoSenderRegistry())
    selection = selector.select_inbox(workspace_id, plan)
    if not selection.ok:
        _print_json({"error": selection.error.to_dict()})
        return 2
    _print_json({
        "sender_id": selection.sender.id,
        "from_email": selection.sender.from_email,
        "daily_sent": selection.daily_sent,
        "daily_max": selection.daily_max,
    })
    return 0


def capacity(workspace_id: str, plan: str) -> int:
    admission = AdmissionController(MongoCounterStore(), MongoSenderRegistry())
    decision = admission.check_inbox_capacity(workspace_id, plan)
    _print_json({
        "can_add_inbox": decision.allowed,
        "error": decision.error.to_dict() if decision.error else None,
    })
    return 0 if decision.allowed else 2


def usage(workspace_id: str, plan: str, alert: bool = False) -> int:
    counters = MongoCounterStore()
    admission = AdmissionController(counters, MongoSenderRegistry())
    limits = resolve_limits(plan)
    month = current_month_key()
    totals = counters.get_workspace_monthly_usage(workspace_id, month)
    warnings = admission.usage_warnings(workspace_id, plan)

    _print_json({
        "plan": resolve_plan_name(plan),
        "month": month,
        "emails_sent": totals.emails_sent,
        "emails_per_month": limits.emails_per_month,
        "linkedin_actions": totals.linkedin_actions,
        "ai_credits_used": totals.ai_credits_used,
        "warmup_emails_sent": totals.warmup_emails_sent,
        "warnings": [w.__dict__ for w in warnings],
    })

    if alert and warnings:
        asyncio.run(alert_usage_warnings(workspace_id, warnings))
    return 0


def send(args) -> int:
    counters = MongoCounterStore()
    registry = MongoSenderRegistry()
    orchestrator = SendOrchestrator(counters, registry, build_transport(registry))

    req = SequenceSendRequest(
        workspace_id=args.workspace_id,
        plan_name=args.plan,
        recipient_email=args.to,
        subject=args.subject,
        html_body=args.html,
        campaign_id=args.campaign,
        sequence_step_id=args.step,
        preferred_sender_id=args.sender,
    )

    async def _run():
        result = await orchestrator.send_sequence_email(req)
        # no inbox was picked: the whole workspace is blocked, not one send
        if not result.success and not result.sender_account_id:
            await alert_send_denied(req.workspace_id, result.error)
        return result

    result = asyncio.run(_run())
    _print_json(result.to_dict())
    return 0 if result.success else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Outbound send quota & inbox rotation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py check ws_123 --plan Growth
  python main.py check ws_123 --plan Growth --sender snd_1
  python main.py select ws_123 --plan Starter
  python main.py usage ws_123 --plan Scale --alert
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("init-db", help="Create MongoDB indexes")

    check_parser = subparsers.add_parser("check", help="Can this workspace (or inbox) send one more email?")
    check_parser.add_argument("workspace_id", help="Workspace ID")
    check_parser.add_argument("--plan", required=True, help="Plan name")
    check_parser.add_argument("--sender", help="Check a specific sender account")

    select_parser = subparsers.add_parser("select", help="Show which inbox the next send would use")
    select_parser.add_argument("workspace_id", help="Workspace ID")
    select_parser.add_argument("--plan", required=True, help="Plan name")

    capacity_parser = subparsers.add_parser("capacity", help="Can this workspace connect another inbox?")
    capacity_parser.add_argument("workspace_id", help="Workspace ID")
    capacity_parser.add_argument("--plan", required=True, help="Plan name")

    usage_parser = subparsers.add_parser("usage", help="Monthly usage and threshold warnings")
    usage_parser.add_argument("workspace_id", help="Workspace ID")
    usage_parser.add_argument("--plan", required=True, help="Plan name")
    usage_parser.add_argument("--alert", action="store_true", help="Post warnings to the alert webhook")

    send_parser = subparsers.add_parser("send", help="Send one sequence email through the quota engine")
    send_parser.add_argument("workspace_id", help="Workspace ID")
    send_parser.add_argument("--plan", required=True, help="Plan name")
    send_parser.add_argument("--to", required=True, help="Recipient email")
    send_parser.add_argument("--subject", required=True, help="Subject line")
    send_parser.add_argument("--html", required=True, help="HTML (or plain text) body")
    send_parser.add_argument("--sender", help="Pin a sender account (no fallback)")
    send_parser.add_argument("--campaign", help="Campaign ID")
    send_parser.add_argument("--step", help="Sequence step ID")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging()

    if args.command == "init-db":
        init_db()
        return 0
    elif args.command == "check":
        return check(args.workspace_id, args.plan, args.sender)
    elif args.command == "select":
        return select(args.workspace_id, args.plan)
    elif args.command == "capacity":
        return capacity(args.workspace_id, args.plan)
    elif args.command == "usage":
        return usage(args.workspace_id, args.plan, alert=args.alert)
    elif args.command == "send":
        return send(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
