"""
Alerting — webhook notifications (Slack, Discord, Telegram) for quota events.

Supports:
- Usage warnings (a daily or monthly cap is 80%+ used)
- Workspace-wide denials (monthly cap hit, every inbox exhausted, no inbox)

Configuration via env vars:
    ALERT_WEBHOOK_URL=https://hooks.slack.com/services/...
    ALERT_CHANNEL=slack  (or 'discord', 'telegram')
"""

import asyncio
import logging
from datetime import datetime
from typing import List

import aiohttp

import config
from sending.models import SendLimitCode, SendLimitError, UsageWarning

logger = logging.getLogger("outbound.alerts")


class AlertLevel:
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


_LEVEL_COLORS = {
    AlertLevel.CRITICAL: 0xFF0000,
    AlertLevel.WARNING: 0xFFA500,
    AlertLevel.INFO: 0x36A64F,
}
_DEFAULT_COLOR = 0x808080
_FOOTER = "Outbound Sending"


def _build_slack_payload(title: str, message: str, level: str) -> dict:
    color = _LEVEL_COLORS.get(level, _DEFAULT_COLOR)
    return {"attachments": [{
        "color": f"#{color:06X}",
        "title": title,
        "text": message,
        "footer": _FOOTER,
        "ts": int(datetime.utcnow().timestamp()),
    }]}


def _build_discord_payload(title: str, message: str, level: str) -> dict:
    return {"embeds": [{
        "title": title,
        "description": message,
        "color": _LEVEL_COLORS.get(level, _DEFAULT_COLOR),
        "footer": {"text": _FOOTER},
        "timestamp": datetime.utcnow().isoformat(),
    }]}


def _build_telegram_payload(title: str, message: str, level: str = AlertLevel.INFO) -> dict:
    return {
        "chat_id": config.TELEGRAM_CHAT_ID,
        "text": f"*{title}*\n\n{message}",
        "parse_mode": "Markdown",
    }


_PAYLOAD_BUILDERS = {
    "slack": _build_slack_payload,
    "discord": _build_discord_payload,
    "telegram": _build_telegram_payload,
}


def _webhook_url(channel: str) -> str:
    # Telegram takes the bot token in place of a webhook URL
    if channel == "telegram":
        return f"https://api.telegram.org/bot{config.ALERT_WEBHOOK_URL}/sendMessage"
    return config.ALERT_WEBHOOK_URL


async def send_alert(message: str, level: str = AlertLevel.INFO, title: str = None) -> bool:
    """
    Post one alert to the configured webhook.

    Returns True when the webhook accepted it. A missing webhook, an error
    status or a network failure is logged and returns False.
    """
    if not config.ALERT_WEBHOOK_URL:
        logger.debug("alert_skipped", extra={"level": level, "alert": message[:80]})
        return False

    channel = config.ALERT_CHANNEL if config.ALERT_CHANNEL in _PAYLOAD_BUILDERS else "slack"
    heading = title or f"{_FOOTER}: {level.upper()}"
    payload = _PAYLOAD_BUILDERS[channel](heading, message, level)

    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(_webhook_url(channel), json=payload, timeout=aiohttp.ClientTimeout(total=10)) as resp:
                if resp.status in (200, 204):
                    logger.info("alert_sent", extra={"channel": channel, "level": level, "title": heading[:60]})
                    return True
                body = await resp.text()
                logger.error("alert_rejected", extra={"channel": channel, "status": resp.status, "body": body[:200]})
                return False
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error("alert_failed", extra={"channel": channel, "error": str(e)[:200]})
        return False


# ── Pre-built alert functions ────────────────────────────────────────

_WORKSPACE_WIDE_TITLES = {
    SendLimitCode.MONTHLY_EMAIL_WORKSPACE: "Monthly Email Limit Reached",
    SendLimitCode.DAILY_EMAIL_PER_INBOX: "All Inboxes At Daily Limit",
    SendLimitCode.NO_AVAILABLE_INBOX: "No Sending Inbox Available",
}


async def alert_usage_warnings(workspace_id: str, warnings: List[UsageWarning]) -> bool:
    if not warnings:
        return False
    lines = [f"Workspace `{workspace_id}`:"]
    for w in warnings:
        lines.append(f"• {w.type}: {w.current}/{w.limit} used ({w.percent}%)")
    return await send_alert("\n".join(lines), AlertLevel.WARNING, "Quota Near Limit")


async def alert_send_denied(workspace_id: str, error: SendLimitError) -> bool:
    """Alert on workspace-wide denials only; a single capped inbox is routine."""
    if error.code not in _WORKSPACE_WIDE_TITLES:
        return False
    if error.code == SendLimitCode.DAILY_EMAIL_PER_INBOX and error.details.get("senderId"):
        return False

    level = AlertLevel.CRITICAL if error.code == SendLimitCode.NO_AVAILABLE_INBOX else AlertLevel.WARNING
    return await send_alert(
        message=f"Workspace `{workspace_id}`: {error.message}",
        level=level,
        title=_WORKSPACE_WIDE_TITLES[error.code],
    )
