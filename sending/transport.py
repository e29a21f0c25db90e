"""
Transports — the only place an email actually leaves the system.

Two implementations:
- SmtpTransport:     direct SMTP per sender (aiosmtplib), credentials from config
- FunctionTransport: POST to the hosted "send-email" function (aiohttp)

Both return a TransportResult instead of raising for delivery problems; the
orchestrator still guards against anything unexpected escaping.
"""

import asyncio
import html
import json
import logging
import re
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Dict

import aiohttp
import aiosmtplib

import config
from sending.models import OutboundMessage, TransportResult
from sending.sender_registry import SenderRegistry

logger = logging.getLogger("outbound.transport")

_TAG_RE = re.compile(r"<[^>]+>")
_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_BREAK_RE = re.compile(r"<\s*(br|/p|/div)\s*/?>", re.IGNORECASE)


def text_to_html(text: str) -> str:
    """Wrap a plain text body in paragraphs; blank lines split paragraphs."""
    paragraphs = [p.strip("\n") for p in _PARAGRAPH_RE.split(html.escape(text, quote=False))]
    body = "</p><p>".join(p.replace("\n", "<br>") for p in paragraphs if p)
    return f'<html><body style="font-family: Arial, sans-serif; font-size: 14px;"><p>{body}</p></body></html>'


def html_to_text(body: str) -> str:
    """Plain-text alternative for an HTML body."""
    text = _TAG_RE.sub("", _BREAK_RE.sub("\n", body))
    text = html.unescape(text).replace("\xa0", " ")
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def looks_like_html(body: str) -> bool:
    return bool(_TAG_RE.search(body or ""))


class Transport:
    async def send_email(self, message: OutboundMessage) -> TransportResult:
        raise NotImplementedError


class SmtpTransport(Transport):
    """
    Direct SMTP delivery. Fresh connection per send: providers drop idle
    connections, and sends for different inboxes need different logins.
    """

    def __init__(
        self,
        registry: SenderRegistry,
        accounts: Dict[str, Dict[str, str]] = None,
        host: str = None,
        port: int = None,
        timeout: int = None,
    ):
        self.registry = registry
        self.accounts = accounts if accounts is not None else config.SMTP_ACCOUNTS
        self.smtp_host = host or config.SMTP_HOST
        self.smtp_port = port or config.SMTP_PORT
        self.timeout = timeout or config.SMTP_TIMEOUT

    def build_message(self, message: OutboundMessage, from_email: str, from_name: str = "") -> MIMEMultipart:
        if looks_like_html(message.html):
            html_body = message.html
            plain_body = html_to_text(message.html)
        else:
            html_body = text_to_html(message.html)
            plain_body = message.html

        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(plain_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        domain = from_email.split("@")[1] if "@" in from_email else None
        msg["Message-ID"] = make_msgid(domain=domain)
        msg["Subject"] = message.subject
        msg["From"] = formataddr((from_name, from_email)) if from_name else from_email
        msg["To"] = message.to
        if message.campaign_id:
            msg["X-Campaign-Id"] = message.campaign_id
        if message.sequence_step_id:
            msg["X-Sequence-Step-Id"] = message.sequence_step_id
        return msg

    async def send_email(self, message: OutboundMessage) -> TransportResult:
        sender = self.registry.get_sender(message.sender_account_id)
        if sender is None:
            return TransportResult(success=False, error=f"Unknown sender account {message.sender_account_id}")

        from_email = sender.from_email
        credentials = self.accounts.get(from_email.lower())
        if not credentials:
            return TransportResult(success=False, error=f"No SMTP credentials configured for {from_email}")

        msg = self.build_message(message, from_email, sender.from_name)
        message_id = msg["Message-ID"]

        smtp = aiosmtplib.SMTP(
            hostname=self.smtp_host,
            port=self.smtp_port,
            timeout=self.timeout,
            start_tls=True,
        )
        try:
            logger.debug(f"Connecting to {self.smtp_host}:{self.smtp_port} as {from_email}")
            try:
                await smtp.connect()
                await smtp.login(from_email, credentials["password"])
                await smtp.sendmail(from_email, [message.to], msg.as_string())
                await smtp.quit()
            finally:
                # quit() already closed it on success
                if smtp.is_connected:
                    smtp.close()

            logger.info(
                "smtp_transmitted",
                extra={"to": message.to, "from": from_email, "message_id": message_id[:40]},
            )
            return TransportResult(success=True, message_id=message_id)

        except aiosmtplib.SMTPException as e:
            error_code = getattr(e, "code", None)
            logger.error(
                "smtp_error",
                extra={"to": message.to, "from": from_email, "error_code": error_code, "error": str(e)[:200]},
            )
            return TransportResult(
                success=False,
                error=f"SMTP error sending to {message.to}: {e}",
                error_code=error_code,
            )

        except (asyncio.TimeoutError, OSError) as e:
            return TransportResult(success=False, error=f"Connection timeout to {message.to}: {e}")


class FunctionTransport(Transport):
    """Hands the message to the hosted send-email function, which owns the provider secrets."""

    def __init__(self, url: str = None, token: str = None, timeout: int = None):
        self.url = url or config.SEND_FUNCTION_URL
        self.token = token or config.SEND_FUNCTION_TOKEN
        self.timeout = timeout or config.SEND_FUNCTION_TIMEOUT

    @staticmethod
    def build_payload(message: OutboundMessage) -> dict:
        payload = {
            "senderAccountId": message.sender_account_id,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        if message.campaign_id:
            payload["campaignId"] = message.campaign_id
        if message.sequence_step_id:
            payload["sequenceStepId"] = message.sequence_step_id
        return payload

    async def send_email(self, message: OutboundMessage) -> TransportResult:
        if not self.url:
            return TransportResult(success=False, error="SEND_FUNCTION_URL is not configured")

        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.url,
                    json=self.build_payload(message),
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    body = await resp.text()
                    if 200 <= resp.status < 300:
                        try:
                            data = json.loads(body) if body else {}
                        except ValueError:
                            data = {}
                        message_id = data.get("messageId") if isinstance(data, dict) else None
                        logger.info(
                            "function_transmitted",
                            extra={"to": message.to, "sender_id": message.sender_account_id},
                        )
                        return TransportResult(success=True, message_id=message_id)

                    logger.error(f"send_function_returned {resp.status}: {body[:200]}")
                    return TransportResult(
                        success=False,
                        error=f"Send function returned {resp.status}: {body[:200]}",
                        error_code=resp.status,
                    )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return TransportResult(success=False, error=f"Send function unreachable: {e}")


def build_transport(registry: SenderRegistry) -> Transport:
    if config.TRANSPORT == "function":
        return FunctionTransport()
    return SmtpTransport(registry)
