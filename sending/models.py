"""
Value types shared by the quota engine.

Only SendLimitError and SendResult travel back to automation / UI callers;
everything else stays inside the engine.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class SendLimitCode:
    MONTHLY_EMAIL_WORKSPACE = "MONTHLY_EMAIL_WORKSPACE"
    DAILY_EMAIL_PER_INBOX = "DAILY_EMAIL_PER_INBOX"
    NO_AVAILABLE_INBOX = "NO_AVAILABLE_INBOX"
    INBOX_LIMIT_REACHED = "INBOX_LIMIT_REACHED"

    ALL = frozenset({
        MONTHLY_EMAIL_WORKSPACE,
        DAILY_EMAIL_PER_INBOX,
        NO_AVAILABLE_INBOX,
        INBOX_LIMIT_REACHED,
    })


class SenderStatus:
    CONNECTED = "connected"
    NEEDS_REAUTH = "needs_reauth"
    DISABLED = "disabled"


@dataclass(frozen=True)
class PlanLimits:
    max_inboxes: int
    emails_per_day_per_inbox: int
    emails_per_month: int
    linkedin_per_day: int
    linkedin_per_month: int


@dataclass
class SenderAccount:
    """A connected sending identity ("inbox") owned by a workspace."""

    id: str
    workspace_id: str
    from_email: str = ""
    from_name: str = ""
    provider: str = "smtp"
    display_name: str = ""
    status: str = SenderStatus.CONNECTED
    use_for_outreach: bool = True
    is_default: bool = False
    warmup_enabled: bool = False

    @property
    def is_outreach_ready(self) -> bool:
        return self.status == SenderStatus.CONNECTED and self.use_for_outreach

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "SenderAccount":
        return cls(
            id=str(doc.get("id") or doc.get("_id")),
            workspace_id=str(doc.get("workspace_id", "")),
            from_email=doc.get("from_email") or "",
            from_name=doc.get("from_name") or "",
            provider=doc.get("provider") or "smtp",
            display_name=doc.get("display_name") or "",
            status=doc.get("status") or SenderStatus.CONNECTED,
            use_for_outreach=bool(doc.get("use_for_outreach", True)),
            is_default=bool(doc.get("is_default", False)),
            warmup_enabled=bool(doc.get("warmup_enabled", False)),
        )


@dataclass
class SendLimitError:
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


@dataclass
class Decision:
    """Outcome of an admission check. Never persisted."""

    allowed: bool
    error: Optional[SendLimitError] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, code: str, message: str, details: Dict[str, Any] = None) -> "Decision":
        return cls(allowed=False, error=SendLimitError(code, message, details or {}))

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None


@dataclass
class Selection:
    """Result of inbox rotation: a sender, or the denial that prevented one."""

    sender: Optional[SenderAccount] = None
    daily_sent: int = 0
    daily_max: int = 0
    error: Optional[SendLimitError] = None

    @property
    def ok(self) -> bool:
        return self.sender is not None and self.error is None


@dataclass
class SequenceSendRequest:
    workspace_id: str
    plan_name: str
    recipient_email: str
    subject: str
    html_body: str
    campaign_id: Optional[str] = None
    sequence_step_id: Optional[str] = None
    preferred_sender_id: Optional[str] = None


@dataclass
class SendResult:
    success: bool
    sender_account_id: str
    error: Optional[SendLimitError] = None

    def to_dict(self) -> dict:
        result = {"success": self.success, "sender_account_id": self.sender_account_id}
        if self.error:
            result["error"] = self.error.to_dict()
        return result


@dataclass
class OutboundMessage:
    sender_account_id: str
    to: str
    subject: str
    html: str
    campaign_id: Optional[str] = None
    sequence_step_id: Optional[str] = None


@dataclass
class TransportResult:
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None
    error_code: Optional[int] = None


@dataclass
class UsageTotals:
    """Workspace usage for one day row, or a month key summed across its day rows."""

    emails_sent: int = 0
    linkedin_actions: int = 0
    ai_credits_used: int = 0
    warmup_emails_sent: int = 0


@dataclass
class UsageWarning:
    type: str
    current: int
    limit: int
    percent: int
