"""
Plan Limit Resolver — maps a billing plan name to outbound caps.

Plan names arrive from the billing layer in whatever shape they were stored:
mixed case, legacy tiers ("Professional", "Enterprise"), or garbage. Anything
that cannot be mapped resolves to the most restrictive known tier, never to
an unlimited one.
"""

import logging
from typing import Dict, Optional

import config
from sending.models import PlanLimits

logger = logging.getLogger("outbound.plan_limits")


OUTBOUND_LIMITS: Dict[str, PlanLimits] = {
    "Starter": PlanLimits(
        max_inboxes=2,
        emails_per_day_per_inbox=50,
        emails_per_month=500,
        linkedin_per_day=20,
        linkedin_per_month=600,
    ),
    "Growth": PlanLimits(
        max_inboxes=5,
        emails_per_day_per_inbox=60,
        emails_per_month=10_000,
        linkedin_per_day=40,
        linkedin_per_month=1_200,
    ),
    "Scale": PlanLimits(
        max_inboxes=15,
        emails_per_day_per_inbox=80,
        emails_per_month=50_000,
        linkedin_per_day=100,
        linkedin_per_month=3_000,
    ),
}


def most_restrictive_plan() -> str:
    """Known plan with the smallest monthly allowance (ties: smaller daily cap)."""
    return min(
        OUTBOUND_LIMITS,
        key=lambda name: (
            OUTBOUND_LIMITS[name].emails_per_month,
            OUTBOUND_LIMITS[name].emails_per_day_per_inbox,
        ),
    )


def resolve_plan_name(raw: Optional[str]) -> str:
    """Normalize a raw plan name to a canonical catalog key."""
    name = (raw or "").strip()
    if not name:
        return most_restrictive_plan()

    for plan in config.KNOWN_PLANS:
        if plan.lower() == name.lower() and plan in OUTBOUND_LIMITS:
            return plan

    alias = config.LEGACY_PLAN_ALIASES.get(name.lower())
    if alias in OUTBOUND_LIMITS:
        return alias

    fallback = most_restrictive_plan()
    logger.warning(f"unknown_plan: {raw!r} -> {fallback}")
    return fallback


def get_outbound_limits(canonical: str) -> PlanLimits:
    limits = OUTBOUND_LIMITS.get(canonical)
    if limits is None:
        return OUTBOUND_LIMITS[most_restrictive_plan()]
    return limits


def resolve_limits(plan_name: Optional[str]) -> PlanLimits:
    return get_outbound_limits(resolve_plan_name(plan_name))
