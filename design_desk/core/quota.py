"""
Quota accounting for client plans.

Decides how many design requests a client has left and whether the
current request consumes one.

Decision order:
1. Unlimited plan inside the promotional window - capped display, no charge
2. Unlimited plan after the window - capped display, no charge
3. Remaining above the display ceiling - capped display, no charge
4. Everything else - exact remaining (zero and negatives included), charge one
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from design_desk.config.loader import QuotaPolicy
from design_desk.storage.models import ClientRecord


class QuotaReason(Enum):
    """Which rule produced a quota decision."""
    UNLIMITED_PROMOTION = "unlimited_promotion"
    UNLIMITED = "unlimited"
    ABOVE_CEILING = "above_ceiling"
    METERED = "metered"


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check for one request."""
    display: str
    consume: bool
    reason: QuotaReason
    remaining: Optional[int] = None


def decide_quota(record: ClientRecord, now: datetime, policy: QuotaPolicy) -> QuotaDecision:
    """Decide the remaining-count display for a client at `now`.

    The remaining count is taken before this request is charged, so a
    client with quota 5 and 4 used sees "1" and ends with 5 used.

    Args:
        record: Client plan being charged
        now: Current local time
        policy: Cutoff, ceiling and sentinel shared by all clients

    Returns:
        QuotaDecision describing what to show and whether to charge
    """
    unlimited = record.monthly_quota == policy.unlimited_sentinel

    if unlimited and now < policy.unlimited_cutoff:
        return QuotaDecision(policy.capped_display, False, QuotaReason.UNLIMITED_PROMOTION)

    if unlimited:
        return QuotaDecision(policy.capped_display, False, QuotaReason.UNLIMITED)

    remaining = record.monthly_quota - record.used
    if remaining > policy.display_ceiling:
        return QuotaDecision(policy.capped_display, False, QuotaReason.ABOVE_CEILING, remaining)

    # Over-quota clients see the negative number, never a clamped zero
    return QuotaDecision(str(remaining), True, QuotaReason.METERED, remaining)


def consume_request(
    record: ClientRecord,
    now: datetime,
    policy: QuotaPolicy
) -> Tuple[QuotaDecision, ClientRecord]:
    """Decide and apply the charge.

    Returns:
        The decision and the record to persist (unchanged when nothing
        was charged)
    """
    decision = decide_quota(record, now, policy)
    if decision.consume:
        record = record.with_used(record.used + 1)
    return decision, record
