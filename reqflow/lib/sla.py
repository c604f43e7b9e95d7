"""
SLA calculator.

Derives a delivery deadline and on-time/at-risk/overdue status from a
request's complexity and creation time. Pure: never mutates the request,
and the same inputs at the same instant give the same result.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from reqflow.lib.models import Complexity, Request, SLAData, SLAStatus, utc_now

SLA_DAYS: dict[Complexity, int] = {
    Complexity.SIMPLE: 5,
    Complexity.MEDIUM: 8,
    Complexity.COMPLEX: 14,
}

AT_RISK_DAYS = 2


def sla_days(complexity: Optional[Complexity]) -> int:
    """Calendar days allowed for a complexity. Absent complexity counts as medium."""
    return SLA_DAYS[complexity or Complexity.MEDIUM]


def _utc_date(value: datetime) -> date:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).date()


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, both truncated to UTC midnight first."""
    return (_utc_date(end) - _utc_date(start)).days


def sla_status(days_remaining: int) -> SLAStatus:
    if days_remaining < 0:
        return SLAStatus.OVERDUE
    if days_remaining <= AT_RISK_DAYS:
        return SLAStatus.AT_RISK
    return SLAStatus.ON_TIME


def created_at_or_estimate(request: Request, now: datetime) -> datetime:
    """Creation time, or now minus days_open for records that predate createdAt."""
    if request.created_at is not None:
        return request.created_at
    return now - timedelta(days=request.days_open)


def calculate_sla(request: Request, now: Optional[datetime] = None) -> SLAData:
    """Calculate SLA data for a request."""
    now = now or utc_now()
    target = created_at_or_estimate(request, now) + timedelta(days=sla_days(request.complexity))

    days_remaining = days_between(now, target)
    status = sla_status(days_remaining)

    return SLAData(
        target_completion_date=_utc_date(target).isoformat(),
        days_remaining=days_remaining,
        status=status,
        days_overdue=abs(days_remaining) if status == SLAStatus.OVERDUE else None,
    )


def sla_for(request: Request, now: Optional[datetime] = None) -> SLAData:
    """Cached SLA when the record carries one, otherwise computed."""
    if request.sla is not None:
        return request.sla
    return calculate_sla(request, now)


def _days(n: int) -> str:
    return f"{n} {'day' if n == 1 else 'days'}"


def format_sla_text(sla: SLAData) -> str:
    """Short human-readable SLA summary, e.g. '2 days overdue'."""
    if sla.status == SLAStatus.OVERDUE:
        return f"{_days(sla.days_overdue or 0)} overdue"
    if sla.status == SLAStatus.AT_RISK:
        return f"Due in {_days(sla.days_remaining)}"
    return f"{_days(sla.days_remaining)} remaining"
