"""
Request list helpers: priority ordering and per-role visibility.
"""

from datetime import datetime, timezone
from typing import Optional

from reqflow.lib.models import Priority, Request, Role, Stage

PRIORITY_RANK: dict[Priority, int] = {
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def sort_by_priority(requests: list[Request]) -> list[Request]:
    """High -> Medium -> Low, newest first within a priority.

    Requests without createdAt sort after dated ones of the same priority.
    """
    return sorted(
        requests,
        key=lambda r: (PRIORITY_RANK[r.priority], r.created_at or _EPOCH),
        reverse=True,
    )


def filter_by_view(requests: list[Request], role: Role, user: Optional[str] = None) -> list[Request]:
    """Requests visible to a role.

    Requesters see what they submitted. Developers see what they own plus
    anything waiting in Ready for Dev. Management and product owners see all.
    """
    if role == Role.REQUESTER:
        return [r for r in requests if r.submitted_by == user]
    if role == Role.DEV:
        return [r for r in requests if r.owner == user or r.stage == Stage.READY_FOR_DEV]
    return list(requests)
