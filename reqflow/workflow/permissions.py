"""Role-based permission gate.

Pure functions answering "may this role do X at this stage?". They never
raise; unknown roles or stages simply get False. Enforcement belongs to the
caller - the store checks the gate before it touches any state.

Usage:
    from reqflow.workflow.permissions import can_transition

    if not can_transition(Role.DEV, Stage.READY_FOR_DEV, Stage.IN_PROGRESS):
        ...
"""

from reqflow.lib.models import Role, Stage
from reqflow.workflow.fsm import ROLE_FOR, TRANSITIONS

# Stages where a role may edit the request beyond taking a transition.
# Everything not listed is read-only for that role.
EDITABLE_STAGES: dict[Role, frozenset[Stage]] = {
    Role.PRODUCT_OWNER: frozenset({Stage.SCOPING}),
    Role.DEV: frozenset({Stage.READY_FOR_DEV, Stage.IN_PROGRESS, Stage.REVIEW}),
}


class PermissionDenied(Exception):
    """Raised by callers that enforce the gate (the gate itself only returns bools)."""

    def __init__(self, role, action: str, request_id: str = ""):
        self.role = role
        self.action = action
        self.request_id = request_id
        role_name = role.value if isinstance(role, Role) else str(role)
        super().__init__(
            f"Role '{role_name}' may not {action}"
            + (f" (request: {request_id})" if request_id else "")
        )


def _value(item) -> str:
    return item.value if hasattr(item, "value") else str(item)


def can_transition(role, from_stage, to_stage) -> bool:
    """True iff the edge exists and role is the one allowed to traverse it.

    Same-stage pairs are never transitions.
    """
    return ROLE_FOR.get((_value(from_stage), _value(to_stage))) == _value(role)


def available_transitions(role, stage) -> list[Stage]:
    """Stages this role may move a request to from stage."""
    return [
        Stage(t["dest"])
        for t in TRANSITIONS
        if t["source"] == _value(stage) and t["role"] == _value(role)
    ]


def is_read_only(role, stage) -> bool:
    """True unless role owns editing at this stage.

    Requesters and management are read-only everywhere; a requester's Review
    decisions go through can_transition, not through edit access.
    """
    try:
        role, stage = Role(_value(role)), Stage(_value(stage))
    except ValueError:
        return True
    return stage not in EDITABLE_STAGES.get(role, frozenset())


def can_generate_documents(role, stage) -> bool:
    """Only product owners, only during Scoping."""
    return _value(role) == Role.PRODUCT_OWNER.value and _value(stage) == Stage.SCOPING.value


def can_approve_documents(role, stage) -> bool:
    """Only product owners, only during Scoping."""
    return _value(role) == Role.PRODUCT_OWNER.value and _value(stage) == Stage.SCOPING.value
