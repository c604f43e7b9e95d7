"""Request lifecycle state machine using transitions library.

One table (TRANSITIONS) defines every legal stage change, the single role
allowed to make it, and any guard it needs. The permission gate and the
store both read from it; adding a stage or role means editing this table
and nothing else.

Usage:
    from reqflow.workflow.fsm import RequestLifecycle

    lifecycle = RequestLifecycle("REQ-001", Stage.READY_FOR_DEV)
    lifecycle.move_to(Stage.IN_PROGRESS)
"""

import logging
from typing import Callable

from transitions import Machine, MachineError

from reqflow.lib.models import Stage

logger = logging.getLogger(__name__)


STATES = [stage.value for stage in Stage]

# Transitions defined as (trigger, source, dest, role[, guard])
# Each trigger becomes a method on the lifecycle model.
# New requests are born in Scoping by the store; Intake -> Scoping is not a
# role-gated move and has no entry here.
TRANSITIONS = [
    # Product owner signs off scope once BRD, FSD and tech spec are approved
    {"trigger": "approve_scope", "source": "Scoping", "dest": "Ready for Dev",
     "role": "product-owner", "conditions": "documents_approved"},

    # Developer picks up the work (and becomes its owner)
    {"trigger": "start_work", "source": "Ready for Dev", "dest": "In Progress", "role": "dev"},

    # Developer bounces unclear scope back, with a reason
    {"trigger": "reject_scope", "source": "Ready for Dev", "dest": "Scoping",
     "role": "dev", "conditions": "has_note"},

    {"trigger": "submit_for_review", "source": "In Progress", "dest": "Review", "role": "dev"},

    # Requester outcomes
    {"trigger": "accept", "source": "Review", "dest": "Completed", "role": "requester"},
    {"trigger": "request_changes", "source": "Review", "dest": "In Progress",
     "role": "requester", "conditions": "has_note"},
]

GUARD_MESSAGES = {
    "documents_approved": "all generated documents must be approved",
    "has_note": "a reason is required",
}

# Keys understood by transitions.Machine; the rest are our annotations.
_MACHINE_KEYS = ("trigger", "source", "dest", "conditions")


def _build_lookup(key: str) -> dict[tuple[str, str], str]:
    """Build lookup from (source, dest) -> transition[key]."""
    lookup: dict[tuple[str, str], str] = {}
    for t in TRANSITIONS:
        edge = (t["source"], t["dest"])
        if edge not in lookup and key in t:
            lookup[edge] = t[key]
    return lookup


TRIGGER_FOR = _build_lookup("trigger")
ROLE_FOR = _build_lookup("role")
GUARD_FOR = _build_lookup("conditions")

_MACHINE_TRANSITIONS = [{k: t[k] for k in _MACHINE_KEYS if k in t} for t in TRANSITIONS]


class InvalidTransition(Exception):
    """Raised when a stage change is unknown or its guard isn't satisfied."""

    def __init__(self, from_state: str, to_state: Stage, request_id: str = "", reason: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.request_id = request_id
        self.reason = reason
        super().__init__(
            f"Invalid transition: {from_state} -> {to_state.value}"
            + (f" (request: {request_id})" if request_id else "")
            + (f": {reason}" if reason else "")
        )


class RequestLifecycle:
    """State machine for one request's stage.

    Wraps the transitions library:
    - Starts at the request's current stage
    - Guards check the event kwargs passed to move_to()
    - Logs all transitions
    """

    def __init__(
        self,
        request_id: str,
        stage: Stage,
        on_transition: Callable[[str, str, str], None] | None = None,
    ):
        """
        Args:
            request_id: Request the machine belongs to (for logging)
            stage: Current stage
            on_transition: Optional callback(from_state, to_state, trigger) called after transitions
        """
        self.request_id = request_id
        self.on_transition = on_transition

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=_MACHINE_TRANSITIONS,
            initial=stage.value,
            auto_transitions=False,  # Only explicit transitions
            send_event=True,  # Pass EventData to guards and callbacks
            after_state_change="on_state_change",
        )

    @property
    def stage(self) -> Stage:
        return Stage(self.state)

    def documents_approved(self, event) -> bool:
        return bool(event.kwargs.get("documents_approved"))

    def has_note(self, event) -> bool:
        return bool((event.kwargs.get("note") or "").strip())

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.info(f"[FSM] {self.request_id}: {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    def move_to(self, dest: Stage, note: str = "", documents_approved: bool = False) -> str:
        """Fire the trigger for current stage -> dest.

        Returns:
            The trigger name that was fired

        Raises:
            InvalidTransition: If there is no such edge or its guard fails
        """
        source = self.state
        trigger = TRIGGER_FOR.get((source, dest.value))
        if trigger is None:
            raise InvalidTransition(source, dest, self.request_id)

        try:
            fired = getattr(self, trigger)(note=note, documents_approved=documents_approved)
        except MachineError as e:
            raise InvalidTransition(source, dest, self.request_id) from e

        if not fired:
            guard = GUARD_FOR.get((source, dest.value), "")
            raise InvalidTransition(source, dest, self.request_id, GUARD_MESSAGES.get(guard, "guard failed"))
        return trigger

    def get_available_triggers(self) -> list[str]:
        """Get list of triggers available in current stage."""
        return self.machine.get_triggers(self.state)
