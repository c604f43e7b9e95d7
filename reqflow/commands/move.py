"""
reqflow move - Move a request to another stage.
"""

from reqflow.lib.models import Actor, Role, Stage
from reqflow.workflow.permissions import available_transitions


def parse_stage(text: str) -> Stage:
    """Accept 'Ready for Dev', 'ready-for-dev' or 'READY_FOR_DEV'."""
    normalized = text.strip().lower().replace("-", " ").replace("_", " ")
    for stage in Stage:
        if stage.value.lower() == normalized:
            return stage
    raise ValueError(f"Unknown stage: {text}")


async def cmd_move(args, app) -> int:
    actor = Actor(name=args.user, role=Role(args.role))
    target = parse_stage(args.stage)
    current = app.store.get(args.id)

    allowed = available_transitions(actor.role, current.stage)
    if target not in allowed:
        options = ", ".join(s.value for s in allowed) or "none"
        print(f"ERROR: As {actor.role.value} you may not move {current.id} to {target.value}. Allowed: {options}")
        return 2

    updated = await app.store.update_stage(args.id, target, args.note, actor)
    print(f"{updated.id}: {current.stage.value} -> {updated.stage.value} (owner: {updated.owner})")
    return 0
