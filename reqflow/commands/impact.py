"""
reqflow adjust - Override a request's impact score.
"""

from reqflow.lib.impact import build_override
from reqflow.lib.models import Actor, ImpactBreakdown, Role


async def cmd_adjust(args, app) -> int:
    """Replace the impact assessment with a tier 2 override."""
    app.store.get(args.id)

    assessment = build_override(
        ImpactBreakdown(
            revenue_impact=args.revenue,
            user_reach=args.reach,
            strategic_alignment=args.strategic,
            urgency=args.urgency,
            quick_win_bonus=args.quick_win,
        ),
        args.justification,
        assessed_by=args.user,
        dependencies=args.dependencies,
        risks=args.risks,
        customer_commitment=True if args.customer_commitment else None,
        strict_sum=app.store.strict_sum,
    )
    actor = Actor(name=args.user, role=Role.PRODUCT_OWNER)
    updated = await app.store.adjust_impact_score(args.id, assessment, actor)
    print(f"{updated.id}: impact score {assessment.total_score:g} (Tier {assessment.tier})")
    return 0
