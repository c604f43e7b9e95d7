"""
reqflow show - Show request details.
"""

from reqflow.lib.impact import badge_variant, scores_consistent
from reqflow.lib.models import BREAKDOWN_DIMENSIONS, DocType
from reqflow.lib.sla import format_sla_text, sla_for
from reqflow.workflow.mutations import DOC_NAMES

TIER_LABELS = {1: "AI", 2: "Override", 3: "Business case"}


async def cmd_show(args, app) -> int:
    """Show one request: fields, SLA, impact, documents and activity."""
    r = app.store.select(args.id)

    print(f"Request: {r.id}")
    print("=" * 60)
    print(f"Title:      {r.title}")
    print(f"Stage:      {r.stage.value}")
    print(f"Priority:   {r.priority.value}")
    print(f"Owner:      {r.owner}")
    if r.submitted_by:
        print(f"Submitted:  {r.submitted_by}")
    if r.complexity:
        print(f"Complexity: {r.complexity.value}")
    if r.timeline:
        print(f"Timeline:   {r.timeline}")

    sla = sla_for(r)
    print(f"SLA:        {format_sla_text(sla)} (target {sla.target_completion_date}, {sla.status.value})")
    if r.ai_alert:
        print(f"Alert:      {r.ai_alert}")
    print()

    a = r.impact_assessment
    if a is not None:
        print(f"Impact: {a.total_score:g}/100 ({badge_variant(r)}, Tier {a.tier} {TIER_LABELS.get(a.tier, '')})")
        print("-" * 40)
        breakdown = a.breakdown.to_dict()
        for wire, (_, maximum) in BREAKDOWN_DIMENSIONS.items():
            print(f"  {wire:<20} {breakdown[wire]:>5g} / {maximum}")
        if not scores_consistent(a):
            print(f"  (!) breakdown sums to {a.breakdown.total():g}")
        print(f"  Assessed by {a.assessed_by} at {a.assessed_at}")
        if a.justification:
            print(f"  {a.justification}")
        print()

    if r.documents is not None:
        print("Documents")
        print("-" * 40)
        for doc_type in DocType:
            approval = r.documents.approval(doc_type)
            status = f"approved by {approval.approver}" if approval.approved else "pending approval"
            print(f"  [{'+' if approval.approved else ' '}] {DOC_NAMES[doc_type]}: {status}")
        print()

    if r.activity:
        print("Activity")
        print("-" * 40)
        for item in r.activity:
            print(f"  {item.timestamp}  {item.user}: {item.action}")

    return 0
