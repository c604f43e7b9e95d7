"""
reqflow list - List requests.
"""

from reqflow.lib.filters import filter_by_view, sort_by_priority
from reqflow.lib.impact import badge_variant, impact_score, is_quick_win, sort_by_impact_score
from reqflow.lib.models import Role
from reqflow.lib.sla import format_sla_text, sla_for


def _impact_column(request) -> str:
    if badge_variant(request) == "none":
        return "-"
    marker = " *" if is_quick_win(request) else ""
    return f"{impact_score(request):g}{marker}"


async def cmd_list(args, app) -> int:
    """List requests, optionally filtered to one role's view."""
    requests = app.store.requests
    if args.role:
        requests = filter_by_view(requests, Role(args.role), args.user)

    if args.sort == "impact":
        requests = sort_by_impact_score(requests)
    else:
        requests = sort_by_priority(requests)

    if not requests:
        print("No requests.")
        return 0

    print(f"{'ID':<10} {'Stage':<14} {'Priority':<8} {'Impact':<7} {'Owner':<18} {'SLA':<18} Title")
    print("-" * 100)
    for r in requests:
        sla = format_sla_text(sla_for(r))
        print(f"{r.id:<10} {r.stage.value:<14} {r.priority.value:<8} {_impact_column(r):<7} {r.owner[:18]:<18} {sla:<18} {r.title}")

    print()
    print(f"{len(requests)} request(s). * = quick win")
    return 0
