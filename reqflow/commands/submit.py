"""
reqflow submit - Submit a new request.
"""


async def cmd_submit(args, app) -> int:
    data = {
        "title": args.title,
        "problem": args.problem,
        "success": args.success,
        "systems": args.systems,
        "urgency": args.urgency,
    }
    request = await app.submit(data, args.user)

    print(f"Created {request.id}: {request.title}")
    print(f"  Routed to {request.owner} ({request.priority.value} priority)")
    if request.impact_assessment is not None:
        print(f"  Impact score {request.impact_assessment.total_score:g}")
    else:
        print("  Impact score unavailable")
    return 0
