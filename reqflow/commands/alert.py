"""
reqflow dismiss - Dismiss the AI alert on a request.
"""


async def cmd_dismiss(args, app) -> int:
    before = app.store.get(args.id)
    if before.ai_alert is None:
        print(f"{args.id} has no alert.")
        return 0

    await app.store.dismiss_alert(args.id)
    print(f"Dismissed alert on {args.id}: {before.ai_alert}")
    return 0
