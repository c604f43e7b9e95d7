"""
reqflow generate / refine / approve - Requirement documents.
"""

from reqflow.lib.models import Actor, DocType, Role, UserMode
from reqflow.workflow.mutations import DOC_NAMES


def _product_owner(args) -> Actor:
    return Actor(name=args.user, role=Role.PRODUCT_OWNER)


async def cmd_generate(args, app) -> int:
    """Generate BRD, FSD and tech spec, printing progress per document."""

    def on_step(index: int, doc_type: DocType) -> None:
        print(f"[{index}/{len(DocType)}] Generating {DOC_NAMES[doc_type]}...")

    updated = await app.documents.generate(args.id, _product_owner(args), mode=UserMode(args.mode), on_step=on_step)
    print(f"Documents attached to {updated.id}. Approve each before moving to Ready for Dev.")
    return 0


async def cmd_refine(args, app) -> int:
    doc_type = DocType(args.doc)
    updated = await app.documents.refine(args.id, doc_type, args.feedback, _product_owner(args))
    print(f"Updated {DOC_NAMES[doc_type]} on {updated.id}.")
    return 0


async def cmd_approve(args, app) -> int:
    doc_type = DocType(args.doc)
    updated = await app.store.approve_document(args.id, doc_type, _product_owner(args))
    print(f"Approved {DOC_NAMES[doc_type]} on {updated.id}.")

    pending = [DOC_NAMES[d] for d in DocType if not updated.documents.approval(d).approved]
    if pending:
        print(f"Still pending: {', '.join(pending)}")
    else:
        print("All documents approved.")
    return 0
