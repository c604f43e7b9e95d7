#!/usr/bin/env python3
"""reqflow CLI entrypoint."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from reqflow.agents.persistence import NetworkError
from reqflow.agents.stream import GenerationError
from reqflow.app import AppState
from reqflow.lib.config import load_config
from reqflow.lib.models import DocType, Role, UserMode
from reqflow.lib.validate import ValidationError
from reqflow.workflow.fsm import InvalidTransition
from reqflow.workflow.permissions import PermissionDenied
from reqflow.workflow.store import RequestNotFound
from reqflow.commands import list as cmd_list_module
from reqflow.commands import show as cmd_show_module
from reqflow.commands import move as cmd_move_module
from reqflow.commands import alert as cmd_alert_module
from reqflow.commands import impact as cmd_impact_module
from reqflow.commands import docs as cmd_docs_module
from reqflow.commands import submit as cmd_submit_module

EXIT_OK = 0
EXIT_REMOTE_FAILURE = 1
EXIT_USAGE = 2

ROLE_CHOICES = [role.value for role in Role]
DOC_CHOICES = [doc_type.value for doc_type in DocType]
MODE_CHOICES = [mode.value for mode in UserMode]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='reqflow', description='Request lifecycle CLI')
    parser.add_argument('--config', '-c', help='Path to reqflow.yaml')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # reqflow list
    p_list = subparsers.add_parser('list', help='List requests')
    p_list.add_argument('--as', dest='role', choices=ROLE_CHOICES, help='Filter to what this role sees')
    p_list.add_argument('--user', help='User name for role filtering')
    p_list.add_argument('--sort', choices=['priority', 'impact'], default='priority', help='Sort order')
    p_list.set_defaults(func=cmd_list_module.cmd_list)

    # reqflow show
    p_show = subparsers.add_parser('show', help='Show request details')
    p_show.add_argument('id', help='Request ID (e.g., REQ-001)')
    p_show.set_defaults(func=cmd_show_module.cmd_show)

    # reqflow submit
    p_submit = subparsers.add_parser('submit', help='Submit a new request (scored and routed)')
    p_submit.add_argument('title', help='Short descriptive title')
    p_submit.add_argument('--user', required=True, help='Requester name')
    p_submit.add_argument('--problem', default='', help='Pain point being experienced')
    p_submit.add_argument('--success', default='', help='What success looks like')
    p_submit.add_argument('--system', dest='systems', action='append', default=[], help='System involved (repeatable)')
    p_submit.add_argument('--urgency', choices=['critical', 'high', 'medium', 'low'], default='medium')
    p_submit.set_defaults(func=cmd_submit_module.cmd_submit)

    # reqflow move
    p_move = subparsers.add_parser('move', help='Move a request to another stage')
    p_move.add_argument('id', help='Request ID')
    p_move.add_argument('stage', help="Target stage (e.g., 'In Progress' or in-progress)")
    p_move.add_argument('--as', dest='role', choices=ROLE_CHOICES, required=True, help='Role acting')
    p_move.add_argument('--user', required=True, help='User name')
    p_move.add_argument('--note', default='', help='Reason or feedback (required for send-backs)')
    p_move.set_defaults(func=cmd_move_module.cmd_move)

    # reqflow dismiss
    p_dismiss = subparsers.add_parser('dismiss', help='Dismiss the AI alert on a request')
    p_dismiss.add_argument('id', help='Request ID')
    p_dismiss.set_defaults(func=cmd_alert_module.cmd_dismiss)

    # reqflow adjust
    p_adjust = subparsers.add_parser('adjust', help='Override the impact score')
    p_adjust.add_argument('id', help='Request ID')
    p_adjust.add_argument('--revenue', type=float, required=True, help='Revenue impact (0-30)')
    p_adjust.add_argument('--reach', type=float, required=True, help='User reach (0-25)')
    p_adjust.add_argument('--strategic', type=float, required=True, help='Strategic alignment (0-20)')
    p_adjust.add_argument('--urgency', type=float, required=True, help='Urgency (0-15)')
    p_adjust.add_argument('--quick-win', dest='quick_win', type=float, required=True, help='Quick win bonus (0-10)')
    p_adjust.add_argument('--justification', required=True, help='Why the score changed')
    p_adjust.add_argument('--dependency', dest='dependencies', action='append', default=[], help='Dependency (repeatable)')
    p_adjust.add_argument('--risk', dest='risks', action='append', default=[], help='Risk (repeatable)')
    p_adjust.add_argument('--customer-commitment', action='store_true', help='Promised to a customer')
    p_adjust.add_argument('--user', required=True, help='User name')
    p_adjust.set_defaults(func=cmd_impact_module.cmd_adjust)

    # reqflow generate
    p_generate = subparsers.add_parser('generate', help='Generate BRD, FSD and tech spec')
    p_generate.add_argument('id', help='Request ID')
    p_generate.add_argument('--mode', choices=MODE_CHOICES, default='collaborative', help='Writing style')
    p_generate.add_argument('--user', required=True, help='Product owner name')
    p_generate.set_defaults(func=cmd_docs_module.cmd_generate)

    # reqflow refine
    p_refine = subparsers.add_parser('refine', help='Rewrite one document from feedback')
    p_refine.add_argument('id', help='Request ID')
    p_refine.add_argument('doc', choices=DOC_CHOICES, help='Document to refine')
    p_refine.add_argument('feedback', help='What to change')
    p_refine.add_argument('--user', required=True, help='Product owner name')
    p_refine.set_defaults(func=cmd_docs_module.cmd_refine)

    # reqflow approve
    p_approve = subparsers.add_parser('approve', help='Approve a generated document')
    p_approve.add_argument('id', help='Request ID')
    p_approve.add_argument('doc', choices=DOC_CHOICES, help='Document to approve')
    p_approve.add_argument('--user', required=True, help='Product owner name')
    p_approve.set_defaults(func=cmd_docs_module.cmd_approve)

    return parser


async def run(args, app: AppState) -> int:
    """Load the store, run one command, and map failures to exit codes."""
    try:
        await app.store.load()
        return await args.func(args, app)
    except (NetworkError, GenerationError) as e:
        print(f"ERROR: {e}")
        return EXIT_REMOTE_FAILURE
    except (PermissionDenied, InvalidTransition, ValidationError, RequestNotFound, ValueError) as e:
        print(f"ERROR: {e}")
        return EXIT_USAGE


async def _main(args) -> int:
    app = AppState.from_config(load_config(Path(args.config) if args.config else None))
    try:
        return await run(args, app)
    finally:
        await app.aclose()


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    return asyncio.run(_main(args))


if __name__ == '__main__':
    sys.exit(main())
