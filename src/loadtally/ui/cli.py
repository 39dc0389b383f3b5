from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from loadtally.adapters.erp import FileSnapshotFetcher
from loadtally.app import (
    convert_items,
    create_load,
    create_session,
    delete_load,
    list_conflicts,
    list_loads,
    list_sessions,
    mark_many_scanned,
    merge_loads,
    record_session_scan,
    rename_load,
    resolve_conflict,
    resolve_scan,
    run_reconciliation,
    session_summary,
    set_load_status,
    set_session_status,
    update_load,
)
from loadtally.config import configure_logging, get_storage_config, get_sync_config
from loadtally.domain.context import OperationContext
from loadtally.domain.errors import LoadTallyError
from loadtally.domain.model import UNSET, Category, LoadStatus, SessionStatus
from loadtally.domain.outcome import Err

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from loadtally.domain.outcome import Outcome

log = logging.getLogger(__name__)


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid UUID: {value}") from exc


def _add_category(parser: argparse.ArgumentParser, *, required: bool = True) -> None:
    parser.add_argument(
        "--category",
        type=Category,
        choices=list(Category),
        required=required,
        help="Inventory category",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:  # noqa: PLR0915
    parser = argparse.ArgumentParser(description="Warehouse load inventory")
    parser.add_argument("--tenant", type=str, help="Tenant scope (defaults to LOADTALLY_TENANT)")
    parser.add_argument("--actor", type=str, help="Acting user (defaults to LOADTALLY_ACTOR)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Resolve and mark scanned codes")
    scan_sub = scan.add_subparsers(dest="scan_command", required=True)
    scan_resolve = scan_sub.add_parser("resolve", help="Resolve a scanned code")
    scan_resolve.add_argument("code", type=str)
    _add_category(scan_resolve, required=False)
    scan_mark = scan_sub.add_parser("mark", help="Mark inventory records scanned")
    scan_mark.add_argument("item_ids", type=_parse_uuid, nargs="+")

    load = subparsers.add_parser("load", help="Load management commands")
    load_sub = load.add_subparsers(dest="load_command", required=True)
    load_create = load_sub.add_parser("create", help="Create a load")
    _add_category(load_create)
    load_create.add_argument("name", type=str)
    load_create.add_argument("--friendly-name", type=str)
    load_create.add_argument("--notes", type=str)
    load_rename = load_sub.add_parser("rename", help="Rename a load and its records")
    _add_category(load_rename)
    load_rename.add_argument("old_name", type=str)
    load_rename.add_argument("new_name", type=str)
    load_merge = load_sub.add_parser("merge", help="Merge loads into a target load")
    _add_category(load_merge)
    load_merge.add_argument("target", type=str)
    load_merge.add_argument("sources", type=str, nargs="+")
    load_merge.add_argument(
        "--create-target",
        action="store_true",
        help="Create the target load when it does not exist",
    )
    load_delete = load_sub.add_parser("delete", help="Delete a load")
    _add_category(load_delete)
    load_delete.add_argument("name", type=str)
    load_delete.add_argument(
        "--keep-items",
        action="store_true",
        help="Leave records pointing at the deleted load name",
    )
    load_status = load_sub.add_parser("status", help="Advance a load's status")
    _add_category(load_status)
    load_status.add_argument("name", type=str)
    load_status.add_argument("status", type=LoadStatus, choices=list(LoadStatus))
    load_update = load_sub.add_parser("update", help="Update load notes or friendly name")
    _add_category(load_update)
    load_update.add_argument("name", type=str)
    load_update.add_argument("--friendly-name", type=str)
    load_update.add_argument("--notes", type=str)
    load_list = load_sub.add_parser("list", help="List loads")
    _add_category(load_list, required=False)
    load_list.add_argument("--include-delivered", action="store_true")

    session = subparsers.add_parser("session", help="Scanning session commands")
    session_sub = session.add_subparsers(dest="session_command", required=True)
    session_create = session_sub.add_parser("create", help="Create a scanning session")
    _add_category(session_create)
    session_create.add_argument("name", type=str)
    session_create.add_argument("--bucket", type=str)
    session_create.add_argument("--draft", action="store_true", help="Create as draft")
    session_scan = session_sub.add_parser("scan", help="Record a scan in a session")
    session_scan.add_argument("session_id", type=_parse_uuid)
    session_scan.add_argument("item_id", type=_parse_uuid)
    session_status = session_sub.add_parser("status", help="Change a session's status")
    session_status.add_argument("session_id", type=_parse_uuid)
    session_status.add_argument("status", type=SessionStatus, choices=list(SessionStatus))
    session_summary_parser = session_sub.add_parser("summary", help="Show session progress")
    session_summary_parser.add_argument("session_id", type=_parse_uuid)
    session_list = session_sub.add_parser("list", help="List sessions with live progress")
    _add_category(session_list, required=False)

    convert = subparsers.add_parser("convert", help="Move records to another category/load")
    convert.add_argument("item_ids", type=_parse_uuid, nargs="+")
    convert.add_argument("--to-category", type=Category, choices=list(Category), required=True)
    bucket_group = convert.add_mutually_exclusive_group()
    bucket_group.add_argument("--to-bucket", type=str)
    bucket_group.add_argument("--clear-bucket", action="store_true")
    convert.add_argument("--notes", type=str)

    sync = subparsers.add_parser("sync", help="Reconcile an exported ERP snapshot")
    _add_category(sync)
    sync.add_argument(
        "--file",
        type=str,
        help="CSV/JSONL export or directory (defaults to LOADTALLY_SNAPSHOT_DIR)",
    )

    conflict = subparsers.add_parser("conflict", help="Reconciliation conflicts")
    conflict_sub = conflict.add_subparsers(dest="conflict_command", required=True)
    conflict_list = conflict_sub.add_parser("list", help="List open conflicts")
    _add_category(conflict_list, required=False)
    conflict_resolve = conflict_sub.add_parser("resolve", help="Resolve a conflict")
    conflict_resolve.add_argument("conflict_id", type=_parse_uuid)
    conflict_resolve.add_argument("--keep", type=_parse_uuid, help="Record to apply the row to")
    conflict_resolve.add_argument("--note", type=str)

    return parser.parse_args(list(argv))


def _context(args: argparse.Namespace) -> OperationContext:
    config = get_sync_config()
    return OperationContext(
        tenant_scope=args.tenant or config.tenant_scope,
        actor=args.actor or config.actor,
    )


def _dispatch(args: argparse.Namespace, context: OperationContext) -> Outcome[object]:  # noqa: C901, PLR0911, PLR0912
    command = args.command
    if command == "scan":
        if args.scan_command == "resolve":
            return resolve_scan(args.code, args.category, context=context)
        return mark_many_scanned(args.item_ids, context=context)

    if command == "load":
        sub = args.load_command
        if sub == "create":
            return create_load(
                args.category,
                args.name,
                notes=args.notes,
                friendly_name=args.friendly_name,
                context=context,
            )
        if sub == "rename":
            return rename_load(args.category, args.old_name, args.new_name, context=context)
        if sub == "merge":
            return merge_loads(
                args.category,
                args.sources,
                args.target,
                create_target_if_missing=args.create_target,
                context=context,
            )
        if sub == "delete":
            return delete_load(
                args.category, args.name, clear_items=not args.keep_items, context=context
            )
        if sub == "status":
            return set_load_status(args.category, args.name, args.status, context=context)
        if sub == "update":
            return update_load(
                args.category,
                args.name,
                notes=args.notes if args.notes is not None else UNSET,
                friendly_name=args.friendly_name if args.friendly_name is not None else UNSET,
                context=context,
            )
        return list_loads(
            args.category, include_delivered=args.include_delivered, context=context
        )

    if command == "session":
        sub = args.session_command
        if sub == "create":
            status = SessionStatus.DRAFT if args.draft else SessionStatus.ACTIVE
            return create_session(
                args.name, args.category, args.bucket, status=status, context=context
            )
        if sub == "scan":
            return record_session_scan(args.session_id, args.item_id, context=context)
        if sub == "status":
            return set_session_status(args.session_id, args.status, context=context)
        if sub == "summary":
            return session_summary(args.session_id, context=context)
        return list_sessions(args.category, context=context)

    if command == "convert":
        to_bucket = None if args.clear_bucket else (args.to_bucket or UNSET)
        return convert_items(
            args.item_ids, args.to_category, to_bucket, notes=args.notes, context=context
        )

    if command == "sync":
        source = args.file or get_storage_config().snapshot_path()
        return run_reconciliation(
            args.category, fetcher=FileSnapshotFetcher(source), context=context
        )

    if command == "conflict":
        if args.conflict_command == "list":
            return list_conflicts(args.category, context=context)
        return resolve_conflict(
            args.conflict_id, keep_item_id=args.keep, note=args.note, context=context
        )

    raise ValueError(f"Unsupported command: {command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        context = _context(parsed_args)
    except (ValueError, LoadTallyError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        outcome = _dispatch(parsed_args, context)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)

    if isinstance(outcome, Err):
        log.error("%s: %s", type(outcome.error).__name__, outcome.error)
        sys.exit(1)
    log.info("%s", outcome.value)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
