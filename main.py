"""CLI entry point for InternFlow."""

import argparse
import asyncio
import logging
import signal
import sqlite3
import sys
from pathlib import Path

from internflow.core.config import Settings
from internflow.core.db import init_db
from internflow.core.schemas import JobRecord, LifecycleState, ParsedPosting
from internflow.core.store import SQLiteStore
from internflow.pipeline.collection import CommitResult, OptimisticCollection
from internflow.pipeline.ordinal import OrdinalMaintainer

logger = logging.getLogger(__name__)


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="InternFlow - turn recruitment posts into tracked applications",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- parse ---
    parse_parser = subparsers.add_parser(
        "parse", help="Extract postings from text with the configured LLM and save them",
    )
    parse_parser.add_argument(
        "input",
        nargs="?",
        help="Text file with recruitment posts (default: read stdin)",
    )
    parse_parser.add_argument("--source", default="", help="Where the posts came from")
    parse_parser.add_argument(
        "--discard-partial",
        action="store_true",
        help="Do not save records if the model stream fails midway",
    )
    _add_common(parse_parser)

    # --- list ---
    list_parser = subparsers.add_parser("list", help="List saved records")
    list_parser.add_argument(
        "--filtered", action="store_true", help="Show records that failed the filter",
    )
    _add_common(list_parser)

    # --- status ---
    status_parser = subparsers.add_parser("status", help="Set the status of records")
    status_parser.add_argument("state", choices=[s.value for s in LifecycleState])
    status_parser.add_argument("ids", nargs="+", help="Record ids (unique prefixes allowed)")
    _add_common(status_parser)

    # --- delete ---
    delete_parser = subparsers.add_parser(
        "delete", help="Soft-delete records; filtered records are removed for good",
    )
    delete_parser.add_argument("ids", nargs="+", help="Record ids (unique prefixes allowed)")
    delete_parser.add_argument(
        "--yes", action="store_true", help="Confirm physical deletion of filtered records",
    )
    _add_common(delete_parser)

    # --- renumber ---
    renumber_parser = subparsers.add_parser("renumber", help="Recompute dense ordinals")
    _add_common(renumber_parser)

    # --- send ---
    send_parser = subparsers.add_parser("send", help="Send application mails one by one")
    send_parser.add_argument(
        "ids", nargs="*", help="Record ids (default: every record that passed the filter)",
    )
    _add_common(send_parser)

    # --- interview ---
    interview_parser = subparsers.add_parser(
        "interview", help="Move a record into the interview tracker",
    )
    interview_parser.add_argument("id", help="Record id (unique prefix allowed)")
    _add_common(interview_parser)

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def resolve_ids(collection: OptimisticCollection, prefixes: list[str]) -> list[str]:
    """Expand unique id prefixes to full ids."""
    ids: list[str] = []
    for prefix in prefixes:
        matches = [r.id for r in collection.records if r.id.startswith(prefix)]
        if len(matches) != 1:
            what = "no record" if not matches else f"{len(matches)} records"
            msg = f"'{prefix}' matches {what}"
            raise ValueError(msg)
        ids.append(matches[0])
    return ids


def format_record(record: JobRecord) -> str:
    ordinal = f"{record.ordinal:>3}" if record.ordinal is not None else "  -"
    review = " [review]" if record.needs_review else ""
    return (
        f"{ordinal}  {record.id[:8]}  {record.status.value:<9}  "
        f"{record.company} / {record.position} <{record.email}>{review}\n"
        f"      {record.email_subject}"
    )


def _report(action: str, result: CommitResult) -> int:
    if result.ok:
        print(f"{action}: ok")
    else:
        print(f"{action} failed: {result.error}", file=sys.stderr)
    if result.renumber is not None and not result.renumber.ok:
        print(
            f"Warning: renumbering incomplete ({len(result.renumber.failed)} failed); "
            "run 'renumber' to repair",
            file=sys.stderr,
        )
    return 0 if result.ok else 1


async def _open(settings: Settings) -> tuple[sqlite3.Connection, OptimisticCollection]:
    conn = init_db(settings.database.path)
    collection = OptimisticCollection(SQLiteStore(conn), settings.owner_id)
    loaded = await collection.reload()
    if not loaded:
        conn.close()
        msg = f"Could not load records: {loaded.error}"
        raise RuntimeError(msg)
    return conn, collection


async def cmd_parse(settings: Settings, args: argparse.Namespace) -> int:
    """Handle parse subcommand."""
    from internflow.llm import get_provider
    from internflow.pipeline.ingest import ingest

    if args.input:
        text = Path(args.input).read_text()
    else:
        text = sys.stdin.read()

    provider = get_provider(settings.llm.provider, api_key=settings.llm.api_key)
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT cancellation not available on this platform")

    def on_record(posting: ParsedPosting) -> None:
        mark = "+" if posting.passes_filter else "x"
        print(f"[{mark}] {posting.company} / {posting.position} <{posting.email}>")

    conn, collection = await _open(settings)
    try:
        result = await ingest(
            text,
            provider,
            settings.candidate,
            settings.llm,
            collection,
            source=args.source,
            on_record=on_record,
            cancel=cancel,
            keep_partial=not args.discard_partial,
        )
    finally:
        conn.close()

    if result.interrupted is not None:
        print(f"Warning: model stream failed: {result.interrupted.__cause__}", file=sys.stderr)
    if result.stream.cancelled:
        print("Cancelled; keeping records received so far.")
    print(f"{result.count} record(s) extracted.")
    return _report("Save", result.commit)


async def cmd_list(settings: Settings, args: argparse.Namespace) -> int:
    conn, collection = await _open(settings)
    conn.close()
    records = collection.filtered() if args.filtered else collection.passed()
    records.sort(key=lambda r: r.ordinal or 0, reverse=True)
    for record in records:
        print(format_record(record))
    print(f"{len(records)} record(s)")
    return 0


async def cmd_status(settings: Settings, args: argparse.Namespace) -> int:
    conn, collection = await _open(settings)
    try:
        ids = resolve_ids(collection, args.ids)
        if len(ids) == 1:
            result = await collection.set_status(ids[0], args.state)
        else:
            result = await collection.set_status_many(ids, args.state)
    finally:
        conn.close()
    return _report(f"Status -> {args.state}", result)


async def cmd_delete(settings: Settings, args: argparse.Namespace) -> int:
    conn, collection = await _open(settings)
    try:
        ids = resolve_ids(collection, args.ids)
        if len(ids) == 1:
            result = await collection.delete(ids[0], confirm=args.yes)
        else:
            result = await collection.delete_many(ids, confirm=args.yes)
    finally:
        conn.close()
    return _report("Delete", result)


async def cmd_renumber(settings: Settings, args: argparse.Namespace) -> int:
    conn = init_db(settings.database.path)
    try:
        result = await OrdinalMaintainer(SQLiteStore(conn)).renumber(settings.owner_id)
    finally:
        conn.close()
    if result.ok:
        print(f"Renumbered {result.updated} record(s).")
        return 0
    print(
        f"Renumber failed: {result.error or f'{len(result.failed)} update(s) failed'}",
        file=sys.stderr,
    )
    return 1


async def cmd_send(settings: Settings, args: argparse.Namespace) -> int:
    """Handle send subcommand."""
    from internflow.mail.dispatcher import BatchDispatcher
    from internflow.mail.sender import HttpMailSender

    conn, collection = await _open(settings)
    try:
        if args.ids:
            ids = resolve_ids(collection, args.ids)
        else:
            ids = [r.id for r in collection.passed()]
        for record_id in ids:
            collection.apply_local(record_id, {"selected": True})
        dispatcher = BatchDispatcher(
            collection, HttpMailSender(settings.mail), settings.mail, settings.candidate,
        )

        def on_progress(done: int, total: int) -> None:
            print(f"  {done}/{total}")

        report = await dispatcher.send_batch(ids, on_progress=on_progress)
        for record_id in report.sent + report.failed:
            for line in collection.get(record_id).logs:
                print(f"  {record_id[:8]} {line}")
    finally:
        conn.close()

    print(f"Sent {len(report.sent)}, failed {len(report.failed)}, skipped {len(report.skipped)}.")
    return 0 if not report.failed else 1


async def cmd_interview(settings: Settings, args: argparse.Namespace) -> int:
    conn, collection = await _open(settings)
    try:
        (record_id,) = resolve_ids(collection, [args.id])
        result = await collection.promote_to_interview(record_id)
    finally:
        conn.close()
    return _report("Interview", result)


_COMMANDS = {
    "parse": cmd_parse,
    "list": cmd_list,
    "status": cmd_status,
    "delete": cmd_delete,
    "renumber": cmd_renumber,
    "send": cmd_send,
    "interview": cmd_interview,
}


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        code = asyncio.run(_COMMANDS[args.command](settings, args))
    except (FileNotFoundError, ImportError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
