# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from wormtracker.app import (
    DEFAULT_STORE_DESCRIPTION,
    InvalidEditError,
    TrackerSession,
    build_session,
)
from wormtracker.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

log = logging.getLogger(__name__)

DEFAULT_CONTEXT = "default"

type Ask = Callable[[str], str]


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track Worm roleplay world state")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_command(name: str, help_text: str) -> argparse.ArgumentParser:
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument(
            "--context",
            type=str,
            default=DEFAULT_CONTEXT,
            help="Conversation context to operate on (default: %(default)s)",
        )
        return command

    create = add_command("create", "Create a new remote store with default documents")
    create.add_argument(
        "--description",
        type=str,
        default=DEFAULT_STORE_DESCRIPTION,
        help="Description stored on the remote store",
    )

    link = add_command("link", "Link the context to an existing remote store and pull it")
    link.add_argument("store_id", type=str, help="Remote store (gist) id")

    add_command("pull", "Replace local state with the remote store contents")
    add_command("push", "Push local state to the remote store")

    scan = add_command("scan", "Extract proposed changes from a narrative message")
    scan.add_argument("file", type=Path, help="File holding the message text")
    scan.add_argument(
        "--previous",
        type=Path,
        help="File holding the message this one continues",
    )
    scan.add_argument(
        "--accept-all",
        action="store_true",
        help="Apply every proposed change without prompting",
    )

    import_ = add_command("import", "Import JSON documents for review")
    import_.add_argument("files", type=Path, nargs="+", help="JSON files to import")
    import_.add_argument(
        "--accept-all",
        action="store_true",
        help="Apply every import without prompting",
    )

    add_character = add_command("add-character", "Start tracking a new character")
    add_character.add_argument("display_name", type=str, help="Character's civilian name")
    add_character.add_argument("--alias", type=str, help="Primary cape name")
    add_character.add_argument(
        "--known-as",
        dest="aliases",
        action="append",
        default=[],
        help="Additional known name (repeatable)",
    )
    add_character.add_argument("--faction", type=str, help="Faction affiliation")
    add_character.add_argument("--first-appeared", type=str, help="Where they first appeared")

    add_command("show", "Print the context text injected into prompts")

    edit = add_command("edit", "Replace one document with hand-edited JSON")
    edit.add_argument("filename", type=str, help="Document name, e.g. world_state.json")
    edit.add_argument("json_file", type=Path, help="File holding the replacement JSON")

    return parser.parse_args(list(argv))


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read {path}: {exc.strerror or exc}") from exc


def _read_inputs(args: argparse.Namespace) -> dict[str, str]:
    """Read every file the command needs up front, keyed by its argument."""

    inputs: dict[str, str] = {}
    if args.command == "scan":
        inputs["message"] = _read_text(args.file)
        if args.previous is not None:
            inputs["previous"] = _read_text(args.previous)
    elif args.command == "import":
        for path in args.files:
            inputs[path.name] = _read_text(path)
    elif args.command == "edit":
        inputs["document"] = _read_text(args.json_file)
    elif args.command == "add-character" and not args.display_name.strip():
        raise ValueError("Character name must not be blank")
    return inputs


def review_pending(session: TrackerSession, *, accept_all: bool, ask: Ask = input) -> int:
    """Walk the pending proposals; returns how many were applied."""

    if accept_all:
        return session.accept_all()

    applied = 0
    for proposal in session.pending:
        print(proposal.description)
        if proposal.preview:
            print(proposal.preview)
        answer = ask("[a]ccept, [d]eny, [s]kip? ").strip().lower()
        if answer.startswith("a"):
            applied += int(session.accept(proposal.id))
        elif answer.startswith("d"):
            session.deny(proposal.id)
    return applied


async def _run(
    args: argparse.Namespace,
    inputs: dict[str, str],
    *,
    ask: Ask = input,
) -> None:
    session = build_session()
    await session.switch_context(args.context, prefer_remote=args.command == "pull")
    try:
        await _dispatch(session, args, inputs, ask=ask)
    finally:
        await session.close()


async def _dispatch(  # noqa: C901
    session: TrackerSession,
    args: argparse.Namespace,
    inputs: dict[str, str],
    *,
    ask: Ask,
) -> None:
    if args.command == "create":
        store_id = await session.create_store(args.description)
        if store_id is None:
            raise RuntimeError("Store creation failed")
        log.info("Created store %s for context %s", store_id, args.context)
    elif args.command == "link":
        session.link_store(args.store_id)
        if not await session.sync_from_store():
            raise RuntimeError(f"Could not fetch store {args.store_id}")
    elif args.command == "pull":
        if not session.world.is_loaded:
            raise RuntimeError("Nothing pulled; link or create a store first")
    elif args.command == "push":
        if not await session.push():
            raise RuntimeError("Push failed")
    elif args.command == "scan":
        queued = await session.handle_message(
            inputs["message"],
            previous_text=inputs.get("previous"),
            is_continue="previous" in inputs,
        )
        log.info("Queued %d proposed changes", queued)
        applied = review_pending(session, accept_all=args.accept_all, ask=ask)
        log.info("Applied %d changes", applied)
    elif args.command == "import":
        result = session.import_documents(inputs.items())
        applied = review_pending(session, accept_all=args.accept_all, ask=ask)
        log.info("Imported %d of %d files", applied, len(result.proposals))
    elif args.command == "add-character":
        key = session.add_character(
            args.display_name,
            alias=args.alias,
            aliases=args.aliases,
            faction=args.faction,
            first_appeared=args.first_appeared,
        )
        if key is not None:
            log.info("Tracking %s as %s", args.display_name, key)
    elif args.command == "show":
        print(session.context_injection.text() or "(nothing tracked yet)")
    elif args.command == "edit":
        session.edit_document(args.filename, inputs["document"])
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        inputs = _read_inputs(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        asyncio.run(_run(parsed_args, inputs))
    except InvalidEditError:
        log.exception("Rejected edit")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error while running %s", parsed_args.command)
        sys.exit(1)


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
