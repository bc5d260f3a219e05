"""Command-line utilities for reviewing recorded consultations."""

from __future__ import annotations

import argparse
from typing import Any, Callable, Dict, List, Optional

from .config import AppSettings
from .consultation_store import (
    CONVERSATION_MESSAGES,
    PRIORITIES,
    ConsultationRepository,
)

CommandHandler = Callable[[ConsultationRepository, argparse.Namespace], None]


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: '{raw}'") from exc
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def run_consultations_cli(
    settings: AppSettings,
    argv: Optional[List[str]] = None,
) -> None:
    """Entry point for consultation listing commands."""

    repository = ConsultationRepository(
        archive_path=settings.consultation_log,
        redis_url=settings.redis_url,
    )
    parser = argparse.ArgumentParser(
        prog="capacity-assessment consultations",
        description="List and inspect recorded capacity assessments.",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    list_parser = subparsers.add_parser(
        "list",
        help="Show recent consultations",
    )
    list_parser.add_argument(
        "-n",
        "--limit",
        type=_positive_int,
        default=10,
        help="Maximum number of consultations to display (default: 10)",
    )
    list_parser.set_defaults(func=_handle_list)

    show_parser = subparsers.add_parser(
        "show",
        help="Display a consultation with its conversation and priorities",
    )
    show_parser.add_argument("id", help="Consultation session identifier")
    show_parser.set_defaults(func=_handle_show)

    args = parser.parse_args(argv)
    handler: CommandHandler = args.func
    handler(repository, args)


def _handle_list(
    repository: ConsultationRepository,
    args: argparse.Namespace,
) -> None:
    records = repository.list_consultations(limit=args.limit)
    if not records:
        print("No consultations found.")
        return
    print(f"Showing {len(records)} consultations:")
    for record in records:
        stakeholder = record["stakeholder"]
        print(
            f" - {record['id']} | {record.get('status', '')} | "
            f"{record.get('started_at', '')} | {stakeholder['name']} "
            f"({stakeholder['role']}, {stakeholder['department']})"
        )


def _handle_show(
    repository: ConsultationRepository,
    args: argparse.Namespace,
) -> None:
    record = repository.get_consultation(args.id)
    if not record:
        print(f"Consultation '{args.id}' not found.")
        return
    stakeholder: Dict[str, Any] = record.get("stakeholder") or {}
    print(f"Consultation ID: {record['id']}")
    print(f"Type: {record.get('consultation_type', '')}")
    print(f"Status: {record.get('status', '')}")
    print(f"Started: {record.get('started_at', '')}")
    if record.get("completed_at"):
        print(f"Completed: {record['completed_at']}")
    print(
        f"Stakeholder: {stakeholder.get('name', '')} | "
        f"{stakeholder.get('role', '')} | {stakeholder.get('department', '')}"
    )
    priorities = record[PRIORITIES]
    if priorities:
        print("\nPriorities:")
        for priority in priorities:
            print(
                f" {priority.get('rank')}. {priority.get('area')} "
                f"({priority.get('impact')} impact, "
                f"priority {priority.get('priority')}/10)"
            )
    for message in record[CONVERSATION_MESSAGES]:
        print("\n" + "-" * 40)
        print(f"[{message.get('timestamp', '')}] {message.get('sender', '')}:")
        print(message.get("message", ""))
