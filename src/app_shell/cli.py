import argparse
import logging
import os
import sys
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.components.progress import MemberProgress
from src.components.settlement import StakeConfig
from src.core.errors import AccountingError, AlreadySettledError
from src.rules.loader import load_rules
from src.services.engine import AccountingEngine

logger = logging.getLogger("cli")

DATA_DIR = os.environ.get("INCENTAPPLY_DATA_DIR", "./data")
RULES_PATH = os.environ.get("INCENTAPPLY_RULES_PATH", "rules.yaml")


def get_engine(data_dir: str = DATA_DIR, rules_path: str = RULES_PATH) -> AccountingEngine:
    if not Path(rules_path).exists():
        logger.error(f"Rules file {rules_path} not found.")
        sys.exit(1)

    rules = load_rules(Path(rules_path))
    Path(data_dir).mkdir(parents=True, exist_ok=True)
    db_path = str(Path(data_dir) / "incentapply.db")
    SQLiteMigrator(db_path).run_migrations()
    return AccountingEngine.create(db_path, rules)


def parse_instant(value: str) -> datetime:
    """ISO-8601 instant; a value without offset is read as UTC."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid ISO datetime: {value}") from e
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def parse_member(value: str) -> tuple[str, int, int | None]:
    """user:goal or user:goal:count"""
    parts = value.split(":")
    if len(parts) not in (2, 3) or not parts[0]:
        raise argparse.ArgumentTypeError(f"Expected user:goal[:count], got {value}")
    try:
        goal = int(parts[1])
        count = int(parts[2]) if len(parts) == 3 else None
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Goal and count must be integers: {value}") from e
    return parts[0], goal, count


def format_cents(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) // 100}.{abs(cents) % 100:02d}"


def handle_window(engine: AccountingEngine, args: argparse.Namespace) -> None:
    config = engine.build_cycle_config(
        anchor_at=args.anchor,
        kind=args.kind,
        start_day_of_week=args.start_day,
        timezone=args.timezone,
    )
    now = args.at or engine.clock.now_utc()
    window = engine.resolve_cycle_window(config, now)
    countdown = engine.countdown(window, now)
    print(f"{window.key} ({window.label.value}, {window.timezone})")
    print(f"  starts: {window.starts_at.isoformat()}")
    print(f"  ends:   {window.ends_at.isoformat()}")
    print(f"  left:   {countdown.days}d {countdown.hours}h {countdown.minutes}m")


def handle_progress(engine: AccountingEngine, args: argparse.Namespace) -> None:
    if args.set is not None:
        output = engine.set_progress(args.user_id, args.group_id, args.cycle_key, args.set)
    else:
        output = engine.record_progress_delta(
            args.user_id, args.group_id, args.cycle_key, args.delta
        )
    print(f"{args.user_id}@{args.group_id} {args.cycle_key}: {output.count}")


def handle_events(engine: AccountingEngine, args: argparse.Namespace) -> None:
    events = engine.list_progress_events(args.user_id, args.group_id, args.all)
    if not events:
        print("No events.")
        return
    for event in events:
        state = f" reversed {event.reversed_at.isoformat()}" if event.reversed_at else ""
        print(f"{event.logged_at.isoformat()} {event.cycle_key} #{event.index}{state}")


def handle_settle(engine: AccountingEngine, args: argparse.Namespace) -> None:
    stake = None
    if args.base is not None or args.goal_locked is not None:
        defaults = engine.defaults.stake
        stake = StakeConfig(
            base_stake_cents=(
                args.base if args.base is not None else defaults.base_stake_cents
            ),
            goal_locked_stake_cents=(
                args.goal_locked
                if args.goal_locked is not None
                else defaults.goal_locked_stake_cents
            ),
        )

    goals = {user_id: goal for user_id, goal, _ in args.member}
    ledger_counts = {
        p.user_id: p.count
        for p in engine.ledger.member_progress(args.group_id, args.cycle_key, goals)
    }
    members = [
        MemberProgress(
            user_id=user_id,
            goal=goal,
            count=count if count is not None else ledger_counts.get(user_id, 0),
        )
        for user_id, goal, count in args.member
    ]

    try:
        result = engine.run_settlement(
            args.group_id,
            args.cycle_key,
            stake,
            members,
            force=args.force,
            triggered_by="auto" if args.auto else "manual",
        )
    except AlreadySettledError as e:
        print(f"Already settled at {e.existing.completed_at}. Use --force to replay.")
        result = e.existing

    print(
        f"{result.cycle_id} pool={format_cents(result.total_penalty_pool_cents)} "
        f"members={result.total_members}"
    )
    for b in result.breakdowns:
        status = "met" if b.met_goal else "missed"
        print(
            f"  {b.user_id}: {b.applications_sent}/{b.goal} {status} "
            f"net={format_cents(b.net_cents)}"
        )


def handle_history(engine: AccountingEngine, args: argparse.Namespace) -> None:
    results = engine.settlement_history(args.group_id)
    if not results:
        print("No settlements.")
        return
    for result in results:
        print(
            f"{result.cycle_key} {result.triggered_by} "
            f"pool={format_cents(result.total_penalty_pool_cents)} "
            f"at {result.completed_at.isoformat() if result.completed_at else '-'}"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="IncentApply accounting CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # window
    window_parser = subparsers.add_parser("window", help="Resolve the current cycle window")
    window_parser.add_argument("--anchor", type=parse_instant, required=True,
                               help="Group creation instant (ISO-8601)")
    window_parser.add_argument("--kind", help="daily, weekly or biweekly")
    window_parser.add_argument("--start-day", help="0..6 (0 = Sunday) or a day name")
    window_parser.add_argument("--timezone", help="IANA zone")
    window_parser.add_argument("--at", type=parse_instant, help="Evaluate at this instant")

    # progress
    progress_parser = subparsers.add_parser("progress", help="Change a member's count")
    progress_parser.add_argument("group_id")
    progress_parser.add_argument("user_id")
    progress_parser.add_argument("cycle_key")
    change = progress_parser.add_mutually_exclusive_group(required=True)
    change.add_argument("--delta", type=int, help="Signed change, e.g. 1 or -1")
    change.add_argument("--set", type=int, help="Absolute count")

    # events
    events_parser = subparsers.add_parser("events", help="List a member's progress events")
    events_parser.add_argument("group_id")
    events_parser.add_argument("user_id")
    events_parser.add_argument("--all", action="store_true", help="Include reversed events")

    # settle
    settle_parser = subparsers.add_parser("settle", help="Settle a window")
    settle_parser.add_argument("group_id")
    settle_parser.add_argument("cycle_key")
    settle_parser.add_argument("--member", type=parse_member, action="append", required=True,
                               help="user:goal[:count], repeatable")
    settle_parser.add_argument("--base", type=int, help="Base stake in cents")
    settle_parser.add_argument("--goal-locked", type=int, help="Goal-locked stake in cents")
    settle_parser.add_argument("--force", action="store_true", help="Replay a settled window")
    settle_parser.add_argument("--auto", action="store_true", help="Record as timer-triggered")

    # history
    history_parser = subparsers.add_parser("history", help="List settled windows")
    history_parser.add_argument("group_id")

    return parser


HANDLERS = {
    "window": handle_window,
    "progress": handle_progress,
    "events": handle_events,
    "settle": handle_settle,
    "history": handle_history,
}


def main(argv: Sequence[str] | None = None, engine: AccountingEngine | None = None) -> int:
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)

    engine = engine or get_engine()
    try:
        HANDLERS[args.command](engine, args)
    except AccountingError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
