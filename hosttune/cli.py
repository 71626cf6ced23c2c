"""
CLI - Command-line interface for hosttune.

Thin wrapper over TuningEngine: parse arguments, load configuration, run one
command, render the result and map it to an exit code.

Exit codes:
    0    run completed (even with denied/unverified records)
    1    caller error (unknown parameter id, category or artifact)
    2    run could not start (config, registry load, missing privilege)
    3    --strict and at least one failed record or artifact
    130  interrupted
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import Config, create_example_config
from .protocol.records import Mode
from .protocol.artifacts import ArtifactStatus
from .protocol.errors import (
    ConfigError,
    NotFound,
    PrivilegeError,
    RegistryLoadError,
)
from .runner.engine import TuningEngine
from .ui import ConsoleUI, ResultDisplay

EXIT_OK = 0
EXIT_CALLER_ERROR = 1
EXIT_CANNOT_START = 2
EXIT_FAILURES = 3
EXIT_INTERRUPTED = 130

RUN_COMMANDS = {
    "apply": Mode.APPLY,
    "revert-to-default": Mode.REVERT,
    "revert": Mode.REVERT,
    "rollback": Mode.ROLLBACK,
    "status": Mode.DRY_RUN,
}


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="hosttune",
        description="Idempotent host tuning with journal, rollback and persistence",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    hosttune status                          # drift report
    hosttune apply --category memory
    hosttune apply --parameter mem.swappiness --dry-run
    hosttune revert-to-default --category io
    hosttune rollback --parameter gpu.vboost
    hosttune plan-persistence --show-content
    hosttune install-persistence
    hosttune history --parameter mem.swappiness --limit 10

Environment Variables:
    HOSTTUNE_CONFIG    Config file path
    HOSTTUNE_JOURNAL   Transaction log path
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # ==================== Global Options ====================
    parser.add_argument("--config", "-c", help="Config file (TOML)")
    parser.add_argument("--journal", help="Transaction log path")
    parser.add_argument("--root", help="Alternative filesystem root for targets and artifacts")
    parser.add_argument("--timeout", type=float, help="Per-target access timeout in seconds")
    parser.add_argument("--quiet", "-q", action="store_true", default=None, help="Only print warnings and errors")
    parser.add_argument("--json", action="store_true", default=None, help="Machine-readable JSON output")

    # ==================== Shared Options ====================
    select = argparse.ArgumentParser(add_help=False)
    select.add_argument(
        "--category", action="append", dest="categories", metavar="CATEGORY",
        help="Restrict to a category (repeatable)",
    )
    select.add_argument(
        "--parameter", "-p", action="append", dest="parameters", metavar="ID",
        help="Restrict to a parameter id (repeatable)",
    )

    outcome = argparse.ArgumentParser(add_help=False)
    outcome.add_argument("--strict", action="store_true", help="Exit 3 when any failure is reported")
    outcome.add_argument("--report", metavar="PATH", help="Write a report (.json or Markdown)")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    for name, help_text in [
        ("apply", "Reconcile live state to desired values"),
        ("revert-to-default", "Restore shipped OS defaults"),
        ("rollback", "Restore the last applied value from the journal"),
    ]:
        aliases = ["revert"] if name == "revert-to-default" else []
        cmd = sub.add_parser(name, aliases=aliases, parents=[select, outcome], help=help_text)
        cmd.add_argument("--dry-run", action="store_true", help="Report would-be changes, write nothing")

    cmd = sub.add_parser("status", parents=[select, outcome], help="Drift report (apply dry-run)")
    cmd.add_argument("--dry-run", action="store_true", help="Accepted for symmetry; status never writes")
    sub.add_parser("list", parents=[select], help="List registered parameters")

    cmd = sub.add_parser("plan-persistence", parents=[select, outcome], help="Show durable-config artifacts")
    cmd.add_argument("--show-content", action="store_true", help="Print full artifact text")

    cmd = sub.add_parser("install-persistence", parents=[select, outcome], help="Write and activate artifacts")
    cmd.add_argument("--dry-run", action="store_true", help="Plan only")

    cmd = sub.add_parser(
        "uninstall-persistence", parents=[select, outcome],
        help="Deactivate and remove artifacts (a selection removes the artifacts its parameters use)",
    )
    cmd.add_argument("--dry-run", action="store_true", help="Report what would be removed")
    cmd.add_argument(
        "--artifact", action="append", dest="artifacts", metavar="ID",
        help="sysctl, udev, modprobe or service (repeatable; default all)",
    )

    sub.add_parser("persistence-status", parents=[select, outcome], help="Compare artifacts on disk with the plan")

    cmd = sub.add_parser("history", help="Show the transaction log")
    cmd.add_argument("--parameter", "-p", dest="parameter", metavar="ID", help="Only this parameter")
    cmd.add_argument("--limit", "-n", type=int, help="Most recent N records")

    cmd = sub.add_parser("init-config", help="Write an example config file")
    cmd.add_argument("path", nargs="?", default="hosttune.toml", help="Target path (default: hosttune.toml)")

    return parser.parse_args(argv)


def load_config(args) -> Config:
    """Load, override and validate configuration (raises ConfigError)."""
    config = Config.load(args.config)
    config.override_from_args(args)
    errors = config.validate()
    if errors:
        raise ConfigError("; ".join(errors))
    return config


# =============================================================================
# Command handlers
# =============================================================================

def cmd_run(args, engine: TuningEngine, ui: ConsoleUI, json_output: bool) -> int:
    mode = RUN_COMMANDS[args.command]
    engine.on_record(ui.print_record)
    summary = engine.run(
        mode,
        categories=args.categories,
        ids=args.parameters,
        dry_run=getattr(args, "dry_run", False),
    )

    if json_output:
        ui.print_json(summary.to_dict())
    ui.print_run_summary(summary)

    if args.report:
        path = ResultDisplay().write_report(args.report, summary=summary)
        ui.print(f"[dim]Report written to {path}[/]")

    if args.strict and summary.failure_count:
        return EXIT_FAILURES
    return EXIT_OK


def cmd_list(args, engine: TuningEngine, ui: ConsoleUI, json_output: bool) -> int:
    parameters = engine.select(args.categories, args.parameters)
    if json_output:
        ui.print_json({"parameters": [p.to_dict() for p in parameters]})
    ui.print_parameters(parameters)
    return EXIT_OK


def cmd_plan(args, engine: TuningEngine, ui: ConsoleUI, json_output: bool) -> int:
    plan = engine.plan_persistence(args.categories, args.parameters)
    if json_output:
        data = plan.to_dict()
        if args.show_content:
            for entry, artifact in zip(data["artifacts"], plan.artifacts):
                entry["content"] = artifact.content
        ui.print_json(data)
    ui.print_plan(plan)
    if args.show_content:
        ui.print_artifact_content(plan)

    if args.report:
        ResultDisplay().write_report(args.report, plan=plan)

    if args.strict and plan.no_mechanism:
        return EXIT_FAILURES
    return EXIT_OK


def cmd_install(args, engine: TuningEngine, ui: ConsoleUI, json_output: bool) -> int:
    plan, results = engine.install_persistence(args.categories, args.parameters, dry_run=args.dry_run)
    if json_output:
        ui.print_json({"plan": plan.to_dict(), "artifacts": [r.to_dict() for r in results]})
    ui.print_plan(plan)
    if not args.dry_run:
        ui.print_artifact_results(results, "Install")

    if args.report:
        ResultDisplay().write_report(args.report, plan=plan, results=results)

    if args.strict and any(r.status == ArtifactStatus.FAILED for r in results):
        return EXIT_FAILURES
    return EXIT_OK


def cmd_uninstall(args, engine: TuningEngine, ui: ConsoleUI, json_output: bool) -> int:
    results = engine.uninstall_persistence(
        args.artifacts,
        categories=args.categories,
        ids=args.parameters,
        dry_run=args.dry_run,
    )
    if json_output:
        ui.print_json({"artifacts": [r.to_dict() for r in results]})
    ui.print_artifact_results(results, "Uninstall (dry run)" if args.dry_run else "Uninstall")

    if args.report:
        ResultDisplay().write_report(args.report, results=results)

    if args.strict and any(r.status == ArtifactStatus.FAILED for r in results):
        return EXIT_FAILURES
    return EXIT_OK


def cmd_persistence_status(args, engine: TuningEngine, ui: ConsoleUI, json_output: bool) -> int:
    plan, results = engine.persistence_status(args.categories, args.parameters)
    if json_output:
        ui.print_json({"plan": plan.to_dict(), "artifacts": [r.to_dict() for r in results]})
    ui.print_plan(plan)
    ui.print_artifact_results(results, "Persistence Status")

    if args.report:
        ResultDisplay().write_report(args.report, plan=plan, results=results)

    if args.strict and any(r.status != ArtifactStatus.INSTALLED for r in results):
        return EXIT_FAILURES
    return EXIT_OK


def cmd_history(args, engine: TuningEngine, ui: ConsoleUI, json_output: bool) -> int:
    records = engine.history(parameter_id=args.parameter, limit=args.limit)
    if json_output:
        ui.print_json({"records": [r.to_dict() for r in records]})
    ui.print_history(records)
    return EXIT_OK


HANDLERS = {
    "apply": cmd_run,
    "revert-to-default": cmd_run,
    "revert": cmd_run,
    "rollback": cmd_run,
    "status": cmd_run,
    "list": cmd_list,
    "plan-persistence": cmd_plan,
    "install-persistence": cmd_install,
    "uninstall-persistence": cmd_uninstall,
    "persistence-status": cmd_persistence_status,
    "history": cmd_history,
}


def main(argv: Optional[List[str]] = None, engine: Optional[TuningEngine] = None) -> int:
    """Main entry point; returns the process exit code."""
    args = parse_args(argv)
    ui = ConsoleUI(quiet=bool(args.quiet or args.json))

    if args.command == "init-config":
        try:
            path = create_example_config(args.path)
        except FileExistsError as e:
            ui.print_error(str(e))
            return EXIT_CALLER_ERROR
        ui.console.print(f"[green]Created {path}[/]")
        return EXIT_OK

    try:
        config = load_config(args) if engine is None else engine.config.override_from_args(args)
        json_output = bool(config.output.json)
        ui.quiet = bool(config.output.quiet or json_output)
        engine = engine or TuningEngine(config)

        if not json_output:
            ui.print_banner()
            ui.print(f"[dim]{config.summary()}[/]")

        return HANDLERS[args.command](args, engine, ui, json_output)

    except NotFound as e:
        ui.print_error(e.detail)
        return EXIT_CALLER_ERROR
    except (ConfigError, RegistryLoadError, PrivilegeError) as e:
        ui.print_error(e.detail)
        return EXIT_CANNOT_START
    except KeyboardInterrupt:
        ui.print_error("Interrupted; records already produced are in the journal")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
