"""d3k: run a dev server into a unified log and query that log."""

import json
import os
import sys
import time
import signal
import logging
import threading
from argparse import REMAINDER, ArgumentParser

from d3k import query
from d3k.config import Config, load_config, logging_level
from d3k.error_detectors import get_error_detector
from d3k.error_query import LOG_TYPES, find_errors, recent_logs
from d3k.exceptions import LogFileNotFoundError, LogRotationError, SessionLookupError
from d3k.formatter import GRAY, GREEN, RED, YELLOW, CYAN, format_error, format_interaction, format_log_line, paint
from d3k.log_filename import active_filename
from d3k.output_processor import build_output_processor
from d3k.project import default_dev_command, detect_framework, get_project_display_name, get_project_name
from d3k.registry import SessionRegistry
from d3k.rotator import LogStore, enforce_retention, list_project_logs
from d3k.runner import DevServerRunner
from d3k.web import create_app
from d3k.writer import UnifiedLogWriter

logger = logging.getLogger("d3k")

_running = True


def _signal_handler(sig, frame):
    global _running
    logger.info("Shutdown signal received, stopping...")
    _running = False


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="d3k", description="Unified dev-server and browser log.")
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colours")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Start the dev server and capture its output")
    run.add_argument("--framework", default=None, help="Force a framework detector (nextjs, rails, ...)")
    run.add_argument("--port", type=int, default=None, help="HTTP port for the log API")
    run.add_argument("--no-serve", action="store_true", help="Do not start the HTTP log API")
    run.add_argument("dev_command", nargs=REMAINDER, help="Command to run (after --)")

    serve = sub.add_parser("serve", help="Serve the log API for the current session")
    serve.add_argument("--port", type=int, default=None)

    errors = sub.add_parser("errors", help="Show recent errors")
    errors.add_argument("-n", "--count", type=int, default=10)
    errors.add_argument("--all", action="store_true", help="Show all errors")
    errors.add_argument("--context", action="store_true", help="Show interactions before each error")
    errors.add_argument("--json", action="store_true")

    logs = sub.add_parser("logs", help="Show recent log lines")
    logs.add_argument("-n", "--count", type=int, default=50)
    logs.add_argument("--type", choices=LOG_TYPES, default="all")
    logs.add_argument("--json", action="store_true")

    for name in ("head", "tail"):
        p = sub.add_parser(name, help=f"Print the {'first' if name == 'head' else 'last'} lines of the log")
        p.add_argument("-n", "--lines", type=int, default=query.DEFAULT_LINES)
        p.add_argument("--log-path", default=None)

    lst = sub.add_parser("list", help="List log files of the current project")
    lst.add_argument("--log-path", default=None)
    lst.add_argument("--project", default=None, help="Archives of every project whose name contains this")
    lst.add_argument("--json", action="store_true")

    rotate = sub.add_parser("rotate", help="Archive the active log and start a new one")
    rotate.add_argument("--log-path", default=None)

    sessions = sub.add_parser("sessions", help="List live sessions")
    sessions.add_argument("--json", action="store_true")

    cleanup = sub.add_parser("cleanup", help="Delete old archived logs")
    cleanup.add_argument("--log-path", default=None)
    cleanup.add_argument("--keep", type=int, default=None, help="Archives to keep")
    cleanup.add_argument("--max-age-days", type=int, default=None)
    return parser


def _resolve_log_path(args, config: Config, registry: SessionRegistry) -> str:
    return getattr(args, "log_path", None) or registry.resolve_log_path(config.log_file_path)


def _print_json(data):
    print(json.dumps(data, indent=2))


def _no_log(args, color: bool) -> int:
    if getattr(args, "json", False):
        print(json.dumps({"error": "No d3k log file found"}))
    else:
        print(paint("No d3k log file found.", RED, color))
        print(paint("Make sure d3k is running or has been run recently.", GRAY, color))
    return 1


def _not_yet(args, path: str, color: bool) -> int:
    if getattr(args, "json", False):
        print(json.dumps({"error": "Log file doesn't exist", "path": path}))
    else:
        print(paint("Log file doesn't exist yet.", YELLOW, color))
        print(paint("The dev server may still be starting up.", GRAY, color))
    return 0


def cmd_errors(args, config: Config, registry: SessionRegistry, color: bool) -> int:
    try:
        path = _resolve_log_path(args, config, registry)
    except SessionLookupError:
        return _no_log(args, color)
    try:
        lines = query.read_lines(path)
    except LogFileNotFoundError:
        return _not_yet(args, path, color)

    if not lines:
        if args.json:
            print(json.dumps({"errors": [], "message": "Log file is empty"}))
        else:
            print(paint("Log file is empty.", YELLOW, color))
        return 0

    detector = get_error_detector(config.framework)
    result = find_errors(lines, args.count, args.all, args.context, detector)
    if result["total"] == 0:
        if args.json:
            print(json.dumps({"errors": [], "message": "No errors found"}))
        else:
            print(paint("No errors found in the logs.", GREEN, color))
        return 0

    if args.json:
        _print_json(result)
        return 0

    total = result["total"]
    print(paint(f"\n{total} error{'' if total == 1 else 's'} found", RED, color))
    if not args.all and total > args.count:
        print(paint(f"   Showing last {args.count}. Use --all to see all errors.", GRAY, color))
    print(paint(f"   Log: {path}\n", GRAY, color))
    for item in result["errors"]:
        if args.context:
            if item["interactions"]:
                print("  Interactions before error:")
                for interaction in item["interactions"]:
                    print(format_interaction(interaction, color))
            print(format_error(item["error"], color))
            print()
        else:
            print(format_error(item, color))
    return 0


def cmd_logs(args, config: Config, registry: SessionRegistry, color: bool) -> int:
    try:
        path = _resolve_log_path(args, config, registry)
    except SessionLookupError:
        return _no_log(args, color)
    try:
        lines = query.read_lines(path)
    except LogFileNotFoundError:
        return _not_yet(args, path, color)

    result = recent_logs(lines, args.count, args.type)
    if args.json:
        print(json.dumps(result))
        return 0

    print(paint("\nd3k logs", CYAN, color))
    if args.type != "all":
        print(paint(f"   Filtered by: {args.type}", GRAY, color))
    print(paint(f"   Showing last {result['showing']} of {result['total']} lines", GRAY, color))
    print(paint(f"   Log: {path}\n", GRAY, color))
    for line in result["logs"]:
        print(format_log_line(line, color))
    return 0


def cmd_head_tail(args, config: Config, registry: SessionRegistry, color: bool) -> int:
    try:
        path = _resolve_log_path(args, config, registry)
        read = query.head if args.command == "head" else query.tail
        lines, _ = read(path, args.lines)
    except SessionLookupError:
        return _no_log(args, color)
    except LogFileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    for line in lines:
        print(format_log_line(line, color))
    return 0


def _list_matching(args, config: Config, color: bool) -> int:
    """Archived logs across all projects under the d3k home, substring match on the project."""
    matches = []
    if os.path.isdir(config.home_dir):
        for name in sorted(os.listdir(config.home_dir)):
            log_dir = os.path.join(config.home_dir, name)
            if os.path.isdir(log_dir):
                matches.extend(os.path.join(log_dir, n) for n in sorted(list_project_logs(log_dir, args.project)))
    if args.json:
        _print_json({"project": args.project, "files": matches})
        return 0
    if not matches:
        print(paint(f"No archived logs match {args.project}.", YELLOW, color))
    for path in matches:
        print(path)
    return 0


def cmd_list(args, config: Config, registry: SessionRegistry, color: bool) -> int:
    if args.project:
        return _list_matching(args, config, color)
    try:
        result = query.list_logs(_resolve_log_path(args, config, registry))
    except SessionLookupError:
        return _no_log(args, color)
    except LogFileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if args.json:
        _print_json(result)
        return 0
    print(paint(f"Logs for {result['projectName']}:", CYAN, color))
    for f in result["files"]:
        marker = "*" if f["isCurrent"] else " "
        print(f" {marker} {f['name']}  {f['size']:>10} bytes  {f['mtime']}")
    return 0


def cmd_rotate(args, config: Config, registry: SessionRegistry, color: bool) -> int:
    try:
        path = _resolve_log_path(args, config, registry)
        result = LogStore(path, pointer_path=config.pointer_path).rotate()
    except SessionLookupError:
        return _no_log(args, color)
    except LogRotationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Archived {result.archived_path}")
    print(f"Current  {result.current_path}")
    return 0


def cmd_sessions(args, config: Config, registry: SessionRegistry, color: bool) -> int:
    sessions = registry.list_active()
    if args.json:
        _print_json([s.to_dict() for s in sessions])
        return 0
    if not sessions:
        print(paint("No live d3k sessions.", YELLOW, color))
        return 0
    for s in sessions:
        print(f"{paint(s.project_name, CYAN, color)}  pid {s.pid}  started {s.start_time}")
        print(paint(f"   {s.log_file_path}", GRAY, color))
    return 0


def cmd_cleanup(args, config: Config, registry: SessionRegistry, color: bool) -> int:
    try:
        path = _resolve_log_path(args, config, registry)
    except SessionLookupError:
        return _no_log(args, color)
    store = LogStore(path)
    keep = config.keep_archives if args.keep is None else args.keep
    max_age = config.max_archive_age_days if args.max_age_days is None else args.max_age_days
    deleted = enforce_retention(store.log_dir, store.project_name, keep, max_age)
    print(f"Deleted {len(deleted)} archived log(s)")
    for name in deleted:
        print(paint(f"   {name}", GRAY, color))
    return 0


def _serve_in_background(app, host: str, port: int) -> threading.Thread:
    thread = threading.Thread(
        target=app.run,
        kwargs={"host": host, "port": port, "threaded": True, "use_reloader": False},
        daemon=True,
        name="d3k-http",
    )
    thread.start()
    return thread


def cmd_run(args, config: Config, registry: SessionRegistry, color: bool) -> int:
    cwd = os.getcwd()
    command = list(args.dev_command)
    if command and command[0] == "--":
        command = command[1:]
    command = command or default_dev_command(cwd)
    if not command:
        print("Error: no dev command given and none found in package.json", file=sys.stderr)
        return 2

    project = get_project_name(cwd)
    framework = args.framework or config.framework or detect_framework(cwd)
    active = config.log_file_path or os.path.join(registry.session_dir(project), active_filename(project))

    store = LogStore(active, pointer_path=config.pointer_path)
    store.ensure_active()
    writer = UnifiedLogWriter(store.active_path, config.timestamp_format, store, config.max_log_size_bytes)
    writer.start()
    registry.register(project, active, pid=os.getpid())

    logger.info("Project %s (%s), log %s", get_project_display_name(cwd), framework, active)
    writer.log("D3K", f"Starting {' '.join(command)} ({framework})")

    app = create_app(config, writer=writer, store=store, registry=registry, start_scheduler=True)
    if not args.no_serve:
        port = args.port or config.port
        _serve_in_background(app, config.host, port)
        logger.info("Log API on http://%s:%d", config.host, port)

    runner = DevServerRunner(command, writer, build_output_processor(framework), cwd=cwd)
    try:
        runner.start()
    except OSError as e:
        print(f"Error: failed to start {command[0]}: {e}", file=sys.stderr)
        writer.stop()
        return 1

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)
    while _running and runner.poll() is None:
        time.sleep(0.5)

    code = runner.stop()
    writer.log("D3K", f"Dev server exited with code {code}")
    writer.stop()
    scheduler = app.config["components"]["scheduler"]
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    return 0 if code is None else code


def cmd_serve(args, config: Config, registry: SessionRegistry, color: bool) -> int:
    app = create_app(config, registry=registry)
    app.run(host=config.host, port=args.port or config.port, threaded=True)
    return 0


COMMANDS = {
    "run": cmd_run,
    "serve": cmd_serve,
    "errors": cmd_errors,
    "logs": cmd_logs,
    "head": cmd_head_tail,
    "tail": cmd_head_tail,
    "list": cmd_list,
    "rotate": cmd_rotate,
    "sessions": cmd_sessions,
    "cleanup": cmd_cleanup,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(config_path=args.config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging_level(config),
        format="%(asctime)s [d3k] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    color = config.color and not args.no_color and sys.stdout.isatty()
    registry = SessionRegistry(config.home_dir)
    try:
        return COMMANDS[args.command](args, config, registry, color)
    except KeyboardInterrupt:
        return 0
    except BrokenPipeError:
        return 0


if __name__ == "__main__":
    sys.exit(main())
