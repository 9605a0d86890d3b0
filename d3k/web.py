"""HTTP query surface: head/tail/list/rotate/append/errors and the SSE live tail."""

import atexit
import json
import os
import logging
import threading

from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, Response, jsonify, request

from d3k import query
from d3k.browser_events import render_event
from d3k.config import VERSION, Config
from d3k.error_detectors import get_error_detector
from d3k.error_query import LOG_TYPES, find_errors, recent_logs
from d3k.exceptions import InvalidEventError, LogFileNotFoundError, LogRotationError, SessionLookupError
from d3k.registry import SessionRegistry
from d3k.rotator import LogStore
from d3k.tailer import LogTailer
from d3k.writer import format_line, format_timestamp

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# Serializes direct appends when no writer thread owns the file
_append_lock = threading.Lock()


def sse_frame(frame: dict | None) -> str:
    if frame is None:
        return ": heartbeat\n\n"
    return f"data: {json.dumps(frame)}\n\n"


def start_rotation_scheduler(store: LogStore, config: Config) -> BackgroundScheduler | None:
    """Periodic size/age check so an idle log still rotates. None if both thresholds are off."""
    if not config.max_log_size_bytes and not config.rotation_interval_seconds:
        return None
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        store.rotate_if_needed,
        "interval",
        seconds=config.rotation_check_seconds,
        kwargs={
            "max_size_bytes": config.max_log_size_bytes,
            "max_age_seconds": config.rotation_interval_seconds,
        },
    )
    scheduler.start()
    atexit.register(scheduler.shutdown)
    logger.info("Rotation check every %ds", config.rotation_check_seconds)
    return scheduler


def create_app(config: Config | None = None, writer=None, store: LogStore | None = None,
               registry: SessionRegistry | None = None, start_scheduler: bool = False):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        from d3k.config import load_config
        config = load_config()
    if registry is None:
        registry = SessionRegistry(config.home_dir)
    detector = get_error_detector(config.framework)

    scheduler = start_rotation_scheduler(store, config) if (start_scheduler and store) else None

    app.config["components"] = {
        "config": config,
        "writer": writer,
        "store": store,
        "registry": registry,
        "scheduler": scheduler,
    }

    def active_path() -> str:
        if store is not None:
            return store.active_path
        if writer is not None:
            return writer.path
        return registry.resolve_log_path(config.log_file_path)

    def requested_path() -> str:
        return request.args.get("logPath") or active_path()

    # --- Errors ---

    @app.errorhandler(LogFileNotFoundError)
    def log_not_found(e):
        return jsonify({"error": e.message}), 404

    @app.errorhandler(SessionLookupError)
    def no_session(e):
        return jsonify({"error": e.message}), 404

    # --- Routes ---

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "version": VERSION})

    @app.route("/api/version")
    def version():
        return jsonify({"version": VERSION})

    @app.route("/api/logs/head")
    def logs_head():
        lines, total = query.head(requested_path(), request.args.get("lines", query.DEFAULT_LINES, type=int))
        return jsonify({"logs": "\n".join(lines), "total": total})

    @app.route("/api/logs/tail")
    def logs_tail():
        lines, total = query.tail(requested_path(), request.args.get("lines", query.DEFAULT_LINES, type=int))
        return jsonify({"logs": "\n".join(lines), "total": total})

    @app.route("/api/logs/list")
    def logs_list():
        return jsonify(query.list_logs(active_path()))

    @app.route("/api/logs/rotate", methods=["POST"])
    def logs_rotate():
        data = request.get_json(silent=True) or {}
        path = data.get("currentLogPath") or active_path()

        if store is not None and os.path.realpath(path) == store.active_path:
            target = store
        else:
            target = LogStore(path)

        try:
            result = target.rotate()
        except LogRotationError as e:
            if e.step == "verify":
                return jsonify({"error": "Current log file not found"}), 404
            logger.error("Log rotation failed at %s: %s", e.step, e.message)
            return jsonify({"error": "Failed to rotate log file", "step": e.step}), 500
        return jsonify(result.to_dict())

    @app.route("/api/logs/stream")
    def logs_stream():
        tailer = LogTailer(
            requested_path(),
            poll_interval=config.stream_poll_seconds,
            heartbeat_interval=config.heartbeat_seconds,
        )
        # Read the initial batch here so a missing file is a 404, not a broken stream
        frames = tailer.stream()
        first = next(frames)

        def generate():
            try:
                yield sse_frame(first)
                for frame in frames:
                    yield sse_frame(frame)
            finally:
                frames.close()

        return Response(
            generate(),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.route("/api/logs/append", methods=["POST", "OPTIONS"])
    def logs_append():
        if request.method == "OPTIONS":
            return Response(status=200, headers=CORS_HEADERS)

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Log entry is required"}), 400, CORS_HEADERS

        if data.get("entry"):
            line = str(data["entry"])
            source = data.get("source") or "unknown"
            rendered = None
        elif "type" in data:
            try:
                rendered = render_event(data)
            except InvalidEventError as e:
                return jsonify({"error": "Invalid event", "errors": e.errors}), 400, CORS_HEADERS
            line, source = None, rendered[0]
        else:
            return jsonify({"error": "Log entry is required"}), 400, CORS_HEADERS

        if writer is not None:
            if rendered:
                writer.log(*rendered)
            else:
                writer.log_raw(line)
        else:
            if rendered:
                line = format_line(format_timestamp(fmt=config.timestamp_format), *rendered)
            path = active_path()
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
            with _append_lock, open(path, "a", encoding="utf-8") as f:
                f.write(line.rstrip("\n") + "\n")

        return jsonify({"success": True, "message": "Log entry appended", "source": source}), 200, CORS_HEADERS

    @app.route("/api/logs/errors")
    def logs_errors():
        lines = query.read_lines(requested_path())
        return jsonify(find_errors(
            lines,
            count=request.args.get("count", 10, type=int),
            show_all=request.args.get("all", "false").lower() in ("true", "1", "yes"),
            context=request.args.get("context", "false").lower() in ("true", "1", "yes"),
            detector=detector,
        ))

    @app.route("/api/logs/recent")
    def logs_recent():
        log_type = request.args.get("type", "all")
        if log_type not in LOG_TYPES:
            return jsonify({"error": f"Invalid type: {log_type}. Valid types: {', '.join(LOG_TYPES)}"}), 400
        lines = query.read_lines(requested_path())
        return jsonify(recent_logs(lines, request.args.get("count", 50, type=int), log_type))

    return app
