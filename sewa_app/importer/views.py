"""
Importer blueprint: sewadar import submission, job polling and health checks.
"""

from __future__ import annotations

from http import HTTPStatus

from celery.exceptions import TimeoutError as CeleryTimeoutError
from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context

from sewa_app.utils.importer import is_importer_enabled

from .adapters import SewadarSpreadsheetAdapter, SpreadsheetAdapterError
from .celery_app import DEFAULT_QUEUE_NAME, get_celery_app
from .metrics import record_api_request
from .pipeline import EmptyImportError, JobNotFound, stream_job_events
from .registry import AdapterDescriptor, allowed_extensions
from .service import get_job_registry, get_job_store
from .utils import validate_upload

importer_blueprint = Blueprint("importer", __name__, url_prefix="/importer")


def _serialize_adapter(adapter: AdapterDescriptor) -> dict:
    return {
        "name": adapter.name,
        "title": adapter.title,
        "summary": adapter.summary,
        "extensions": list(adapter.extensions),
    }


def _json_error(message: str, status: HTTPStatus, *, endpoint: str | None = None):
    if endpoint:
        record_api_request(endpoint=endpoint, status=int(status))
    return jsonify({"error": message}), status


def _ensure_importer_enabled_api(endpoint: str):
    if not is_importer_enabled(current_app):
        return _json_error("Importer is disabled.", HTTPStatus.NOT_FOUND, endpoint=endpoint)
    return None


@importer_blueprint.get("/health")
def importer_healthcheck():
    """
    Lightweight health endpoint proving the importer blueprint mounted correctly.
    """
    importer_state = current_app.extensions.get("importer", {})
    adapters = importer_state.get("active_adapters", ())
    return (
        jsonify(
            {
                "status": "ok",
                "enabled": importer_state.get("enabled", False),
                "job_store": current_app.config.get("IMPORTER_JOB_STORE", "database"),
                "adapters": [_serialize_adapter(adapter) for adapter in adapters],
            }
        ),
        200,
    )


@importer_blueprint.get("/worker_health")
def importer_worker_health():
    """
    Validate importer worker availability via the heartbeat task.
    """
    importer_state = current_app.extensions.get("importer", {})
    enabled = importer_state.get("enabled", False)
    worker_enabled = importer_state.get("worker_enabled", False)
    timeout_seconds = float(request.args.get("timeout", 5))

    payload = {
        "importer_enabled": enabled,
        "worker_enabled": worker_enabled,
        "queue": DEFAULT_QUEUE_NAME,
        "timeout_seconds": timeout_seconds,
    }

    if not enabled or not worker_enabled:
        payload["status"] = "disabled"
        if enabled:
            payload["message"] = "Worker flag disabled; start the worker or set IMPORTER_WORKER_ENABLED=true."
        return jsonify(payload), 200

    celery_app = get_celery_app(current_app)
    if celery_app is None:
        payload["status"] = "error"
        payload["error"] = "celery_app_unavailable"
        return jsonify(payload), 500

    task = celery_app.tasks.get("importer.healthcheck")
    if task is None:
        payload["status"] = "error"
        payload["error"] = "heartbeat_task_missing"
        return jsonify(payload), 500

    result = task.apply_async()
    try:
        payload["status"] = "ok"
        payload["heartbeat"] = result.get(timeout=timeout_seconds)
        return jsonify(payload), 200
    except CeleryTimeoutError:
        payload["status"] = "timeout"
        return jsonify(payload), 504
    except Exception as exc:
        current_app.logger.exception("Importer worker health check failed.", exc_info=exc)
        payload["status"] = "error"
        payload["error"] = str(exc)
        return jsonify(payload), 500


def _rows_from_upload():
    file_storage = request.files.get("file")
    state = current_app.extensions.get("importer", {})
    validate_upload(file_storage, allowed_extensions(state.get("active_adapters", ())))
    adapter = SewadarSpreadsheetAdapter(file_storage.stream, filename=file_storage.filename)
    rows = adapter.read_rows()
    current_app.logger.info(
        "Sewadar spreadsheet parsed",
        extra={
            "importer_filename": file_storage.filename,
            "importer_rows_parsed": adapter.statistics.rows_processed,
            "importer_rows_skipped_blank": adapter.statistics.rows_skipped_blank,
            "importer_ignored_columns": list(adapter.statistics.ignored_columns),
        },
    )
    return rows, request.form.get("area_code"), request.form.get("actor_id")


def _rows_from_json():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object.")
    rows = payload.get("rows")
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        raise ValueError("'rows' must be a list of objects.")
    return rows, payload.get("area_code"), payload.get("actor_id")


@importer_blueprint.post("/sewadars")
def submit_sewadar_import():
    """
    Start a sewadar import from an uploaded spreadsheet or a JSON row list.

    Returns 202 with ``{job_id, total, message}``; the job runs in the worker.
    """
    endpoint = "submit"
    disabled_response = _ensure_importer_enabled_api(endpoint)
    if disabled_response:
        return disabled_response

    try:
        if "file" in request.files:
            rows, area_code, actor_id = _rows_from_upload()
        elif request.is_json:
            rows, area_code, actor_id = _rows_from_json()
        else:
            return _json_error(
                "Upload a spreadsheet as 'file' or post JSON rows.", HTTPStatus.BAD_REQUEST, endpoint=endpoint
            )
    except OverflowError as exc:
        return _json_error(str(exc), HTTPStatus.REQUEST_ENTITY_TOO_LARGE, endpoint=endpoint)
    except (ValueError, SpreadsheetAdapterError) as exc:
        return _json_error(str(exc), HTTPStatus.BAD_REQUEST, endpoint=endpoint)

    try:
        submission = get_job_registry().submit(
            rows,
            area_code=str(area_code).strip().upper() if area_code else None,
            actor_id=str(actor_id) if actor_id not in (None, "") else None,
        )
    except EmptyImportError as exc:
        return _json_error(str(exc), HTTPStatus.BAD_REQUEST, endpoint=endpoint)
    except Exception as exc:
        current_app.logger.exception("Sewadar import submission failed.", exc_info=exc)
        return _json_error("Failed to schedule import.", HTTPStatus.INTERNAL_SERVER_ERROR, endpoint=endpoint)

    record_api_request(endpoint=endpoint, status=int(HTTPStatus.ACCEPTED))
    return jsonify(submission.to_dict()), HTTPStatus.ACCEPTED


@importer_blueprint.get("/sewadars/jobs/<job_id>")
def sewadar_import_status(job_id: str):
    endpoint = "poll"
    disabled_response = _ensure_importer_enabled_api(endpoint)
    if disabled_response:
        return disabled_response

    try:
        snapshot = get_job_registry().poll(job_id)
    except JobNotFound:
        return _json_error("Job not found", HTTPStatus.NOT_FOUND, endpoint=endpoint)

    record_api_request(endpoint=endpoint, status=int(HTTPStatus.OK))
    return jsonify(snapshot), HTTPStatus.OK


@importer_blueprint.get("/sewadars/jobs/<job_id>/stream")
def sewadar_import_stream(job_id: str):
    """
    Server-sent events carrying the job snapshot until it is terminal.
    """
    endpoint = "stream"
    disabled_response = _ensure_importer_enabled_api(endpoint)
    if disabled_response:
        return disabled_response

    config = current_app.config
    events = stream_job_events(
        get_job_store(),
        job_id,
        poll_interval=float(config.get("IMPORTER_PROGRESS_POLL_INTERVAL_SECONDS", 1.0)),
        max_duration=float(config.get("IMPORTER_PROGRESS_MAX_POLL_SECONDS", 600)),
    )
    record_api_request(endpoint=endpoint, status=int(HTTPStatus.OK))
    response = Response(stream_with_context(events), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response
