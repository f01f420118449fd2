"""
Importer feature package scaffolding.

Provides conditional blueprint and CLI registration for the sewadar bulk
import while remaining lightweight when the importer is disabled.
"""

from __future__ import annotations

from typing import Iterable, Tuple

from flask import Flask

from sewa_app.utils.importer import get_importer_adapters, is_importer_enabled

from .celery_app import ensure_celery_app, get_celery_app
from .cli import get_disabled_importer_group, importer_cli
from .registry import AdapterDescriptor, get_adapter_registry, resolve_adapters
from .service import get_job_registry, get_job_store
from .views import importer_blueprint

IMPORTER_EXTENSION_KEY = "importer"

__all__ = [
    "init_importer",
    "IMPORTER_EXTENSION_KEY",
    "get_celery_app",
    "get_job_registry",
    "get_job_store",
]


def _ensure_extension_state(app: Flask) -> dict:
    state = app.extensions.setdefault(
        IMPORTER_EXTENSION_KEY,
        {
            "enabled": False,
            "configured_adapters": (),
            "active_adapters": (),
            "worker_enabled": False,
            "celery_app": None,
            "job_store": None,
        },
    )
    return state


def _set_cli(app: Flask, enabled: bool) -> None:
    """Register the appropriate CLI group based on flag state."""
    # Avoid duplicate registrations when running tests
    command_name = importer_cli.name
    if command_name in app.cli.commands:
        app.cli.commands.pop(command_name)

    if enabled:
        app.cli.add_command(importer_cli)
    else:
        app.cli.add_command(get_disabled_importer_group())


def init_importer(app: Flask) -> None:
    """
    Conditionally mount importer blueprint and CLI based on configuration.

    Records importer state inside ``app.extensions['importer']`` for reuse by
    the views, CLI and worker.
    """
    enabled = is_importer_enabled(app)
    configured_adapters: Tuple[str, ...] = get_importer_adapters(app)

    state = _ensure_extension_state(app)
    state.update(
        {
            "enabled": enabled,
            "configured_adapters": configured_adapters,
            "worker_enabled": bool(app.config.get("IMPORTER_WORKER_ENABLED", False)),
            "job_store": None,
        }
    )

    if not enabled:
        state["active_adapters"] = ()
        _set_cli(app, enabled=False)
        app.logger.info("Importer disabled via IMPORTER_ENABLED flag; skipping registration.")
        return

    active_descriptors: Iterable[AdapterDescriptor] = resolve_adapters(configured_adapters, get_adapter_registry())
    state["active_adapters"] = tuple(active_descriptors)
    ensure_celery_app(app, state)
    # Resolve eagerly so a bad IMPORTER_JOB_STORE fails at startup.
    get_job_store(app)

    if importer_blueprint.name not in app.blueprints and not getattr(app, "_got_first_request", False):
        app.register_blueprint(importer_blueprint)
    elif importer_blueprint.name not in app.blueprints:
        app.logger.warning(
            "Importer blueprint registration skipped because the app has already handled its first request."
        )
    _set_cli(app, enabled=True)

    adapter_names = ", ".join(adapter.name for adapter in state["active_adapters"]) or "none"
    app.logger.info("Importer enabled with adapters: %s", adapter_names)
