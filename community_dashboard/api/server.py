"""
FastAPI server for the dashboard API. Run with run_api_server(service) in a background thread.
Central endpoints: GET /api/components, GET /api/tasks. Per-plugin routes are mounted
from community_dashboard.plugins.<package>.api (get_router(dashboard_app)) under /api/components/<package>/.
Docs when enabled: http://<host>:<port>/docs
"""
import importlib
import logging
import pkgutil
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI

from community_dashboard.core.models import get_all_task_schedules

logger = logging.getLogger(__name__)

# Keys to exclude from component config in API (secrets)
_CONFIG_SECRET_KEYS = frozenset(
    {"api_key", "password", "token", "secret", "credentials", "client_secret"}
)


def _safe_component_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return config with secret keys omitted."""
    if not config:
        return {}
    return {k: v for k, v in config.items() if k.lower() not in _CONFIG_SECRET_KEYS}


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO string (UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def create_app(dashboard_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given DashboardService (config, plugin_manager, task_manager)."""
    app = FastAPI(title="Community Dashboard API", description="Schedules, notifications, prayer times and calendar")

    @app.get("/api/components")
    def list_components() -> List[Dict[str, Any]]:
        """List registered components with enabled state and safe config."""
        components_data = []
        comp_config = dashboard_app.config.data.get("components") or {}
        for name in dashboard_app.plugin_manager.tasks:
            config = comp_config.get(name) or {}
            enabled = config.get("enable", False) if isinstance(config, dict) else False
            safe_config = _safe_component_config(config) if isinstance(config, dict) else {}
            components_data.append({
                "name": name,
                "enabled": enabled,
                "config": safe_config,
            })
        return components_data

    @app.get("/api/tasks")
    def list_tasks() -> Dict[str, Any]:
        """List scheduled tasks: DB schedules and active in-memory timers."""
        db_schedules = get_all_task_schedules()
        for row in db_schedules:
            row["next_run_at"] = _serialize_datetime(row.get("next_run_at"))
            row["last_run_at"] = _serialize_datetime(row.get("last_run_at"))

        active_list = [
            {"name": t["name"], "next_run_at": _serialize_datetime(t["next_run_at"])}
            for t in dashboard_app.task_manager.get_active_timers()
        ]
        return {"db_schedules": db_schedules, "active_timers": active_list}

    @app.post("/api/tasks/{component_name}/run")
    def run_task(component_name: str) -> Dict[str, Any]:
        """Run a registered task once now (in a background thread)."""
        thread = threading.Thread(
            target=dashboard_app.task_manager.run_task_now, args=(component_name,), daemon=True
        )
        thread.start()
        return {"name": component_name, "started": True}

    # Mount per-plugin API routers from community_dashboard.plugins.<name>.api
    plugins_pkg = importlib.import_module("community_dashboard.plugins")
    for _mod, name, is_pkg in pkgutil.iter_modules(plugins_pkg.__path__):
        if not is_pkg:
            continue
        try:
            api_module = importlib.import_module(f"community_dashboard.plugins.{name}.api")
        except ImportError as e:
            logger.debug(f"Plugin {name} has no API module: {e}")
            continue
        if not callable(getattr(api_module, "get_router", None)):
            continue
        try:
            router = api_module.get_router(dashboard_app)
            if router is not None:
                app.include_router(router, prefix=f"/api/components/{name}")
        except Exception as e:
            logger.warning(f"Failed to mount API router for plugin {name}: {e}", exc_info=True)

    return app


def run_api_server(dashboard_app: Any, force: bool = False) -> Optional[threading.Thread]:
    """
    Start the API server in a daemon thread if api.enabled is true (or force).
    Reads api.host (default 127.0.0.1) and api.port (default 8765) from config.
    """
    api_config = dashboard_app.config.data.get("api") or {}
    enabled = force or api_config.get("enabled", False)
    if not enabled:
        logger.info("API server not started: set api.enabled to true in your config file to enable.")
        return None
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8765))
    fastapi_app = create_app(dashboard_app)

    def run_uvicorn():
        try:
            import uvicorn
            logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
            uvicorn.run(fastapi_app, host=host, port=port)
        except Exception as e:
            logger.exception(f"API server thread failed: {e}")

    thread = threading.Thread(target=run_uvicorn, daemon=True)
    thread.start()
    logger.info("API server thread started.")
    return thread
