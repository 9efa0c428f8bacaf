"""
HTTP API for eMasjid, served by uvicorn on a daemon thread.

  GET /api/plugins                  running plugins and their (secret-free) config
  GET /api/tasks                    stored task schedules and live timers
  /api/components/<plugin>/...      routes from emasjid.plugins.<plugin>.api:get_router(app)
"""
import importlib
import logging
import pkgutil
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request

from emasjid.core.models import get_all_task_schedules

logger = logging.getLogger(__name__)

_SECRET_KEYS = frozenset({"api_key", "password", "token", "secret"})

core_router = APIRouter(prefix="/api", tags=["Core"])


def _iso_utc(value: Optional[datetime]) -> Optional[str]:
    """Naive datetimes from the DB are UTC."""
    if value is None:
        return None
    return (value if value.tzinfo else value.replace(tzinfo=timezone.utc)).isoformat()


def get_emasjid_app(request: Request) -> Any:
    return request.app.state.emasjid


@core_router.get("/plugins")
def list_plugins(emasjid_app: Any = Depends(get_emasjid_app)) -> List[Dict[str, Any]]:
    return [
        {
            "name": name,
            "config": {k: v for k, v in (plugin.config or {}).items() if str(k).lower() not in _SECRET_KEYS},
        }
        for name, plugin in emasjid_app.plugin_manager.plugins.items()
    ]


@core_router.get("/tasks")
def list_tasks(emasjid_app: Any = Depends(get_emasjid_app)) -> Dict[str, Any]:
    schedules = get_all_task_schedules()
    for row in schedules:
        row["next_run_at"] = _iso_utc(row["next_run_at"])
        row["last_run_at"] = _iso_utc(row["last_run_at"])
    timers = [
        {"name": t["name"], "next_run_at": _iso_utc(t["next_run_at"])}
        for t in emasjid_app.task_manager.get_active_timers()
    ]
    return {"db_schedules": schedules, "active_timers": timers}


def mount_plugin_routers(app: FastAPI, emasjid_app: Any, plugin_package: str = "emasjid.plugins") -> List[str]:
    """Include get_router() of every <plugin_package>.<name>.api module. Returns the mounted names."""
    mounted = []
    package = importlib.import_module(plugin_package)
    for module_info in pkgutil.iter_modules(package.__path__):
        if not module_info.ispkg:
            continue
        name = module_info.name
        try:
            api_module = importlib.import_module(f"{plugin_package}.{name}.api")
        except ModuleNotFoundError:
            logger.debug(f"Plugin {name} has no API module")
            continue
        get_router = getattr(api_module, "get_router", None)
        if get_router is None:
            continue
        try:
            router = get_router(emasjid_app)
        except Exception as e:
            logger.warning(f"Failed to build API router for plugin {name}: {e}", exc_info=True)
            continue
        if router is not None:
            app.include_router(router, prefix=f"/api/components/{name}")
            mounted.append(name)
    logger.info(f"Mounted plugin APIs: {', '.join(mounted) or 'none'}")
    return mounted


def create_app(emasjid_app: Any) -> FastAPI:
    app = FastAPI(title="eMasjid API", description="Prayer times for configured masjids")
    app.state.emasjid = emasjid_app
    app.include_router(core_router)
    mount_plugin_routers(app, emasjid_app)
    return app


def run_api_server(emasjid_app: Any) -> Optional[uvicorn.Server]:
    """Serve the API in the background when api.enabled is set. Stop with server.should_exit = True."""
    api_config = emasjid_app.config.get_section("api")
    if not api_config.get("enabled", False):
        logger.info("API server disabled (set api.enabled: true to start it)")
        return None

    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8765))
    server = uvicorn.Server(uvicorn.Config(create_app(emasjid_app), host=host, port=port, log_config=None))

    def serve():
        try:
            server.run()
        except Exception as e:
            logger.exception(f"API server stopped with an error: {e}")

    threading.Thread(target=serve, name="emasjid-api", daemon=True).start()
    logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
    return server
