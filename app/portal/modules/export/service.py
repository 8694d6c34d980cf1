from __future__ import annotations

import logging
from typing import Any

from flask import Flask

from app.portal.sync import SyncBridge, SyncScheduler, default_sync_config, load_sync_config

logger = logging.getLogger(__name__)


def current_sync_config(app: Flask) -> dict[str, Any]:
    return load_sync_config(app.extensions["blob_storage"], default_sync_config(app.config))


def configure_sync(app: Flask, config: dict[str, Any] | None = None) -> SyncScheduler | None:
    """
    (Re)start the periodic sync for the given config. The previous schedule is
    always cancelled first, so at most one timer exists per app.
    """
    config = config if config is not None else current_sync_config(app)
    previous: SyncScheduler | None = app.extensions.pop("sync_scheduler", None)
    if previous is not None:
        previous.cancel()

    path = (config.get("networkPath") or "").strip()
    if not config.get("autoSync") or not path:
        return None

    bridge: SyncBridge = app.extensions["sync_bridge"]
    scheduler = SyncScheduler(int(config["syncInterval"]) * 60, lambda: bridge.run(path))
    scheduler.start()
    app.extensions["sync_scheduler"] = scheduler
    logger.info("Auto-sync every %s minute(s) to %s", config["syncInterval"], path)
    return scheduler
