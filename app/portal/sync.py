from __future__ import annotations

import json
import logging
import shlex
import subprocess
import threading
import zipfile
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any, BinaryIO

from app.portal.errorlog import ERROR_LOG_KEY
from app.portal.errors import BuildError, SyncInProgress, ValidationError
from app.portal.records import COLLECTIONS
from app.portal.storage import Storage, StorageError

logger = logging.getLogger(__name__)

SYNC_CONFIG_KEY = "export-config"
# Blobs mirrored to the sync folder: every collection plus the error log.
SYNC_KEYS = (*COLLECTIONS, ERROR_LOG_KEY)


# ---------- Mirror to directory ----------
def collect_blobs(storage: Storage, names: Iterable[str] = SYNC_KEYS) -> dict[str, str | None]:
    return {name: storage.get(name) for name in names}


def sync_to_directory(dest: str | Path, blobs: Mapping[str, str | None]) -> list[Path]:
    """
    Write `<name>.json` into `dest` for every non-empty blob.
    Creates `dest` and its parents. Filesystem errors propagate unchanged.
    """
    root = Path(dest)
    root.mkdir(parents=True, exist_ok=True)
    written = []
    for name, data in blobs.items():
        if not data:
            continue
        path = root / f"{name}.json"
        path.write_text(data, encoding="utf-8")
        written.append(path)
    return written


class SyncBridge:
    """
    Copies collection blobs to a directory. At most one sync runs at a time;
    a second caller gets SyncInProgress instead of overlapping the first.
    """

    def __init__(self, storage: Storage, names: Iterable[str] = SYNC_KEYS) -> None:
        self.storage = storage
        self.names = tuple(names)
        self._in_flight = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    def run(self, dest: str | Path) -> list[Path]:
        if not self._in_flight.acquire(blocking=False):
            raise SyncInProgress("A sync is already running.")
        try:
            written = sync_to_directory(dest, collect_blobs(self.storage, self.names))
        finally:
            self._in_flight.release()
        logger.info("Synced %d collection(s) to %s", len(written), dest)
        return written


class SyncScheduler:
    """
    Calls `job` every `interval` seconds on a daemon thread until cancelled.
    A tick that finds the previous sync still running is dropped.
    """

    def __init__(self, interval: float, job: Callable[[], Any], *, name: str = "portal-sync") -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.job = job
        self.name = name
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def cancel(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.tick()

    def tick(self) -> bool:
        """Run the job once. Returns False when the tick was dropped or failed."""
        try:
            self.job()
        except SyncInProgress:
            logger.warning("Sync tick dropped: previous sync still running")
            return False
        except Exception:
            # Runs on the timer thread; the next tick still fires.
            logger.exception("Scheduled sync failed")
            return False
        return True


# ---------- Sync config ----------
def default_sync_config(config: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "networkPath": config.get("SYNC_PATH") or "",
        "autoSync": bool(config.get("AUTO_SYNC")),
        "syncInterval": int(config.get("SYNC_INTERVAL_MINUTES") or 5),
    }


def validate_sync_config(payload: Mapping[str, Any]) -> list[str]:
    errors = []
    unknown = set(payload) - {"networkPath", "autoSync", "syncInterval"}
    for name in sorted(unknown):
        errors.append(f"Unknown field '{name}'.")
    if "networkPath" in payload and not isinstance(payload["networkPath"], str):
        errors.append("'networkPath' must be a string.")
    if "autoSync" in payload and not isinstance(payload["autoSync"], bool):
        errors.append("'autoSync' must be true or false.")
    if "syncInterval" in payload:
        value = payload["syncInterval"]
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            errors.append("'syncInterval' must be a whole number of minutes (>= 1).")
    return errors


def load_sync_config(storage: Storage, defaults: Mapping[str, Any]) -> dict[str, Any]:
    config = dict(defaults)
    raw = storage.get(SYNC_CONFIG_KEY)
    if raw is None:
        return config
    try:
        stored = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageError(f"'{SYNC_CONFIG_KEY}' is not valid JSON: {e}") from e
    if not isinstance(stored, dict):
        raise StorageError(f"'{SYNC_CONFIG_KEY}' must hold a JSON object.")
    config.update(stored)
    return config


def save_sync_config(storage: Storage, current: Mapping[str, Any], changes: Mapping[str, Any]) -> dict[str, Any]:
    errors = validate_sync_config(changes)
    if errors:
        raise ValidationError(errors)
    config = {**current, **changes}
    storage.put(SYNC_CONFIG_KEY, json.dumps(config))
    return config


# ---------- Export / build ----------
def export_archive(root: str | Path, files: Iterable[str], dest: str | Path | BinaryIO) -> list[str]:
    """
    Zip a fixed list of files (relative to `root`) into `dest`.
    Files that are missing, unreadable or outside `root` are logged and skipped.
    """
    base = Path(root).resolve()
    files = list(files)
    added = []
    with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name in files:
            path = (base / name).resolve()
            try:
                path.relative_to(base)
            except ValueError:
                logger.warning("Export skipped %s: outside project root", name)
                continue
            try:
                zf.write(path, arcname=Path(name).as_posix())
            except OSError as e:
                logger.warning("Export skipped %s: %s", name, e)
                continue
            added.append(name)
    logger.info("Exported %d of %d file(s) to %s", len(added), len(files), dest)
    return added


def run_build(command: str | Sequence[str], *, cwd: str | Path | None = None, timeout: float | None = None) -> str:
    """Run the packaging command; returns stdout, raises BuildError with the output on failure."""
    args = shlex.split(command) if isinstance(command, str) else list(command)
    if not args:
        raise BuildError("No build command configured.")
    try:
        proc = subprocess.run(args, cwd=cwd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise BuildError(f"Build could not run: {e}") from e
    if proc.returncode != 0:
        raise BuildError(f"Build failed with exit code {proc.returncode}.", output=(proc.stdout or "") + (proc.stderr or ""))
    return proc.stdout
