"""Continuous re-sync for tagsync.

Runs the sync pipeline once, then again whenever a file under the content
root changes, so new tags get their index page while a post is being
written.

Key classes:
- TagWatcher: Owns the observer and re-runs the pipeline on change.
- _ChangeHandler: File system event handler that triggers re-syncs.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .config import SyncConfig
from .errors import ConfigurationError, SyncCancelled
from .pipeline import SyncReport, run_sync
from .scanner import DocumentScanner
from .utils import has_extension

logger = logging.getLogger(__name__)


class TagWatcher:
    """Watches the content root and keeps artifacts in sync.

    A change that arrives while a sync is running, or inside the debounce
    window after one, is remembered and picked up by a trailing sync.

    Attributes:
        config: Resolved configuration.
        on_report: Called with every SyncReport produced.
        _observer: File system observer, set while watching.
        _stop: Set to stop watching; also cancels a run in progress.
        _state: Guards _running, _pending and _timer.
    """

    def __init__(self, config: SyncConfig, on_report: Callable[[SyncReport], None]):
        self.config = config
        self.on_report = on_report
        self._observer: Observer | None = None
        self._stop = threading.Event()
        self._state = threading.Lock()
        self._running = False
        self._pending = False
        self._timer: threading.Timer | None = None
        self._last_sync_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.2

    def start(self) -> None:  # pragma: no cover - integration path
        self.sync()
        self._start_observer()
        try:
            while not self._stop.is_set():
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    def stop(self) -> None:
        self._stop.set()
        with self._state:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def _start_observer(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        observer.schedule(handler, str(self.config.content_dir), recursive=True)
        observer.start()
        self._observer = observer

    def sync(self) -> SyncReport | None:
        """Run the pipeline, or arrange for it to run soon.

        Inside the debounce window a trailing sync is scheduled; while a
        sync is running the change is queued and that sync runs again once
        it finishes.

        Returns:
            The last report produced by this call, or None when the run was
            deferred, skipped because nothing changed, or cancelled.
        """
        with self._state:
            if self._stop.is_set():
                return None
            if self._running:
                self._pending = True
                return None
            wait = self._debounce_seconds - (time.time() - self._last_sync_at)
            if wait > 0:
                self._schedule(wait)
                return None
            self._running = True
            self._pending = False

        report = None
        try:
            while True:
                report = self._sync_once() or report
                with self._state:
                    if not self._pending or self._stop.is_set():
                        self._running = False
                        self._last_sync_at = time.time()
                        return report
                    self._pending = False
        except BaseException:
            with self._state:
                self._running = False
                self._last_sync_at = time.time()
            raise

    def _schedule(self, delay: float) -> None:
        # Caller holds self._state.
        if self._timer is not None:
            return
        timer = threading.Timer(delay, self._trailing_sync)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _trailing_sync(self) -> None:
        with self._state:
            self._timer = None
        try:
            self.sync()
        except ConfigurationError as exc:
            logger.error("sync failed: %s", exc)

    def _sync_once(self) -> SyncReport | None:
        signature = self._compute_signature()
        if self._last_signature is not None and signature == self._last_signature:
            return None
        try:
            report = run_sync(self.config, cancel=self._stop)
        except SyncCancelled:
            logger.debug("sync cancelled while stopping")
            return None
        self._last_signature = signature
        self.on_report(report)
        return report

    def _compute_signature(self) -> tuple:
        entries: list[tuple] = []
        root = self.config.content_dir
        scanner = DocumentScanner(root, self.config.extensions, exclude=[self.config.artifacts_dir])
        for path in scanner.iter_paths():
            try:
                stat = path.stat()
            except OSError:
                continue
            entries.append((path.relative_to(root).as_posix(), stat.st_mtime_ns, stat.st_size))
        return tuple(entries)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: TagWatcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(event.src_path)
        # Skip our own writes into the artifact tree.
        try:
            path.relative_to(self.watcher.config.artifacts_dir)
            return
        except ValueError:
            pass
        if not has_extension(path, self.watcher.config.extensions):
            return
        try:
            self.watcher.sync()
        except ConfigurationError as exc:
            logger.error("sync failed: %s", exc)
