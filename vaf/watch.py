"""
Watch mode: redeploy when project files change.

File-system notifications are fed into a queue. A single worker thread
drains the queue, waits for the burst to settle, and runs the deploy
pipeline. Runs never overlap; changes seen during a run produce at most one
follow-up run. Paths the package would exclude never trigger a run, so the
dependency install inside a run cannot retrigger itself.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .builder import DEPENDENCY_DIR
from .events import EventCallback, EventTypes, null_callback
from .packaging import TRANSIENT_PREFIX, is_excluded, read_ignore_file

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 2.0

# Opened and closed-without-write events fire when packaging reads files
CHANGE_EVENT_TYPES = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}

_STOP = object()


def watch_ignore_patterns(root: Union[str, Path]) -> List[str]:
    """Ignore patterns for watch mode: the project's package excludes plus the dependency tree."""
    return read_ignore_file(root) + [f"{DEPENDENCY_DIR}/**"]


def should_ignore(path: Union[str, Path], root: Union[str, Path], patterns: Iterable[str] = ()) -> bool:
    """
    Check whether a changed path should be ignored.

    Hidden paths, the CLI's own temporary files and paths matching the
    given exclusion patterns never trigger a run.
    """
    path = Path(path)
    try:
        rel = path.resolve().relative_to(Path(root).resolve())
        parts = rel.parts
    except ValueError:
        parts = path.parts
    for part in parts:
        if part.startswith(".") and part not in (".", ".."):
            return True
    if path.name.startswith(TRANSIENT_PREFIX):
        return True
    return is_excluded("/".join(parts), patterns)


@dataclass
class WatchSession:
    """Scheduler state, guarded by the scheduler lock."""
    pending: bool = False
    running: bool = False
    runs: int = 0
    failures: int = 0


class FileChangeHandler(FileSystemEventHandler):
    """Forwards watchdog change events to the scheduler."""

    def __init__(self, scheduler: "WatchScheduler"):
        super().__init__()
        self.scheduler = scheduler

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in CHANGE_EVENT_TYPES:
            return
        self.scheduler.notify(event.src_path)
        dest = getattr(event, "dest_path", None)
        if dest:
            self.scheduler.notify(dest)


class WatchScheduler:
    """Debounces change notifications and serializes pipeline runs."""

    def __init__(
        self,
        pipeline: Callable[[], object],
        root: Union[str, Path],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_event: EventCallback = null_callback,
        ignore_patterns: Optional[List[str]] = None,
    ):
        self.pipeline = pipeline
        self.root = Path(root)
        self.debounce_seconds = debounce_seconds
        self.on_event = on_event
        self.ignore_patterns = watch_ignore_patterns(self.root) if ignore_patterns is None else ignore_patterns
        self.session = WatchSession()
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._stopping = threading.Event()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)

    def notify(self, path: Union[str, Path]) -> bool:
        """
        Report a changed path.

        Returns:
            True if the change was accepted
        """
        if self._stopping.is_set() or should_ignore(path, self.root, self.ignore_patterns):
            return False
        with self._lock:
            self.session.pending = True
            self._queue.put(str(path))
        return True

    def start(self) -> None:
        if self._worker is not None:
            return
        self._stopping.clear()
        self._worker = threading.Thread(target=self._run_worker, name="vaf-watch", daemon=True)
        self._worker.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop the worker. Pending changes are discarded and no new run starts;
        a run already in progress is waited for so it can clean up.
        """
        if self._worker is None:
            return
        self._stopping.set()
        self._queue.put(_STOP)
        self._worker.join(timeout)
        if self._worker.is_alive():
            logger.warning("Watch worker still running after stop timeout")
        self._worker = None

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is pending or running."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self.session.pending or self.session.running:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def _run_worker(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                self._discard_pending()
                return
            changed = {item}
            # Each new event restarts the quiet window
            while True:
                try:
                    item = self._queue.get(timeout=self.debounce_seconds)
                except queue.Empty:
                    break
                if item is _STOP:
                    logger.info(f"Watch stopped, discarding {len(changed)} pending change(s)")
                    self._discard_pending()
                    return
                changed.add(item)
            if self._stopping.is_set():
                self._discard_pending()
                return
            self._execute(changed)

    def _discard_pending(self) -> None:
        with self._idle:
            self.session.pending = False
            self._idle.notify_all()

    def _execute(self, changed: set) -> None:
        with self._lock:
            self.session.pending = False
            self.session.running = True
        logger.info(f"Change detected in {len(changed)} file(s), redeploying")
        self.on_event(EventTypes.WATCH_TRIGGERED, {"files": sorted(changed)})
        failed = False
        try:
            self.pipeline()
        except Exception as e:
            logger.exception("Watch-triggered deploy failed")
            failed = True
            self.on_event(EventTypes.WATCH_RUN_FAILED, {"error": str(e)})
        finally:
            with self._idle:
                self.session.running = False
                self.session.runs += 1
                if failed:
                    self.session.failures += 1
                self.session.pending = not self._queue.empty()
                self._idle.notify_all()

    def watch(self) -> None:
        """Observe the project directory until interrupted."""
        observer = Observer()
        observer.schedule(FileChangeHandler(self), str(self.root), recursive=True)
        self.start()
        observer.start()
        self.on_event(EventTypes.WATCH_STARTED, {"root": str(self.root)})
        try:
            while observer.is_alive():
                observer.join(1)
        except KeyboardInterrupt:
            logger.info("Watch interrupted")
        finally:
            observer.stop()
            observer.join()
            if self.session.running:
                logger.info("Waiting for the current deploy to finish")
            self.stop()
