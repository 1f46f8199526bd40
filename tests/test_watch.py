"""
Tests for watch-mode scheduling.
"""

import shutil
import threading
import time

import pytest
from watchdog.events import DirModifiedEvent, FileMovedEvent
from watchdog.observers import Observer

from conftest import collect_events
from vaf.events import EventTypes
from vaf.watch import FileChangeHandler, WatchScheduler, should_ignore, watch_ignore_patterns

DEBOUNCE = 0.05


class RecordingPipeline:
    """Pipeline stand-in that tracks call count and overlap."""

    def __init__(self, block=None, fail_first=False):
        self.block = block
        self.fail_first = fail_first
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.started = threading.Event()
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            call = self.calls
        self.started.set()
        try:
            if self.block is not None and call == 1:
                self.block.wait(5)
            if self.fail_first and call == 1:
                raise RuntimeError("upload exploded")
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def scheduler_factory(tmp_path):
    schedulers = []

    def make(pipeline, **kwargs):
        scheduler = WatchScheduler(pipeline, tmp_path, debounce_seconds=DEBOUNCE, **kwargs)
        scheduler.start()
        schedulers.append(scheduler)
        return scheduler

    yield make
    for scheduler in schedulers:
        scheduler.stop(timeout=2)


class TestShouldIgnore:
    def test_hidden_and_transient(self, tmp_path):
        assert should_ignore(tmp_path / ".git" / "HEAD", tmp_path)
        assert should_ignore(tmp_path / "src" / ".cache" / "x", tmp_path)
        assert should_ignore(tmp_path / ".vaf-deploy-temp-123.zip", tmp_path)
        assert should_ignore(tmp_path / "sub" / ".vaf-layer-temp-9.zip", tmp_path)
        assert not should_ignore(tmp_path / "src" / "index.js", tmp_path)

    def test_relative_paths(self, tmp_path):
        assert should_ignore(".env", tmp_path)
        assert not should_ignore("lib/handler.js", tmp_path)

    def test_package_excludes(self, tmp_path):
        patterns = watch_ignore_patterns(tmp_path)
        assert should_ignore(tmp_path / "node_modules" / "lodash" / "index.js", tmp_path, patterns)
        assert should_ignore(tmp_path / "debug.log", tmp_path, patterns)
        assert not should_ignore(tmp_path / "src" / "index.js", tmp_path, patterns)

    def test_dependency_dir_ignored_with_custom_ignore_file(self, tmp_path):
        (tmp_path / ".vafignore").write_text("dist/\n")
        patterns = watch_ignore_patterns(tmp_path)
        assert should_ignore(tmp_path / "node_modules" / "a" / "b.js", tmp_path, patterns)
        assert should_ignore(tmp_path / "dist" / "bundle.js", tmp_path, patterns)
        assert not should_ignore(tmp_path / "index.js", tmp_path, patterns)


class TestWatchScheduler:
    def test_burst_coalesces_into_one_run(self, tmp_path, scheduler_factory):
        pipeline = RecordingPipeline()
        scheduler = scheduler_factory(pipeline)

        for name in ("a.js", "b.js", "c.js"):
            assert scheduler.notify(tmp_path / name)

        assert scheduler.wait_idle(timeout=5)
        assert pipeline.calls == 1
        assert scheduler.session.runs == 1

    def test_ignored_changes_do_not_trigger(self, tmp_path, scheduler_factory):
        pipeline = RecordingPipeline()
        scheduler = scheduler_factory(pipeline)

        assert not scheduler.notify(tmp_path / ".vaf-deploy-temp-1.zip")
        assert not scheduler.notify(tmp_path / ".git" / "index")
        time.sleep(DEBOUNCE * 4)

        assert pipeline.calls == 0
        assert not scheduler.session.pending

    def test_changes_during_run_cause_one_follow_up(self, tmp_path, scheduler_factory):
        release = threading.Event()
        pipeline = RecordingPipeline(block=release)
        scheduler = scheduler_factory(pipeline)

        scheduler.notify(tmp_path / "a.js")
        assert pipeline.started.wait(5)
        assert scheduler.session.running

        for name in ("b.js", "c.js", "d.js"):
            scheduler.notify(tmp_path / name)
        release.set()

        assert scheduler.wait_idle(timeout=5)
        assert pipeline.calls == 2
        assert pipeline.max_active == 1

    def test_failure_is_reported_and_watching_continues(self, tmp_path, scheduler_factory):
        pipeline = RecordingPipeline(fail_first=True)
        callback, events = collect_events()
        scheduler = scheduler_factory(pipeline, on_event=callback)

        scheduler.notify(tmp_path / "a.js")
        assert scheduler.wait_idle(timeout=5)
        scheduler.notify(tmp_path / "b.js")
        assert scheduler.wait_idle(timeout=5)

        assert pipeline.calls == 2
        assert scheduler.session.failures == 1
        failures = [d for t, d in events if t == EventTypes.WATCH_RUN_FAILED]
        assert failures == [{"error": "upload exploded"}]


    def test_stop_during_quiet_window_discards_changes(self, tmp_path):
        pipeline = RecordingPipeline()
        scheduler = WatchScheduler(pipeline, tmp_path, debounce_seconds=1.0)
        scheduler.start()

        assert scheduler.notify(tmp_path / "a.js")
        time.sleep(0.1)
        scheduler.stop(timeout=2)

        assert pipeline.calls == 0
        assert not scheduler.session.pending
        assert not scheduler.notify(tmp_path / "b.js")

    def test_stop_waits_for_running_deploy(self, tmp_path):
        release = threading.Event()
        pipeline = RecordingPipeline(block=release)
        scheduler = WatchScheduler(pipeline, tmp_path, debounce_seconds=DEBOUNCE)
        scheduler.start()

        scheduler.notify(tmp_path / "a.js")
        assert pipeline.started.wait(5)
        scheduler.notify(tmp_path / "b.js")
        threading.Timer(0.2, release.set).start()
        scheduler.stop()

        assert pipeline.calls == 1
        assert pipeline.active == 0
        assert scheduler.session.runs == 1
        assert not scheduler.session.running


class TestFileChangeHandler:
    def test_forwards_file_changes_only(self, tmp_path):
        seen = []

        class Scheduler:
            def notify(self, path):
                seen.append(path)

        class OpenedEvent:
            event_type = "opened"
            is_directory = False
            src_path = str(tmp_path / "read.js")

        handler = FileChangeHandler(Scheduler())
        handler.on_any_event(FileMovedEvent(str(tmp_path / "old.js"), str(tmp_path / "new.js")))
        handler.on_any_event(DirModifiedEvent(str(tmp_path / "src")))
        handler.on_any_event(OpenedEvent())

        assert seen == [str(tmp_path / "old.js"), str(tmp_path / "new.js")]


class TestWatchWithObserver:
    def test_dependency_reinstall_does_not_retrigger(self, tmp_path):
        (tmp_path / "index.js").write_text("exports.handler = async () => 1;\n")
        deps = tmp_path / "node_modules" / "lodash"
        deps.mkdir(parents=True)
        (deps / "index.js").write_text("module.exports = {};\n")
        runs = []

        def deploy():
            runs.append(time.monotonic())
            # A clean install recreates the dependency tree, then packaging reads the sources
            shutil.rmtree(deps.parent)
            deps.mkdir(parents=True)
            (deps / "index.js").write_text("module.exports = {};\n")
            (tmp_path / "index.js").read_text()

        scheduler = WatchScheduler(deploy, tmp_path, debounce_seconds=0.2)
        observer = Observer()
        observer.schedule(FileChangeHandler(scheduler), str(tmp_path), recursive=True)
        scheduler.start()
        observer.start()
        try:
            time.sleep(0.2)
            (tmp_path / "index.js").write_text("exports.handler = async () => 2;\n")
            deadline = time.monotonic() + 5
            while not runs and time.monotonic() < deadline:
                time.sleep(0.05)
            time.sleep(1.5)
            assert scheduler.wait_idle(timeout=5)
        finally:
            observer.stop()
            observer.join()
            scheduler.stop(timeout=5)

        assert len(runs) == 1
