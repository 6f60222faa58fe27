"""Tests for watch.py"""

from pathlib import Path

from pagewright.builder import BuildReport, BuildResult
from pagewright.content import Site, SiteMeta
from pagewright.errors import DuplicateSlugError
from pagewright.watch import Debouncer, State, WatchLoop, diff_snapshots, snapshot


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


class FakeBuilder:
    """Records each call and optionally fails the first few."""

    def __init__(self, failures=0):
        self.calls = []
        self.failures = failures

    def __call__(self, config, previous, changed):
        self.calls.append(changed)
        if self.failures:
            self.failures -= 1
            raise DuplicateSlugError("same", ["a.md", "b.md"])
        return BuildResult(Site(SiteMeta("t")), BuildReport())


class ScriptedScan:
    """Return a queued snapshot per call, repeating the last one when empty."""

    def __init__(self, *snapshots):
        self.snapshots = list(snapshots)
        self.last = {}

    def __call__(self, roots):
        if self.snapshots:
            self.last = self.snapshots.pop(0)
        return dict(self.last)


class TestDebouncer:
    def test_waits_for_quiet_period(self):
        clock = FakeClock()
        debouncer = Debouncer(0.5, clock)
        debouncer.record([Path("a.md")])
        assert debouncer.state is State.ACCUMULATING
        clock.now = 0.4
        assert debouncer.poll() is None
        debouncer.record([Path("b.md")])
        clock.now = 0.8
        assert debouncer.poll() is None
        clock.now = 0.9
        assert debouncer.poll() == {Path("a.md"), Path("b.md")}
        assert debouncer.state is State.IDLE
        assert debouncer.poll() is None

    def test_empty_record_does_not_start_a_batch(self):
        debouncer = Debouncer(0.5, FakeClock())
        debouncer.record([])
        assert debouncer.state is State.IDLE
        assert debouncer.poll() is None


def test_snapshot_and_diff(tmp_path):
    root = tmp_path / "posts"
    root.mkdir()
    keep = root / "keep.md"
    keep.write_text("a", encoding="utf-8")
    gone = root / "gone.md"
    gone.write_text("b", encoding="utf-8")
    single = tmp_path / "feeds.txt"
    single.write_text("https://a.example/feed\n", encoding="utf-8")

    before = snapshot([root, single, tmp_path / "missing"])
    assert set(before) == {keep, gone, single}

    gone.unlink()
    added = root / "added.md"
    added.write_text("c", encoding="utf-8")
    after = dict(snapshot([root, single]))
    after[keep] = before[keep] + 10

    assert diff_snapshots(before, after) == {keep, gone, added}


class TestWatchLoop:
    def make_loop(self, config, scan, builder):
        clock = FakeClock()
        loop = WatchLoop(config, build=builder, clock=clock, sleep=clock.sleep, scan=scan)
        return loop, clock

    def test_burst_of_events_builds_once(self, config):
        a, b, c = Path("a.md"), Path("b.md"), Path("c.md")
        scan = ScriptedScan(
            {a: 1.0},
            {a: 2.0},
            {a: 3.0, b: 1.0},
            {a: 3.0, b: 2.0, c: 1.0},
        )
        builder = FakeBuilder()
        loop, clock = self.make_loop(config, scan, builder)

        loop.start()
        assert builder.calls == [None]
        for _ in range(3):
            assert loop.tick() is False
            clock.sleep(0.1)
        clock.sleep(config.debounce)
        assert loop.tick() is True

        assert builder.calls == [None, {a, b, c}]
        assert loop.builds == 2
        assert loop.tick() is False

    def test_failed_batch_is_retried_with_next_changes(self, config):
        a, b = Path("a.md"), Path("b.md")
        scan = ScriptedScan({}, {a: 1.0}, {a: 1.0}, {a: 1.0, b: 1.0})
        builder = FakeBuilder()
        loop, clock = self.make_loop(config, scan, builder)
        loop.start()

        builder.failures = 1
        loop.tick()
        clock.sleep(config.debounce)
        assert loop.tick() is True
        assert loop.failed == {a}

        loop.tick()
        clock.sleep(config.debounce)
        loop.tick()
        assert builder.calls[-1] == {a, b}
        assert loop.failed == set()

    def test_failed_initial_build_retries_as_full_build(self, config):
        a = Path("a.md")
        scan = ScriptedScan({}, {a: 1.0})
        builder = FakeBuilder(failures=1)
        loop, clock = self.make_loop(config, scan, builder)

        loop.start()
        assert loop.result is None
        loop.tick()
        clock.sleep(config.debounce)
        loop.tick()

        assert builder.calls == [None, None]
        assert loop.result is not None

    def test_run_stops_after_max_builds(self, config):
        scan = ScriptedScan({}, {}, {Path("a.md"): 1.0})
        builder = FakeBuilder()
        loop, _ = self.make_loop(config, scan, builder)

        loop.run(max_builds=2)

        assert loop.builds == 2
        assert builder.calls == [None, {Path("a.md")}]

    def test_stop_ends_the_loop(self, config):
        builder = FakeBuilder()
        loop, clock = self.make_loop(config, ScriptedScan({}), builder)
        ticks = []

        def sleep(seconds):
            ticks.append(seconds)
            loop.stop()

        loop.sleep = sleep
        loop.run()
        assert ticks == [config.poll_interval]
        assert loop.builds == 1
