"""Tests for progress reporting."""

from book_forge.progress import ProgressReporter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestProgressReporter:
    """Test clamping, throttling and sink isolation."""

    def test_clamps(self):
        updates = []
        progress = ProgressReporter(lambda pct, msg: updates.append(pct))
        progress.report(-5, "before")
        progress.report(140, "after")
        assert updates == [0.0, 100.0]

    def test_throttles_between_boundaries(self):
        clock = FakeClock()
        updates = []
        progress = ProgressReporter(lambda pct, msg: updates.append(pct), min_interval=1.0, clock=clock)

        progress.report(10, "a")
        clock.now = 0.5
        progress.report(20, "b")
        clock.now = 1.2
        progress.report(30, "c")
        clock.now = 1.3
        progress.report(100, "done")

        assert updates == [10.0, 30.0, 100.0]
        assert progress.last_percentage == 100.0
        assert progress.last_message == "done"

    def test_skipped_update_still_tracked(self):
        clock = FakeClock()
        progress = ProgressReporter(lambda pct, msg: None, min_interval=5.0, clock=clock)
        progress.report(10, "a")
        progress.report(20, "b")
        assert progress.last_percentage == 20.0

    def test_failing_sink_is_ignored(self):
        def sink(pct, msg):
            raise RuntimeError("display closed")

        progress = ProgressReporter(sink)
        progress.report(50, "half")
        assert progress.last_percentage == 50.0

    def test_no_sink(self):
        progress = ProgressReporter()
        progress.report(40, "quiet")
        assert progress.last_message == "quiet"


class TestScopedProgress:
    def test_maps_sub_range(self):
        updates = []
        progress = ProgressReporter(lambda pct, msg: updates.append((pct, msg)))
        planning = progress.scoped(0, 40)
        planning.report(50, "Outline ready")
        planning.report(150, "overflow")
        assert updates == [(20.0, "Outline ready"), (40.0, "overflow")]

    def test_nested(self):
        updates = []
        progress = ProgressReporter(lambda pct, msg: updates.append(pct))
        writing = progress.scoped(40, 100)
        chapter = writing.scoped(50, 100)
        chapter.report(0, "start")
        chapter.report(100, "end")
        assert updates == [70.0, 100.0]
