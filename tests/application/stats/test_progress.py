import threading

from retune.application.stats.progress import ProgressHandler


def test_report_updates_snapshot():
    progress = ProgressHandler()

    assert progress.report_progress(2, 5) is True
    snap = progress.snapshot()
    assert (snap.current, snap.total) == (2, 5)


def test_snapshot_is_a_copy():
    progress = ProgressHandler()
    progress.report_progress(1, 5)

    snap = progress.snapshot()
    progress.report_progress(4, 5)

    assert snap.current == 1


def test_cancel_stops_reporting():
    progress = ProgressHandler()
    progress.cancel()

    assert progress.cancelled
    assert progress.report_progress(1, 5) is False
    # State is still recorded so callers see where it stopped
    assert progress.snapshot().current == 1


def test_injected_cancel_event():
    cancel = threading.Event()
    progress = ProgressHandler(cancel_event=cancel)

    assert progress.report_progress(1, 3) is True
    cancel.set()
    assert progress.report_progress(2, 3) is False


def test_listener_receives_each_update():
    seen = []
    progress = ProgressHandler(listener=lambda p: seen.append((p.current, p.total)))

    progress.report_progress(1, 2)
    progress.report_progress(2, 2)

    assert seen == [(1, 2), (2, 2)]


def test_reports_from_worker_thread():
    progress = ProgressHandler()

    def work():
        for i in range(1, 101):
            progress.report_progress(i, 100)

    t = threading.Thread(target=work)
    t.start()
    t.join()

    snap = progress.snapshot()
    assert (snap.current, snap.total) == (100, 100)
