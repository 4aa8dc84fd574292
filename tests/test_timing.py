import pytest

from aquila.timing import Stopwatch


def fake_clock(*values):
    return iter(values).__next__


def test_elapsed_in_milliseconds():
    watch = Stopwatch(clock=fake_clock(0, 2_500_000))
    watch.start()
    assert watch.elapsed_ms() == 2.5


def test_elapsed_truncates_below_a_microsecond():
    exact = Stopwatch(clock=fake_clock(0, 2_500_000))
    exact.start()
    ragged = Stopwatch(clock=fake_clock(0, 2_500_999))
    ragged.start()
    assert ragged.elapsed_ms() == exact.elapsed_ms()


def test_elapsed_before_start_raises():
    with pytest.raises(RuntimeError):
        Stopwatch(clock=fake_clock(0)).elapsed_ms()


def test_restart_measures_from_latest_start():
    watch = Stopwatch(clock=fake_clock(0, 1_000_000, 1_000_000))
    watch.start()
    watch.start()
    assert watch.elapsed_ms() == 0.0


def test_stop_prints_and_returns(capsys):
    watch = Stopwatch(clock=fake_clock(0, 3_000_000))
    watch.start()
    result = watch.stop()
    assert result == 3.0
    assert capsys.readouterr().out == "3\n"


def test_context_manager_reports_on_exit(capsys):
    with Stopwatch(clock=fake_clock(0, 2_500_000)):
        pass
    assert capsys.readouterr().out == "2.5\n"