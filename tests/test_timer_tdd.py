from __future__ import annotations

from bingopedia.timer import GameTimer, TimerState


def test_idle_until_first_resume(clock):
    timer = GameTimer(clock)
    clock.advance(30)
    assert timer.elapsed == 0
    assert not timer.started
    timer.resume()
    clock.advance(12.7)
    assert timer.state is TimerState.RUNNING
    assert timer.elapsed_seconds == 12


def test_pauses_are_not_counted(clock):
    timer = GameTimer(clock)
    timer.resume()
    clock.advance(10)
    timer.pause()
    timer.pause()
    clock.advance(100)
    timer.resume()
    timer.resume()
    clock.advance(5)
    assert timer.elapsed == 15


def test_stop_is_final(clock):
    timer = GameTimer(clock)
    timer.resume()
    clock.advance(20)
    timer.stop()
    timer.resume()
    clock.advance(50)
    assert timer.state is TimerState.STOPPED
    assert timer.elapsed == 20
