"""Tests for the asyncio countdown runner."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, Mock

import pytest

from talking_timer.countdown.config import TimerConfig
from talking_timer.countdown.dispatcher import DispatcherError
from talking_timer.countdown.runner import CountdownRunner

pytestmark = pytest.mark.anyio

FAST = TimerConfig(tick_interval_ms=1, pre_speak_start_ms=0, pre_speak_end_ms=0, chime_delay_ms=0)


async def _wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.002)

    await asyncio.wait_for(_poll(), timeout)


def _spoken(speaker: AsyncMock) -> list[str]:
    return [call.args[0] for call in speaker.speak.await_args_list]


@pytest.fixture
def speaker():
    return AsyncMock()


@pytest.fixture
def chime():
    return Mock(return_value=True)


@pytest.fixture
def make_runner(speaker, chime, clock, mock_logger):
    runners: list[CountdownRunner] = []

    def _make(notation: str | None = "1/2 last10", duration: int | str = 120_000, **kwargs) -> CountdownRunner:
        kwargs.setdefault("config", FAST)
        runner = CountdownRunner(
            notation, duration, speaker=speaker, clock=clock, chime=chime, logger=mock_logger, **kwargs
        )
        runners.append(runner)
        return runner

    yield _make
    for runner in runners:
        runner._closed = True
        runner._stop_ticking()


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestCountdown:
    async def test_announcements_are_spoken(self, make_runner, speaker, clock):
        announced = Mock()
        runner = make_runner(on_announcement=announced)
        await runner.start()
        assert runner.state == "running"

        clock.now = 59_000
        await _wait_for(lambda: speaker.speak.await_count == 1)
        assert _spoken(speaker) == ["Half way."]
        announced.assert_called_once_with("Half way.")
        await runner.close()

    async def test_end_sequence(self, make_runner, speaker, chime, clock):
        states = []
        runner = make_runner(notation="", duration=5_000, on_state=states.append)
        await runner.start()

        clock.now = 5_000
        await asyncio.wait_for(runner.wait_finished(), 1.0)

        assert runner.state == "finished"
        chime.assert_called_once()
        await _wait_for(lambda: speaker.speak.await_count == 1)
        assert _spoken(speaker) == ["Time's up!"]
        assert [state["state"] for state in states] == ["running", "finished"]
        assert states[-1]["remaining_ms"] == 0

    async def test_quiet_end(self, make_runner, speaker, chime, clock):
        runner = make_runner(notation="", duration=1_000, config=FAST.with_overrides(say_end=False, end_chime=False))
        await runner.start()
        clock.now = 1_000
        await asyncio.wait_for(runner.wait_finished(), 1.0)
        chime.assert_not_called()
        speaker.speak.assert_not_awaited()

    async def test_speaker_failure_does_not_stop_countdown(self, make_runner, speaker, clock, mock_logger):
        speaker.speak.side_effect = ConnectionRefusedError("piper down")
        runner = make_runner()
        await runner.start()

        clock.now = 59_000
        await _wait_for(lambda: mock_logger.warning.called)
        assert runner.state == "running"

        clock.now = 109_850
        await _wait_for(lambda: speaker.speak.await_count == 2)
        assert _spoken(speaker) == ["Half way.", "10"]
        await runner.close()

    async def test_progress_callback(self, make_runner, clock):
        progress = Mock()
        runner = make_runner(on_progress=progress)
        await runner.start()
        clock.now = 60_000
        await _wait_for(lambda: progress.called and progress.call_args[0][0].remaining_ms == 60_000)
        assert runner.snapshot()["progress"] == 0.5
        await runner.close()


# ---------------------------------------------------------------------------
# Start phrase and end actions
# ---------------------------------------------------------------------------


class TestSequencing:
    async def test_start_phrase_spoken_before_counting(self, make_runner, speaker):
        runner = make_runner(config=FAST.with_overrides(say_start=True, pre_speak_start_ms=30))
        states_at_speech: list[str] = []
        speaker.speak.side_effect = lambda _text: states_at_speech.append(runner.state)

        await runner.start()

        assert _spoken(speaker) == ["Ready. Set. Go!"]
        assert states_at_speech == ["idle"]
        assert runner.state == "running"
        await runner.close()

    async def test_repeated_start_speaks_phrase_once(self, make_runner, speaker):
        runner = make_runner(config=FAST.with_overrides(say_start=True, pre_speak_start_ms=30))

        await asyncio.gather(runner.start(), runner.start())

        assert _spoken(speaker) == ["Ready. Set. Go!"]
        assert runner.state == "running"
        await runner.close()

    async def test_reset_during_start_phrase_allows_new_start(self, make_runner, speaker):
        runner = make_runner(config=FAST.with_overrides(say_start=True, pre_speak_start_ms=30))

        first = asyncio.create_task(runner.start())
        await asyncio.sleep(0)
        runner.reset()
        await runner.start()
        await first

        assert _spoken(speaker) == ["Ready. Set. Go!", "Ready. Set. Go!"]
        assert runner.state == "running"
        await runner.close()

    async def test_self_destruct(self, make_runner, clock):
        removed = Mock()
        runner = make_runner(notation="", duration=1_000, config=FAST.with_overrides(auto_destruct_ms=10), on_remove=removed)
        await runner.start()
        clock.now = 1_000
        await asyncio.wait_for(runner.wait_finished(), 1.0)
        removed.assert_called_once()

    async def test_auto_reset(self, make_runner, clock):
        runner = make_runner(notation="1/2", duration=1_000, config=FAST.with_overrides(auto_reset=True))
        await runner.start()
        clock.now = 1_000
        await asyncio.wait_for(runner.wait_finished(), 1.0)
        assert runner.state == "idle"
        assert runner.dispatcher.remaining_ms == 1_000

    async def test_reset_during_end_sequence_cancels_chime(self, make_runner, chime, clock):
        runner = make_runner(notation="", duration=1_000, config=FAST.with_overrides(pre_speak_end_ms=50))
        await runner.start()
        clock.now = 1_000
        await _wait_for(lambda: runner.state == "finished")

        runner.reset()
        await asyncio.sleep(0.1)
        chime.assert_not_called()
        assert runner.state == "idle"

    async def test_close_prevents_delayed_actions(self, make_runner, chime, clock):
        removed = Mock()
        runner = make_runner(
            notation="",
            duration=1_000,
            config=FAST.with_overrides(pre_speak_end_ms=50, auto_destruct_ms=60),
            on_remove=removed,
        )
        await runner.start()
        clock.now = 1_000
        await _wait_for(lambda: runner.state == "finished")

        await runner.close()
        await asyncio.sleep(0.1)
        chime.assert_not_called()
        removed.assert_not_called()
        assert runner.closed


# ---------------------------------------------------------------------------
# Controls
# ---------------------------------------------------------------------------


class TestControls:
    async def test_pause_and_resume(self, make_runner, clock):
        runner = make_runner()
        await runner.start()
        clock.now = 10_000
        runner.pause()
        assert runner.state == "paused"
        assert runner.dispatcher.remaining_ms == 110_000

        clock.now = 40_000
        runner.resume()
        assert runner.state == "running"
        await _wait_for(lambda: runner.dispatcher.remaining_ms == 110_000)
        await runner.close()

    async def test_restart_after_finish(self, make_runner, clock):
        runner = make_runner(notation="1/2", duration=1_000)
        await runner.start()
        clock.now = 1_000
        await asyncio.wait_for(runner.wait_finished(), 1.0)

        await runner.start()
        assert runner.state == "finished"

        await runner.restart()
        assert runner.state == "running"
        assert len(runner.dispatcher.schedule) == 1
        await runner.close()

    async def test_zero_duration(self, make_runner):
        runner = make_runner(duration=0)
        with pytest.raises(DispatcherError):
            await runner.start()

    async def test_closed_runner_refuses_start(self, make_runner):
        runner = make_runner()
        await runner.close()
        with pytest.raises(DispatcherError, match="closed"):
            await runner.start()

    async def test_reconfigure(self, make_runner):
        runner = make_runner()
        await runner.start()
        runner.reconfigure("1/4", "1:00")
        assert runner.state == "idle"
        assert runner.dispatcher.duration_ms == 60_000


class TestHandleCommand:
    async def test_plain_commands(self, make_runner):
        runner = make_runner()
        await runner.handle_command("start")
        assert runner.state == "running"
        await runner.handle_command(" PAUSE ")
        assert runner.state == "paused"
        await runner.handle_command("resume")
        assert runner.state == "running"
        await runner.handle_command("reset")
        assert runner.state == "idle"
        await runner.close()

    async def test_json_configure(self, make_runner):
        runner = make_runner()
        await runner.handle_command('{"command": "configure", "say": "1/4", "duration": "1:00"}')
        assert runner.dispatcher.duration_ms == 60_000
        assert [directive.raw for directive in runner.dispatcher.directives] == ["1/4"]

    async def test_configure_keeps_duration_when_omitted(self, make_runner):
        runner = make_runner()
        await runner.handle_command('{"command": "configure", "say": "allLast5"}')
        assert runner.dispatcher.duration_ms == 120_000

    async def test_bad_duration_is_logged(self, make_runner, mock_logger):
        runner = make_runner()
        await runner.handle_command('{"command": "configure", "duration": "later"}')
        assert runner.dispatcher.duration_ms == 120_000
        assert "failed" in str(mock_logger.warning.call_args)

    @pytest.mark.parametrize("payload", ["explode", "{not json", '["start"]', ""])
    async def test_unknown_commands_ignored(self, make_runner, mock_logger, payload):
        runner = make_runner()
        await runner.handle_command(payload)
        assert runner.state == "idle"
        assert "unknown" in str(mock_logger.warning.call_args)
