"""Tests for the pure playback state transitions."""

import pytest

from musicbox_cli.core.playback import (
    LoadFailed,
    LoadStarted,
    SeekRequested,
    VolumeApplied,
    reduce,
)
from musicbox_cli.media.engine import (
    EngineEnded,
    EngineError,
    EnginePaused,
    EnginePlaying,
    EnginePosition,
    EngineReady,
)
from musicbox_cli.models.playback import PlaybackState, PlaybackStatus


def at(status: PlaybackStatus, **fields) -> PlaybackState:
    return PlaybackState(status=status, **fields)


def ready(duration: float = 200.0) -> PlaybackState:
    return at(PlaybackStatus.READY, duration_seconds=duration)


class TestLoading:
    def test_load_then_ready(self) -> None:
        state = reduce(PlaybackState(), LoadStarted())
        assert state.status is PlaybackStatus.LOADING

        state = reduce(state, EngineReady(200.0))
        assert state.status is PlaybackStatus.READY
        assert state.duration_seconds == 200.0
        assert state.position_seconds == 0.0

    def test_ready_before_loading_is_ignored(self) -> None:
        assert reduce(PlaybackState(), EngineReady(10.0)) == PlaybackState()

    def test_transport_events_ignored_until_ready(self) -> None:
        loading = at(PlaybackStatus.LOADING)
        for event in (EnginePlaying(), EnginePosition(5.0), EngineEnded()):
            assert reduce(loading, event) == loading

    def test_load_failure(self) -> None:
        state = reduce(at(PlaybackStatus.LOADING), LoadFailed("Not found"))
        assert state.status is PlaybackStatus.ERROR
        assert state.error_message == "Not found"


class TestTransport:
    def test_play_and_pause(self) -> None:
        playing = reduce(ready(), EnginePlaying())
        assert playing.status is PlaybackStatus.PLAYING

        paused = reduce(playing, EnginePaused())
        assert paused.status is PlaybackStatus.PAUSED

        assert reduce(paused, EnginePlaying()).status is PlaybackStatus.PLAYING

    def test_pause_report_while_ready_keeps_ready(self) -> None:
        assert reduce(ready(), EnginePaused()).status is PlaybackStatus.READY

    @pytest.mark.parametrize(
        ("position", "expected"), [(50.0, 50.0), (-3.0, 0.0), (250.0, 200.0)]
    )
    def test_position_is_clamped(self, position: float, expected: float) -> None:
        state = reduce(ready(), EnginePosition(position))
        assert state.position_seconds == expected

    def test_seek_request_moves_position(self) -> None:
        assert reduce(ready(), SeekRequested(100.0)).position_seconds == 100.0

    def test_end_resets_position(self) -> None:
        playing = at(
            PlaybackStatus.PLAYING, duration_seconds=200.0, position_seconds=199.0
        )
        state = reduce(playing, EngineEnded())
        assert state.status is PlaybackStatus.ENDED
        assert state.position_seconds == 0.0


class TestTerminalStates:
    @pytest.mark.parametrize("status", [PlaybackStatus.ENDED, PlaybackStatus.ERROR])
    def test_terminal_states_ignore_transport(self, status: PlaybackStatus) -> None:
        state = at(status, duration_seconds=200.0)
        for event in (EnginePlaying(), EnginePosition(10.0), EngineReady(5.0)):
            assert reduce(state, event) == state

    def test_first_error_wins(self) -> None:
        failed = reduce(ready(), EngineError("first"))
        assert reduce(failed, EngineError("second")).error_message == "first"

    def test_ended_can_still_fail(self) -> None:
        state = reduce(at(PlaybackStatus.ENDED), EngineError("device lost"))
        assert state.status is PlaybackStatus.ERROR

    def test_volume_applies_in_any_state(self) -> None:
        state = reduce(at(PlaybackStatus.ERROR), VolumeApplied(0.3, muted=True))
        assert state.volume == 0.3
        assert state.muted
        assert state.effective_volume == 0.0
