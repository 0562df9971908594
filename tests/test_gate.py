"""Tests for single-slot frame admission."""

from __future__ import annotations

import pytest
from helpers import ReleaseCounter, make_frame

from conectec.ml.gate import Admission, FrameGate


class TestFrameGate:
    def test_first_frame_admitted_and_kept(self) -> None:
        gate = FrameGate()
        counter = ReleaseCounter()
        frame = make_frame(on_release=counter)

        assert gate.admit(frame) is Admission.ADMITTED
        assert gate.busy is True
        # Ownership passes to the caller; the gate does not release admitted frames.
        assert counter.count == 0
        assert frame.released is False

    def test_second_frame_dropped_and_released(self) -> None:
        gate = FrameGate()
        first_counter, second_counter = ReleaseCounter(), ReleaseCounter()
        first = make_frame(on_release=first_counter)
        second = make_frame(on_release=second_counter)

        gate.admit(first)
        assert gate.admit(second) is Admission.DROPPED

        assert second.released is True
        assert second_counter.count == 1
        assert first.released is False
        assert first_counter.count == 0
        assert gate.busy is True

    def test_admit_succeeds_after_release(self) -> None:
        gate = FrameGate()
        first = make_frame()
        gate.admit(first)
        gate.release()
        first.release()

        assert gate.busy is False
        assert gate.admit(make_frame()) is Admission.ADMITTED

    def test_release_without_frame_raises(self) -> None:
        gate = FrameGate()
        with pytest.raises(RuntimeError, match="no frame in flight"):
            gate.release()

    def test_double_release_raises(self) -> None:
        gate = FrameGate()
        gate.admit(make_frame())
        gate.release()
        with pytest.raises(RuntimeError):
            gate.release()

    def test_counters(self) -> None:
        gate = FrameGate()
        gate.admit(make_frame())
        for _ in range(3):
            gate.admit(make_frame())
        gate.release()
        gate.admit(make_frame())

        assert gate.admitted_count == 2
        assert gate.dropped_count == 3
