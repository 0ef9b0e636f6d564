import asyncio

import pytest

from family_photos.gestures import TapClassifier, TapEvent, TapHandler, TapOutcome


def tap(classifier: TapClassifier, x: float, y: float, at: float) -> list[TapEvent]:
    classifier.press(x, y, at)
    return classifier.release(x, y, at + 20)


class TestTapClassifier:
    """Tests for single / double tap disambiguation."""

    def test_double_tap_within_window(self):
        classifier = TapClassifier()
        assert tap(classifier, 0, 0, 0) == []
        events = tap(classifier, 3, 4, 150)
        assert [e.outcome for e in events] == [TapOutcome.double]
        assert classifier.pending_deadline is None

    def test_single_fires_only_after_window(self):
        classifier = TapClassifier()
        tap(classifier, 10, 10, 0)
        assert classifier.pending_deadline == 320
        assert classifier.poll(300) == []

        events = classifier.poll(320)
        assert len(events) == 1
        assert events[0].outcome == TapOutcome.single
        assert (events[0].x, events[0].y) == (10, 10)
        assert classifier.poll(1000) == []

    def test_two_taps_400ms_apart_are_two_singles(self):
        classifier = TapClassifier()
        tap(classifier, 0, 0, 0)
        events = tap(classifier, 0, 0, 400)
        assert [e.outcome for e in events] == [TapOutcome.single]
        assert [e.outcome for e in classifier.poll(800)] == [TapOutcome.single]

    def test_movement_suppresses_tap(self):
        classifier = TapClassifier()
        classifier.press(0, 0, 0)
        classifier.move(15, 0, 10)
        events = classifier.release(0, 0, 30)
        assert [e.outcome for e in events] == [TapOutcome.suppressed]
        assert classifier.pending_deadline is None

    def test_small_jitter_is_still_a_tap(self):
        classifier = TapClassifier()
        classifier.press(0, 0, 0)
        classifier.move(5, 5, 10)
        assert classifier.release(5, 5, 30) == []
        assert classifier.pending_deadline == 330

    def test_far_second_tap_splits_into_singles(self):
        classifier = TapClassifier()
        tap(classifier, 0, 0, 0)
        events = tap(classifier, 100, 100, 100)
        assert [(e.outcome, e.x) for e in events] == [(TapOutcome.single, 0)]
        assert [(e.outcome, e.x) for e in classifier.poll(500)] == [(TapOutcome.single, 100)]

    def test_release_without_press(self):
        assert TapClassifier().release(0, 0, 0) == []

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            TapClassifier(delay_ms=0)
        with pytest.raises(ValueError):
            TapClassifier(move_threshold_px=-1)


class TestTapHandler:
    """Tests for the event-loop driven handler."""

    @pytest.mark.asyncio
    async def test_single_tap_callback(self):
        singles: list[TapEvent] = []
        doubles: list[TapEvent] = []
        handler = TapHandler(on_single=singles.append, on_double=doubles.append, delay_ms=30)

        handler.press(1, 1)
        handler.release(1, 1)
        assert singles == []

        await asyncio.sleep(0.1)
        assert len(singles) == 1
        assert doubles == []

    @pytest.mark.asyncio
    async def test_double_tap_never_fires_single(self):
        singles: list[TapEvent] = []
        doubles: list[TapEvent] = []
        handler = TapHandler(on_single=singles.append, on_double=doubles.append, delay_ms=200)

        handler.press(1, 1)
        handler.release(1, 1)
        handler.press(2, 2)
        handler.release(2, 2)

        await asyncio.sleep(0.25)
        assert len(doubles) == 1
        assert singles == []

    @pytest.mark.asyncio
    async def test_close_cancels_pending_single(self):
        singles: list[TapEvent] = []
        handler = TapHandler(on_single=singles.append, delay_ms=30)

        handler.press(1, 1)
        handler.release(1, 1)
        handler.close()

        await asyncio.sleep(0.1)
        assert singles == []

        # Closed handlers ignore further input
        handler.press(1, 1)
        handler.release(1, 1)
        await asyncio.sleep(0.1)
        assert singles == []
