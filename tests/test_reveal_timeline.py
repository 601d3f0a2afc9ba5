"""
Tests for reveal timeline planning
"""

import pytest

from coursecast.config import TimelineSettings
from coursecast.models import CaptionChunk
from coursecast.services.reveal_timeline import RevealTimelinePlanner


def chunk(start: float, end: float) -> CaptionChunk:
    return CaptionChunk(timestamp=(start, end), text="words", word_count=2)


def times(entries):
    return [e.activation_time for e in entries]


@pytest.fixture
def planner():
    return RevealTimelinePlanner()


class TestWithCaptions:

    def test_reveals_follow_caption_starts(self, planner):
        entries = planner.plan(["r1", "r2", "r3"], [chunk(0.0, 0.8), chunk(1.0, 2.2), chunk(2.5, 3.0)])
        assert [e.reveal_id for e in entries] == ["r1", "r2", "r3"]
        assert times(entries) == [0.0, 0.95, 2.45]

    def test_surplus_ids_after_last_caption(self, planner):
        entries = planner.plan(["r1", "r2", "r3", "r4"], [chunk(0.0, 1.0), chunk(1.2, 2.0)])
        assert times(entries) == [0.0, 1.15, 3.2, 4.4]

    def test_fewer_ids_than_chunks(self, planner):
        entries = planner.plan(["r1", "r2"], [chunk(0.3, 0.8), chunk(1.0, 2.2), chunk(2.5, 3.0)])
        assert times(entries) == [0.25, 0.95]

    def test_out_of_order_chunks_are_clamped(self, planner):
        entries = planner.plan(["r1", "r2", "r3"], [chunk(2.0, 2.5), chunk(1.0, 1.5), chunk(3.0, 3.5)])
        assert times(entries) == [1.95, 1.95, 2.95]

    def test_custom_lead_time(self):
        planner = RevealTimelinePlanner(TimelineSettings(lead_time=0.5, surplus_spacing=2.0))
        entries = planner.plan(["r1", "r2", "r3"], [chunk(0.2, 1.0), chunk(1.2, 2.0)])
        assert times(entries) == [0.0, 0.7, 4.0]


class TestWithoutCaptions:

    def test_minimum_duration(self, planner):
        assert times(planner.plan(["r1", "r2", "r3", "r4"])) == [0.0, 2.0, 4.0, 6.0]

    def test_many_reveals(self, planner):
        entries = planner.plan([f"r{i}" for i in range(1, 11)], [])
        assert times(entries) == pytest.approx([round(i * 1.2, 3) for i in range(10)])

    def test_single_reveal(self, planner):
        assert times(planner.plan(["r1"])) == [0.0]


class TestOrdering:

    def test_empty_ids(self, planner):
        assert planner.plan([], [chunk(0, 1)]) == []

    @pytest.mark.parametrize("count", [1, 3, 6, 12])
    def test_one_entry_per_id_in_order_and_non_decreasing(self, planner, count):
        ids = [f"r{i}" for i in range(1, count + 1)]
        chunks = [chunk(i * 0.9, i * 0.9 + 0.7) for i in range(5)]
        entries = planner.plan(ids, chunks)

        assert [e.reveal_id for e in entries] == ids
        assert all(a <= b for a, b in zip(times(entries), times(entries)[1:]))
        assert all(t >= 0 for t in times(entries))

    def test_wire_shape(self, planner):
        wire = planner.plan(["r1"], [chunk(0.5, 1.0)])[0].to_wire()
        assert wire == {"revealId": "r1", "activationTime": 0.45}
