"""Tests for cascading window placement."""
from sticky_situation.services.placement import format_frame, next_placement, parse_frame


def slot(k):
    origin = 100 + 30 * k
    return f"{{{{{origin}, {origin}}}, {{250, 250}}}}"


class TestNextPlacement:
    """Tests for picking a frame for a new sticky."""

    def test_first_slot_when_empty(self):
        assert next_placement([]) == "{{100, 100}, {250, 250}}"

    def test_skips_used_origins(self):
        assert next_placement([slot(0), slot(1)]) == slot(2)

    def test_fills_gaps(self):
        assert next_placement([slot(0), slot(2)]) == slot(1)

    def test_size_does_not_matter_for_occupancy(self):
        assert next_placement(["{{100, 100}, {400, 90}}"]) == slot(1)

    def test_float_origins_count(self):
        assert next_placement(["{{100.0, 100.0}, {250.0, 250.0}}"]) == slot(1)

    def test_unparseable_frames_are_ignored(self):
        assert next_placement(["garbage", ""]) == slot(0)

    def test_wraps_when_all_slots_are_taken(self):
        frames = [slot(k) for k in range(10)]
        assert next_placement(frames) == slot(0)
        assert next_placement(frames + ["x", "y", "z"]) == slot(3)

    def test_accepts_any_iterable(self):
        assert next_placement(f for f in [slot(0)]) == slot(1)


class TestFrameHelpers:
    """Tests for NSRect string parsing and formatting."""

    def test_parse(self):
        assert parse_frame("{{10, -20}, {300.5, 40}}") == (10.0, -20.0, 300.5, 40.0)

    def test_parse_rejects_other_text(self):
        assert parse_frame("{10, 20, 30, 40}") is None

    def test_format(self):
        assert format_frame(1, 2, 3, 4) == "{{1, 2}, {3, 4}}"
        assert parse_frame(format_frame(1, 2, 3, 4)) == (1.0, 2.0, 3.0, 4.0)
