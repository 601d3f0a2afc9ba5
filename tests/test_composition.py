"""
Tests for the slide composition planner
"""

from coursecast.services.composition import plan_composition, total_frames


class TestPlanComposition:

    def test_slides_overlap_by_transition(self, make_slide):
        slides = [make_slide(index=i) for i in (1, 2, 3)]
        sequences = plan_composition(slides, {"intro-01": 2.0, "intro-02": 3.0})

        assert [(s.from_frame, s.duration_frames) for s in sequences] == [(0, 60), (45, 90), (120, 180)]
        assert [s.is_first for s in sequences] == [True, False, False]
        assert total_frames(sequences) == 300

    def test_partial_frames_round_up(self, make_slide):
        sequences = plan_composition([make_slide()], {"intro-01": 1.01})
        assert sequences[0].duration_frames == 31

    def test_slide_shorter_than_transition(self, make_slide):
        slides = [make_slide(index=1), make_slide(index=2)]
        sequences = plan_composition(slides, {"intro-01": 0.2, "intro-02": 1.0}, fps=30)
        assert [s.from_frame for s in sequences] == [0, 0]

    def test_custom_fps_and_transition(self, make_slide):
        slides = [make_slide(index=1), make_slide(index=2)]
        sequences = plan_composition(slides, {"intro-01": 2.0, "intro-02": 2.0}, fps=24, transition_frames=0)
        assert [s.from_frame for s in sequences] == [0, 48]
        assert total_frames(sequences) == 96

    def test_empty(self):
        assert plan_composition([]) == []
        assert total_frames([]) == 0

    def test_to_dict(self, make_slide):
        data = plan_composition([make_slide()])[0].to_dict()
        assert data == {"slide_id": "intro-01", "from": 0, "duration_in_frames": 180, "is_first": True}
