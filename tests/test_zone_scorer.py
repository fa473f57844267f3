"""ZoneScorer 单元测试"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from detectors.zone_scorer import NEUTRAL_SCORE, ZoneScorer
from models.config import PipelineConfig
from models.data_models import FocusZone

ZONE = FocusZone(0.2, 0.2, 0.8, 0.8)


class TestUpdate:
    """测试 update() 方法"""

    def test_starts_neutral(self):
        assert ZoneScorer(PipelineConfig()).score == NEUTRAL_SCORE

    def test_no_zone_reverts_to_neutral(self):
        scorer = ZoneScorer(PipelineConfig())
        scorer.score = 1.0
        for _ in range(50):
            scorer.update((0.5, 0.5), 0.0, 0.0)
        assert scorer.score < 1.0
        assert scorer.score > NEUTRAL_SCORE

    def test_inside_zone_rises(self):
        scorer = ZoneScorer(PipelineConfig(), zone=ZONE)
        for _ in range(20):
            scorer.update((0.5, 0.5), 0.0, 0.0)
        assert scorer.score > 0.8

    def test_outside_zone_approaches_target(self):
        """区域外且没有明显移动时趋近 zone_outside_target"""
        config = PipelineConfig()
        scorer = ZoneScorer(config, zone=ZONE)
        scorer.score = 1.0
        for _ in range(500):
            scorer.update((0.95, 0.5), 0.0, 0.0)
        assert scorer.score == pytest.approx(config.zone_outside_target, abs=1e-3)

    def test_moving_away_drops_fast(self):
        config = PipelineConfig()
        slow = ZoneScorer(config, zone=ZONE)
        fast = ZoneScorer(config, zone=ZONE)
        for _ in range(5):
            slow.update((0.95, 0.5), 0.0, 0.0)
            fast.update((0.95, 0.5), 0.5, 0.0)
        assert fast.score < slow.score

    def test_head_movement_counts_as_moving_away(self):
        config = PipelineConfig()
        scorer = ZoneScorer(config, zone=ZONE)
        scorer.update((0.95, 0.5), 0.0, config.zone_head_move_threshold + 1.0)
        assert scorer.score < NEUTRAL_SCORE

    @given(
        points=st.lists(
            st.tuples(st.floats(0.0, 1.0), st.floats(0.0, 1.0)),
            min_size=1, max_size=50,
        ),
        deviation=st.floats(0.0, 1.0),
        movement=st.floats(0.0, 20.0),
    )
    def test_score_stays_in_unit_range(self, points, deviation, movement):
        scorer = ZoneScorer(PipelineConfig(), zone=ZONE)
        for point in points:
            score = scorer.update(point, deviation, movement)
            assert 0.0 <= score <= 1.0

    def test_reset(self):
        scorer = ZoneScorer(PipelineConfig(), zone=ZONE)
        scorer.update((0.5, 0.5), 0.0, 0.0)
        scorer.reset()
        assert scorer.score == NEUTRAL_SCORE
