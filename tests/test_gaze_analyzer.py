"""GazeAnalyzer 单元测试"""

import pytest

from detectors.gaze_analyzer import GazeAnalyzer
from detectors.geometry import CENTER, UNKNOWN
from models.config import PipelineConfig
from frames import LEFT_CENTER, RIGHT_CENTER, eye_contour

LEFT = eye_contour(LEFT_CENTER)
RIGHT = eye_contour(RIGHT_CENTER)


def _iris(offset):
    return (
        (LEFT_CENTER[0] + offset[0], LEFT_CENTER[1] + offset[1]),
        (RIGHT_CENTER[0] + offset[0], RIGHT_CENTER[1] + offset[1]),
    )


class TestAnalyze:
    """测试 analyze() 方法"""

    def test_centered_iris(self):
        analyzer = GazeAnalyzer(PipelineConfig())
        result = analyzer.analyze(LEFT, RIGHT, *_iris((0.0, 0.0)))
        assert result.deviation == pytest.approx(0.0)
        assert result.direction == CENTER
        assert result.point == pytest.approx((0.5, 0.5))

    def test_deviation_saturates_at_radius(self):
        """偏移超过 gaze_max_radius 时偏移幅度为 1"""
        config = PipelineConfig(gaze_max_radius=0.02)
        analyzer = GazeAnalyzer(config)
        result = analyzer.analyze(LEFT, RIGHT, *_iris((0.05, 0.0)))
        assert result.deviation == pytest.approx(1.0)
        assert result.direction == "right"

    def test_deviation_is_smoothed(self):
        config = PipelineConfig(gaze_max_radius=0.02, gaze_alpha=0.2)
        analyzer = GazeAnalyzer(config)
        analyzer.analyze(LEFT, RIGHT, *_iris((0.0, 0.0)))
        result = analyzer.analyze(LEFT, RIGHT, *_iris((0.0, -0.02)))
        assert result.deviation == pytest.approx(0.2)
        assert result.direction == "up"

    def test_single_iris_is_enough(self):
        analyzer = GazeAnalyzer(PipelineConfig())
        left_iris, _ = _iris((-0.01, 0.0))
        result = analyzer.analyze(LEFT, RIGHT, left_iris, None)
        assert result.direction == "left"
        assert result.point == left_iris

    def test_missing_iris_holds_deviation(self):
        """虹膜不可用时保持上一次平滑值，方向为 unknown"""
        analyzer = GazeAnalyzer(PipelineConfig())
        first = analyzer.analyze(LEFT, RIGHT, *_iris((0.01, 0.0)))
        result = analyzer.analyze(LEFT, RIGHT, None, None)
        assert result.deviation == pytest.approx(first.deviation)
        assert result.direction == UNKNOWN
        assert result.point is None

    def test_reset(self):
        analyzer = GazeAnalyzer(PipelineConfig())
        analyzer.analyze(LEFT, RIGHT, *_iris((0.05, 0.0)))
        analyzer.reset()
        assert analyzer.deviation == 0.0
