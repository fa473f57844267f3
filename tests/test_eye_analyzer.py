"""EyeAnalyzer 单元测试"""

import pytest

from detectors.eye_analyzer import EyeAnalyzer
from models.config import PipelineConfig
from models.data_models import CalibrationBaseline, EyeResult
from frames import LEFT_CENTER, RIGHT_CENTER, eye_contour


def _eyes(openness):
    return eye_contour(LEFT_CENTER, openness), eye_contour(RIGHT_CENTER, openness)


class TestAnalyze:
    """测试 analyze() 方法"""

    def test_returns_eye_result(self):
        analyzer = EyeAnalyzer(PipelineConfig())
        result = analyzer.analyze(*_eyes(0.3), timestamp=0.0)
        assert isinstance(result, EyeResult)
        assert result.measured
        assert result.ear_avg == pytest.approx(0.3)

    def test_open_eye_not_closed(self):
        analyzer = EyeAnalyzer(PipelineConfig())
        assert not analyzer.analyze(*_eyes(0.3), timestamp=0.0).is_closed

    def test_closed_below_threshold(self):
        """EAR 低于阈值判定为闭眼"""
        analyzer = EyeAnalyzer(PipelineConfig())
        analyzer.baseline = CalibrationBaseline(ear0=0.3, threshold=0.2, sample_count=10, source="calibration")
        assert analyzer.analyze(*_eyes(0.1), timestamp=0.0).is_closed

    def test_nan_eye_uses_last_valid_value(self):
        """单眼测量失败时使用该眼上一次的有效值"""
        analyzer = EyeAnalyzer(PipelineConfig())
        left, right = _eyes(0.3)
        analyzer.analyze(left, right, timestamp=0.0)

        result = analyzer.analyze(left, [(0.0, 0.0)] * 3, timestamp=0.1)
        assert result.ear_right == pytest.approx(0.3)
        assert result.measured

    def test_no_history_and_no_measurement(self):
        """从未有过有效值且本帧测量失败时 measured 为 False"""
        analyzer = EyeAnalyzer(PipelineConfig())
        result = analyzer.analyze([], [], timestamp=0.0)
        assert not result.measured
        assert not result.is_closed
        assert result.ear_avg is None


class TestThreshold:
    """测试阈值来源优先级"""

    def test_default_threshold(self):
        analyzer = EyeAnalyzer(PipelineConfig(default_ear_threshold=0.21))
        assert analyzer.threshold == pytest.approx(0.21)

    def test_bootstrap_freezes_after_window(self):
        """启动期结束后阈值固定为 EAR0 * ear_ratio"""
        config = PipelineConfig(bootstrap_seconds=1.0)
        analyzer = EyeAnalyzer(config)
        for i in range(20):
            analyzer.analyze(*_eyes(0.3), timestamp=i * 0.1)

        assert analyzer.threshold == pytest.approx(0.3 * config.ear_ratio)

        # 启动期后的闭眼不再影响阈值
        analyzer.analyze(*_eyes(0.05), timestamp=5.0)
        assert analyzer.threshold == pytest.approx(0.3 * config.ear_ratio)

    def test_calibrated_baseline_wins(self):
        analyzer = EyeAnalyzer(PipelineConfig(bootstrap_seconds=0.5))
        for i in range(10):
            analyzer.analyze(*_eyes(0.3), timestamp=i * 0.1)
        analyzer.baseline = CalibrationBaseline(ear0=0.25, threshold=0.18, sample_count=5, source="calibration")
        assert analyzer.threshold == pytest.approx(0.18)

    def test_bootstrap_threshold_is_clamped(self):
        config = PipelineConfig(bootstrap_seconds=0.5)
        analyzer = EyeAnalyzer(config)
        for i in range(10):
            analyzer.analyze(*_eyes(0.8), timestamp=i * 0.1)
        assert analyzer.threshold == pytest.approx(config.ear_threshold_max)


class TestReset:

    def test_reset_keeps_calibrated_baseline(self):
        analyzer = EyeAnalyzer(PipelineConfig())
        analyzer.baseline = CalibrationBaseline(ear0=0.3, threshold=0.2, sample_count=10, source="calibration")
        analyzer.analyze(*_eyes(0.3), timestamp=0.0)
        analyzer.reset()
        assert analyzer.threshold == pytest.approx(0.2)
        assert analyzer.last_known().ear_avg is None
