"""BlinkDetector 单元测试"""

import pytest

from aggregators.blink_detector import BlinkDetector, is_blink_duration


def _blink(detector, start, duration):
    detector.update(start, closed=True)
    return detector.update(start + duration, closed=False)


class TestBlinkDuration:

    @pytest.mark.parametrize("duration, expected", [
        (0.04, False),
        (0.05, True),
        (0.2, True),
        (0.8, True),
        (0.9, False),
    ])
    def test_duration_bounds(self, duration, expected):
        assert is_blink_duration(duration) is expected


class TestBlinkDetector:
    """测试闭眼到睁眼的翻转检测"""

    def test_normal_blink_accepted(self):
        detector = BlinkDetector()
        assert _blink(detector, 1.0, 0.2) == pytest.approx(0.2)
        assert detector.blink_rate == 1

    def test_short_closure_rejected(self):
        """40ms 的闭眼视为噪声"""
        detector = BlinkDetector()
        assert _blink(detector, 1.0, 0.04) is None
        assert detector.blink_rate == 0

    def test_long_closure_rejected(self):
        """900ms 的闭眼不算眨眼"""
        detector = BlinkDetector()
        assert _blink(detector, 1.0, 0.9) is None
        assert detector.blink_rate == 0

    def test_closure_measured_from_first_closed_frame(self):
        detector = BlinkDetector()
        detector.update(0.0, closed=True)
        detector.update(0.1, closed=True)
        assert detector.is_closed
        assert detector.update(0.3, closed=False) == pytest.approx(0.3)

    def test_rate_counts_recent_window(self):
        detector = BlinkDetector(window_seconds=60.0)
        for start in (0.0, 10.0, 20.0):
            _blink(detector, start, 0.2)
        assert detector.blink_rate == 3

        detector.prune(70.5)
        assert detector.blink_rate == 1

    def test_reset(self):
        detector = BlinkDetector()
        _blink(detector, 0.0, 0.2)
        detector.update(1.0, closed=True)
        detector.reset()
        assert detector.blink_rate == 0
        assert not detector.is_closed
