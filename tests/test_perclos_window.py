"""PerclosWindow 单元测试"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from aggregators.perclos_window import PerclosWindow


class TestPerclos:
    """测试 PERCLOS 计算"""

    def test_empty_window_is_zero(self):
        assert PerclosWindow().value == 0.0

    def test_ratio_of_closed_samples(self):
        window = PerclosWindow(60.0)
        for i in range(10):
            window.update(i * 0.1, closed=i < 3)
        assert window.value == pytest.approx(0.3)

    def test_invalid_samples_not_counted(self):
        """无效样本不计入分子和分母"""
        window = PerclosWindow(60.0)
        window.update(0.0, closed=True)
        window.update(0.1, closed=False)
        window.update(0.2, closed=True, valid=False)
        window.update(0.3, closed=False, valid=False)
        assert window.value == pytest.approx(0.5)
        assert window.valid_count == 2
        assert len(window) == 4

    def test_only_invalid_samples_is_zero(self):
        window = PerclosWindow(60.0)
        for i in range(5):
            window.update(float(i), closed=True, valid=False)
        assert window.value == 0.0

    def test_old_samples_evicted(self):
        """早于 now - window 的样本被淘汰"""
        window = PerclosWindow(10.0)
        window.update(0.0, closed=True)
        window.update(5.0, closed=False)
        window.update(11.0, closed=False)
        assert len(window) == 2
        assert window.value == 0.0

    def test_sample_on_window_edge_kept(self):
        window = PerclosWindow(10.0)
        window.update(0.0, closed=True)
        window.update(10.0, closed=False)
        assert window.value == pytest.approx(0.5)

    @given(st.lists(
        st.tuples(st.floats(0.0, 0.5), st.booleans(), st.booleans()),
        min_size=1, max_size=200,
    ))
    def test_value_in_unit_range(self, steps):
        window = PerclosWindow(5.0)
        ts = 0.0
        for dt, closed, valid in steps:
            ts += dt
            value = window.update(ts, closed, valid)
            assert 0.0 <= value <= 1.0

    def test_reset(self):
        window = PerclosWindow()
        window.update(0.0, closed=True)
        window.reset()
        assert window.value == 0.0
        assert len(window) == 0
