"""PERCLOS 计算模块：滑动时间窗口内闭眼时间占比"""

from collections import deque
from typing import Deque, Tuple


class PerclosWindow:
    """
    维护 (timestamp, closed, valid) 样本的滑动窗口。

    PERCLOS = 窗口内有效且闭眼的样本数 / 有效样本数；窗口内没有有效样本时为 0。
    """

    def __init__(self, window_seconds: float = 60.0):
        self.window_seconds = window_seconds
        self._samples: Deque[Tuple[float, bool, bool]] = deque()
        self._closed = 0
        self._valid = 0

    def update(self, timestamp: float, closed: bool, valid: bool = True) -> float:
        """
        插入一个样本并淘汰窗口外的旧样本。

        Args:
            timestamp: 样本时间戳（秒）
            closed: 是否闭眼（仅对有效样本计数）
            valid: 是否为有效测量

        Returns:
            当前 PERCLOS 值
        """
        closed = closed and valid
        self._samples.append((timestamp, closed, valid))
        self._closed += int(closed)
        self._valid += int(valid)
        self._evict(timestamp)
        return self.value

    def _evict(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._samples and self._samples[0][0] < cutoff:
            _, closed, valid = self._samples.popleft()
            self._closed -= int(closed)
            self._valid -= int(valid)

    @property
    def value(self) -> float:
        if self._valid == 0:
            return 0.0
        return self._closed / self._valid

    @property
    def valid_count(self) -> int:
        return self._valid

    def __len__(self) -> int:
        return len(self._samples)

    def reset(self):
        """清空窗口"""
        self._samples.clear()
        self._closed = 0
        self._valid = 0
