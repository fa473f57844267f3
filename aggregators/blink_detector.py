"""眨眼检测模块"""

from collections import deque
from typing import Deque, Optional


def is_blink_duration(duration: float, min_duration: float = 0.05, max_duration: float = 0.8) -> bool:
    """闭眼持续时间是否属于一次正常眨眼（过短为噪声，过长为持续闭眼）"""
    return min_duration <= duration <= max_duration


class BlinkDetector:
    """跟踪闭眼→睁眼翻转，按时长过滤眨眼，统计最近窗口内的眨眼次数"""

    def __init__(
        self,
        min_duration: float = 0.05,
        max_duration: float = 0.8,
        window_seconds: float = 60.0,
    ):
        self.min_duration = min_duration
        self.max_duration = max_duration
        self.window_seconds = window_seconds
        self._closed = False
        self._closed_since = 0.0
        self._blinks: Deque[float] = deque()

    def update(self, timestamp: float, closed: bool) -> Optional[float]:
        """
        输入当前帧的闭眼状态。

        Returns:
            本帧确认的一次眨眼的持续时间（秒），否则为 None
        """
        duration = None

        if closed and not self._closed:
            self._closed = True
            self._closed_since = timestamp
        elif not closed and self._closed:
            self._closed = False
            elapsed = timestamp - self._closed_since
            if is_blink_duration(elapsed, self.min_duration, self.max_duration):
                self._blinks.append(timestamp)
                duration = elapsed

        self.prune(timestamp)
        return duration

    def prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._blinks and self._blinks[0] < cutoff:
            self._blinks.popleft()

    @property
    def blink_rate(self) -> int:
        """最近窗口内的眨眼次数（窗口为 60 秒时即每分钟次数）"""
        return len(self._blinks)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def reset(self):
        self._closed = False
        self._closed_since = 0.0
        self._blinks.clear()
