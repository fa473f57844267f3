"""视线分析模块：虹膜中心相对眼睑质心的偏移"""

import math
from typing import Optional, Sequence

from detectors.geometry import UNKNOWN, centroid, clamp01, direction_label, ema
from models.config import PipelineConfig
from models.data_models import GazeResult, Point


def _eye_vector(contour: Sequence[Point], iris: Optional[Point]) -> Optional[Point]:
    if iris is None:
        return None
    center = centroid(contour)
    if center is None:
        return None
    return (iris[0] - center[0], iris[1] - center[1])


def _average(a: Optional[Point], b: Optional[Point]) -> Optional[Point]:
    if a is not None and b is not None:
        return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)
    return a if a is not None else b


class GazeAnalyzer:
    """计算视线偏移幅度（0~1）并做指数平滑"""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self._deviation: Optional[float] = None

    @property
    def deviation(self) -> float:
        return self._deviation or 0.0

    def analyze(
        self,
        left_eye: Sequence[Point],
        right_eye: Sequence[Point],
        left_iris: Optional[Point],
        right_iris: Optional[Point],
    ) -> GazeResult:
        """
        计算双眼视线向量的平均值。

        虹膜不可用时平滑值保持不变，方向为 "unknown"。
        """
        vector = _average(
            _eye_vector(left_eye, left_iris),
            _eye_vector(right_eye, right_iris),
        )
        point = _average(left_iris, right_iris)

        if vector is None:
            return GazeResult(deviation=self.deviation, direction=UNKNOWN, point=point)

        radius = self.config.gaze_max_radius
        raw = clamp01(math.hypot(vector[0], vector[1]) / radius)
        self._deviation = clamp01(ema(self._deviation, raw, self.config.gaze_alpha))

        direction = direction_label(
            vector[0] / radius,
            vector[1] / radius,
            eps=self.config.gaze_center_epsilon,
        )
        return GazeResult(deviation=self._deviation, direction=direction, point=point)

    def reset(self):
        """清除平滑状态"""
        self._deviation = None
