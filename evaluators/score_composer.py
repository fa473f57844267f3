"""综合专注度评分模块"""

from typing import Optional

from detectors.geometry import clamp01, ema
from models.config import PipelineConfig


class ScoreComposer:
    """把 PERCLOS、视线、区域和头部稳定性子分数加权合成为 0~100 的专注度，并做指数平滑。"""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self._smoothed: Optional[float] = None

    @property
    def score(self) -> float:
        return self._smoothed or 0.0

    def raw_score(
        self,
        perclos: float,
        gaze_deviation: float,
        zone_score: float,
        head_movement: float,
    ) -> float:
        """
        计算未平滑的综合分数。

        Args:
            perclos: 窗口 PERCLOS (0~1)
            gaze_deviation: 平滑后的视线偏移 (0~1)
            zone_score: 区域分数 (0~1)
            head_movement: 平滑后的头部运动幅度（度）

        Returns:
            0~100 的分数，对 perclos、视线偏移和头部运动单调不增
        """
        cfg = self.config
        eye_open = 1.0 - clamp01(perclos / cfg.perclos_soft_cap)
        gaze = 1.0 - clamp01(gaze_deviation / cfg.gaze_soft_cap)
        head = 1.0 - clamp01(head_movement / cfg.head_soft_cap)
        zone = clamp01(zone_score)

        combined = (
            cfg.weight_eye * eye_open
            + cfg.weight_gaze * gaze
            + cfg.weight_zone * zone
            + cfg.weight_head * head
        )
        return 100.0 * clamp01(combined)

    def update(
        self,
        perclos: float,
        gaze_deviation: float,
        zone_score: float,
        head_movement: float,
    ) -> float:
        """计算并平滑本帧分数"""
        raw = self.raw_score(perclos, gaze_deviation, zone_score, head_movement)
        self._smoothed = ema(self._smoothed, raw, self.config.score_alpha)
        return self._smoothed

    def force_zero(self) -> float:
        """无效帧：分数直接归零，平滑状态同步归零"""
        self._smoothed = 0.0
        return self._smoothed

    def reset(self):
        self._smoothed = None
