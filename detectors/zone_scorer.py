"""专注区域评分模块"""

from typing import Optional

from detectors.geometry import clamp01
from models.config import PipelineConfig
from models.data_models import FocusZone, Point

NEUTRAL_SCORE = 0.5


class ZoneScorer:
    """
    根据视线点是否落在专注区域内维护 0~1 的区域分数。

    区域内缓慢上升；区域外以更慢的速度趋近 zone_outside_target，
    若同时存在明显的视线偏移或头部运动，分数按 zone_moving_away_factor 快速下降。
    未配置区域或视线点缺失时分数缓慢回到 0.5。
    """

    def __init__(self, config: PipelineConfig, zone: Optional[FocusZone] = None):
        self.config = config
        self.zone = zone if zone is not None else config.focus_zone
        self.score = NEUTRAL_SCORE

    def update(self, point: Optional[Point], gaze_deviation: float, head_movement: float) -> float:
        cfg = self.config

        if self.zone is None or point is None:
            self.score += (NEUTRAL_SCORE - self.score) * cfg.zone_neutral_rate
            return self.score

        if self.zone.contains(point):
            self.score += (1.0 - self.score) * cfg.zone_inside_rate
        else:
            self.score += (cfg.zone_outside_target - self.score) * cfg.zone_outside_rate
            moving_away = (
                gaze_deviation > cfg.zone_gaze_move_threshold
                or head_movement > cfg.zone_head_move_threshold
            )
            if moving_away:
                self.score *= cfg.zone_moving_away_factor

        self.score = clamp01(self.score)
        return self.score

    def reset(self):
        self.score = NEUTRAL_SCORE
