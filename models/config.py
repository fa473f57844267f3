"""管线配置：默认参数与 JSON 配置文件加载"""

import json
import logging
import math
from dataclasses import asdict, dataclass, fields
from typing import Optional

from models.data_models import FocusZone

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """注意力管线的全部可调参数，阈值均为配置而非隐藏常量"""

    # 校准
    calibration_seconds: float = 5.0
    calibration_timeout_grace: float = 5.0
    ear_ratio: float = 0.72
    ear_threshold_min: float = 0.08
    ear_threshold_max: float = 0.30
    default_ear_threshold: float = 0.22
    bootstrap_seconds: float = 2.0

    # 输入门限
    min_confidence: float = 0.5
    target_fps: float = 15.0

    # 平滑系数
    gaze_alpha: float = 0.2
    head_alpha: float = 0.2
    score_alpha: float = 0.2

    # 视线与头部
    gaze_max_radius: float = 0.02
    gaze_center_epsilon: float = 0.15

    # 专注区域
    focus_zone: Optional[FocusZone] = None
    zone_neutral_rate: float = 0.02
    zone_inside_rate: float = 0.08
    zone_outside_rate: float = 0.03
    zone_outside_target: float = 0.65
    zone_moving_away_factor: float = 0.85
    zone_gaze_move_threshold: float = 0.15
    zone_head_move_threshold: float = 1.5

    # 窗口统计
    perclos_window_seconds: float = 60.0
    blink_window_seconds: float = 60.0
    min_blink_duration: float = 0.05
    max_blink_duration: float = 0.8

    # 综合评分
    weight_eye: float = 0.40
    weight_gaze: float = 0.20
    weight_zone: float = 0.25
    weight_head: float = 0.15
    perclos_soft_cap: float = 0.5
    gaze_soft_cap: float = 0.6
    head_soft_cap: float = 8.0

    # 状态判定
    drowsy_perclos: float = 0.40
    fatigue_perclos: float = 0.25
    distract_score: float = 40.0
    distract_zone_score: float = 0.35
    distract_gaze_deviation: float = 0.2
    focus_score: float = 70.0
    fatigue_blink_duration: Optional[float] = None
    long_blink_hold_seconds: float = 3.0
    hold_frames: int = 30
    reaffirm_interval: Optional[float] = None

    def validate(self) -> "PipelineConfig":
        """检查参数一致性，不合法时抛出 ValueError"""
        weights = self.weight_eye + self.weight_gaze + self.weight_zone + self.weight_head
        if not math.isclose(weights, 1.0, abs_tol=1e-6):
            raise ValueError(f"评分权重之和必须为 1，当前为 {weights:.4f}")
        if self.ear_threshold_min > self.ear_threshold_max:
            raise ValueError("EAR 阈值下限大于上限")
        if self.min_blink_duration > self.max_blink_duration:
            raise ValueError("眨眼最短时长大于最长时长")
        if self.perclos_window_seconds <= 0 or self.blink_window_seconds <= 0:
            raise ValueError("统计窗口长度必须为正数")
        if self.hold_frames < 1:
            raise ValueError("hold_frames 至少为 1")
        if self.fatigue_perclos > self.drowsy_perclos:
            raise ValueError("疲劳 PERCLOS 阈值不能高于瞌睡阈值")
        if self.distract_score > self.focus_score:
            raise ValueError("分心分数阈值不能高于专注阈值")
        if self.fatigue_blink_duration is not None and self.fatigue_blink_duration <= 0:
            raise ValueError("fatigue_blink_duration 必须为正数")
        return self

    def to_dict(self) -> dict:
        return asdict(self)


_DEFAULTS = PipelineConfig()
_FIELD_NAMES = {f.name for f in fields(PipelineConfig)}


def config_from_dict(data: dict, base: Optional[PipelineConfig] = None) -> PipelineConfig:
    """
    用字典中的已知字段覆盖配置，值为 None 的字段保留原值。

    Args:
        data: 配置字典
        base: 基础配置，默认使用内置默认值

    Returns:
        校验后的 PipelineConfig
    """
    values = asdict(base or _DEFAULTS)

    for key, value in data.items():
        if key not in _FIELD_NAMES:
            logger.warning("忽略未知配置项: %s", key)
            continue
        if value is None:
            continue
        if key == "focus_zone":
            value = value if isinstance(value, FocusZone) else FocusZone.from_dict(value)
        values[key] = value

    if isinstance(values.get("focus_zone"), dict):
        values["focus_zone"] = FocusZone.from_dict(values["focus_zone"])

    return PipelineConfig(**values).validate()


def load_config(config_path: Optional[str]) -> PipelineConfig:
    """从 JSON 配置文件加载参数，缺失字段使用默认值。"""
    if config_path is None:
        return PipelineConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning("配置文件不存在 %s，使用默认参数", config_path)
        return PipelineConfig()
    except json.JSONDecodeError:
        logger.warning("配置文件格式错误 %s，使用默认参数", config_path)
        return PipelineConfig()

    if not isinstance(data, dict):
        logger.warning("配置文件内容不是对象 %s，使用默认参数", config_path)
        return PipelineConfig()

    return config_from_dict(data)
