"""核心数据模型定义"""

import math
from dataclasses import asdict, dataclass, field
from typing import Dict, Optional, Tuple

Point = Tuple[float, float]

# 注意力状态
FOCUS = "focus"
TRANSITION = "transition"
DISTRACT = "distract"
FATIGUE = "fatigue"
DROWSY = "drowsy"

STATES = (FOCUS, TRANSITION, DISTRACT, FATIGUE, DROWSY)


def _parse_point(value) -> Optional[Point]:
    """解析 [x, y] 或 {"x": .., "y": ..} 形式的坐标点"""
    if value is None:
        return None
    if isinstance(value, dict):
        return (float(value["x"]), float(value["y"]))
    x, y = value
    return (float(x), float(y))


@dataclass(frozen=True)
class HeadPose:
    """头部姿态角（度）"""
    yaw: float
    pitch: float
    roll: float


@dataclass(frozen=True)
class VisionFrame:
    """外部视觉模块输出的单帧观测，创建后不可修改"""
    timestamp: float
    confidence: float
    valid: bool
    left_eye: Tuple[Point, ...] = ()
    right_eye: Tuple[Point, ...] = ()
    left_iris: Optional[Point] = None
    right_iris: Optional[Point] = None
    head_pose: Optional[HeadPose] = None

    @classmethod
    def from_dict(cls, data: dict) -> "VisionFrame":
        """
        从 JSON 字典构建 VisionFrame。

        Args:
            data: {timestamp, confidence, valid, left_eye, right_eye,
                   left_iris?, right_iris?, head_pose?}

        Returns:
            VisionFrame

        Raises:
            ValueError: 字段缺失、格式错误或时间戳不是有限值
        """
        try:
            pose = data.get("head_pose")
            timestamp = float(data["timestamp"])
            if not math.isfinite(timestamp):
                raise ValueError(f"时间戳必须为有限值: {timestamp}")
            return cls(
                timestamp=timestamp,
                confidence=float(data.get("confidence", 0.0)),
                valid=bool(data.get("valid", False)),
                left_eye=tuple(_parse_point(p) for p in data.get("left_eye") or ()),
                right_eye=tuple(_parse_point(p) for p in data.get("right_eye") or ()),
                left_iris=_parse_point(data.get("left_iris")),
                right_iris=_parse_point(data.get("right_iris")),
                head_pose=HeadPose(
                    yaw=float(pose["yaw"]),
                    pitch=float(pose["pitch"]),
                    roll=float(pose["roll"]),
                ) if pose else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"帧数据格式错误: {e}") from e


@dataclass(frozen=True)
class FocusZone:
    """屏幕上的专注区域（归一化坐标的轴对齐矩形）"""
    x_min: float
    y_min: float
    x_max: float
    y_max: float

    def __post_init__(self):
        if self.x_min > self.x_max or self.y_min > self.y_max:
            raise ValueError(
                f"专注区域无效: ({self.x_min}, {self.y_min}) - ({self.x_max}, {self.y_max})"
            )

    def contains(self, point: Point) -> bool:
        x, y = point
        return self.x_min <= x <= self.x_max and self.y_min <= y <= self.y_max

    @classmethod
    def from_dict(cls, data: dict) -> "FocusZone":
        return cls(
            x_min=float(data["x_min"]),
            y_min=float(data["y_min"]),
            x_max=float(data["x_max"]),
            y_max=float(data["y_max"]),
        )


@dataclass
class CalibrationBaseline:
    """EAR 基线及其派生的闭眼阈值"""
    ear0: float
    threshold: float
    sample_count: int
    source: str
    distribution: Dict[str, float] = field(default_factory=dict)


@dataclass
class EyeResult:
    """眼睛分析结果"""
    ear_left: Optional[float]
    ear_right: Optional[float]
    ear_avg: Optional[float]
    threshold: float
    is_closed: bool
    measured: bool


@dataclass
class GazeResult:
    """视线分析结果"""
    deviation: float
    direction: str
    point: Optional[Point]


@dataclass
class PoseResult:
    """头部运动分析结果"""
    delta: float
    movement: float


@dataclass
class SignalResult:
    """单帧信号提取结果"""
    valid: bool
    eye: EyeResult
    gaze: GazeResult
    pose: PoseResult
    zone_score: float


@dataclass
class MetricsSnapshot:
    """单帧处理后的指标快照"""
    timestamp: float
    valid: bool
    ear_left: Optional[float]
    ear_right: Optional[float]
    ear_avg: Optional[float]
    ear_threshold: float
    eyes_closed: bool
    gaze_deviation: float
    gaze_direction: str
    head_movement: float
    perclos: float
    blink_rate: int
    blink_duration: Optional[float]
    zone_score: float
    focus_score: float
    state: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StateRecord:
    """确认后的状态记录"""
    timestamp: float
    state: str
    score: float
    reasons: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "state": self.state,
            "score": round(self.score, 2),
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True)
class AlertEvent:
    """提醒事件"""
    timestamp: float
    kind: str
    state: str
    message: str
    bad_ratio: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SessionSummary:
    """会话统计"""
    session_id: str
    started_at: float
    ended_at: float
    avg_focus: float
    record_count: int
    state_seconds: Dict[str, float]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProcessResult:
    """单帧处理结果：每帧一个快照，至多一条状态记录"""
    snapshot: MetricsSnapshot
    record: Optional[StateRecord] = None
