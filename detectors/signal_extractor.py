"""信号提取模块：把单帧观测转换为眼睛、视线、头部和区域信号"""

from typing import Optional

from detectors.eye_analyzer import EyeAnalyzer
from detectors.gaze_analyzer import GazeAnalyzer
from detectors.geometry import UNKNOWN
from detectors.head_pose_analyzer import HeadPoseAnalyzer
from detectors.zone_scorer import ZoneScorer
from models.config import PipelineConfig
from models.data_models import FocusZone, GazeResult, PoseResult, SignalResult, VisionFrame


class SignalExtractor:
    """协调各分析器，所有平滑状态跨帧保留，仅在 reset() 时清除"""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.eye_analyzer = EyeAnalyzer(config)
        self.gaze_analyzer = GazeAnalyzer(config)
        self.head_pose_analyzer = HeadPoseAnalyzer(config)
        self.zone_scorer = ZoneScorer(config)

    def is_usable(self, frame: VisionFrame) -> bool:
        """帧有效且置信度不低于下限"""
        return frame.valid and frame.confidence >= self.config.min_confidence

    def extract(self, frame: VisionFrame) -> SignalResult:
        """
        提取单帧信号。

        Args:
            frame: 视觉模块输出的观测帧

        Returns:
            SignalResult；不可用帧返回降级结果（valid=False，视线与区域状态被重置）
        """
        if not self.is_usable(frame):
            return self._degraded()

        eye = self.eye_analyzer.analyze(frame.left_eye, frame.right_eye, frame.timestamp)
        gaze = self.gaze_analyzer.analyze(
            frame.left_eye, frame.right_eye, frame.left_iris, frame.right_iris,
        )
        pose = self.head_pose_analyzer.analyze(frame.head_pose)
        zone_score = self.zone_scorer.update(gaze.point, gaze.deviation, pose.movement)

        return SignalResult(
            valid=True,
            eye=eye,
            gaze=gaze,
            pose=pose,
            zone_score=zone_score,
        )

    def _degraded(self) -> SignalResult:
        """人脸丢失或置信度过低：视线与区域平滑状态清零，不让残留平滑继续报告专注"""
        self.gaze_analyzer.reset()
        self.zone_scorer.reset()
        return SignalResult(
            valid=False,
            eye=self.eye_analyzer.last_known(),
            gaze=GazeResult(deviation=0.0, direction=UNKNOWN, point=None),
            pose=PoseResult(delta=0.0, movement=self.head_pose_analyzer.movement),
            zone_score=0.0,
        )

    def set_focus_zone(self, zone: Optional[FocusZone]) -> None:
        self.zone_scorer.zone = zone
        self.zone_scorer.reset()

    def reset(self):
        self.eye_analyzer.reset()
        self.gaze_analyzer.reset()
        self.head_pose_analyzer.reset()
        self.zone_scorer.reset()
