"""头部姿态分析模块，计算相邻帧欧拉角变化幅度并平滑"""

from typing import Optional

import numpy as np

from detectors.geometry import ema
from models.config import PipelineConfig
from models.data_models import HeadPose, PoseResult


class HeadPoseAnalyzer:
    """计算相邻有效帧 (yaw, pitch, roll) 差值的欧氏范数，输出平滑后的头部运动幅度"""

    def __init__(self, config: PipelineConfig):
        """初始化平滑系数和上一帧姿态"""
        self.config = config
        self._previous: Optional[HeadPose] = None
        self._movement: Optional[float] = None

    @property
    def movement(self) -> float:
        return self._movement or 0.0

    def analyze(self, pose: Optional[HeadPose]) -> PoseResult:
        """
        更新头部运动幅度。

        Args:
            pose: 当前帧头部姿态，缺失时保持上一次的平滑值

        Returns:
            PoseResult(delta, movement)，单位为度
        """
        if pose is None:
            return PoseResult(delta=0.0, movement=self.movement)

        if self._previous is None:
            self._previous = pose
            return PoseResult(delta=0.0, movement=self.movement)

        delta = float(np.linalg.norm([
            pose.yaw - self._previous.yaw,
            pose.pitch - self._previous.pitch,
            pose.roll - self._previous.roll,
        ]))
        self._previous = pose
        self._movement = ema(self._movement, delta, self.config.head_alpha)

        return PoseResult(delta=delta, movement=self._movement)

    def reset(self):
        """清除上一帧姿态和平滑状态"""
        self._previous = None
        self._movement = None
