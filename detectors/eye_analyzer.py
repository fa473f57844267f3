"""眼睛状态分析模块，负责计算 EAR 值并按个人阈值判断闭眼"""

import logging
import math
from typing import List, Optional, Sequence

from detectors.geometry import clamp, ear
from models.config import PipelineConfig
from models.data_models import CalibrationBaseline, EyeResult, Point

logger = logging.getLogger(__name__)


class EyeAnalyzer:
    """计算双眼 EAR，无效测量用上一次有效值替代，输出闭眼信号"""

    def __init__(self, config: PipelineConfig):
        """初始化阈值来源和上一次有效值"""
        self.config = config
        self.baseline: Optional[CalibrationBaseline] = None
        self._bootstrap: Optional[CalibrationBaseline] = None
        self._bootstrap_samples: List[float] = []
        self._bootstrap_started: Optional[float] = None
        self._last_left: Optional[float] = None
        self._last_right: Optional[float] = None

    @property
    def threshold(self) -> float:
        """当前闭眼阈值：校准基线 > 启动期基线 > 默认值"""
        if self.baseline is not None:
            return self.baseline.threshold
        if self._bootstrap is not None:
            return self._bootstrap.threshold
        if self._bootstrap_samples:
            return self._threshold_for(sum(self._bootstrap_samples) / len(self._bootstrap_samples))
        return self.config.default_ear_threshold

    def _threshold_for(self, ear0: float) -> float:
        return clamp(
            ear0 * self.config.ear_ratio,
            self.config.ear_threshold_min,
            self.config.ear_threshold_max,
        )

    def analyze(
        self,
        left_eye: Sequence[Point],
        right_eye: Sequence[Point],
        timestamp: float,
    ) -> EyeResult:
        """
        分析双眼状态。

        Args:
            left_eye: 左眼 6 个关键点
            right_eye: 右眼 6 个关键点
            timestamp: 帧时间戳（秒）

        Returns:
            EyeResult；两眼都没有有效值时 measured 为 False
        """
        left = ear(left_eye)
        right = ear(right_eye)

        if math.isnan(left):
            left = self._last_left
        else:
            self._last_left = left
        if math.isnan(right):
            right = self._last_right
        else:
            self._last_right = right

        values = [v for v in (left, right) if v is not None]
        if not values:
            return self.last_known()

        avg = sum(values) / len(values)
        self._update_bootstrap(avg, timestamp)
        threshold = self.threshold

        return EyeResult(
            ear_left=left,
            ear_right=right,
            ear_avg=avg,
            threshold=threshold,
            is_closed=avg < threshold,
            measured=True,
        )

    def last_known(self) -> EyeResult:
        """无法测量时返回上一次有效值，不判定闭眼"""
        values = [v for v in (self._last_left, self._last_right) if v is not None]
        return EyeResult(
            ear_left=self._last_left,
            ear_right=self._last_right,
            ear_avg=sum(values) / len(values) if values else None,
            threshold=self.threshold,
            is_closed=False,
            measured=False,
        )

    def _update_bootstrap(self, avg: float, timestamp: float) -> None:
        """校准完成前，用最初几秒有效帧的 EAR 均值估计阈值"""
        if self.baseline is not None or self._bootstrap is not None:
            return

        if self._bootstrap_started is None:
            self._bootstrap_started = timestamp

        if timestamp - self._bootstrap_started < self.config.bootstrap_seconds:
            self._bootstrap_samples.append(avg)
            return

        if not self._bootstrap_samples:
            self._bootstrap_samples.append(avg)

        ear0 = sum(self._bootstrap_samples) / len(self._bootstrap_samples)
        self._bootstrap = CalibrationBaseline(
            ear0=ear0,
            threshold=self._threshold_for(ear0),
            sample_count=len(self._bootstrap_samples),
            source="bootstrap",
        )
        logger.info(
            "启动期阈值已确定: EAR0=%.3f, 阈值=%.3f (样本 %d)",
            ear0, self._bootstrap.threshold, self._bootstrap.sample_count,
        )

    def reset(self):
        """清除启动期基线和上一次有效值，校准基线保留"""
        self._bootstrap = None
        self._bootstrap_samples = []
        self._bootstrap_started = None
        self._last_left = None
        self._last_right = None
