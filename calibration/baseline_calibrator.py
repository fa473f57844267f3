"""基线校准模块：在短时间窗口内采集清醒状态的 EAR，得到个人闭眼阈值"""

import logging
import math
import time
from concurrent.futures import Future
from typing import Callable, List, Optional, Sequence

import numpy as np

from detectors.geometry import clamp, ear
from models.config import PipelineConfig
from models.data_models import CalibrationBaseline, VisionFrame

logger = logging.getLogger(__name__)

INSUFFICIENT_SAMPLES = "insufficient-samples"
TIMEOUT = "timeout"


class CalibrationError(Exception):
    """校准失败，reason 为 "insufficient-samples" 或 "timeout"。调用方可重试或使用默认阈值。"""

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or reason)


def compute_stats(values: Sequence[float]) -> dict:
    """
    计算一组数值的统计信息。

    Args:
        values: 非空浮点数序列

    Returns:
        {"mean": float, "std": float, "min": float, "max": float}
    """
    arr = np.asarray(values, dtype=np.float64)
    return {
        "mean": float(arr.mean()),
        "std": float(arr.std()),
        "min": float(arr.min()),
        "max": float(arr.max()),
    }


def baseline_from_samples(
    samples: Sequence[float],
    config: PipelineConfig,
    source: str = "calibration",
) -> CalibrationBaseline:
    """
    由 EAR 样本计算基线：EAR0 为算术平均，阈值为 EAR0 * ear_ratio 并限制在安全区间内。

    Raises:
        CalibrationError: 没有样本
    """
    if len(samples) == 0:
        raise CalibrationError(INSUFFICIENT_SAMPLES, "校准窗口内没有有效样本")

    stats = compute_stats(samples)
    ear0 = stats["mean"]
    threshold = clamp(ear0 * config.ear_ratio, config.ear_threshold_min, config.ear_threshold_max)
    return CalibrationBaseline(
        ear0=ear0,
        threshold=threshold,
        sample_count=len(samples),
        source=source,
        distribution=stats,
    )


class BaselineCalibrator:
    """
    监听与主管线相同的帧流，按墙钟时间结束采样，不阻塞帧处理。

    start() 返回 Future：成功时结果为 CalibrationBaseline，失败时抛出 CalibrationError。
    """

    def __init__(self, config: PipelineConfig, clock: Optional[Callable[[], float]] = None):
        self.config = config
        self._clock = clock or time.time
        self._samples: List[float] = []
        self._started_at: Optional[float] = None
        self._duration = 0.0
        self._frames_seen = 0
        self._future: Optional[Future] = None

    @property
    def active(self) -> bool:
        return self._future is not None and not self._future.done()

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def progress(self) -> float:
        """校准进度 (0~1)"""
        if self._started_at is None or self._duration <= 0:
            return 0.0 if self.active else 1.0
        return min(1.0, (self._clock() - self._started_at) / self._duration)

    def start(self, duration: Optional[float] = None) -> Future:
        """开始新的采样窗口，若已有校准在进行则先中止"""
        if self.active:
            self.abort()

        self._duration = float(duration if duration is not None else self.config.calibration_seconds)
        self._samples = []
        self._frames_seen = 0
        self._started_at = self._clock()
        self._future = Future()
        self._future.set_running_or_notify_cancel()
        logger.info("开始校准，时长 %.1f 秒", self._duration)
        return self._future

    def offer(self, frame: VisionFrame) -> None:
        """采集一帧；窗口已到期时结束校准"""
        if not self.active:
            return

        self._frames_seen += 1
        if self._clock() - self._started_at >= self._duration:
            self._finish()
            return

        if not frame.valid or frame.confidence < self.config.min_confidence:
            return

        values = [v for v in (ear(frame.left_eye), ear(frame.right_eye)) if not math.isnan(v)]
        if values:
            self._samples.append(sum(values) / len(values))

    def poll(self) -> None:
        """没有新帧时检查窗口是否到期；长时间无帧则以超时失败"""
        if not self.active:
            return

        elapsed = self._clock() - self._started_at
        if elapsed < self._duration:
            return
        if self._frames_seen == 0 and elapsed < self._duration + self.config.calibration_timeout_grace:
            return

        if self._frames_seen == 0:
            self._fail(CalibrationError(TIMEOUT, "校准期间没有收到任何帧"))
        else:
            self._finish()

    def abort(self) -> None:
        """外部中止：以样本不足结束，不会一直挂起"""
        if not self.active:
            return
        self._fail(CalibrationError(INSUFFICIENT_SAMPLES, "校准被中止"))

    def _finish(self) -> None:
        try:
            baseline = baseline_from_samples(self._samples, self.config)
        except CalibrationError as e:
            self._fail(e)
            return

        logger.info(
            "校准完成: EAR0=%.3f, 阈值=%.3f, 样本 %d 条",
            baseline.ear0, baseline.threshold, baseline.sample_count,
        )
        future = self._future
        self._future = None
        future.set_result(baseline)

    def _fail(self, error: CalibrationError) -> None:
        logger.warning("校准失败 (%s): %s", error.reason, error)
        future = self._future
        self._future = None
        future.set_exception(error)
