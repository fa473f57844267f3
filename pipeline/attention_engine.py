"""注意力状态管线：信号提取 → 窗口统计 → 综合评分 → 状态判定 → 发布"""

import logging
import math
from concurrent.futures import Future
from dataclasses import replace
from typing import Callable, Optional

from aggregators.blink_detector import BlinkDetector
from aggregators.perclos_window import PerclosWindow
from calibration.baseline_calibrator import BaselineCalibrator, CalibrationError
from detectors.signal_extractor import SignalExtractor
from evaluators.score_composer import ScoreComposer
from evaluators.state_classifier import StateClassifier
from models.config import PipelineConfig
from models.data_models import (
    CalibrationBaseline,
    FocusZone,
    MetricsSnapshot,
    ProcessResult,
    StateRecord,
    VisionFrame,
)
from pipeline.emission import METRICS, STATE, EmissionChannel

logger = logging.getLogger(__name__)


class AttentionEngine:
    """
    单实例持有全部滑动窗口、平滑状态和校准基线。

    每帧在 process() 中完整处理后才接受下一帧；校准与帧处理共用同一帧流，
    只在校准结束时提交一次基线。多线程宿主需要在外部用一把锁串行化调用。
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        channel: Optional[EmissionChannel] = None,
    ):
        self.config = (config or PipelineConfig()).validate()
        self.channel = channel or EmissionChannel()

        self.extractor = SignalExtractor(self.config)
        self.perclos = PerclosWindow(self.config.perclos_window_seconds)
        self.blinks = BlinkDetector(
            min_duration=self.config.min_blink_duration,
            max_duration=self.config.max_blink_duration,
            window_seconds=self.config.blink_window_seconds,
        )
        self.composer = ScoreComposer(self.config)
        self.classifier = StateClassifier(self.config)
        self.calibrator = BaselineCalibrator(self.config, clock=clock)

        self.latest_snapshot: Optional[MetricsSnapshot] = None

    # ---- 查询 ----

    @property
    def state(self) -> str:
        return self.classifier.state

    @property
    def score(self) -> float:
        return self.classifier.score

    @property
    def last_record(self) -> Optional[StateRecord]:
        return self.classifier.last_record

    @property
    def baseline(self) -> Optional[CalibrationBaseline]:
        return self.extractor.eye_analyzer.baseline

    @property
    def threshold(self) -> float:
        return self.extractor.eye_analyzer.threshold

    @property
    def calibrating(self) -> bool:
        return self.calibrator.active

    # ---- 帧处理 ----

    def process(self, frame: VisionFrame) -> ProcessResult:
        """
        处理一帧观测，不会因输入退化而抛出异常。

        Args:
            frame: 视觉模块输出的观测帧

        Returns:
            ProcessResult(snapshot, record)，record 仅在状态确认变化或周期重申时存在
        """
        ts = frame.timestamp
        if not math.isfinite(ts):
            return self._process_untimed(frame)

        self.calibrator.offer(frame)

        signals = self.extractor.extract(frame)
        eye = signals.eye

        blink_duration = None
        if signals.valid and eye.measured:
            perclos = self.perclos.update(ts, eye.is_closed, valid=True)
            blink_duration = self.blinks.update(ts, eye.is_closed)
        else:
            perclos = self.perclos.update(ts, False, valid=False)
            self.blinks.prune(ts)

        if signals.valid:
            score = self.composer.update(
                perclos, signals.gaze.deviation, signals.zone_score, signals.pose.movement,
            )
        else:
            score = self.composer.force_zero()

        record = self.classifier.update(
            ts, score, perclos, signals.zone_score, signals.gaze.deviation,
            valid=signals.valid, blink_duration=blink_duration,
        )

        snapshot = self._snapshot(ts, signals, perclos, blink_duration, score)
        self.latest_snapshot = snapshot

        self.channel.publish(METRICS, snapshot)
        if record is not None:
            self.channel.publish(STATE, record)

        return ProcessResult(snapshot=snapshot, record=record)

    def _process_untimed(self, frame: VisionFrame) -> ProcessResult:
        """时间戳非有限值：按降级帧处理，不进入任何时间窗口，也不发布"""
        logger.warning("帧时间戳无效 (%s)，按降级帧处理", frame.timestamp)
        signals = self.extractor.extract(replace(frame, valid=False))
        score = self.composer.force_zero()
        snapshot = self._snapshot(frame.timestamp, signals, self.perclos.value, None, score)
        return ProcessResult(snapshot=snapshot, record=None)

    def _snapshot(self, ts, signals, perclos, blink_duration, score) -> MetricsSnapshot:
        eye = signals.eye
        return MetricsSnapshot(
            timestamp=ts,
            valid=signals.valid,
            ear_left=eye.ear_left,
            ear_right=eye.ear_right,
            ear_avg=eye.ear_avg,
            ear_threshold=eye.threshold,
            eyes_closed=eye.is_closed and signals.valid,
            gaze_deviation=signals.gaze.deviation,
            gaze_direction=signals.gaze.direction,
            head_movement=signals.pose.movement,
            perclos=perclos,
            blink_rate=self.blinks.blink_rate,
            blink_duration=blink_duration,
            zone_score=signals.zone_score,
            focus_score=score,
            state=self.classifier.state,
        )

    # ---- 命令 ----

    def calibrate(self, duration: Optional[float] = None) -> Future:
        """
        开始基线校准，不阻塞帧处理。

        Args:
            duration: 采样时长（秒），默认使用 calibration_seconds

        Returns:
            Future：成功时结果为 CalibrationBaseline，失败时抛出 CalibrationError
        """
        future = self.calibrator.start(duration)
        future.add_done_callback(self._commit_calibration)
        return future

    def _commit_calibration(self, future: Future) -> None:
        try:
            baseline = future.result()
        except CalibrationError as e:
            logger.warning("校准未完成 (%s)，继续使用当前阈值 %.3f", e.reason, self.threshold)
            return
        self.extractor.eye_analyzer.baseline = baseline

    def abort_calibration(self) -> None:
        self.calibrator.abort()

    def poll(self) -> None:
        """没有帧到达时推进校准计时"""
        self.calibrator.poll()

    def set_focus_zone(self, zone: Optional[FocusZone]) -> None:
        self.extractor.set_focus_zone(zone)
        logger.info("专注区域已更新: %s", zone)

    def reset(self) -> None:
        """清空全部窗口和平滑状态，状态回到 transition；已校准的基线保留"""
        self.extractor.reset()
        self.perclos.reset()
        self.blinks.reset()
        self.composer.reset()
        self.classifier.reset()
        self.latest_snapshot = None
        logger.info("管线已重置")
