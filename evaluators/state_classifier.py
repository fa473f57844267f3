"""注意力状态判定模块（带连续帧去抖的状态机）"""

import logging
from typing import List, Optional, Tuple

from models.config import PipelineConfig
from models.data_models import (
    DISTRACT,
    DROWSY,
    FATIGUE,
    FOCUS,
    TRANSITION,
    StateRecord,
)

logger = logging.getLogger(__name__)


class StateClassifier:
    """
    按优先级 drowsy > fatigue > distract > transition > focus 得到原始判定，
    原始判定须连续 hold_frames 帧一致才替换已确认状态；候选状态等待确认期间
    对外报告 transition，而不是尚未确认的候选状态。

    只在确认状态变化（或达到 reaffirm_interval 的周期性重申）时输出 StateRecord，
    记录时间戳单调不减；未输出时可通过 state / score 查询最新结果。
    """

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.confirmed = TRANSITION
        self.score = 0.0
        self.reasons: Tuple[str, ...] = ()
        self.last_record: Optional[StateRecord] = None
        self._candidate: Optional[str] = None
        self._candidate_frames = 0
        self._emitted_at: Optional[float] = None
        self._long_blink: Optional[Tuple[float, float]] = None

    def classify(
        self,
        score: float,
        perclos: float,
        zone_score: float,
        gaze_deviation: float,
        valid: bool = True,
        long_blink: Optional[float] = None,
    ) -> Tuple[str, List[str]]:
        """
        单帧原始判定，不做去抖。

        long_blink 为仍在保持期内的长眨眼时长（未启用 fatigue_blink_duration 时为 None），
        优先级低于 PERCLOS 判定、高于分心判定。

        Returns:
            (状态, 原因列表)
        """
        cfg = self.config
        reasons: List[str] = []
        if not valid:
            reasons.append("人脸丢失或置信度过低")

        if perclos >= cfg.drowsy_perclos:
            reasons.append(f"PERCLOS {perclos:.2f} ≥ {cfg.drowsy_perclos:.2f}")
            return DROWSY, reasons
        if perclos >= cfg.fatigue_perclos:
            reasons.append(f"PERCLOS {perclos:.2f} ≥ {cfg.fatigue_perclos:.2f}")
            return FATIGUE, reasons
        if long_blink is not None:
            reasons.append(f"长眨眼 {long_blink:.2f}s ≥ {cfg.fatigue_blink_duration:.2f}s")
            return FATIGUE, reasons
        if score < cfg.distract_score:
            reasons.append(f"专注度 {score:.0f} < {cfg.distract_score:.0f}")
            return DISTRACT, reasons
        if zone_score < cfg.distract_zone_score and gaze_deviation > cfg.distract_gaze_deviation:
            reasons.append("视线离开专注区域")
            return DISTRACT, reasons
        if score < cfg.focus_score:
            reasons.append(f"专注度 {score:.0f} < {cfg.focus_score:.0f}")
            return TRANSITION, reasons
        return FOCUS, reasons

    def update(
        self,
        timestamp: float,
        score: float,
        perclos: float,
        zone_score: float,
        gaze_deviation: float,
        valid: bool = True,
        blink_duration: Optional[float] = None,
    ) -> Optional[StateRecord]:
        """
        输入一帧的指标，返回需要发布的状态记录（没有则为 None）。
        """
        self.score = score
        long_blink = self._track_long_blink(timestamp, blink_duration)
        raw, reasons = self.classify(score, perclos, zone_score, gaze_deviation, valid, long_blink)

        changed = False
        if raw == self.confirmed:
            self._candidate = None
            self._candidate_frames = 0
            self.reasons = tuple(reasons)
        else:
            if raw == self._candidate:
                self._candidate_frames += 1
            else:
                self._candidate = raw
                self._candidate_frames = 1

            if self._candidate_frames >= self.config.hold_frames:
                logger.info("状态切换: %s -> %s (专注度 %.1f)", self.confirmed, raw, score)
                self.confirmed = raw
                self.reasons = tuple(reasons)
                self._candidate = None
                self._candidate_frames = 0
                changed = True

        if changed or self._reaffirm_due(timestamp):
            return self._emit(timestamp)
        return None

    def _track_long_blink(self, timestamp: float, blink_duration: Optional[float]) -> Optional[float]:
        limit = self.config.fatigue_blink_duration
        if limit is None:
            return None
        if blink_duration is not None and blink_duration >= limit:
            self._long_blink = (timestamp, blink_duration)
        if self._long_blink is None:
            return None
        at, duration = self._long_blink
        if timestamp - at > self.config.long_blink_hold_seconds:
            self._long_blink = None
            return None
        return duration

    def _reaffirm_due(self, timestamp: float) -> bool:
        interval = self.config.reaffirm_interval
        if interval is None:
            return False
        if self.last_record is None:
            return True
        return timestamp - self.last_record.timestamp >= interval

    def _emit(self, timestamp: float) -> StateRecord:
        if self._emitted_at is not None:
            timestamp = max(timestamp, self._emitted_at)
        self._emitted_at = timestamp
        self.last_record = StateRecord(
            timestamp=timestamp,
            state=self.state,
            score=self.score,
            reasons=self.reasons,
        )
        return self.last_record

    @property
    def state(self) -> str:
        """对外报告的状态：有待确认的候选时为 transition"""
        if self._candidate is not None:
            return TRANSITION
        return self.confirmed

    @property
    def pending(self) -> Optional[str]:
        """尚未确认的候选状态"""
        return self._candidate

    def reset(self):
        """回到初始状态 transition，已发布记录的时间下限保留"""
        self.confirmed = TRANSITION
        self.score = 0.0
        self.reasons = ()
        self.last_record = None
        self._candidate = None
        self._candidate_frames = 0
        self._long_blink = None
