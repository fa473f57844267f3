"""提醒判定模块：根据确认状态流决定何时提醒用户（不负责提醒的展示）"""

import logging
from collections import deque
from typing import Deque, Dict, Optional, Tuple

from models.data_models import (
    DISTRACT,
    DROWSY,
    FATIGUE,
    FOCUS,
    AlertEvent,
    MetricsSnapshot,
    StateRecord,
)
from pipeline.emission import ALERT, METRICS, STATE, EmissionChannel

logger = logging.getLogger(__name__)

STATE_MESSAGES = {
    DISTRACT: "视线频繁移动，稍作整理再继续",
    FATIGUE: "眨眼变慢，建议做做眼保健操",
    DROWSY: "检测到瞌睡！起来活动一下",
}

SUSTAINED_MESSAGE = "最近几分钟专注度明显下降，休息一下吧"

_BAD_STATES = (DISTRACT, FATIGUE, DROWSY)


class AlertMonitor:
    """
    两类提醒：
      - 状态提醒：确认进入 distract / fatigue / drowsy 时提醒，每种状态有独立冷却时间
      - 持续提醒：最近 window_seconds 内非专注状态时间占比达到 bad_ratio，
        且当前不是 focus、累计数据不少于 min_data_seconds 时提醒，全局冷却
    """

    def __init__(
        self,
        window_seconds: float = 300.0,
        cooldown_seconds: float = 300.0,
        min_data_seconds: float = 60.0,
        bad_ratio: float = 0.4,
        frame_interval: float = 1.0 / 15.0,
    ):
        self.window_seconds = window_seconds
        self.cooldown_seconds = cooldown_seconds
        self.min_data_seconds = min_data_seconds
        self.bad_ratio = bad_ratio
        self.frame_interval = frame_interval
        self._samples: Deque[Tuple[float, str]] = deque()
        self._last_state_alert: Dict[str, float] = {}
        self._last_sustained: Optional[float] = None
        self._channel: Optional[EmissionChannel] = None

    def attach(self, channel: EmissionChannel) -> "AlertMonitor":
        """订阅快照和状态记录，并把提醒发布到同一通道"""
        self._channel = channel
        channel.subscribe(METRICS, self.on_snapshot)
        channel.subscribe(STATE, self.on_record)
        return self

    def on_record(self, record: StateRecord) -> Optional[AlertEvent]:
        """确认状态提醒，按状态分别冷却"""
        if record.state not in _BAD_STATES:
            return None

        last = self._last_state_alert.get(record.state)
        if last is not None and record.timestamp - last < self.cooldown_seconds:
            return None

        self._last_state_alert[record.state] = record.timestamp
        return self._raise(AlertEvent(
            timestamp=record.timestamp,
            kind="state",
            state=record.state,
            message=STATE_MESSAGES[record.state],
        ))

    def on_snapshot(self, snapshot: MetricsSnapshot) -> Optional[AlertEvent]:
        """记录每帧的确认状态，检查持续提醒条件"""
        ts = snapshot.timestamp
        self._samples.append((ts, snapshot.state))

        cutoff = ts - self.window_seconds
        while self._samples and self._samples[0][0] < cutoff:
            self._samples.popleft()

        if self._last_sustained is not None and ts - self._last_sustained < self.cooldown_seconds:
            return None
        if snapshot.state == FOCUS:
            return None

        ratio = self.bad_time_ratio()
        if ratio is None or ratio < self.bad_ratio:
            return None

        self._last_sustained = ts
        return self._raise(AlertEvent(
            timestamp=ts,
            kind="sustained",
            state=snapshot.state,
            message=SUSTAINED_MESSAGE,
            bad_ratio=ratio,
        ))

    def bad_time_ratio(self) -> Optional[float]:
        """
        窗口内 distract/fatigue/drowsy 时间占比。

        每个样本的持续时间为到下一个样本的间隔，最后一个样本按一帧间隔计；
        transition 视为中性不计入。数据不足 min_data_seconds 时返回 None。
        """
        durations = {state: 0.0 for state in (FOCUS,) + _BAD_STATES}
        samples = list(self._samples)
        for i, (ts, state) in enumerate(samples):
            next_ts = samples[i + 1][0] if i + 1 < len(samples) else ts + self.frame_interval
            if state not in durations:
                continue
            durations[state] += max(0.0, next_ts - ts)

        total = sum(durations.values())
        if total < self.min_data_seconds:
            return None
        return sum(durations[s] for s in _BAD_STATES) / total

    def _raise(self, alert: AlertEvent) -> AlertEvent:
        logger.info("提醒 [%s/%s]: %s", alert.kind, alert.state, alert.message)
        if self._channel is not None:
            self._channel.publish(ALERT, alert)
        return alert

    def reset(self):
        self._samples.clear()
        self._last_state_alert.clear()
        self._last_sustained = None
