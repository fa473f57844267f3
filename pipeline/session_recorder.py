"""会话记录模块：会话进行期间累积状态记录，结束时输出统计"""

import logging
import time
from dataclasses import replace
from typing import Callable, List, Optional

from models.data_models import STATES, SessionSummary, StateRecord
from pipeline.emission import METRICS, STATE, EmissionChannel

logger = logging.getLogger(__name__)


class SessionRecorder:
    """
    会话暂停时管线继续计算（PERCLOS 和平滑状态照常更新），只是停止记录。

    会话起止时间取帧时间戳，与状态记录处于同一时间轴；在第一帧之前开始的会话
    先以 clock 为起点，收到第一帧后改用该帧时间戳。会话编号始终取自 clock。
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time
        self.session_id: Optional[str] = None
        self.started_at: Optional[float] = None
        self._frame_time: Optional[float] = None
        self._anchored = False
        self._records: List[StateRecord] = []

    @property
    def active(self) -> bool:
        return self.session_id is not None

    @property
    def records(self) -> List[StateRecord]:
        return list(self._records)

    def attach(self, channel: EmissionChannel) -> "SessionRecorder":
        channel.subscribe(METRICS, self.on_snapshot)
        channel.subscribe(STATE, self.on_record)
        return self

    def _now(self) -> float:
        if self._frame_time is not None:
            return self._frame_time
        return self._clock()

    def start(self, state: Optional[str] = None, score: float = 0.0) -> str:
        """
        开始新会话，已有会话会先结束。

        Args:
            state: 当前确认状态，作为会话的第一条记录
            score: 当前专注度
        """
        if self.active:
            self.end()

        self.session_id = f"S{int(self._clock() * 1000)}"
        self.started_at = self._now()
        self._anchored = self._frame_time is not None
        self._records = []
        if state is not None:
            self._records.append(StateRecord(timestamp=self.started_at, state=state, score=score))
        logger.info("会话开始: %s", self.session_id)
        return self.session_id

    def on_snapshot(self, snapshot) -> None:
        self._frame_time = snapshot.timestamp
        if self.active and not self._anchored:
            self._anchor(snapshot.timestamp)

    def _anchor(self, timestamp: float) -> None:
        """把会话起点及起点处的记录移到帧时间轴上"""
        opening = self.started_at
        self.started_at = timestamp
        self._records = [
            replace(r, timestamp=timestamp) if r.timestamp == opening else r
            for r in self._records
        ]
        self._anchored = True

    def on_record(self, record: StateRecord) -> None:
        if self.active:
            self._records.append(record)

    def end(self) -> Optional[SessionSummary]:
        """结束会话并返回统计；没有进行中的会话时返回 None"""
        if not self.active:
            return None

        ended_at = max(self._now(), self.started_at)
        summary = summarize(self.session_id, self.started_at, ended_at, self._records)
        logger.info(
            "会话结束: %s，平均专注度 %.1f，记录 %d 条",
            summary.session_id, summary.avg_focus, summary.record_count,
        )
        self.session_id = None
        self.started_at = None
        self._records = []
        return summary


def summarize(
    session_id: str,
    started_at: float,
    ended_at: float,
    records: List[StateRecord],
) -> SessionSummary:
    """
    统计会话：平均专注度为记录分数的均值，
    各状态时长为每条记录到下一条记录（最后一条到会话结束）的时间。
    """
    state_seconds = {state: 0.0 for state in STATES}
    ordered = sorted(records, key=lambda r: r.timestamp)
    for i, record in enumerate(ordered):
        until = ordered[i + 1].timestamp if i + 1 < len(ordered) else ended_at
        state_seconds[record.state] += max(0.0, until - record.timestamp)

    avg_focus = sum(r.score for r in ordered) / len(ordered) if ordered else 0.0

    return SessionSummary(
        session_id=session_id,
        started_at=started_at,
        ended_at=ended_at,
        avg_focus=round(avg_focus, 1),
        record_count=len(ordered),
        state_seconds=state_seconds,
    )
