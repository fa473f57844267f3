"""AlertMonitor 单元测试"""

from evaluators.alert_monitor import STATE_MESSAGES, SUSTAINED_MESSAGE, AlertMonitor
from models.data_models import (
    DISTRACT,
    FATIGUE,
    FOCUS,
    TRANSITION,
    MetricsSnapshot,
    StateRecord,
)
from pipeline.emission import ALERT, METRICS, STATE, EmissionChannel


def _snapshot(ts, state):
    return MetricsSnapshot(
        timestamp=ts, valid=True,
        ear_left=0.3, ear_right=0.3, ear_avg=0.3, ear_threshold=0.22,
        eyes_closed=False, gaze_deviation=0.0, gaze_direction="center",
        head_movement=0.0, perclos=0.0, blink_rate=0, blink_duration=None,
        zone_score=0.5, focus_score=50.0, state=state,
    )


def _feed_states(monitor, state, start, seconds, step=1.0):
    alerts = []
    t = start
    while t < start + seconds:
        alert = monitor.on_snapshot(_snapshot(t, state))
        if alert is not None:
            alerts.append(alert)
        t += step
    return alerts


class TestStateAlerts:
    """测试确认状态提醒"""

    def test_bad_state_raises_alert(self):
        alert = AlertMonitor().on_record(StateRecord(10.0, FATIGUE, 50.0))
        assert alert.kind == "state"
        assert alert.message == STATE_MESSAGES[FATIGUE]

    def test_focus_and_transition_silent(self):
        monitor = AlertMonitor()
        assert monitor.on_record(StateRecord(0.0, FOCUS, 90.0)) is None
        assert monitor.on_record(StateRecord(1.0, TRANSITION, 60.0)) is None

    def test_per_state_cooldown(self):
        """同一状态在冷却期内只提醒一次，不同状态互不影响"""
        monitor = AlertMonitor(cooldown_seconds=300.0)
        assert monitor.on_record(StateRecord(0.0, FATIGUE, 50.0)) is not None
        assert monitor.on_record(StateRecord(100.0, FATIGUE, 50.0)) is None
        assert monitor.on_record(StateRecord(100.0, DISTRACT, 30.0)) is not None
        assert monitor.on_record(StateRecord(300.0, FATIGUE, 50.0)) is not None


class TestSustainedAlert:
    """测试持续非专注提醒"""

    def test_needs_minimum_data(self):
        monitor = AlertMonitor(min_data_seconds=60.0)
        assert _feed_states(monitor, DISTRACT, 0.0, 59.0) == []
        assert monitor.bad_time_ratio() is None

    def test_raises_once_per_cooldown(self):
        monitor = AlertMonitor(min_data_seconds=60.0, cooldown_seconds=300.0)
        alerts = _feed_states(monitor, DISTRACT, 0.0, 200.0)
        assert len(alerts) == 1
        assert alerts[0].kind == "sustained"
        assert alerts[0].message == SUSTAINED_MESSAGE
        assert alerts[0].bad_ratio >= 0.4

    def test_focus_current_state_silent(self):
        monitor = AlertMonitor(cooldown_seconds=0.0)
        assert _feed_states(monitor, DISTRACT, 0.0, 100.0)
        assert monitor.bad_time_ratio() >= 0.4
        assert monitor.on_snapshot(_snapshot(100.0, FOCUS)) is None

    def test_transition_time_excluded(self):
        monitor = AlertMonitor(min_data_seconds=60.0)
        assert _feed_states(monitor, TRANSITION, 0.0, 120.0) == []
        assert monitor.bad_time_ratio() is None

    def test_mostly_focus_no_alert(self):
        monitor = AlertMonitor(min_data_seconds=60.0)
        _feed_states(monitor, FOCUS, 0.0, 100.0)
        assert _feed_states(monitor, DISTRACT, 100.0, 20.0) == []
        assert monitor.bad_time_ratio() < 0.4

    def test_attach_publishes_alerts(self):
        channel = EmissionChannel()
        received = []
        channel.subscribe(ALERT, received.append)
        AlertMonitor().attach(channel)

        channel.publish(STATE, StateRecord(0.0, DISTRACT, 20.0))
        channel.publish(METRICS, _snapshot(0.0, DISTRACT))

        assert [a.kind for a in received] == ["state"]
