"""Flask Web 接口 - 注意力状态检测系统"""

import datetime
import logging
import threading
import time
from dataclasses import asdict

from flask import Flask, jsonify, request

from calibration.baseline_calibrator import CalibrationError
from evaluators.alert_monitor import AlertMonitor
from models.config import PipelineConfig
from models.data_models import FocusZone, VisionFrame
from pipeline.attention_engine import AttentionEngine
from pipeline.emission import ALERT, STATE
from pipeline.session_recorder import SessionRecorder

app = Flask(__name__)

_STATE_NAMES = {
    "focus": "专注",
    "transition": "过渡",
    "distract": "分心",
    "fatigue": "疲劳",
    "drowsy": "瞌睡",
}

_STATE_LOG_LEVELS = {
    "focus": "info",
    "transition": "info",
    "distract": "warning",
    "fatigue": "warning",
    "drowsy": "danger",
}


class WebAttentionSystem:
    """Web 版检测系统：接收前端推送的观测帧，提供实时数据和控制 API。"""

    MAX_LOG_ENTRIES = 200

    def __init__(self, config=None, clock=None):
        self._lock = threading.Lock()
        self._logs = []
        self._log_lock = threading.Lock()
        self._clock = clock or time.time
        self._face_detected = True
        self._calibration = {"status": "idle"}
        self._init_modules(config or PipelineConfig())

    def _init_modules(self, config):
        self.engine = AttentionEngine(config, clock=self._clock)
        self.alerts = AlertMonitor(frame_interval=1.0 / config.target_fps).attach(self.engine.channel)
        self.recorder = SessionRecorder(clock=self._clock).attach(self.engine.channel)
        self.engine.channel.subscribe(STATE, self._on_record)
        self.engine.channel.subscribe(ALERT, self._on_alert)

    # ---- 管线回调 ----

    def _on_record(self, record):
        name = _STATE_NAMES.get(record.state, record.state)
        message = f"状态: {name} (专注度 {record.score:.0f})"
        if record.reasons:
            message += f"，原因: {', '.join(record.reasons)}"
        self._add_log(_STATE_LOG_LEVELS.get(record.state, "info"), message)

    def _on_alert(self, alert):
        self._add_log("danger" if alert.kind == "sustained" else "warning", alert.message)

    def _on_calibration_done(self, future):
        error = future.exception()
        if isinstance(error, CalibrationError):
            self._calibration = {"status": "failed", "reason": error.reason}
            self._add_log("warning", f"校准失败 ({error.reason})，继续使用当前阈值")
            return
        baseline = future.result()
        self._calibration = {"status": "done", "baseline": asdict(baseline)}
        self._add_log(
            "info",
            f"校准完成: EAR0={baseline.ear0:.3f}，阈值={baseline.threshold:.3f}",
        )

    # ---- 帧处理与查询 ----

    def process_frame(self, data):
        """
        处理一帧观测。

        Raises:
            ValueError: 帧数据格式错误
        """
        frame = VisionFrame.from_dict(data)
        with self._lock:
            result = self.engine.process(frame)
        self._check_face(result.snapshot.valid)
        return {
            "snapshot": result.snapshot.to_dict(),
            "record": result.record.to_dict() if result.record else None,
        }

    def _check_face(self, valid):
        if valid and not self._face_detected:
            self._add_log("info", "检测到人脸")
        elif not valid and self._face_detected:
            self._add_log("warning", "人脸丢失")
        self._face_detected = valid

    def get_data(self):
        with self._lock:
            snapshot = self.engine.latest_snapshot
            if snapshot is None:
                return {"state": self.engine.state, "focus_score": self.engine.score, "valid": False}
            return snapshot.to_dict()

    def get_state(self):
        with self._lock:
            record = self.engine.last_record
            return {
                "state": self.engine.state,
                "score": round(self.engine.score, 2),
                "last_record": record.to_dict() if record else None,
                "threshold": self.engine.threshold,
                "calibrating": self.engine.calibrating,
                "session_id": self.recorder.session_id,
            }

    # ---- 命令 ----

    def calibrate(self, duration=None):
        with self._lock:
            future = self.engine.calibrate(duration)
            self._calibration = {"status": "running", "duration": self.engine.calibrator.duration}
        self._add_log("info", "开始校准，请保持自然睁眼注视屏幕")
        future.add_done_callback(self._on_calibration_done)
        return dict(self._calibration)

    def get_calibration(self):
        with self._lock:
            self.engine.poll()
            info = dict(self._calibration)
            if self.engine.calibrating:
                info["progress"] = round(self.engine.calibrator.progress(), 3)
                info["sample_count"] = self.engine.calibrator.sample_count
            info["threshold"] = self.engine.threshold
            return info

    def reset(self):
        with self._lock:
            self.engine.reset()
            self.alerts.reset()
        self._add_log("info", "管线已重置")

    def set_zone(self, data):
        """
        设置专注区域，data 为空时清除。

        Raises:
            ValueError / KeyError: 区域数据无效
        """
        zone = FocusZone.from_dict(data) if data else None
        with self._lock:
            self.engine.set_focus_zone(zone)
        self._add_log("info", "专注区域已清除" if zone is None else "专注区域已更新")
        return zone

    def start_session(self):
        with self._lock:
            session_id = self.recorder.start(self.engine.state, self.engine.score)
        self._add_log("info", f"会话开始: {session_id}")
        return session_id

    def end_session(self):
        with self._lock:
            summary = self.recorder.end()
        if summary is not None:
            self._add_log("info", f"会话结束，平均专注度 {summary.avg_focus:.1f}")
        return summary

    # ---- 日志 ----

    def _add_log(self, level, message):
        """添加一条系统日志。level: info / warning / danger"""
        entry = {
            "time": datetime.datetime.now().strftime("%H:%M:%S"),
            "level": level,
            "message": message,
        }
        with self._log_lock:
            self._logs.append(entry)
            if len(self._logs) > self.MAX_LOG_ENTRIES:
                self._logs = self._logs[-self.MAX_LOG_ENTRIES:]

    def get_logs(self, since=0):
        """获取日志，since 为起始索引。"""
        with self._log_lock:
            return self._logs[since:], len(self._logs)


# 全局检测系统实例
system = WebAttentionSystem()


# ---- Flask 路由 ----

@app.route("/api/frame", methods=["POST"])
def api_frame():
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        return jsonify({"success": False, "message": "请求体必须是 JSON 对象"}), 400
    try:
        result = system.process_frame(data)
    except ValueError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    return jsonify({"success": True, **result})


@app.route("/api/data")
def api_data():
    return jsonify(system.get_data())


@app.route("/api/state")
def api_state():
    return jsonify(system.get_state())


@app.route("/api/calibrate", methods=["POST"])
def api_calibrate():
    data = request.get_json(force=True, silent=True) or {}
    duration = data.get("duration")
    try:
        duration = float(duration) if duration is not None else None
    except (TypeError, ValueError):
        return jsonify({"success": False, "message": "duration 必须是数字"}), 400
    if duration is not None and duration <= 0:
        return jsonify({"success": False, "message": "duration 必须大于 0"}), 400
    info = system.calibrate(duration)
    return jsonify({"success": True, "message": "校准已开始", **info})


@app.route("/api/calibration")
def api_calibration():
    return jsonify(system.get_calibration())


@app.route("/api/reset", methods=["POST"])
def api_reset():
    system.reset()
    return jsonify({"success": True, "message": "管线已重置"})


@app.route("/api/zone", methods=["POST"])
def api_zone():
    data = request.get_json(force=True, silent=True)
    try:
        zone = system.set_zone(data)
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({"success": False, "message": f"专注区域无效: {e}"}), 400
    return jsonify({"success": True, "zone": asdict(zone) if zone else None})


@app.route("/api/session/start", methods=["POST"])
def api_session_start():
    session_id = system.start_session()
    return jsonify({"success": True, "session_id": session_id})


@app.route("/api/session/end", methods=["POST"])
def api_session_end():
    summary = system.end_session()
    if summary is None:
        return jsonify({"success": False, "message": "没有进行中的会话"}), 409
    return jsonify({"success": True, "summary": summary.to_dict()})


@app.route("/api/logs")
def api_logs():
    since = request.args.get("since", 0, type=int)
    logs, total = system.get_logs(since)
    return jsonify({"logs": logs, "total": total})


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(host="0.0.0.0", port=5000, debug=False, threaded=True)
