"""注意力状态检测系统入口文件"""

import argparse
import json
import logging
import sys
import time
from typing import Iterator, Optional, TextIO

import cv2

from evaluators.alert_monitor import AlertMonitor
from models.config import load_config
from models.data_models import VisionFrame
from pipeline.attention_engine import AttentionEngine
from pipeline.emission import ALERT, METRICS, STATE
from pipeline.session_recorder import SessionRecorder

logger = logging.getLogger(__name__)


class ReplayClock:
    """回放时钟：当前时间取已读入帧的最大时间戳"""

    def __init__(self, start: float = 0.0):
        self.now = start

    def advance(self, timestamp: float) -> None:
        self.now = max(self.now, timestamp)

    def __call__(self) -> float:
        return self.now


class FrameRateGate:
    """按目标帧率丢帧，输入快于目标帧率时只保留间隔足够的帧"""

    def __init__(self, target_fps: float):
        self.interval = 1.0 / target_fps if target_fps > 0 else 0.0
        self._last: Optional[float] = None

    def accept(self, timestamp: float) -> bool:
        if self._last is not None and timestamp - self._last < self.interval:
            return False
        self._last = timestamp
        return True

    def reset(self):
        self._last = None


def read_frames(path: str) -> Iterator[VisionFrame]:
    """逐行读取 JSONL 帧文件，空行跳过，格式错误的行记录警告后跳过"""
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                yield VisionFrame.from_dict(json.loads(line))
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning("第 %d 行帧数据无效，已跳过: %s", lineno, e)


def _writer(out: TextIO, kind: str):
    def write(payload: dict):
        out.write(json.dumps({"type": kind, **payload}, ensure_ascii=False) + "\n")
    return write


def run_replay(args, out: Optional[TextIO] = None) -> int:
    """回放 JSONL 帧文件，输出状态记录（可选每帧快照）与会话统计"""
    out = out or sys.stdout
    config = load_config(args.config)
    if args.reaffirm is not None:
        config.reaffirm_interval = args.reaffirm
        config.validate()

    clock = ReplayClock()
    engine = AttentionEngine(config, clock=clock)
    AlertMonitor(frame_interval=1.0 / config.target_fps).attach(engine.channel)
    recorder = SessionRecorder(clock=clock).attach(engine.channel)

    engine.channel.subscribe(STATE, lambda r: _writer(out, "state")(r.to_dict()))
    engine.channel.subscribe(ALERT, lambda a: _writer(out, "alert")(a.to_dict()))
    if args.all_metrics:
        engine.channel.subscribe(METRICS, lambda s: _writer(out, "metrics")(s.to_dict()))

    write_calibration = _writer(out, "calibration")

    def on_calibrated(future):
        error = future.exception()
        if error is not None:
            write_calibration({"success": False, "reason": error.reason})
            return
        baseline = future.result()
        write_calibration({
            "success": True,
            "ear0": round(baseline.ear0, 4),
            "threshold": round(baseline.threshold, 4),
            "sample_count": baseline.sample_count,
        })

    frame_count = 0
    try:
        for frame in read_frames(args.file):
            clock.advance(frame.timestamp)
            if frame_count == 0:
                recorder.start(engine.state, engine.score)
                if args.calibrate:
                    engine.calibrate(args.calibrate).add_done_callback(on_calibrated)
            engine.process(frame)
            frame_count += 1
    except FileNotFoundError:
        logger.error("帧文件不存在 %s", args.file)
        return 1

    if engine.calibrating:
        engine.poll()
    engine.abort_calibration()

    summary = recorder.end()
    if summary is None:
        logger.warning("帧文件中没有有效帧 %s", args.file)
        return 1

    _writer(out, "summary")(summary.to_dict())
    logger.info("回放完成，共 %d 帧", frame_count)
    return 0


def run_camera(args) -> int:
    """从摄像头采集，经 FaceMesh 生成观测帧并实时输出状态记录"""
    from detectors.face_mesh_provider import FaceMeshProvider

    config = load_config(args.config)
    if args.reaffirm is not None:
        config.reaffirm_interval = args.reaffirm
        config.validate()

    engine = AttentionEngine(config)
    AlertMonitor(frame_interval=1.0 / config.target_fps).attach(engine.channel)
    engine.channel.subscribe(STATE, lambda r: _writer(sys.stdout, "state")(r.to_dict()))
    engine.channel.subscribe(ALERT, lambda a: _writer(sys.stdout, "alert")(a.to_dict()))

    cap = cv2.VideoCapture(args.device)
    if not cap.isOpened():
        logger.error("无法打开摄像头 %s", args.device)
        return 1

    provider = FaceMeshProvider()
    gate = FrameRateGate(config.target_fps)
    if args.calibrate:
        engine.calibrate(args.calibrate)

    try:
        while True:
            ret, image = cap.read()
            if not ret:
                engine.poll()
                continue

            ts = time.time()
            if not gate.accept(ts):
                continue
            engine.process(provider.detect(image, ts))
    except KeyboardInterrupt:
        logger.info("用户中断，停止检测")
    finally:
        cap.release()
        provider.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    # replay 与 camera 共用的参数
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON 参数配置文件路径",
    )
    common.add_argument(
        "--calibrate",
        type=float,
        default=None,
        metavar="SECONDS",
        help="启动时进行基线校准的时长（秒）",
    )
    common.add_argument(
        "--reaffirm",
        type=float,
        default=None,
        metavar="SECONDS",
        help="状态未变化时周期性重申记录的间隔（秒）",
    )

    parser = argparse.ArgumentParser(description="注意力状态检测系统")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", parents=[common], help="回放 JSONL 帧文件")
    replay.add_argument("file", help="每行一个帧 JSON 对象")
    replay.add_argument(
        "--all-metrics",
        action="store_true",
        help="输出每一帧的指标快照",
    )
    replay.set_defaults(func=run_replay)

    camera = sub.add_parser("camera", parents=[common], help="使用摄像头实时检测")
    camera.add_argument("--device", type=int, default=0, help="摄像头编号")
    camera.set_defaults(func=run_camera)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
