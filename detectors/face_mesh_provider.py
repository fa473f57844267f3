"""人脸关键点适配模块，基于 MediaPipe FaceMesh 生成归一化坐标的 VisionFrame"""

import math
import time
from typing import List, Optional, Sequence

import cv2
import numpy as np

from detectors.geometry import clamp01
from models.data_models import HeadPose, Point, VisionFrame

# 关键点索引常量（眼睑 6 点，顺序与 EAR 公式一致）
LEFT_EYE_INDICES = [33, 160, 158, 133, 153, 144]
RIGHT_EYE_INDICES = [362, 385, 387, 263, 373, 380]

# refine_landmarks=True 时才有的虹膜关键点
LEFT_IRIS_INDICES = [468, 469, 470, 471, 472]
RIGHT_IRIS_INDICES = [473, 474, 475, 476, 477]

HEAD_POSE_INDICES = {
    "nose_tip": 1,
    "chin": 152,
    "forehead": 10,
}

VISIBILITY_THRESHOLD = 0.6

# 归一化坐标偏移到角度的经验比例
POSE_SCALE = 120.0


def _load_mediapipe():
    """延迟加载 MediaPipe，处理导入错误"""
    try:
        import mediapipe as mp
        return mp
    except ImportError as e:
        raise ImportError(
            "MediaPipe 未安装，请运行 pip install mediapipe 安装"
        ) from e


def pick_points(points: Sequence[Point], indices: Sequence[int]) -> List[Point]:
    """按索引取点，遇到缺失索引即停止"""
    out = []
    for i in indices:
        if i >= len(points):
            break
        out.append(points[i])
    return out


def iris_center(points: Sequence[Point], indices: Sequence[int]) -> Optional[Point]:
    """虹膜关键点的平均值，没有可用点时返回 None"""
    selected = [points[i] for i in indices if i < len(points)]
    if not selected:
        return None
    arr = np.asarray(selected, dtype=np.float64)
    x, y = arr.mean(axis=0)
    return (float(x), float(y))


def landmark_confidence(landmarks) -> float:
    """关键点 visibility 的平均值，缺失 visibility 的点按 1 计"""
    if not landmarks:
        return 0.0
    total = 0.0
    for lm in landmarks:
        v = getattr(lm, "visibility", None)
        total += clamp01(float(v)) if isinstance(v, (int, float)) and v > 0 else 1.0
    return total / len(landmarks)


def estimate_pose(
    points: Sequence[Point],
    left_eye: Sequence[Point],
    right_eye: Sequence[Point],
) -> Optional[HeadPose]:
    """
    由 2D 关键点粗略估计头部姿态（度）。

    yaw: 鼻尖相对两眼中点的水平偏移
    pitch: 额头与下巴中点相对鼻尖的垂直偏移
    roll: 两眼连线的倾角
    """
    needed = max(HEAD_POSE_INDICES.values())
    if len(points) <= needed or not left_eye or not right_eye:
        return None

    nose = points[HEAD_POSE_INDICES["nose_tip"]]
    chin = points[HEAD_POSE_INDICES["chin"]]
    forehead = points[HEAD_POSE_INDICES["forehead"]]

    eye_l = left_eye[0]
    eye_r = right_eye[3] if len(right_eye) > 3 else right_eye[0]
    eye_mid_x = (eye_l[0] + eye_r[0]) / 2.0

    yaw = (nose[0] - eye_mid_x) * POSE_SCALE
    pitch = ((forehead[1] + chin[1]) / 2.0 - nose[1]) * POSE_SCALE
    roll = math.degrees(math.atan2(eye_r[1] - eye_l[1], eye_r[0] - eye_l[0]))

    return HeadPose(yaw=yaw, pitch=pitch, roll=roll)


class FaceMeshProvider:
    """使用 MediaPipe FaceMesh 检测人脸关键点，输出管线所需的 VisionFrame"""

    def __init__(
        self,
        face_mesh=None,
        max_num_faces: int = 1,
        min_detection_confidence: float = 0.5,
        visibility_threshold: float = VISIBILITY_THRESHOLD,
    ):
        """初始化 MediaPipe FaceMesh；可注入已有的 face_mesh 对象"""
        if face_mesh is None:
            mp = _load_mediapipe()
            face_mesh = mp.solutions.face_mesh.FaceMesh(
                max_num_faces=max_num_faces,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=0.5,
                refine_landmarks=True,
            )
        self._face_mesh = face_mesh
        self.visibility_threshold = visibility_threshold

    def detect(self, frame: np.ndarray, timestamp: Optional[float] = None) -> VisionFrame:
        """
        检测单帧图像中的人脸关键点。

        Args:
            frame: BGR 格式的 OpenCV 图像帧
            timestamp: 采集时间戳（秒），默认取当前时间

        Returns:
            VisionFrame，坐标为归一化坐标；未检测到人脸时 valid=False
        """
        if timestamp is None:
            timestamp = time.time()

        # BGR -> RGB
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        results = self._face_mesh.process(rgb_frame)

        if not results.multi_face_landmarks:
            return VisionFrame(timestamp=timestamp, confidence=0.0, valid=False)

        landmarks = list(results.multi_face_landmarks[0].landmark)
        points = [(float(lm.x), float(lm.y)) for lm in landmarks]

        left_eye = pick_points(points, LEFT_EYE_INDICES)
        right_eye = pick_points(points, RIGHT_EYE_INDICES)

        confidence = landmark_confidence(landmarks)
        valid = (
            confidence >= self.visibility_threshold
            and len(left_eye) == 6
            and len(right_eye) == 6
        )

        return VisionFrame(
            timestamp=timestamp,
            confidence=confidence,
            valid=valid,
            left_eye=tuple(left_eye),
            right_eye=tuple(right_eye),
            left_iris=iris_center(points, LEFT_IRIS_INDICES),
            right_iris=iris_center(points, RIGHT_IRIS_INDICES),
            head_pose=estimate_pose(points, left_eye, right_eye),
        )

    def close(self):
        """释放 MediaPipe 资源"""
        self._face_mesh.close()
