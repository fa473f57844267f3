"""几何计算函数：距离、EAR、质心、方向分类，无状态"""

import math
from typing import Optional, Sequence

from models.data_models import Point

# 方向标签（图像坐标系，y 轴向下）
CENTER = "center"
UNKNOWN = "unknown"


def distance(a: Point, b: Point) -> float:
    """欧氏距离"""
    return math.dist(a, b)


def ear(contour: Sequence[Point]) -> float:
    """
    计算单只眼睛的 EAR 值。

    公式: EAR = (|p2-p6| + |p3-p5|) / (2 * |p1-p4|)

    Args:
        contour: 6 个眼睑轮廓关键点 [(x,y), ...]

    Returns:
        EAR 值；关键点不足 6 个或水平跨度为零时返回 NaN
    """
    if len(contour) < 6:
        return math.nan

    p1, p2, p3, p4, p5, p6 = contour[:6]

    horizontal = distance(p1, p4)
    if horizontal == 0.0:
        return math.nan

    vertical_1 = distance(p2, p6)
    vertical_2 = distance(p3, p5)

    return (vertical_1 + vertical_2) / (2.0 * horizontal)


def centroid(points: Sequence[Point]) -> Optional[Point]:
    """点集质心，空集返回 None"""
    if not points:
        return None
    n = len(points)
    return (sum(p[0] for p in points) / n, sum(p[1] for p in points) / n)


def direction_label(dx: float, dy: float, eps: float = 0.01, axis_ratio: float = 0.35) -> str:
    """
    将二维向量划分为中心或 8 个方向之一。

    较小轴与较大轴之比低于 axis_ratio 时视为正方向（上下左右），
    否则视为对角方向。
    """
    magnitude = math.hypot(dx, dy)
    if magnitude < eps:
        return CENTER

    abs_x = abs(dx)
    abs_y = abs(dy)
    vertical = "up" if dy < 0 else "down"
    horizontal = "left" if dx < 0 else "right"

    if min(abs_x, abs_y) / max(abs_x, abs_y) < axis_ratio:
        return horizontal if abs_x > abs_y else vertical

    return f"{vertical}-{horizontal}"


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)


def ema(previous: Optional[float], value: float, alpha: float) -> float:
    """指数滑动平均，previous 为 None 时以当前值初始化"""
    if previous is None:
        return value
    return previous + alpha * (value - previous)
