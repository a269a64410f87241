"""几何工具函数"""
import math
import numpy as np
from typing import Tuple, Optional


def point_to_barycentric(
    point: np.ndarray,
    v0: np.ndarray,
    v1: np.ndarray,
    v2: np.ndarray
) -> Tuple[float, float, float]:
    """将点转换为重心坐标（2D/3D通用）"""
    v0v1 = v1 - v0
    v0v2 = v2 - v0
    v0p = point - v0

    d00 = np.dot(v0v1, v0v1)
    d01 = np.dot(v0v1, v0v2)
    d11 = np.dot(v0v2, v0v2)
    d20 = np.dot(v0p, v0v1)
    d21 = np.dot(v0p, v0v2)

    denom = d00 * d11 - d01 * d01
    if abs(denom) < 1e-20:
        return (1.0, 0.0, 0.0)

    v = (d11 * d20 - d01 * d21) / denom
    w = (d00 * d21 - d01 * d20) / denom
    u = 1.0 - v - w

    return (float(u), float(v), float(w))


def barycentric_to_point(
    bary: Tuple[float, float, float],
    v0: np.ndarray,
    v1: np.ndarray,
    v2: np.ndarray
) -> np.ndarray:
    """将重心坐标转换为点"""
    return bary[0] * v0 + bary[1] * v1 + bary[2] * v2


def compute_face_normal(
    v0: np.ndarray,
    v1: np.ndarray,
    v2: np.ndarray
) -> np.ndarray:
    """计算三角面法向量"""
    edge1 = v1 - v0
    edge2 = v2 - v0
    normal = np.cross(edge1, edge2)
    norm = np.linalg.norm(normal)
    if norm > 1e-10:
        return normal / norm
    return np.array([0.0, 0.0, 1.0])


def cross_2d(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0] * b[1] - a[1] * b[0])


def layout_triangle_from_lengths(
    a: float,
    b: float,
    c: float,
    eps: float = 1e-12
) -> Optional[np.ndarray]:
    """
    由三条边长在平面上摆放三角形

    a为v0->v1，b为v1->v2，c为v2->v0。v0在原点，v1在+x轴上，v2在上半平面。

    Returns:
        (3, 2)顶点坐标，边长非法时返回None
    """
    if a < eps or b < eps or c < eps:
        return None
    if a + b <= c + eps or a + c <= b + eps or b + c <= a + eps:
        return None

    x = (a * a + c * c - b * b) / (2.0 * a)
    y = math.sqrt(max(c * c - x * x, 0.0))
    return np.array([[0.0, 0.0], [a, 0.0], [x, y]])


def law_of_cosines_angle(side_a: float, side_b: float, opposite: float) -> float:
    """两边夹角，对边为opposite；边长过短时返回0"""
    if side_a < 1e-12 or side_b < 1e-12:
        return 0.0
    cos_angle = (side_a * side_a + side_b * side_b - opposite * opposite) / (2.0 * side_a * side_b)
    return math.acos(max(-1.0, min(1.0, cos_angle)))


def circumcenter_2d(
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray
) -> np.ndarray:
    """平面三角形外心，退化时返回NaN"""
    d = 2.0 * (a[0] * (b[1] - c[1]) + b[0] * (c[1] - a[1]) + c[0] * (a[1] - b[1]))
    if abs(d) < 1e-12:
        return np.array([np.nan, np.nan])

    a2 = a[0] * a[0] + a[1] * a[1]
    b2 = b[0] * b[0] + b[1] * b[1]
    c2 = c[0] * c[0] + c[1] * c[1]
    ux = (a2 * (b[1] - c[1]) + b2 * (c[1] - a[1]) + c2 * (a[1] - b[1])) / d
    uy = (a2 * (c[0] - b[0]) + b2 * (a[0] - c[0]) + c2 * (b[0] - a[0])) / d
    return np.array([ux, uy])


def incircle_determinant(
    p0: np.ndarray,
    p1: np.ndarray,
    p2: np.ndarray,
    p3: np.ndarray
) -> float:
    """
    四点共圆行列式

    p0, p1, p2逆时针排列时，p3位于其外接圆内则结果为正。
    """
    rows = []
    for p in (p0, p1, p2, p3):
        rows.append([p[0], p[1], p[0] * p[0] + p[1] * p[1], 1.0])
    return float(np.linalg.det(np.array(rows)))


def heron_area(a: float, b: float, c: float) -> float:
    """海伦公式计算三角形面积"""
    a = max(a, 1e-12)
    b = max(b, 1e-12)
    c = max(c, 1e-12)
    s = 0.5 * (a + b + c)
    return math.sqrt(max(s * (s - a) * (s - b) * (s - c), 0.0))


def compute_path_length(points: np.ndarray) -> float:
    """计算路径长度"""
    if len(points) < 2:
        return 0.0
    diffs = np.diff(points, axis=0)
    return float(np.sum(np.linalg.norm(diffs, axis=1)))
