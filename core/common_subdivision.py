"""公共细分(叠加网格)模块"""
import colorsys
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np
from scipy.spatial import cKDTree

from core.geodesic_tracer import SurfacePoint, SurfacePointType
from core.halfedge_mesh import HalfEdgeMesh
from utils.traversal import INVALID_INDEX

logger = logging.getLogger(__name__)

GOLDEN_RATIO_CONJUGATE = 0.618033988749895
MIN_OVERLAY_AREA = 1e-8


@dataclass
class OverlayMesh:
    """带逐顶点颜色的叠加三角网格，每个三角形独占三个顶点"""
    vertices: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    colors: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    faces: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.int64))


def face_color(index: int) -> np.ndarray:
    """按黄金比例步进色相，相邻面颜色区分明显"""
    hue = math.fmod((index + 1) * GOLDEN_RATIO_CONJUGATE, 1.0)
    saturation = 0.55 + 0.2 * math.sin(0.8 * index)
    value = 0.5 + 0.05 * math.cos(0.65 * index)
    return np.array(colorsys.hsv_to_rgb(hue, saturation, value))


def merge_nearby_points(points: np.ndarray, tolerance: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    合并距离小于tolerance的点

    Args:
        points: (N, 3)点
        tolerance: 合并距离

    Returns:
        (合并后的点, 每个输入点对应的合并点索引)
    """
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    if len(points) == 0:
        return np.zeros((0, 3)), np.zeros(0, dtype=np.int64)

    tree = cKDTree(points)
    mapping = np.full(len(points), -1, dtype=np.int64)
    merged = []
    for i in range(len(points)):
        if mapping[i] >= 0:
            continue
        members = [j for j in tree.query_ball_point(points[i], tolerance) if mapping[j] < 0]
        mapping[members] = len(merged)
        merged.append(points[members].mean(axis=0))
    return np.array(merged), mapping


def input_faces_of_point(conn: HalfEdgeMesh, point: SurfacePoint) -> List[int]:
    """曲面点所接触的输入面"""
    if point.kind == SurfacePointType.FACE:
        return [point.element_id]
    if point.kind == SurfacePointType.EDGE:
        canonical = conn.edges[point.element_id].half_edge
        faces = [conn.half_edges[canonical].face]
        opp = conn.half_edges[canonical].opposite
        if opp != INVALID_INDEX:
            faces.append(conn.half_edges[opp].face)
        return faces
    return conn.get_vertex_faces(point.element_id)


def build_common_subdivision(odt, merge_tolerance: float = 1e-5) -> OverlayMesh:
    """
    构建内蕴三角形与输入三角形的公共细分

    每个内蕴面的三条边在输入曲面上重新追踪，点按所在输入面分组后扇形三角化，
    同一内蕴面的三角形使用同一颜色。

    Args:
        odt: IntrinsicODT实例
        merge_tolerance: 全局合并点的距离

    Returns:
        OverlayMesh
    """
    conn = odt.mesh.conn
    input_conn = odt.input_mesh.conn
    evaluate = odt.input_tracer.evaluate_surface_point

    records: List[Tuple[int, List[SurfacePoint]]] = []
    for f in range(len(conn.faces)):
        loop = conn.get_face_half_edges(f)
        if len(loop) != 3:
            continue
        points: List[SurfacePoint] = []
        for k, he in enumerate(loop):
            polyline = odt.trace_intrinsic_halfedge_along_input(he)
            if not polyline:
                points = []
                break
            # 最后一条边的终点与第一条边的起点重合
            points.extend(polyline[:-1] if k == 2 else polyline)
        if len(points) >= 3:
            records.append((f, points))
        else:
            logger.debug(f"内蕴面 {f} 无法映射到输入曲面")

    if not records:
        return OverlayMesh()

    positions = np.array([evaluate(p) for _, pts in records for p in pts])
    merged, mapping = merge_nearby_points(positions, merge_tolerance)

    out_vertices = []
    out_colors = []
    out_faces = []
    offset = 0
    for f, pts in records:
        color = face_color(f)
        ids = mapping[offset:offset + len(pts)]
        offset += len(pts)

        groups: Dict[int, List[int]] = {}
        for point, merged_id in zip(pts, ids):
            for input_face in input_faces_of_point(input_conn, point):
                group = groups.setdefault(input_face, [])
                if merged_id not in group:
                    group.append(int(merged_id))

        for group in groups.values():
            if len(group) < 3:
                continue
            for i in range(1, len(group) - 1):
                pa, pb, pc = merged[group[0]], merged[group[i]], merged[group[i + 1]]
                if np.linalg.norm(np.cross(pb - pa, pc - pa)) < MIN_OVERLAY_AREA:
                    continue
                base = len(out_vertices)
                out_vertices.extend([pa, pb, pc])
                out_colors.extend([color, color, color])
                out_faces.append([base, base + 1, base + 2])

    logger.info(f"公共细分: {len(records)} 个内蕴面, {len(out_faces)} 个叠加三角形")
    return OverlayMesh(
        vertices=np.array(out_vertices).reshape(-1, 3),
        colors=np.array(out_colors).reshape(-1, 3),
        faces=np.array(out_faces, dtype=np.int64).reshape(-1, 3),
    )
