"""测地线追踪模块"""
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from core.signpost_mesh import SignpostMesh
from utils.geometry import barycentric_to_point, cross_2d, point_to_barycentric
from utils.traversal import INVALID_INDEX

logger = logging.getLogger(__name__)

# 面内求交
T_EPS = 1e-8            # 射线参数容差及起点前推距离
U_EPS = 1e-8            # 边参数容差
VERT_EPS = 1e-6         # 命中顶点的重心坐标容差
BARY_SNAP_TOL = 1e-5    # 终点吸附到边的重心坐标容差

# 多面追踪
EPS_REMAIN = 1e-12
EPS_REMAIN_REL = 1e-9    # 相对总长的剩余长度容差
VERTEX_SNAP_FRAC = 1e-2
EDGE_SNAP_BARY = 1e-9
CORNER_BARY_EPS = 1e-9
# 自动步数上限的下界
MIN_TRACE_STEPS = 100
WEDGE_CROSS_EPS = 1e-8


class SurfacePointType(Enum):
    VERTEX = 0
    EDGE = 1
    FACE = 2


@dataclass
class SurfacePoint:
    """曲面上的点：顶点、边上(split为沿规范半边的参数)或面内(重心坐标)"""
    kind: SurfacePointType = SurfacePointType.VERTEX
    element_id: int = INVALID_INDEX
    bary: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0]))
    split: float = 0.0

    @classmethod
    def vertex(cls, v: int) -> 'SurfacePoint':
        return cls(kind=SurfacePointType.VERTEX, element_id=v)

    @classmethod
    def edge(cls, e: int, split: float) -> 'SurfacePoint':
        return cls(kind=SurfacePointType.EDGE, element_id=e, split=float(split))

    @classmethod
    def face(cls, f: int, bary) -> 'SurfacePoint':
        return cls(kind=SurfacePointType.FACE, element_id=f, bary=np.asarray(bary, dtype=float).copy())


@dataclass
class FaceStepResult:
    """单个面内的一步追踪"""
    success: bool = False
    face: int = INVALID_INDEX
    hit_edge: bool = False
    hit_vertex: bool = False
    half_edge: int = INVALID_INDEX
    vertex: int = INVALID_INDEX
    local_edge_index: int = -1
    final_bary: np.ndarray = field(default_factory=lambda: np.zeros(3))
    dir_2d: np.ndarray = field(default_factory=lambda: np.zeros(2))
    distance: float = 0.0
    edge_param: float = 0.0


@dataclass
class GeodesicTraceResult:
    success: bool = False
    position_3d: np.ndarray = field(default_factory=lambda: np.zeros(3))
    bary: np.ndarray = field(default_factory=lambda: np.zeros(3))
    distance: float = 0.0
    final_face: int = INVALID_INDEX
    steps: List[FaceStepResult] = field(default_factory=list)
    exit_point: SurfacePoint = field(default_factory=SurfacePoint)
    path_points: List[SurfacePoint] = field(default_factory=list)
    boundary_edge: int = INVALID_INDEX  # 因穿出边界失败时记录该边


@dataclass
class TraceOptions:
    max_iterations: Optional[int] = None  # 单次面内循环的最大步数，None时随面数增长
    max_vertex_hops: int = 32   # 经过顶点续追的最大次数

    def step_limit(self, num_faces: int) -> int:
        if self.max_iterations is not None:
            return self.max_iterations
        return max(MIN_TRACE_STEPS, 2 * num_faces)


def _normalized(v: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(v)
    if norm < 1e-300 or not np.isfinite(norm):
        return np.array([np.nan, np.nan])
    return v / norm


def _sanitize_bary(bary: np.ndarray) -> np.ndarray:
    b = np.clip(np.nan_to_num(np.asarray(bary, dtype=float)), 0.0, None)
    total = b.sum()
    if total < 1e-300:
        return np.full(3, 1.0 / 3.0)
    return b / total


class GeodesicTracer:
    """
    在SignpostMesh上追踪测地线

    逐面展开：在当前面的平面坐标中求射线出口，跨边时把方向旋转到相邻面的坐标，
    经过顶点时按角度和做幂映射后从相应楔形继续。
    """

    def __init__(self, mesh: SignpostMesh, options: Optional[TraceOptions] = None):
        self.mesh = mesh
        self.options = options or TraceOptions()

    @property
    def conn(self):
        return self.mesh.conn

    # ------------------------------------------------------------------
    # 求值
    # ------------------------------------------------------------------

    def evaluate_surface_point(self, point: SurfacePoint) -> np.ndarray:
        """曲面点的三维坐标"""
        conn = self.conn
        if point.kind == SurfacePointType.VERTEX:
            return conn.vertices[point.element_id].position.copy()
        if point.kind == SurfacePointType.EDGE:
            va, vb = conn.get_edge_vertices(point.element_id)
            t = point.split
            return (1.0 - t) * conn.vertices[va].position + t * conn.vertices[vb].position
        verts = conn.get_face_vertices(point.element_id)
        p = [conn.vertices[v].position for v in verts]
        return barycentric_to_point(point.bary, p[0], p[1], p[2])

    # ------------------------------------------------------------------
    # 基本几何
    # ------------------------------------------------------------------

    @staticmethod
    def solve_ray_edge(
        d: np.ndarray,
        e: np.ndarray,
        b: np.ndarray
    ) -> Optional[Tuple[float, float]]:
        """
        求解 t*d - u*e = b

        Returns:
            (t, u)，平行时返回None
        """
        det = d[0] * (-e[1]) - d[1] * (-e[0])
        if abs(det) < 1e-12:
            return None
        t = (b[1] * e[0] - b[0] * e[1]) / det
        u = (d[0] * b[1] - d[1] * b[0]) / det
        return float(t), float(u)

    def rotate_vector_across_edge(self, old_he: int, new_he: int, vec: np.ndarray) -> np.ndarray:
        """把old_he所在面坐标中的向量转到其对边new_he所在面的坐标"""
        e_old = _normalized(self.mesh.halfedge_vectors_in_face[old_he])
        e_new = _normalized(-self.mesh.halfedge_vectors_in_face[new_he])
        c = float(np.dot(e_old, e_new))
        s = cross_2d(e_old, e_new)
        return np.array([c * vec[0] - s * vec[1], s * vec[0] + c * vec[1]])

    def chart_local_2d(self, old_he: int, new_he: int, bary_old: np.ndarray) -> np.ndarray:
        """边上的点从old_he所在面的重心坐标换到new_he所在面"""
        old_loop = self.conn.get_face_half_edges(self.conn.half_edges[old_he].face)
        new_loop = self.conn.get_face_half_edges(self.conn.half_edges[new_he].face)
        i = old_loop.index(old_he)
        j = new_loop.index(new_he)
        w_a = bary_old[i]
        w_b = bary_old[(i + 1) % 3]
        u = w_b / (w_a + w_b) if w_a + w_b > 1e-12 else 0.5

        bary_new = np.zeros(3)
        bary_new[j] = u
        bary_new[(j + 1) % 3] = 1.0 - u
        return bary_new

    def _canonical_split(self, he: int, t: float) -> Tuple[int, float]:
        """沿半边的参数换成沿规范半边的参数"""
        edge_idx = self.conn.half_edges[he].edge
        canonical = self.conn.edges[edge_idx].half_edge
        if self.conn.half_edges[canonical].origin == self.conn.half_edges[he].origin:
            return edge_idx, t
        return edge_idx, 1.0 - t

    def _edge_exit_point(self, he: int, t: float) -> SurfacePoint:
        edge_idx, split = self._canonical_split(he, t)
        if split < VERTEX_SNAP_FRAC or split > 1.0 - VERTEX_SNAP_FRAC:
            va, vb = self.conn.get_edge_vertices(edge_idx)
            return SurfacePoint.vertex(va if split < 0.5 else vb)
        return SurfacePoint.edge(edge_idx, split)

    # ------------------------------------------------------------------
    # 面内一步
    # ------------------------------------------------------------------

    def trace_in_face(
        self,
        start: SurfacePoint,
        direction: np.ndarray,
        max_length: float
    ) -> FaceStepResult:
        """
        在单个面内沿射线前进

        Args:
            start: 面内起点(FACE类型)
            direction: 面展开坐标中的方向
            max_length: 最大前进距离

        Returns:
            FaceStepResult，命中边/顶点或在面内结束
        """
        result = FaceStepResult(face=start.element_id)
        if start.kind != SurfacePointType.FACE:
            return result
        f = start.element_id
        loop = self.conn.get_face_half_edges(f)
        tri = self.mesh.layout_triangle(f)
        if len(loop) != 3 or not tri.valid:
            return result

        norm = float(np.linalg.norm(direction))
        if norm < 1e-12:
            return result
        d = np.asarray(direction, dtype=float) / norm
        V = tri.vertices
        p0 = barycentric_to_point(start.bary, V[0], V[1], V[2])
        nudged = p0 + d * T_EPS
        nudged_bary = point_to_barycentric(nudged, V[0], V[1], V[2])

        best_t = math.inf
        best_edge = -1
        best_u = 0.0
        vertex_t = math.inf
        vertex_local = -1
        for i in range(3):
            a, b = i, (i + 1) % 3
            # 起点所在角的两条边不参与求交
            if nudged_bary[a] > 1.0 - T_EPS or nudged_bary[b] > 1.0 - T_EPS:
                continue
            solution = self.solve_ray_edge(d, V[b] - V[a], V[a] - nudged)
            if solution is None:
                continue
            t, u = solution
            if t <= T_EPS or t >= max_length + T_EPS:
                continue
            if U_EPS < u < 1.0 - U_EPS:
                if t < best_t:
                    best_t, best_edge, best_u = t, i, u
            elif -U_EPS <= u <= 1.0 + U_EPS:
                if t < vertex_t:
                    vertex_t = t
                    vertex_local = a if u <= U_EPS else b

        result.dir_2d = d
        if best_edge >= 0:
            exit_point = nudged + d * best_t
            final_bary = np.array(point_to_barycentric(exit_point, V[0], V[1], V[2]))
            result.success = True
            result.hit_edge = True
            result.half_edge = loop[best_edge]
            result.local_edge_index = best_edge
            result.final_bary = final_bary
            result.distance = best_t + T_EPS
            result.edge_param = best_u
            for k in range(3):
                if final_bary[k] > 1.0 - VERT_EPS:
                    result.hit_vertex = True
                    result.vertex = tri.indices[k]
            return result

        if vertex_local >= 0:
            result.success = True
            result.hit_vertex = True
            result.vertex = tri.indices[vertex_local]
            result.final_bary = np.eye(3)[vertex_local]
            result.distance = vertex_t + T_EPS
            return result

        # 射线在面内结束
        end = p0 + d * max_length
        final_bary = np.array(point_to_barycentric(end, V[0], V[1], V[2]))
        if final_bary.min() < -BARY_SNAP_TOL:
            # 没有命中任何边却落在面外，起点方向指向面外
            result.final_bary = final_bary
            return result
        result.success = True
        result.final_bary = final_bary
        result.distance = max_length
        total = final_bary.sum()
        if 0.99 <= total <= 1.01 and final_bary.min() >= -VERT_EPS:
            for k in range(3):
                if final_bary[k] > 1.0 - VERT_EPS:
                    result.hit_vertex = True
                    result.vertex = tri.indices[k]
        if not result.hit_vertex and final_bary.min() < BARY_SNAP_TOL:
            q = int(np.argmin(final_bary))
            p_idx, q_idx = (q + 1) % 3, (q + 2) % 3
            denom = final_bary[p_idx] + final_bary[q_idx]
            result.hit_edge = True
            result.local_edge_index = p_idx
            result.half_edge = loop[p_idx]
            result.edge_param = float(final_bary[q_idx] / denom) if abs(denom) > 1e-12 else 0.5
        return result

    # ------------------------------------------------------------------
    # 多面追踪
    # ------------------------------------------------------------------

    def _finish(
        self,
        result: GeodesicTraceResult,
        success: bool,
        exit_point: SurfacePoint,
        face: int,
        bary: np.ndarray,
        distance: float
    ) -> GeodesicTraceResult:
        result.success = success
        result.exit_point = exit_point
        result.final_face = face
        result.bary = np.asarray(bary, dtype=float).copy()
        result.distance = distance
        result.position_3d = self.evaluate_surface_point(exit_point)
        return result

    def trace_from_face(
        self,
        face: int,
        bary,
        direction: np.ndarray,
        length: float
    ) -> GeodesicTraceResult:
        """
        从面内一点沿给定方向追踪

        Args:
            face: 起始面
            bary: 起点重心坐标
            direction: 起始面展开坐标中的方向
            length: 追踪长度

        Returns:
            GeodesicTraceResult
        """
        return self._trace_from_face(face, np.asarray(bary, dtype=float), direction, length, 0)

    def _trace_from_face(
        self,
        face: int,
        bary: np.ndarray,
        direction: np.ndarray,
        length: float,
        hops: int
    ) -> GeodesicTraceResult:
        result = GeodesicTraceResult()
        start = SurfacePoint.face(face, bary)
        result.path_points.append(start)

        direction = np.asarray(direction, dtype=float)
        dir_norm = float(np.linalg.norm(direction))
        if length <= 1e-12 or dir_norm < 1e-12:
            return self._finish(result, True, start, face, bary, 0.0)

        d = direction / dir_norm
        current_face = face
        current_bary = bary.copy()
        remaining = float(length)
        step_limit = self.options.step_limit(len(self.conn.faces))

        for _ in range(step_limit):
            step = self.trace_in_face(SurfacePoint.face(current_face, current_bary), d, remaining)
            if not step.success:
                logger.debug(f"面 {current_face} 内追踪失败")
                return self._finish(
                    result, False, SurfacePoint.face(current_face, current_bary),
                    current_face, current_bary, length - remaining,
                )
            result.steps.append(step)
            remaining -= step.distance

            if step.hit_vertex:
                vertex_point = SurfacePoint.vertex(step.vertex)
                result.path_points.append(vertex_point)
                if remaining <= EPS_REMAIN + EPS_REMAIN_REL * length:
                    return self._finish(result, True, vertex_point, current_face, step.final_bary, length)
                if hops >= self.options.max_vertex_hops:
                    logger.warning(f"经过顶点次数超过 {self.options.max_vertex_hops}，停止追踪")
                    return self._finish(result, False, vertex_point, current_face, step.final_bary,
                                        length - remaining)
                vertex_dir = self.direction_at_vertex(current_face, step.vertex, step.dir_2d)
                return self._trace_from_vertex(
                    step.vertex, current_face, vertex_dir, remaining, result, length, hops + 1
                )

            if step.hit_edge:
                he = step.half_edge
                exit_point = self._edge_exit_point(he, step.edge_param)
                if remaining <= EPS_REMAIN + EPS_REMAIN_REL * length:
                    result.path_points.append(exit_point)
                    return self._finish(result, True, exit_point, current_face, step.final_bary, length)

                opp = self.conn.half_edges[he].opposite
                if opp == INVALID_INDEX:
                    result.path_points.append(exit_point)
                    result.boundary_edge = self.conn.half_edges[he].edge
                    logger.debug(f"追踪穿出边界边 {result.boundary_edge}")
                    return self._finish(result, False, exit_point, current_face, step.final_bary,
                                        length - remaining)

                edge_idx, split = self._canonical_split(he, step.edge_param)
                result.path_points.append(SurfacePoint.edge(edge_idx, split))
                d = self.rotate_vector_across_edge(he, opp, d)
                current_bary = self.chart_local_2d(he, opp, step.final_bary)
                current_face = self.conn.half_edges[opp].face
                continue

            # 在面内结束，按距离吸附到顶点或边
            final_bary = _sanitize_bary(step.final_bary)
            exit_point = self._face_exit_point(current_face, final_bary)
            result.path_points.append(exit_point)
            return self._finish(result, True, exit_point, current_face, final_bary, length)

        logger.warning(f"追踪超过 {step_limit} 步仍未结束")
        return self._finish(
            result, False, SurfacePoint.face(current_face, current_bary),
            current_face, current_bary, length - remaining,
        )

    def _face_exit_point(self, face: int, bary: np.ndarray) -> SurfacePoint:
        tri = self.mesh.layout_triangle(face)
        loop = self.conn.get_face_half_edges(face)
        V = tri.vertices
        pos = barycentric_to_point(bary, V[0], V[1], V[2])
        snap_dist = VERTEX_SNAP_FRAC * float(np.mean(tri.edge_lengths))
        for k in range(3):
            if np.linalg.norm(pos - V[k]) <= snap_dist:
                return SurfacePoint.vertex(tri.indices[k])

        q = int(np.argmin(bary))
        if bary[q] < EDGE_SNAP_BARY:
            p_idx, q_idx = (q + 1) % 3, (q + 2) % 3
            denom = bary[p_idx] + bary[q_idx]
            t = bary[q_idx] / denom if denom > 1e-12 else 0.5
            return self._edge_exit_point(loop[p_idx], t)
        return SurfacePoint.face(face, bary)

    def direction_at_vertex(self, face: int, vertex: int, face_dir: np.ndarray) -> np.ndarray:
        """
        把到达顶点时的面内方向换到顶点切平面坐标，作为直行的出射方向

        以面内离开该顶点的半边为参考：回头方向相对它的面内夹角乘以顶点的角度缩放，
        再加半圈即为直行方向。边界顶点同样适用。
        """
        ref = INVALID_INDEX
        for he in self.conn.get_face_half_edges(face):
            if self.conn.half_edges[he].origin == vertex:
                ref = he
                break
        if ref == INVALID_INDEX:
            return face_dir

        vert_base = self.mesh.halfedge_vectors_in_vertex[ref]
        face_base = self.mesh.halfedge_vectors_in_face[ref]
        beta = math.atan2(-face_dir[1], -face_dir[0]) - math.atan2(face_base[1], face_base[0])
        beta = math.fmod(beta, 2.0 * math.pi)
        if beta < 0.0:
            beta += 2.0 * math.pi
        angle = (
            math.atan2(vert_base[1], vert_base[0])
            + beta * self.mesh.vertex_angle_scales[vertex]
            + math.pi
        )
        return np.array([math.cos(angle), math.sin(angle)])

    # ------------------------------------------------------------------
    # 从顶点/边出发
    # ------------------------------------------------------------------

    def _find_wedge(self, vertex: int, fan: List[int], d: np.ndarray) -> Optional[Tuple[int, np.ndarray]]:
        """找到包含方向d的楔形，返回(楔形起始出边, 起始方向)"""
        vectors = [_normalized(self.mesh.halfedge_vectors_in_vertex[he]) for he in fan]
        boundary = self.conn.half_edges[fan[0]].opposite == INVALID_INDEX
        n = len(fan)

        for i in range(n):
            a = vectors[i]
            if i + 1 < n:
                b = vectors[i + 1]
            elif boundary:
                # 最后一个楔形的终边是进入该顶点的边界边
                he = self.conn.half_edges[fan[i]]
                scale = self.mesh.vertex_angle_scales[vertex]
                end_angle = (he.signpost_angle + he.corner_angle) * scale
                b = np.array([math.cos(end_angle), math.sin(end_angle)])
            else:
                b = vectors[0]
            if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
                continue

            if cross_2d(a, b) >= -WEDGE_CROSS_EPS:
                inside = cross_2d(a, d) > 0.0 and cross_2d(b, d) <= WEDGE_CROSS_EPS
            else:
                # 大于π的楔形：不在其补角内即可
                inside = not (cross_2d(b, d) > 0.0 and cross_2d(a, d) < 0.0)
            if inside:
                return fan[i], a

        # 数值兜底：取与d同向且叉积最小的出边
        best = None
        best_cross = math.inf
        for he, a in zip(fan, vectors):
            if not np.all(np.isfinite(a)) or np.dot(a, d) <= 0.0:
                continue
            c = abs(cross_2d(a, d))
            if c < best_cross:
                best, best_cross = he, c
        if best is None:
            logger.warning(f"顶点 {vertex} 处找不到包含方向的楔形")
            return None
        logger.warning(f"顶点 {vertex} 处楔形查找使用最近出边兜底 (叉积 {best_cross:.3e})")
        return best, d.copy()

    def trace_from_vertex(
        self,
        vertex: int,
        ref_face: int,
        direction: np.ndarray,
        length: float,
        base_result: Optional[GeodesicTraceResult] = None,
        total_length: Optional[float] = None
    ) -> GeodesicTraceResult:
        """
        从顶点沿切平面方向追踪

        Args:
            vertex: 起始顶点
            ref_face: 参考面，长度为0时作为结果面
            direction: 顶点切平面(缩放后)坐标中的方向
            length: 追踪长度
            base_result: 之前已走过的路径，会拼接到结果前面
            total_length: 整条路径的总长度
        """
        return self._trace_from_vertex(vertex, ref_face, direction, length, base_result, total_length, 0)

    def _trace_from_vertex(
        self,
        vertex: int,
        ref_face: int,
        direction: np.ndarray,
        length: float,
        base_result: Optional[GeodesicTraceResult],
        total_length: Optional[float],
        hops: int
    ) -> GeodesicTraceResult:
        start = SurfacePoint.vertex(vertex)
        fan = self.conn.get_vertex_half_edges(vertex)
        result = GeodesicTraceResult(path_points=[start])
        if not fan:
            result = self._finish(result, False, start, ref_face, np.eye(3)[0], 0.0)
            return self._merge_with_base(base_result, result, total_length, length)

        direction = np.asarray(direction, dtype=float)
        dir_norm = float(np.linalg.norm(direction))
        if length <= 1e-12 or dir_norm < 1e-12:
            face = ref_face if ref_face != INVALID_INDEX else self.conn.half_edges[fan[0]].face
            local = self.mesh.face_vertex_index(face, vertex)
            bary = np.eye(3)[local if local is not None else 0]
            result = self._finish(result, True, start, face, bary, 0.0)
            return self._merge_with_base(base_result, result, total_length, length)

        d = direction / dir_norm
        wedge = self._find_wedge(vertex, fan, d)
        if wedge is None:
            result = self._finish(result, False, start, ref_face, np.eye(3)[0], 0.0)
            return self._merge_with_base(base_result, result, total_length, length)
        wedge_he, wedge_start = wedge

        target = self.mesh.target_angle_sum(vertex)
        angle_sum = self.mesh.vertex_angle_sums[vertex]
        power = angle_sum / target if target > 1e-12 else 1.0
        # d相对楔形起始方向的逆时针角度，取值[0, 2π)
        relative = math.atan2(cross_2d(wedge_start, d), float(np.dot(wedge_start, d)))
        if relative < -WEDGE_CROSS_EPS:
            relative += 2.0 * math.pi
        new_angle = max(relative, 0.0) * power

        face = self.conn.half_edges[wedge_he].face
        face_base = self.mesh.halfedge_vectors_in_face[wedge_he]
        face_angle = math.atan2(face_base[1], face_base[0]) + new_angle
        face_dir = np.array([math.cos(face_angle), math.sin(face_angle)])

        local = self.mesh.face_vertex_index(face, vertex)
        start_bary = np.full(3, CORNER_BARY_EPS)
        start_bary[local] = 1.0 - 2.0 * CORNER_BARY_EPS

        inner = self._trace_from_face(face, start_bary, face_dir, length, hops)
        inner.path_points[0] = start
        return self._merge_with_base(base_result, inner, total_length, length)

    @staticmethod
    def _merge_with_base(
        base: Optional[GeodesicTraceResult],
        result: GeodesicTraceResult,
        total_length: Optional[float],
        remaining: float
    ) -> GeodesicTraceResult:
        if base is None:
            return result
        total = remaining if total_length is None else total_length
        result.path_points = base.path_points + result.path_points[1:]
        result.steps = base.steps + result.steps
        result.distance += total - remaining
        return result

    def trace_from_edge(
        self,
        edge: int,
        split: float,
        direction: np.ndarray,
        length: float,
        resolution_face: int = INVALID_INDEX
    ) -> GeodesicTraceResult:
        """
        从边上一点追踪

        Args:
            edge: 边索引
            split: 沿规范半边的参数
            direction: resolution_face展开坐标中的方向
            length: 追踪长度
            resolution_face: 方向所在的面，缺省为规范半边所在面
        """
        conn = self.conn
        start = SurfacePoint.edge(edge, split)
        canonical = conn.edges[edge].half_edge
        opp = conn.half_edges[canonical].opposite

        if opp != INVALID_INDEX and conn.half_edges[opp].face == resolution_face:
            src_he = opp
        else:
            src_he = canonical
        source_face = conn.half_edges[src_he].face

        direction = np.asarray(direction, dtype=float)
        dir_norm = float(np.linalg.norm(direction))
        if length <= 1e-12 or dir_norm < 1e-12:
            result = GeodesicTraceResult(path_points=[start])
            return self._finish(result, True, start, source_face, np.eye(3)[0], 0.0)
        d = direction / dir_norm

        edge_vec = self.mesh.halfedge_vectors_in_face[src_he]
        inward = np.array([-edge_vec[1], edge_vec[0]])
        if np.dot(inward, d) >= 0.0:
            he = src_he
            face_dir = d
        else:
            he = conn.half_edges[src_he].opposite
            if he == INVALID_INDEX:
                result = GeodesicTraceResult(path_points=[start], boundary_edge=edge)
                return self._finish(result, False, start, source_face, np.eye(3)[0], 0.0)
            face_dir = self.rotate_vector_across_edge(src_he, he, d)

        face = conn.half_edges[he].face
        t_edge = split if conn.half_edges[he].origin == conn.half_edges[canonical].origin else 1.0 - split
        loop = conn.get_face_half_edges(face)
        i = loop.index(he)
        bary = np.zeros(3)
        bary[i] = 1.0 - t_edge
        bary[(i + 1) % 3] = t_edge

        result = self._trace_from_face(face, bary, face_dir, length, 0)
        result.path_points[0] = start
        return result
