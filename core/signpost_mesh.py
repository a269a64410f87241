"""Signpost内蕴坐标模块"""
import logging
import math
from typing import Iterable, List, Optional

import numpy as np

from core.halfedge_mesh import HalfEdgeMesh, Triangle2D
from utils.geometry import (
    circumcenter_2d,
    compute_face_normal,
    heron_area,
    point_to_barycentric,
)
from utils.traversal import INVALID_INDEX

logger = logging.getLogger(__name__)

# 角度计算的最短边长
MIN_ANGLE_EDGE = 1e-6
# 无效内角标记
INVALID_ANGLE = -1.0


class SignpostMesh:
    """
    半边网格上的signpost角度层

    每条半边保存其在起点切平面内的方向角(signpost)，
    每个顶点保存内角和及缩放系数，使缩放后的内角和等于目标值
    (内部顶点2π，边界顶点π)。
    """

    def __init__(self):
        self.conn = HalfEdgeMesh()
        self.face_normals = np.zeros((0, 3))
        self.vertex_angle_sums: List[float] = []
        self.vertex_angle_scales: List[float] = []
        self.halfedge_vectors_in_vertex = np.zeros((0, 2))
        self.halfedge_vectors_in_face = np.zeros((0, 2))

    def build_from_arrays(self, positions: np.ndarray, indices: np.ndarray):
        """构建连接关系、面法向量和初始内角"""
        self.conn.build(positions, indices)
        self.compute_face_normals()
        self.update_all_corner_angles()

    def initialize_signposts(self):
        """一次性计算内角、方向角、缩放系数和两套半边向量"""
        self.update_all_corner_angles()
        self.update_all_signposts()
        self.compute_vertex_angle_scales()
        self.build_halfedge_vectors_in_vertex()
        self.build_halfedge_vectors_in_face()

    def compute_face_normals(self):
        normals = []
        for f in range(len(self.conn.faces)):
            verts = self.conn.get_face_vertices(f)
            if len(verts) != 3:
                normals.append(np.array([0.0, 0.0, 1.0]))
                continue
            p = [self.conn.vertices[v].position for v in verts]
            normals.append(compute_face_normal(p[0], p[1], p[2]))
        self.face_normals = np.array(normals).reshape(-1, 3)

    # ------------------------------------------------------------------
    # 内角
    # ------------------------------------------------------------------

    @staticmethod
    def compute_angle_from_lengths(a: float, b: float, c: float) -> float:
        """边a的对角，退化时返回INVALID_ANGLE"""
        if a < MIN_ANGLE_EDGE or b < MIN_ANGLE_EDGE or c < MIN_ANGLE_EDGE:
            return INVALID_ANGLE
        if a + b <= c or a + c <= b or b + c <= a:
            return INVALID_ANGLE
        cos_angle = (b * b + c * c - a * a) / (2.0 * b * c)
        return math.acos(max(-1.0, min(1.0, cos_angle)))

    def update_corner_angles_for_face(self, f: int) -> bool:
        loop = self.conn.get_face_half_edges(f)
        if len(loop) != 3:
            return False
        a, b, c = (self.conn.get_intrinsic_length(he) for he in loop)
        # 半边i的内角位于其起点，对边为半边i+1
        angles = (
            self.compute_angle_from_lengths(b, c, a),
            self.compute_angle_from_lengths(c, a, b),
            self.compute_angle_from_lengths(a, b, c),
        )
        if any(angle < 0.0 for angle in angles):
            return False
        for he, angle in zip(loop, angles):
            self.conn.half_edges[he].corner_angle = angle
        return True

    def update_all_corner_angles(self) -> int:
        """返回退化面的数量"""
        failed = 0
        for f in range(len(self.conn.faces)):
            if not self.update_corner_angles_for_face(f):
                failed += 1
        if failed:
            logger.warning(f"{failed} 个面的内蕴边长不满足三角不等式")
        return failed

    # ------------------------------------------------------------------
    # 角度和与缩放
    # ------------------------------------------------------------------

    def _grow_vertex_arrays(self):
        n = len(self.conn.vertices)
        while len(self.vertex_angle_sums) < n:
            self.vertex_angle_sums.append(2.0 * math.pi)
        while len(self.vertex_angle_scales) < n:
            self.vertex_angle_scales.append(1.0)

    def vertex_angle_sum(self, v: int) -> float:
        return sum(self.conn.half_edges[he].corner_angle for he in self.conn.get_vertex_half_edges(v))

    def target_angle_sum(self, v: int) -> float:
        return math.pi if self.conn.is_boundary_vertex(v) else 2.0 * math.pi

    def compute_vertex_angle_sums(self):
        self._grow_vertex_arrays()
        for v in range(len(self.conn.vertices)):
            self.vertex_angle_sums[v] = self.vertex_angle_sum(v)

    def update_vertex_angle_scale(self, v: int):
        self._grow_vertex_arrays()
        total = self.vertex_angle_sum(v)
        self.vertex_angle_sums[v] = total
        self.vertex_angle_scales[v] = self.target_angle_sum(v) / total if total > 1e-12 else 1.0

    def compute_vertex_angle_scales(self):
        """缩放系数 = 目标角度和 / 内角和"""
        self._grow_vertex_arrays()
        for v in range(len(self.conn.vertices)):
            self.update_vertex_angle_scale(v)

    # ------------------------------------------------------------------
    # Signpost
    # ------------------------------------------------------------------

    def update_all_signposts(self):
        """每个顶点从参考出边开始逆时针累加内角"""
        self.compute_vertex_angle_sums()
        for v in range(len(self.conn.vertices)):
            running = 0.0
            for he in self.conn.get_vertex_half_edges(v):
                self.conn.half_edges[he].signpost_angle = running
                running += self.conn.half_edges[he].corner_angle

    def standardize_angle_for_vertex(self, v: int, angle: float) -> float:
        """内部顶点的角度折回[0, 内角和)，边界顶点不折回"""
        if self.conn.is_boundary_vertex(v):
            return angle
        total = self.vertex_angle_sums[v] if v < len(self.vertex_angle_sums) else 0.0
        if total <= 1e-12:
            return angle
        wrapped = math.fmod(angle, total)
        if wrapped < 0.0:
            wrapped += total
        return wrapped

    def update_angle_from_cw_neighbor(self, he: int):
        """由顺时针相邻出边的(方向角 + 内角)推出当前半边的方向角"""
        half_edge = self.conn.half_edges[he]
        v = half_edge.origin
        self._grow_vertex_arrays()
        if half_edge.opposite == INVALID_INDEX:
            # 边界顶点最顺时针的出边，没有顺时针邻边，改由逆时针邻边反推
            ccw = self.conn.half_edges[half_edge.prev].opposite
            if ccw != INVALID_INDEX:
                half_edge.signpost_angle = (
                    self.conn.half_edges[ccw].signpost_angle - half_edge.corner_angle
                )
        else:
            cw = self.conn.half_edges[half_edge.opposite].next
            cw_he = self.conn.half_edges[cw]
            half_edge.signpost_angle = self.standardize_angle_for_vertex(
                v, cw_he.signpost_angle + cw_he.corner_angle
            )
        self._store_vertex_vector(he)

    def set_signpost(self, he: int, angle: float):
        self.conn.half_edges[he].signpost_angle = angle
        self._store_vertex_vector(he)

    # ------------------------------------------------------------------
    # 半边向量
    # ------------------------------------------------------------------

    def halfedge_vector(self, he: int) -> np.ndarray:
        """半边在起点切平面(缩放后)中的向量"""
        half_edge = self.conn.half_edges[he]
        scale = self.vertex_angle_scales[half_edge.origin] if half_edge.origin < len(self.vertex_angle_scales) else 1.0
        angle = half_edge.signpost_angle * scale
        length = self.conn.get_intrinsic_length(he)
        return np.array([math.cos(angle) * length, math.sin(angle) * length])

    def _grow_vector_arrays(self):
        n = len(self.conn.half_edges)
        for name in ('halfedge_vectors_in_vertex', 'halfedge_vectors_in_face'):
            arr = getattr(self, name)
            if len(arr) < n:
                grown = np.full((n, 2), np.nan)
                grown[:len(arr)] = arr
                setattr(self, name, grown)

    def _store_vertex_vector(self, he: int):
        self._grow_vector_arrays()
        self.halfedge_vectors_in_vertex[he] = self.halfedge_vector(he)

    def build_halfedge_vectors_in_vertex(self) -> np.ndarray:
        self.halfedge_vectors_in_vertex = np.full((len(self.conn.half_edges), 2), np.nan)
        for he, half_edge in enumerate(self.conn.half_edges):
            if half_edge.origin != INVALID_INDEX:
                self.halfedge_vectors_in_vertex[he] = self.halfedge_vector(he)
        return self.halfedge_vectors_in_vertex

    def build_halfedge_vectors_in_face(self) -> np.ndarray:
        self.halfedge_vectors_in_face = np.full((len(self.conn.half_edges), 2), np.nan)
        for f in range(len(self.conn.faces)):
            self._store_face_vectors(f)
        return self.halfedge_vectors_in_face

    def _store_face_vectors(self, f: int):
        loop = self.conn.get_face_half_edges(f)
        if len(loop) != 3:
            return
        tri = self.layout_triangle(f)
        for i, he in enumerate(loop):
            self.halfedge_vectors_in_face[he] = tri.vertices[(i + 1) % 3] - tri.vertices[i]

    def update_local_geometry(self, faces: Iterable[int]):
        """
        局部编辑后刷新缓存

        重算给定面的内角和面内向量，以及这些面的顶点的角度和、缩放系数和出边向量。
        不改动已有的signpost。
        """
        faces = [f for f in set(faces) if 0 <= f < len(self.conn.faces)]
        self._grow_vertex_arrays()
        self._grow_vector_arrays()
        if len(self.face_normals) < len(self.conn.faces):
            grown = np.tile(np.array([0.0, 0.0, 1.0]), (len(self.conn.faces), 1))
            grown[:len(self.face_normals)] = self.face_normals
            self.face_normals = grown

        vertices = set()
        for f in faces:
            self.update_corner_angles_for_face(f)
            vertices.update(self.conn.get_face_vertices(f))
        for f in faces:
            self._store_face_vectors(f)
        for v in vertices:
            self.update_vertex_angle_scale(v)
            for he in self.conn.get_vertex_half_edges(v):
                self.halfedge_vectors_in_vertex[he] = self.halfedge_vector(he)

    def refresh(self):
        """重算内角、缩放系数和两套半边向量，保留signpost"""
        self.update_all_corner_angles()
        self.compute_vertex_angle_scales()
        self.build_halfedge_vectors_in_vertex()
        self.build_halfedge_vectors_in_face()

    # ------------------------------------------------------------------
    # 平面几何
    # ------------------------------------------------------------------

    def layout_triangle(self, f: int) -> Triangle2D:
        return self.conn.layout_triangle(f)

    @staticmethod
    def compute_circumcenter_2d(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> np.ndarray:
        return circumcenter_2d(a, b, c)

    @staticmethod
    def compute_barycentric_2d(p: np.ndarray, a: np.ndarray, b: np.ndarray, c: np.ndarray) -> np.ndarray:
        """p关于(a, b, c)的重心坐标"""
        return np.array(point_to_barycentric(p, a, b, c))

    def compute_split_diagonal_length(self, f: int, va: int, vb: int, t: float) -> float:
        """
        面f内，在va->vb的t处分裂后，分裂点到第三个顶点的距离

        Returns:
            长度，顶点不在面内或展开失败时返回0
        """
        tri = self.layout_triangle(f)
        if not tri.valid:
            return 0.0
        try:
            ia = tri.indices.index(va)
            ib = tri.indices.index(vb)
        except ValueError:
            return 0.0
        ic = 3 - ia - ib
        if ia == ib or not 0 <= ic < 3:
            return 0.0
        split_point = (1.0 - t) * tri.vertices[ia] + t * tri.vertices[ib]
        return float(np.linalg.norm(split_point - tri.vertices[ic]))

    def face_area(self, f: int) -> float:
        loop = self.conn.get_face_half_edges(f)
        if len(loop) != 3:
            return 0.0
        return heron_area(*(self.conn.get_intrinsic_length(he) for he in loop))

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def get_boundary_vertices(self) -> List[int]:
        return [v for v in range(len(self.conn.vertices)) if self.conn.is_boundary_vertex(v)]

    def vertex_degree(self, v: int) -> int:
        return len(self.conn.get_vertex_half_edges(v))

    def face_vertex_index(self, f: int, v: int) -> Optional[int]:
        """顶点在面展开中的位置(0-2)"""
        verts = self.conn.get_face_vertices(f)
        return verts.index(v) if v in verts else None

    def statistics(self) -> dict:
        stats = self.conn.statistics()
        if self.vertex_angle_sums:
            defects = [
                self.target_angle_sum(v) - s
                for v, s in enumerate(self.vertex_angle_sums)
                if self.conn.vertices[v].half_edge != INVALID_INDEX
            ]
            stats['max_angle_defect'] = float(np.max(np.abs(defects))) if defects else 0.0
        stats['boundary_vertices'] = len(self.get_boundary_vertices())
        degrees = [self.vertex_degree(v) for v in range(len(self.conn.vertices))]
        stats['max_vertex_degree'] = max(degrees) if degrees else 0
        return stats
