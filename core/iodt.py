"""内蕴最优Delaunay三角化(iODT)模块"""
import logging
import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Set

import numpy as np
import trimesh

from core.common_subdivision import OverlayMesh, build_common_subdivision
from core.exporter import Exporter
from core.geodesic_tracer import (
    GeodesicTraceResult,
    GeodesicTracer,
    SurfacePoint,
    SurfacePointType,
)
from core.halfedge_mesh import EdgeSplit, HalfEdgeMesh
from core.signpost_mesh import SignpostMesh
from utils.geometry import (
    barycentric_to_point,
    circumcenter_2d,
    cross_2d,
    layout_triangle_from_lengths,
)
from utils.traversal import INVALID_INDEX

logger = logging.getLogger(__name__)

# 外心插入时起点离开角点的重心坐标
CIRCUMCENTER_START_EPS = 1e-4
# 面积小于该值的面不做外心插入
MIN_INSERT_AREA = 1e-8
# 计算最小角时的最短边长
MIN_ANGLE_EDGE_CLAMP = 1e-5
# 长边分裂的最大轮数
MAX_SPLIT_ROUNDS = 50
# 松弛目标不在一环核内时的最多减半次数
MAX_RELAX_HALVINGS = 8


@dataclass
class ODTParams:
    """ODT重网格化参数"""
    delaunay_iterations: int = 10  # 全局翻转最大轮数
    min_angle_deg: float = 35.0  # 最小内角阈值 (度)
    max_area: float = 100.0  # 最大面积阈值
    min_area: float = 1e-4  # 小于该面积的面不再细分
    refinement_iterations: int = 100  # 细分最大轮数
    reposition_iterations: int = 5  # 松弛最大轮数
    reposition_tolerance: float = 1e-4  # 最大位移小于该值时停止松弛
    max_edge_length: Optional[float] = None  # 超过该长度的边被分裂，None表示不分裂
    step_size: float = 0.25  # 松弛步长 (0-1]
    local_delaunay_iterations: int = 5  # 插点后局部翻转轮数
    merge_tolerance: float = 1e-5  # 公共细分合并点距离

    def __post_init__(self):
        self.validate()

    def validate(self):
        if not 0.0 < self.step_size <= 1.0:
            raise ValueError(f"step_size 必须在 (0, 1] 内: {self.step_size}")
        if not 0.0 < self.min_angle_deg < 60.0:
            raise ValueError(f"min_angle_deg 必须在 (0, 60) 内: {self.min_angle_deg}")
        if self.max_area <= 0.0 or self.min_area < 0.0:
            raise ValueError("面积阈值必须为正")
        if self.max_edge_length is not None and self.max_edge_length <= 0.0:
            raise ValueError(f"max_edge_length 必须为正: {self.max_edge_length}")
        for name in ('delaunay_iterations', 'refinement_iterations',
                     'reposition_iterations', 'local_delaunay_iterations'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} 不能为负")

    @property
    def min_angle_rad(self) -> float:
        return math.radians(self.min_angle_deg)


class VertexKind(IntEnum):
    """解析顶点位置时邻点的可信度，数值小者优先"""
    ORIGINAL = 1
    INSERTED = 2
    BOUNDARY = 3


@dataclass(order=True)
class ResolutionCandidate:
    kind: VertexKind
    length: float
    half_edge: int = field(compare=False)


@dataclass
class RefinementCandidate:
    face: int
    area: float
    min_angle: float
    priority: float


class IntrinsicODT:
    """
    内蕴三角化上的最优Delaunay重网格化

    持有被编辑的内蕴网格和只读的输入网格；内蕴网格的每个顶点在输入曲面上都有一个
    SurfacePoint位置，插入或移动顶点后通过在输入网格上追踪测地线重新求得。
    """

    def __init__(
        self,
        positions: np.ndarray,
        indices: np.ndarray,
        params: Optional[ODTParams] = None
    ):
        self.params = params or ODTParams()

        self.input_mesh = SignpostMesh()
        self.input_mesh.build_from_arrays(positions, indices)
        self.input_mesh.initialize_signposts()
        self.input_tracer = GeodesicTracer(self.input_mesh)

        self.mesh = SignpostMesh()
        self.mesh.build_from_arrays(positions, indices)
        self.mesh.initialize_signposts()
        self.tracer = GeodesicTracer(self.mesh)

        self.inserted_vertices: Set[int] = set()
        self.vertex_locations: Dict[int, SurfacePoint] = {}
        self.vertex_resolution_faces: Dict[int, int] = {}
        self.initialize_vertex_locations()

    @classmethod
    def from_trimesh(cls, mesh: trimesh.Trimesh, params: Optional[ODTParams] = None) -> 'IntrinsicODT':
        return cls(np.asarray(mesh.vertices), np.asarray(mesh.faces), params)

    @property
    def conn(self) -> HalfEdgeMesh:
        return self.mesh.conn

    def set_params(self, **kwargs):
        """设置重网格化参数"""
        for key, value in kwargs.items():
            if hasattr(self.params, key):
                setattr(self.params, key, value)
        self.params.validate()

    def initialize_vertex_locations(self):
        """原始顶点对应输入网格的同名顶点，全部边标记为原始边"""
        self.vertex_locations.clear()
        self.vertex_resolution_faces.clear()
        for v, vertex in enumerate(self.conn.vertices):
            if vertex.original_index != INVALID_INDEX:
                self.vertex_locations[v] = SurfacePoint.vertex(vertex.original_index)
        for edge in self.conn.edges:
            edge.is_original = True

    # ------------------------------------------------------------------
    # 主流程
    # ------------------------------------------------------------------

    def optimal_delaunay_triangulation(self, iterations: Optional[int] = None) -> bool:
        """
        执行完整的iODT流程：全局翻转、Delaunay细分、顶点松弛

        Args:
            iterations: 全局翻转最大轮数，默认取参数中的delaunay_iterations

        Returns:
            是否完成
        """
        params = self.params
        if iterations is None:
            iterations = params.delaunay_iterations

        self.inserted_vertices.clear()
        flips = self.conn.make_delaunay(iterations)
        self.mesh.refresh()
        logger.info(f"全局Delaunay翻转 {flips} 条边")

        self.delaunay_refinement()
        self.reposition_inserted_vertices(
            params.reposition_iterations,
            params.reposition_tolerance,
            params.max_edge_length,
        )
        self.conn.log_statistics()
        return True

    # ------------------------------------------------------------------
    # 细分
    # ------------------------------------------------------------------

    def compute_min_angle(self, f: int) -> float:
        """面的最小内角(弧度)，退化时返回0"""
        loop = self.conn.get_face_half_edges(f)
        if len(loop) != 3:
            return 0.0
        a, b, c = (max(self.conn.get_intrinsic_length(he), MIN_ANGLE_EDGE_CLAMP) for he in loop)
        angles = (
            self.mesh.compute_angle_from_lengths(a, b, c),
            self.mesh.compute_angle_from_lengths(b, c, a),
            self.mesh.compute_angle_from_lengths(c, a, b),
        )
        if any(angle < 0.0 for angle in angles):
            return 0.0
        return min(angles)

    def find_refinement_candidates(self, min_angle: float, max_area: float) -> List[RefinementCandidate]:
        """按优先级从高到低返回角度过小或面积过大的面"""
        candidates = []
        for f in range(len(self.conn.faces)):
            area = self.mesh.face_area(f)
            if area < self.params.min_area:
                continue
            angle = self.compute_min_angle(f)
            if angle <= 0.0:
                continue
            if angle < min_angle or area > max_area:
                priority = area / max_area + (min_angle - angle) / min_angle
                candidates.append(RefinementCandidate(f, area, angle, priority))
        candidates.sort(key=lambda c: c.priority, reverse=True)
        return candidates

    def _needs_refinement(self, f: int, min_angle: float) -> bool:
        area = self.mesh.face_area(f)
        if area < self.params.min_area:
            return False
        angle = self.compute_min_angle(f)
        if angle <= 0.0:
            return False
        return angle < min_angle or area > self.params.max_area

    def delaunay_refinement(self) -> bool:
        """
        在质量差的三角形外心处插入顶点

        Returns:
            是否插入了顶点
        """
        params = self.params
        min_angle = params.min_angle_rad
        failed_faces: Set[int] = set()
        total_inserted = 0

        for iteration in range(params.refinement_iterations):
            candidates = self.find_refinement_candidates(min_angle, params.max_area)
            if not candidates:
                break

            skip_faces: Set[int] = set()
            inserted = 0
            for candidate in candidates:
                f = candidate.face
                if f in failed_faces or f in skip_faces:
                    continue
                if not self._needs_refinement(f, min_angle):
                    continue

                new_v = self.insert_circumcenter(f)
                if new_v is None:
                    failed_faces.add(f)
                    continue
                inserted += 1
                self._local_delaunay(new_v)
                skip_faces.update(self.conn.get_vertex_faces(new_v))

            total_inserted += inserted
            self.mesh.refresh()
            logger.debug(f"细分第 {iteration + 1} 轮: 插入 {inserted} 个顶点")
            if inserted == 0:
                break

        logger.info(f"Delaunay细分共插入 {total_inserted} 个顶点")
        return total_inserted > 0

    def _local_delaunay(self, v: int) -> int:
        """只从顶点v的非原始边开始做局部翻转"""
        edges = [
            self.conn.half_edges[he].edge
            for he in self.conn.get_vertex_half_edges(v)
            if not self.conn.edges[self.conn.half_edges[he].edge].is_original
        ]
        flipped: List[int] = []
        flips = self.conn.make_delaunay(self.params.local_delaunay_iterations, edges, flipped)

        faces = set(self.conn.get_vertex_faces(v))
        for e in flipped:
            he = self.conn.edges[e].half_edge
            faces.add(self.conn.half_edges[he].face)
            opp = self.conn.half_edges[he].opposite
            if opp != INVALID_INDEX:
                faces.add(self.conn.half_edges[opp].face)
        self.mesh.update_local_geometry(faces)
        return flips

    def insert_circumcenter(self, f: int) -> Optional[int]:
        """
        从离外心最远的角点追踪到外心并插入顶点

        落在边上时分裂该边，落在面内时做1分3分裂，落在顶点上时放弃。

        Returns:
            新顶点索引，失败返回None
        """
        if self.mesh.face_area(f) < MIN_INSERT_AREA:
            return None
        tri = self.mesh.layout_triangle(f)
        if not tri.valid:
            return None
        V = tri.vertices
        center = circumcenter_2d(V[0], V[1], V[2])
        if not np.all(np.isfinite(center)):
            return None

        center_bary = self.mesh.compute_barycentric_2d(center, V[0], V[1], V[2])
        corner = int(np.argmin(center_bary))
        start_bary = np.full(3, CIRCUMCENTER_START_EPS)
        start_bary[corner] = 1.0 - 2.0 * CIRCUMCENTER_START_EPS
        start = barycentric_to_point(start_bary, V[0], V[1], V[2])
        direction = center - start
        length = float(np.linalg.norm(direction))
        if length < 1e-12:
            return None

        result = self.tracer.trace_from_face(f, start_bary, direction, length)
        if not result.success:
            logger.debug(f"面 {f} 的外心追踪失败")
            return None

        exit_point = result.exit_point
        if exit_point.kind == SurfacePointType.VERTEX:
            return None
        if exit_point.kind == SurfacePointType.EDGE:
            e = exit_point.element_id
            split = self.split_edge(e, self.conn.edges[e].half_edge, exit_point.split)
            return split.new_vertex if split is not None else None
        return self._insert_in_face(exit_point.element_id, exit_point.bary)

    def _insert_in_face(self, f: int, bary: np.ndarray) -> Optional[int]:
        tri = self.mesh.layout_triangle(f)
        if not tri.valid:
            return None
        V = tri.vertices
        point = barycentric_to_point(bary, V[0], V[1], V[2])
        radii = [float(np.linalg.norm(point - V[i])) for i in range(3)]
        if min(radii) < 1e-10:
            return None
        # 三个子三角形都要能展开
        for i in range(3):
            j = (i + 1) % 3
            if layout_triangle_from_lengths(tri.edge_lengths[i], radii[j], radii[i]) is None:
                logger.debug(f"面 {f} 内的插入点过于靠近边 {i}")
                return None

        new_v = self.conn.split_triangle_intrinsic(f, *radii)
        if new_v == INVALID_INDEX:
            return None
        self.mesh.update_local_geometry(self.conn.get_vertex_faces(new_v))
        self.inserted_vertices.add(new_v)
        if not self.resolve_vertex(new_v):
            logger.warning(f"新顶点 {new_v} 无法映射到输入曲面")
        return new_v

    def split_edge(self, e: int, he: int, t: float) -> Optional[EdgeSplit]:
        """
        在边上按参数t分裂，t沿半边he计量

        Returns:
            EdgeSplit，失败返回None
        """
        conn = self.conn
        if not 0 <= e < len(conn.edges):
            return None
        canonical = conn.edges[e].half_edge
        opp = conn.half_edges[canonical].opposite
        if he == opp and opp != INVALID_INDEX:
            t = 1.0 - t
        elif he != canonical:
            return None
        if not 1e-6 < t < 1.0 - 1e-6:
            return None

        va, vb = conn.get_edge_vertices(e)
        front_face = conn.half_edges[canonical].face
        back_face = conn.half_edges[opp].face if opp != INVALID_INDEX else INVALID_INDEX
        diag_front = self.mesh.compute_split_diagonal_length(front_face, va, vb, t)
        diag_back = 0.0
        if back_face != INVALID_INDEX:
            diag_back = self.mesh.compute_split_diagonal_length(back_face, va, vb, t)
            if diag_back <= 1e-12:
                return None
        if diag_front <= 1e-12:
            return None

        split = conn.split_edge_topo(e, t)
        if split is None:
            return None
        conn.set_intrinsic_length(conn.half_edges[split.diag_front].edge, diag_front)
        if split.diag_back != INVALID_INDEX:
            conn.set_intrinsic_length(conn.half_edges[split.diag_back].edge, diag_back)

        self.mesh.update_local_geometry(conn.get_vertex_faces(split.new_vertex))
        self.inserted_vertices.add(split.new_vertex)
        if not self.resolve_vertex(split.new_vertex):
            logger.warning(f"分裂点 {split.new_vertex} 无法映射到输入曲面")
        return split

    # ------------------------------------------------------------------
    # 松弛
    # ------------------------------------------------------------------

    def compute_weighted_circumcenter(self, v: int) -> Optional[np.ndarray]:
        """一环展开中各扇形三角形外心的面积加权平均(相对于v)"""
        ring = self.conn.build_vertex_ring_2d(v)
        if ring is None or len(ring.positions) < 3:
            return None

        origin = np.zeros(2)
        n = len(ring.positions)
        total_area = 0.0
        weighted = np.zeros(2)
        for i in range(n):
            a = ring.positions[i]
            b = ring.positions[(i + 1) % n]
            area = 0.5 * cross_2d(a, b)
            if area <= 1e-12:
                continue
            center = circumcenter_2d(origin, a, b)
            if not np.all(np.isfinite(center)):
                continue
            weighted += area * center
            total_area += area
        if total_area <= 1e-12:
            return None
        return weighted / total_area

    def _relax_vertex(self, v: int) -> float:
        """按步长把v移向加权外心，返回移动距离；一环会翻折或无法重新定位时放弃移动"""
        ring = self.conn.build_vertex_ring_2d(v)
        target = self.compute_weighted_circumcenter(v)
        if ring is None or target is None:
            return 0.0
        new_pos = target * self.params.step_size
        for _ in range(MAX_RELAX_HALVINGS):
            if self._inside_ring_kernel(ring, new_pos):
                break
            new_pos = new_pos * 0.5
        else:
            logger.debug(f"顶点 {v} 的松弛目标不在一环核内，跳过")
            return 0.0
        step = float(np.linalg.norm(new_pos))
        if step < 1e-15:
            return 0.0

        edges = [self.conn.half_edges[he].edge for he in ring.half_edges]
        old_lengths = [self.conn.edges[e].intrinsic_length for e in edges]
        for e, p in zip(edges, ring.positions):
            self.conn.set_intrinsic_length(e, float(np.linalg.norm(p - new_pos)))

        valid = [self.mesh.update_corner_angles_for_face(f) for f in ring.faces]
        if not all(valid):
            self._restore_ring(ring, edges, old_lengths)
            logger.debug(f"顶点 {v} 松弛后出现退化三角形，已撤销")
            return 0.0

        self.mesh.update_local_geometry(ring.faces)
        if not self.resolve_vertex(v):
            self._restore_ring(ring, edges, old_lengths)
            logger.warning(f"顶点 {v} 松弛后无法映射到输入曲面，已撤销")
            return 0.0
        self._local_delaunay(v)
        return step

    @staticmethod
    def _inside_ring_kernel(ring, p: np.ndarray) -> bool:
        """p到每对相邻邻点都保持逆时针，即扇形三角形不翻折"""
        n = len(ring.positions)
        for i in range(n):
            a = ring.positions[i] - p
            b = ring.positions[(i + 1) % n] - p
            if cross_2d(a, b) <= 1e-12:
                return False
        return True

    def _restore_ring(self, ring, edges: List[int], old_lengths: List[float]):
        for e, length in zip(edges, old_lengths):
            self.conn.set_intrinsic_length(e, length)
        self.mesh.update_local_geometry(ring.faces)
        for he in ring.half_edges:
            self.mesh.update_angle_from_cw_neighbor(self.conn.half_edges[he].prev)

    def _split_long_edges(self, max_edge_length: float) -> int:
        total = 0
        for _ in range(MAX_SPLIT_ROUNDS):
            long_edges = [
                e for e, edge in enumerate(self.conn.edges)
                if edge.intrinsic_length > max_edge_length
            ]
            if not long_edges:
                break
            long_edges.sort(key=lambda e: self.conn.edges[e].intrinsic_length, reverse=True)

            count = 0
            for e in long_edges:
                if self.conn.edges[e].intrinsic_length <= max_edge_length:
                    continue
                split = self.split_edge(e, self.conn.edges[e].half_edge, 0.5)
                if split is None:
                    continue
                count += 1
                self._local_delaunay(split.new_vertex)
            total += count
            if count == 0:
                logger.warning(f"{len(long_edges)} 条长边无法分裂")
                break
        return total

    def reposition_inserted_vertices(
        self,
        iterations: int,
        tolerance: float,
        max_edge_length: Optional[float] = None
    ) -> int:
        """
        松弛插入的内部顶点并分裂过长的边

        Args:
            iterations: 最大轮数
            tolerance: 最大位移小于该值时停止
            max_edge_length: 边长上限，None表示不分裂

        Returns:
            分裂的边数
        """
        total_splits = 0
        for iteration in range(iterations):
            max_move = 0.0
            for v in sorted(self.inserted_vertices):
                if self.conn.is_boundary_vertex(v):
                    continue
                max_move = max(max_move, self._relax_vertex(v))

            splits = 0
            if max_edge_length is not None:
                splits = self._split_long_edges(max_edge_length)
            total_splits += splits
            logger.debug(f"松弛第 {iteration + 1} 轮: 最大位移 {max_move:.3e}, 分裂 {splits} 条边")
            if max_move < tolerance and splits == 0:
                break

        self.mesh.refresh()
        self._update_inserted_positions()
        return total_splits

    def _update_inserted_positions(self):
        for v in self.inserted_vertices:
            location = self.vertex_locations.get(v)
            if location is not None:
                self.conn.vertices[v].position = self.input_tracer.evaluate_surface_point(location)

    # ------------------------------------------------------------------
    # 顶点位置解析
    # ------------------------------------------------------------------

    def _classify_neighbor(self, he_in: int) -> VertexKind:
        conn = self.conn
        u = conn.half_edges[he_in].origin
        if not conn.is_interior_half_edge(he_in):
            return VertexKind.BOUNDARY
        if conn.vertices[u].original_index != INVALID_INDEX:
            return VertexKind.ORIGINAL
        if conn.is_boundary_vertex(u):
            return VertexKind.BOUNDARY
        return VertexKind.INSERTED

    def _trace_from_location(self, u: int, vec: np.ndarray) -> GeodesicTraceResult:
        """从顶点u在输入曲面上的位置出发追踪"""
        location = self.vertex_locations[u]
        length = float(np.linalg.norm(vec))
        if location.kind == SurfacePointType.VERTEX:
            faces = self.input_mesh.conn.get_vertex_faces(location.element_id)
            ref_face = faces[0] if faces else INVALID_INDEX
            return self.input_tracer.trace_from_vertex(location.element_id, ref_face, vec, length)
        if location.kind == SurfacePointType.EDGE:
            return self.input_tracer.trace_from_edge(
                location.element_id, location.split, vec, length,
                self.vertex_resolution_faces.get(u, INVALID_INDEX),
            )
        return self.input_tracer.trace_from_face(location.element_id, location.bary, vec, length)

    def resolve_vertex(self, v: int) -> bool:
        """
        重新求顶点v在输入曲面上的位置

        先刷新指向v的半边的signpost，再从最可信的已定位邻点沿内蕴边向量在输入网格上追踪，
        最后以到达方向重建v自身的signpost。

        Returns:
            是否成功
        """
        conn = self.conn
        fan = conn.get_vertex_half_edges(v)
        if not fan:
            return False

        incoming = [conn.half_edges[he].prev for he in fan]
        for he_in in incoming:
            self.mesh.update_angle_from_cw_neighbor(he_in)

        candidates = []
        for he_in in incoming:
            u = conn.half_edges[he_in].origin
            if u == v or u not in self.vertex_locations:
                continue
            candidates.append(ResolutionCandidate(
                self._classify_neighbor(he_in), conn.get_intrinsic_length(he_in), he_in
            ))
        if not candidates:
            logger.debug(f"顶点 {v} 没有已定位的邻点")
            return False

        for candidate in sorted(candidates):
            he_in = candidate.half_edge
            u = conn.half_edges[he_in].origin
            vec = self.mesh.halfedge_vector(he_in)
            result = self._trace_from_location(u, vec)
            if not result.success:
                logger.debug(f"顶点 {v} 从邻点 {u} 追踪失败")
                continue

            self.vertex_locations[v] = result.exit_point
            self.vertex_resolution_faces[v] = result.final_face
            conn.vertices[v].position = result.position_3d
            arrival = result.steps[-1].dir_2d if result.steps else vec
            if result.exit_point.kind == SurfacePointType.VERTEX and result.steps:
                arrival = self.input_tracer.direction_at_vertex(
                    result.final_face, result.exit_point.element_id, arrival
                )
            self._set_vertex_frame(v, he_in, arrival)
            return True
        return False

    def _set_vertex_frame(self, v: int, he_in: int, arrival: np.ndarray):
        """令 v->u 的signpost等于到达方向的反向，其余出边按内角累加"""
        conn = self.conn
        fan = conn.get_vertex_half_edges(v)
        scale = self.mesh.vertex_angle_scales[v]
        desired = math.atan2(-arrival[1], -arrival[0]) / scale

        running = [0.0]
        for he in fan:
            running.append(running[-1] + conn.half_edges[he].corner_angle)
        out_he = conn.half_edges[he_in].opposite
        # 边界入边没有对边，它的反向位于扇区的逆时针端
        k = fan.index(out_he) if out_he in fan else len(fan)
        base = desired - running[k]
        for i, he in enumerate(fan):
            self.mesh.set_signpost(he, self.mesh.standardize_angle_for_vertex(v, base + running[i]))

    # ------------------------------------------------------------------
    # 公共细分与输出
    # ------------------------------------------------------------------

    def trace_intrinsic_halfedge_along_input(self, he: int) -> List[SurfacePoint]:
        """内蕴半边在输入曲面上对应的折线，端点未定位时返回空列表"""
        conn = self.conn
        u = conn.half_edges[he].origin
        w = conn.dest(he)
        start = self.vertex_locations.get(u)
        end = self.vertex_locations.get(w)
        if start is None or end is None:
            return []
        if conn.edges[conn.half_edges[he].edge].is_original:
            return [start, end]

        result = self._trace_from_location(u, self.mesh.halfedge_vector(he))
        if result.success and len(result.path_points) >= 2:
            return result.path_points
        return [start, end]

    def get_common_subdivision(self, he: int) -> np.ndarray:
        """内蕴半边在输入曲面上的三维折线"""
        points = self.trace_intrinsic_halfedge_along_input(he)
        return np.array([self.input_tracer.evaluate_surface_point(p) for p in points]).reshape(-1, 3)

    def create_common_subdivision(self) -> OverlayMesh:
        return build_common_subdivision(self, self.params.merge_tolerance)

    def save_common_subdivision_obj(self, filepath: str, overlay: Optional[OverlayMesh] = None) -> bool:
        if overlay is None:
            overlay = self.create_common_subdivision()
        return Exporter.export_overlay_obj(overlay, filepath)

    def get_vertex_positions(self) -> np.ndarray:
        return self.conn.get_vertex_positions()

    def get_non_original_edge_flags(self) -> np.ndarray:
        return np.array([not edge.is_original for edge in self.conn.edges], dtype=bool)

    def to_trimesh(self) -> trimesh.Trimesh:
        positions, faces = self.conn.to_arrays()
        return trimesh.Trimesh(vertices=positions, faces=faces, process=False)

    def statistics(self) -> dict:
        stats = self.mesh.statistics()
        stats['inserted_vertices'] = len(self.inserted_vertices)
        angles = [self.compute_min_angle(f) for f in range(len(self.conn.faces))]
        stats['min_angle_deg'] = math.degrees(min(angles)) if angles else 0.0
        return stats
