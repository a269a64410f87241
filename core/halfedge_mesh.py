"""半边网格模块"""
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np

from utils.geometry import (
    incircle_determinant,
    law_of_cosines_angle,
    layout_triangle_from_lengths,
)
from utils.traversal import BoundedWalk, INVALID_INDEX

logger = logging.getLogger(__name__)

# 翻转后新对角线的最小长度
MIN_FLIP_LENGTH = 1e-10
# 共圆判定容差
DELAUNAY_EPS = 1e-10


class MeshTopologyError(ValueError):
    """输入网格为空或非流形"""


@dataclass
class Vertex:
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    half_edge: int = INVALID_INDEX
    original_index: int = INVALID_INDEX  # 插入的顶点为INVALID_INDEX


@dataclass
class HalfEdge:
    origin: int = INVALID_INDEX
    next: int = INVALID_INDEX
    prev: int = INVALID_INDEX
    opposite: int = INVALID_INDEX
    edge: int = INVALID_INDEX
    face: int = INVALID_INDEX
    corner_angle: float = 0.0     # 起点处的内角
    signpost_angle: float = 0.0   # 起点切平面内的方向角


@dataclass
class Edge:
    half_edge: int = INVALID_INDEX
    intrinsic_length: float = 0.0
    is_original: bool = True


@dataclass
class Face:
    half_edge: int = INVALID_INDEX


@dataclass
class Triangle2D:
    """面的局部平面展开，只由三条内蕴边长决定"""
    vertices: np.ndarray
    indices: Tuple[int, int, int]
    edge_lengths: Tuple[float, float, float]
    valid: bool = True


@dataclass
class VertexRing2D:
    """顶点一环邻域的平面展开，中心在原点"""
    center: int
    neighbors: List[int]
    half_edges: List[int]
    faces: List[int]
    positions: List[np.ndarray]


@dataclass
class EdgeSplit:
    """边分裂结果"""
    new_vertex: int
    he_to_new: int      # 原起点 -> 新顶点，沿用原边索引
    he_from_new: int    # 新顶点 -> 原终点，对应new_edge
    diag_front: int
    diag_back: int
    new_edge: int


class HalfEdgeMesh:
    """
    基于索引数组的半边网格

    所有交叉引用都是列表下标，缺失用INVALID_INDEX表示。
    顶点、半边、边、面只追加，除了remove_vertex弹出最后一个空顶点。
    """

    def __init__(self):
        self.vertices: List[Vertex] = []
        self.half_edges: List[HalfEdge] = []
        self.edges: List[Edge] = []
        self.faces: List[Face] = []

    def clear(self):
        self.vertices = []
        self.half_edges = []
        self.edges = []
        self.faces = []

    # ------------------------------------------------------------------
    # 构建
    # ------------------------------------------------------------------

    def build(self, positions: np.ndarray, indices: np.ndarray):
        """
        从顶点坐标和三角形索引构建半边结构

        Args:
            positions: (N, 3)顶点坐标
            indices: (M, 3)或展平的三角形索引

        Raises:
            MeshTopologyError: 输入为空、索引越界或网格非流形
        """
        positions = np.asarray(positions, dtype=float).reshape(-1, 3)
        flat = np.asarray(indices, dtype=np.int64).reshape(-1)
        if len(flat) == 0 or len(positions) == 0:
            raise MeshTopologyError("输入网格为空")
        if len(flat) % 3 != 0:
            raise MeshTopologyError(f"索引数量 {len(flat)} 不是3的倍数")
        if flat.min() < 0 or flat.max() >= len(positions):
            raise MeshTopologyError("三角形索引越界")
        triangles = flat.reshape(-1, 3)

        self.clear()
        for i, p in enumerate(positions):
            self.vertices.append(Vertex(position=p.copy(), original_index=i))

        directed: Dict[Tuple[int, int], int] = {}
        for tri in triangles:
            corners = (int(tri[0]), int(tri[1]), int(tri[2]))
            if len(set(corners)) < 3:
                continue

            face_idx = len(self.faces)
            base = len(self.half_edges)
            for k in range(3):
                key = (corners[k], corners[(k + 1) % 3])
                if key in directed:
                    raise MeshTopologyError(f"有向边 {key} 重复出现，网格非流形或朝向不一致")
                directed[key] = base + k
                self.half_edges.append(HalfEdge(
                    origin=corners[k],
                    next=base + (k + 1) % 3,
                    prev=base + (k + 2) % 3,
                    face=face_idx,
                ))
                self.vertices[corners[k]].half_edge = base + k
            self.faces.append(Face(half_edge=base))

        if not self.faces:
            raise MeshTopologyError("没有有效的三角形")

        for (a, b), he_idx in directed.items():
            self.half_edges[he_idx].opposite = directed.get((b, a), INVALID_INDEX)

        # 按三角形首次出现的顺序建立边
        for he_idx, he in enumerate(self.half_edges):
            if he.edge != INVALID_INDEX:
                continue
            edge_idx = len(self.edges)
            dest = self.half_edges[he.next].origin
            length = float(np.linalg.norm(positions[dest] - positions[he.origin]))
            self.edges.append(Edge(half_edge=he_idx, intrinsic_length=length, is_original=True))
            he.edge = edge_idx
            if he.opposite != INVALID_INDEX:
                self.half_edges[he.opposite].edge = edge_idx

        if not self.is_manifold():
            raise MeshTopologyError("网格非流形")

        logger.debug(f"半边网格构建完成: {len(self.vertices)} 顶点, {len(self.faces)} 面")

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """导出当前连接关系为(顶点坐标, 三角形索引)"""
        positions = self.get_vertex_positions()
        triangles = []
        for f in range(len(self.faces)):
            verts = self.get_face_vertices(f)
            if len(verts) == 3:
                triangles.append(verts)
        return positions, np.array(triangles, dtype=np.int64).reshape(-1, 3)

    # ------------------------------------------------------------------
    # 遍历
    # ------------------------------------------------------------------

    def dest(self, he: int) -> int:
        return self.half_edges[self.half_edges[he].next].origin

    def _next(self, he: int) -> int:
        return self.half_edges[he].next

    def _cw_neighbor(self, he: int) -> int:
        """同一顶点处顺时针方向的下一条出边"""
        opp = self.half_edges[he].opposite
        if opp == INVALID_INDEX:
            return INVALID_INDEX
        return self.half_edges[opp].next

    def _ccw_neighbor(self, he: int) -> int:
        """同一顶点处逆时针方向的下一条出边"""
        prev = self.half_edges[he].prev
        if prev == INVALID_INDEX:
            return INVALID_INDEX
        return self.half_edges[prev].opposite

    def _fan_start(self, he: int) -> int:
        """边界顶点回退到最顺时针的出边，内部顶点保持不变"""
        walk = BoundedWalk(he, self._cw_neighbor)
        last = walk.last()
        if walk.closed or walk.truncated:
            return he
        return last

    def get_vertex_half_edges(self, v: int) -> List[int]:
        """按逆时针顺序返回顶点的全部出边，边界顶点从顺时针端开始"""
        if not 0 <= v < len(self.vertices):
            return []
        start = self.vertices[v].half_edge
        if start == INVALID_INDEX or not 0 <= start < len(self.half_edges):
            return []
        if self.half_edges[start].origin != v:
            return []
        return BoundedWalk(self._fan_start(start), self._ccw_neighbor).to_list()

    def get_face_half_edges(self, f: int) -> List[int]:
        if not 0 <= f < len(self.faces):
            return []
        return BoundedWalk(self.faces[f].half_edge, self._next).to_list()

    def get_face_vertices(self, f: int) -> List[int]:
        return [self.half_edges[he].origin for he in self.get_face_half_edges(f)]

    def get_vertex_faces(self, v: int) -> List[int]:
        faces = []
        for he in self.get_vertex_half_edges(v):
            f = self.half_edges[he].face
            if f != INVALID_INDEX and f not in faces:
                faces.append(f)
        return faces

    def get_edge_vertices(self, e: int) -> Tuple[int, int]:
        he = self.edges[e].half_edge
        return self.half_edges[he].origin, self.dest(he)

    def get_neighboring_half_edges(self, he: int) -> List[int]:
        """两个端点扇区内除该边外的所有出边"""
        opp = self.half_edges[he].opposite
        va = self.half_edges[he].origin
        vb = self.dest(he)
        result = []
        for v in (va, vb):
            for h in self.get_vertex_half_edges(v):
                if h != he and h != opp and h not in result:
                    result.append(h)
        return result

    def find_edge(self, v1: int, v2: int) -> int:
        """查找v1->v2的半边"""
        for he in self.get_vertex_half_edges(v1):
            if self.dest(he) == v2:
                return he
        return INVALID_INDEX

    def find_face(self, he1: int, he2: int) -> int:
        """两条半边同属一个面时返回该面"""
        f = self.half_edges[he1].face
        if f != INVALID_INDEX and f == self.half_edges[he2].face:
            return f
        return INVALID_INDEX

    def is_boundary_vertex(self, v: int) -> bool:
        fan = self.get_vertex_half_edges(v)
        if not fan:
            return False
        return self.half_edges[fan[0]].opposite == INVALID_INDEX

    def is_interior_half_edge(self, he: int) -> bool:
        return self.half_edges[he].opposite != INVALID_INDEX

    def count_boundary_edges(self) -> int:
        return sum(1 for e in self.edges if self.half_edges[e.half_edge].opposite == INVALID_INDEX)

    def is_manifold(self) -> bool:
        """检查半边结构的一致性和流形性"""
        if not self.faces or not self.edges:
            return False

        n_he = len(self.half_edges)
        outgoing: Dict[int, Set[int]] = {}
        for idx, he in enumerate(self.half_edges):
            if not (0 <= he.next < n_he and 0 <= he.prev < n_he):
                return False
            if self.half_edges[he.next].prev != idx:
                return False
            if he.face == INVALID_INDEX or self.half_edges[he.next].face != he.face:
                return False
            if not 0 <= he.edge < len(self.edges):
                return False
            if he.opposite != INVALID_INDEX:
                opp = self.half_edges[he.opposite]
                if opp.opposite != idx or opp.edge != he.edge:
                    return False
                if opp.origin != self.dest(idx) or self.dest(he.opposite) != he.origin:
                    return False
            outgoing.setdefault(he.origin, set()).add(idx)

        for e_idx, edge in enumerate(self.edges):
            if self.half_edges[edge.half_edge].edge != e_idx:
                return False

        for f in range(len(self.faces)):
            loop = self.get_face_half_edges(f)
            if len(loop) != 3 or any(self.half_edges[he].face != f for he in loop):
                return False

        for v, vertex in enumerate(self.vertices):
            if vertex.half_edge == INVALID_INDEX:
                if v in outgoing:
                    return False
                continue
            if set(self.get_vertex_half_edges(v)) != outgoing.get(v, set()):
                return False

        return True

    # ------------------------------------------------------------------
    # 几何
    # ------------------------------------------------------------------

    def get_intrinsic_length(self, he: int) -> float:
        return self.edges[self.half_edges[he].edge].intrinsic_length

    def set_intrinsic_length(self, e: int, length: float):
        self.edges[e].intrinsic_length = float(length)

    def get_vertex_positions(self) -> np.ndarray:
        if not self.vertices:
            return np.zeros((0, 3))
        return np.array([v.position for v in self.vertices], dtype=float)

    def layout_triangle(self, f: int) -> Triangle2D:
        """按面内三条内蕴边长展开到平面"""
        loop = self.get_face_half_edges(f)
        if len(loop) != 3:
            return Triangle2D(np.zeros((3, 2)), (INVALID_INDEX,) * 3, (0.0, 0.0, 0.0), False)

        indices = tuple(self.half_edges[he].origin for he in loop)
        lengths = tuple(self.get_intrinsic_length(he) for he in loop)
        verts = layout_triangle_from_lengths(*lengths)
        if verts is None:
            return Triangle2D(np.zeros((3, 2)), indices, lengths, False)
        return Triangle2D(verts, indices, lengths, True)

    def layout_diamond(self, he: int) -> Optional[np.ndarray]:
        """
        展开半边两侧的菱形

        Returns:
            (4, 2)坐标，依次为起点、终点、本侧对角顶点(y>0)、对侧对角顶点(y<0)；
            边界或退化时返回None
        """
        opp = self.half_edges[he].opposite
        if opp == INVALID_INDEX:
            return None
        he1 = self._next(he)
        he2 = self._next(he1)
        opp1 = self._next(opp)
        opp2 = self._next(opp1)
        if self._next(he2) != he or self._next(opp2) != opp:
            return None

        diag = self.get_intrinsic_length(he)
        len_bc = self.get_intrinsic_length(he1)
        len_ca = self.get_intrinsic_length(he2)
        len_ad = self.get_intrinsic_length(opp1)
        len_db = self.get_intrinsic_length(opp2)
        if layout_triangle_from_lengths(diag, len_bc, len_ca) is None:
            return None
        if layout_triangle_from_lengths(diag, len_db, len_ad) is None:
            return None

        x3 = (diag * diag + len_ca * len_ca - len_bc * len_bc) / (2.0 * diag)
        y3 = math.sqrt(max(len_ca * len_ca - x3 * x3, 0.0))
        x4 = (diag * diag + len_ad * len_ad - len_db * len_db) / (2.0 * diag)
        y4 = -math.sqrt(max(len_ad * len_ad - x4 * x4, 0.0))
        return np.array([[0.0, 0.0], [diag, 0.0], [x3, y3], [x4, y4]])

    def build_vertex_ring_2d(self, v: int) -> Optional[VertexRing2D]:
        """以未缩放的内角累加展开一环邻域，第一个邻点位于+x轴"""
        fan = self.get_vertex_half_edges(v)
        if not fan:
            return None

        ring = VertexRing2D(center=v, neighbors=[], half_edges=[], faces=[], positions=[])
        angle = 0.0
        for he in fan:
            length = self.get_intrinsic_length(he)
            ring.neighbors.append(self.dest(he))
            ring.half_edges.append(he)
            ring.faces.append(self.half_edges[he].face)
            ring.positions.append(np.array([math.cos(angle) * length, math.sin(angle) * length]))
            angle += self.half_edges[he].corner_angle
        return ring

    # ------------------------------------------------------------------
    # Delaunay
    # ------------------------------------------------------------------

    def is_delaunay_edge(self, he: int) -> bool:
        if not 0 <= he < len(self.half_edges):
            return True
        if self.half_edges[he].opposite == INVALID_INDEX:
            return True
        pts = self.layout_diamond(he)
        if pts is None:
            return True
        return incircle_determinant(pts[0], pts[1], pts[2], pts[3]) <= DELAUNAY_EPS

    def flip_edge(self, e: int) -> bool:
        """
        翻转内部边，新对角线长度由菱形展开得到

        Returns:
            是否翻转成功
        """
        if not 0 <= e < len(self.edges):
            return False
        ha1 = self.edges[e].half_edge
        hb1 = self.half_edges[ha1].opposite
        if hb1 == INVALID_INDEX or self.half_edges[hb1].opposite != ha1:
            return False

        ha2 = self._next(ha1)
        ha3 = self._next(ha2)
        hb2 = self._next(hb1)
        hb3 = self._next(hb2)
        if self._next(ha3) != ha1 or self._next(hb3) != hb1:
            return False
        # 度为1的顶点
        if ha2 == hb1 or hb2 == ha1:
            return False

        fa = self.half_edges[ha1].face
        fb = self.half_edges[hb1].face
        va = self.half_edges[ha1].origin
        vb = self.half_edges[hb1].origin
        vc = self.half_edges[ha3].origin
        vd = self.half_edges[hb3].origin
        if len({va, vb, vc, vd}) < 4:
            return False

        pts = self.layout_diamond(ha1)
        if pts is None:
            return False
        new_length = float(np.linalg.norm(pts[2] - pts[3]))
        if not math.isfinite(new_length) or new_length < MIN_FLIP_LENGTH:
            return False

        len_ac = self.get_intrinsic_length(ha3)
        len_cb = self.get_intrinsic_length(ha2)
        len_bd = self.get_intrinsic_length(hb3)
        len_da = self.get_intrinsic_length(hb2)

        self.faces[fa].half_edge = ha1
        self.faces[fb].half_edge = hb1
        self._link(ha1, hb3)
        self._link(hb3, ha2)
        self._link(ha2, ha1)
        self._link(hb1, ha3)
        self._link(ha3, hb2)
        self._link(hb2, hb1)
        self.half_edges[ha3].face = fb
        self.half_edges[hb3].face = fa
        self.half_edges[ha1].origin = vc
        self.half_edges[hb1].origin = vd

        if self.vertices[va].half_edge == ha1:
            self.vertices[va].half_edge = hb2
        if self.vertices[vb].half_edge == hb1:
            self.vertices[vb].half_edge = ha2

        corners = (
            (ha1, new_length, len_cb, len_bd),
            (hb3, len_bd, new_length, len_cb),
            (ha2, len_cb, len_bd, new_length),
            (hb1, new_length, len_da, len_ac),
            (ha3, len_ac, new_length, len_da),
            (hb2, len_da, len_ac, new_length),
        )
        for he, side_a, side_b, opposite in corners:
            self.half_edges[he].corner_angle = law_of_cosines_angle(side_a, side_b, opposite)

        # 新半边的方向角由顺时针邻边推出
        self.half_edges[ha1].signpost_angle = (
            self.half_edges[ha3].signpost_angle + self.half_edges[ha3].corner_angle
        )
        self.half_edges[hb1].signpost_angle = (
            self.half_edges[hb3].signpost_angle + self.half_edges[hb3].corner_angle
        )

        self.edges[e].intrinsic_length = new_length
        self.edges[e].is_original = False
        return True

    def _link(self, a: int, b: int):
        self.half_edges[a].next = b
        self.half_edges[b].prev = a

    def _vertex_pair_key(self, e: int) -> Tuple[int, int]:
        a, b = self.get_edge_vertices(e)
        return (a, b) if a < b else (b, a)

    def make_delaunay(
        self,
        max_iterations: int = 10,
        edge_subset: Optional[Iterable[int]] = None,
        flipped_edges: Optional[List[int]] = None
    ) -> int:
        """
        以队列方式逐条翻转非Delaunay边

        Args:
            max_iterations: 最大外层轮数
            edge_subset: 只从这些边开始检查，None表示全部边
            flipped_edges: 若给出，记录被翻转的边

        Returns:
            翻转总次数
        """
        subset = None if edge_subset is None else list(edge_subset)
        total = 0
        for iteration in range(max_iterations):
            seeds = range(len(self.edges)) if subset is None else subset
            queue = deque(
                e for e in seeds
                if 0 <= e < len(self.edges) and not self.is_delaunay_edge(self.edges[e].half_edge)
            )
            queued = set(queue)
            flipped_pairs: Set[Tuple[int, int]] = set()
            flips = 0

            while queue:
                e = queue.popleft()
                queued.discard(e)
                he = self.edges[e].half_edge
                if self.is_delaunay_edge(he):
                    continue
                key = self._vertex_pair_key(e)
                if key in flipped_pairs:
                    continue
                flipped_pairs.add(key)
                if not self.flip_edge(e):
                    continue

                flips += 1
                if flipped_edges is not None:
                    flipped_edges.append(e)
                for nb in self.get_neighboring_half_edges(he):
                    ne = self.half_edges[nb].edge
                    if ne not in queued:
                        queue.append(ne)
                        queued.add(ne)

            total += flips
            logger.debug(f"Delaunay第 {iteration + 1} 轮: 翻转 {flips} 条边")
            if flips == 0:
                break
        return total

    # ------------------------------------------------------------------
    # 插入与分裂
    # ------------------------------------------------------------------

    def add_intrinsic_vertex(self) -> int:
        self.vertices.append(Vertex())
        return len(self.vertices) - 1

    def remove_vertex(self, v: int) -> bool:
        """只允许弹出最后一个未被引用的顶点"""
        if v != len(self.vertices) - 1:
            return False
        if self.vertices[v].half_edge != INVALID_INDEX:
            return False
        if any(he.origin == v for he in self.half_edges):
            return False
        self.vertices.pop()
        return True

    def insert_vertex_along_edge(self, e: int) -> int:
        """
        在边上插入新顶点，两侧面暂时变成四边形

        Returns:
            原起点 -> 新顶点的半边，失败返回INVALID_INDEX
        """
        if not 0 <= e < len(self.edges):
            return INVALID_INDEX
        he_a = self.edges[e].half_edge
        he_b = self.half_edges[he_a].opposite
        v_orig_a = self.half_edges[he_a].origin
        prev_a = self.half_edges[he_a].prev
        if prev_a == INVALID_INDEX:
            return INVALID_INDEX

        new_v = self.add_intrinsic_vertex()
        he_a_new = len(self.half_edges)
        self.half_edges.append(HalfEdge(origin=v_orig_a, face=self.half_edges[he_a].face))
        self._link(prev_a, he_a_new)
        self._link(he_a_new, he_a)
        self.half_edges[he_a].origin = new_v

        if he_b != INVALID_INDEX:
            next_b = self.half_edges[he_b].next
            he_b_new = len(self.half_edges)
            self.half_edges.append(HalfEdge(origin=new_v, face=self.half_edges[he_b].face))
            self._link(he_b, he_b_new)
            self._link(he_b_new, next_b)
            self.half_edges[he_a_new].opposite = he_b_new
            self.half_edges[he_b_new].opposite = he_a_new

        self.vertices[new_v].half_edge = he_a
        self.vertices[v_orig_a].half_edge = he_a_new
        return he_a_new

    def connect_vertices(self, he_a: int, he_b: int) -> int:
        """
        用新对角线连接同一面内两条半边的起点，把面一分为二

        Returns:
            he_a起点 -> he_b起点的新半边
        """
        f_old = self.half_edges[he_a].face
        if he_a == he_b or f_old == INVALID_INDEX or f_old != self.half_edges[he_b].face:
            return INVALID_INDEX

        v_a = self.half_edges[he_a].origin
        v_b = self.half_edges[he_b].origin
        prev_a = self.half_edges[he_a].prev
        prev_b = self.half_edges[he_b].prev

        f_new = len(self.faces)
        self.faces.append(Face())
        diag_a = len(self.half_edges)
        diag_b = diag_a + 1
        edge_idx = len(self.edges)
        self.half_edges.append(HalfEdge(origin=v_a, face=f_old, opposite=diag_b, edge=edge_idx))
        self.half_edges.append(HalfEdge(origin=v_b, face=f_new, opposite=diag_a, edge=edge_idx))
        self.edges.append(Edge(half_edge=diag_a, intrinsic_length=0.0, is_original=False))

        self._link(prev_a, diag_a)
        self._link(diag_a, he_b)
        self._link(prev_b, diag_b)
        self._link(diag_b, he_a)

        for he in BoundedWalk(diag_a, self._next):
            self.half_edges[he].face = f_old
        for he in BoundedWalk(diag_b, self._next):
            self.half_edges[he].face = f_new
        self.faces[f_old].half_edge = diag_a
        self.faces[f_new].half_edge = diag_b
        return diag_a

    def split_edge_topo(self, e: int, t: float) -> Optional[EdgeSplit]:
        """
        在边的参数位置t处插入顶点并重新三角化两侧

        子边长度按t线性分配，新对角线长度为0，由调用者根据展开结果填写。
        边界边只有一侧会被三角化。
        """
        if not 0 <= e < len(self.edges) or not 0.0 < t < 1.0:
            return None

        original_he = self.edges[e].half_edge
        parent_length = self.edges[e].intrinsic_length
        va, vb = self.get_edge_vertices(e)

        he_front = self.insert_vertex_along_edge(e)
        if he_front == INVALID_INDEX:
            return None
        new_v = self.half_edges[original_he].origin
        he_back = self.half_edges[he_front].opposite

        diag_front = self.connect_vertices(original_he, self._next(self._next(original_he)))
        diag_back = INVALID_INDEX
        if he_back != INVALID_INDEX:
            diag_back = self.connect_vertices(he_back, self._next(self._next(he_back)))

        # 原边索引留给 va-新顶点，新边给 新顶点-vb
        self.edges[e].half_edge = he_front
        self.edges[e].intrinsic_length = t * parent_length
        self.edges[e].is_original = False
        self.half_edges[he_front].edge = e
        if he_back != INVALID_INDEX:
            self.half_edges[he_back].edge = e

        new_edge = len(self.edges)
        self.edges.append(Edge(
            half_edge=original_he,
            intrinsic_length=(1.0 - t) * parent_length,
            is_original=False,
        ))
        self.half_edges[original_he].edge = new_edge
        opp = self.half_edges[original_he].opposite
        if opp != INVALID_INDEX:
            self.half_edges[opp].edge = new_edge

        self.vertices[new_v].half_edge = original_he
        self.vertices[new_v].position = (
            (1.0 - t) * self.vertices[va].position + t * self.vertices[vb].position
        )
        return EdgeSplit(
            new_vertex=new_v,
            he_to_new=he_front,
            he_from_new=original_he,
            diag_front=diag_front,
            diag_back=diag_back,
            new_edge=new_edge,
        )

    def split_triangle_intrinsic(self, f: int, r0: float, r1: float, r2: float) -> int:
        """
        1分3面分裂

        Args:
            f: 面索引
            r0, r1, r2: 新顶点到面内三个顶点的内蕴距离

        Returns:
            新顶点索引，失败返回INVALID_INDEX
        """
        loop = self.get_face_half_edges(f)
        if len(loop) != 3:
            return INVALID_INDEX
        corners = [self.half_edges[he].origin for he in loop]
        radii = (r0, r1, r2)

        new_v = self.add_intrinsic_vertex()
        self.vertices[new_v].position = np.mean([self.vertices[c].position for c in corners], axis=0)

        base = len(self.half_edges)
        spoke_out = [base + i for i in range(3)]      # 新顶点 -> 角点i
        spoke_in = [base + 3 + i for i in range(3)]   # 角点i -> 新顶点
        for _ in range(6):
            self.half_edges.append(HalfEdge())
        face_ids = [f, len(self.faces), len(self.faces) + 1]
        self.faces.append(Face())
        self.faces.append(Face())

        for i in range(3):
            edge_idx = len(self.edges)
            self.edges.append(Edge(half_edge=spoke_out[i], intrinsic_length=radii[i], is_original=False))
            out_he = self.half_edges[spoke_out[i]]
            in_he = self.half_edges[spoke_in[i]]
            out_he.origin = new_v
            in_he.origin = corners[i]
            out_he.opposite = spoke_in[i]
            in_he.opposite = spoke_out[i]
            out_he.edge = edge_idx
            in_he.edge = edge_idx

        for i in range(3):
            j = (i + 1) % 3
            cycle = (loop[i], spoke_in[j], spoke_out[i])
            for he in cycle:
                self.half_edges[he].face = face_ids[i]
            self._link(cycle[0], cycle[1])
            self._link(cycle[1], cycle[2])
            self._link(cycle[2], cycle[0])
            self.faces[face_ids[i]].half_edge = loop[i]

        self.vertices[new_v].half_edge = spoke_out[0]
        return new_v

    # ------------------------------------------------------------------
    # 统计
    # ------------------------------------------------------------------

    def statistics(self) -> dict:
        return {
            'vertices': len(self.vertices),
            'half_edges': len(self.half_edges),
            'edges': len(self.edges),
            'faces': len(self.faces),
            'boundary_edges': self.count_boundary_edges(),
            'non_original_edges': sum(1 for e in self.edges if not e.is_original),
        }

    def log_statistics(self):
        stats = self.statistics()
        logger.info(
            f"网格: {stats['vertices']} 顶点, {stats['edges']} 边, {stats['faces']} 面, "
            f"{stats['boundary_edges']} 边界边, {stats['non_original_edges']} 非原始边"
        )
