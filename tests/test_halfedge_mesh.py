import math

import numpy as np
import pytest

from core.halfedge_mesh import HalfEdgeMesh, MeshTopologyError
from tests.conftest import make_grid
from utils.traversal import INVALID_INDEX


def test_build_square(square_conn):
    conn = square_conn
    assert len(conn.vertices) == 4
    assert len(conn.half_edges) == 6
    assert len(conn.edges) == 5
    assert len(conn.faces) == 2
    assert conn.count_boundary_edges() == 4
    assert conn.is_manifold()
    assert all(e.is_original for e in conn.edges)
    assert conn.edges[2].intrinsic_length == pytest.approx(math.sqrt(2.0))


@pytest.mark.parametrize('positions, faces', [
    (np.zeros((0, 3)), np.zeros((0, 3), dtype=int)),
    (np.zeros((3, 3)), np.array([[0, 1, 5]])),
    (np.zeros((3, 3)), np.array([0, 1])),
])
def test_build_rejects_invalid_input(positions, faces):
    with pytest.raises(MeshTopologyError):
        HalfEdgeMesh().build(positions, faces)


def test_build_rejects_non_manifold_edge():
    positions = np.random.default_rng(0).random((5, 3))
    faces = np.array([[0, 1, 2], [1, 0, 3], [0, 1, 4]])
    with pytest.raises(MeshTopologyError):
        HalfEdgeMesh().build(positions, faces)


def test_boundary_fan_starts_at_boundary_edge(square_conn):
    conn = square_conn
    fan = conn.get_vertex_half_edges(0)
    assert len(fan) == 2
    assert conn.half_edges[fan[0]].opposite == INVALID_INDEX
    assert [conn.dest(he) for he in fan] == [1, 2]
    assert conn.is_boundary_vertex(0)


def test_interior_fan_is_closed(flat_grid):
    conn = HalfEdgeMesh()
    conn.build(*flat_grid)
    v = 5
    fan = conn.get_vertex_half_edges(v)
    assert not conn.is_boundary_vertex(v)
    assert len(fan) == 6
    assert sorted(conn.dest(he) for he in fan) == [0, 1, 4, 6, 9, 10]


def test_find_edge_and_face(square_conn):
    conn = square_conn
    he = conn.find_edge(0, 2)
    assert he != INVALID_INDEX
    assert conn.dest(he) == 2
    assert conn.find_edge(1, 3) == INVALID_INDEX
    assert conn.find_face(0, 1) == 0
    assert conn.find_face(0, 3) == INVALID_INDEX


def test_flip_rejects_boundary_edge(square_conn):
    assert not square_conn.flip_edge(0)


def test_flip_square_diagonal(square_conn):
    conn = square_conn
    assert conn.flip_edge(2)
    assert set(conn.get_edge_vertices(2)) == {1, 3}
    assert conn.edges[2].intrinsic_length == pytest.approx(math.sqrt(2.0))
    assert not conn.edges[2].is_original
    assert conn.is_manifold()
    for f in range(2):
        assert len(conn.get_face_vertices(f)) == 3


def test_make_delaunay_rhombus(rhombus):
    conn = HalfEdgeMesh()
    conn.build(*rhombus)
    assert not conn.is_delaunay_edge(conn.edges[0].half_edge)

    flipped = []
    assert conn.make_delaunay(10, flipped_edges=flipped) == 1
    assert flipped == [0]
    assert set(conn.get_edge_vertices(0)) == {2, 3}
    assert conn.edges[0].intrinsic_length == pytest.approx(1.0)
    assert all(conn.is_delaunay_edge(e.half_edge) for e in conn.edges)
    assert conn.make_delaunay(10) == 0


def test_make_delaunay_edge_subset(rhombus):
    conn = HalfEdgeMesh()
    conn.build(*rhombus)
    assert conn.make_delaunay(10, edge_subset=[1, 2]) == 0
    assert conn.make_delaunay(10, edge_subset=[0]) == 1


def test_layout_triangle_and_diamond(square_conn):
    conn = square_conn
    tri = conn.layout_triangle(0)
    assert tri.valid
    assert tri.indices == (0, 1, 2)
    np.testing.assert_allclose(tri.vertices, [[0, 0], [1, 0], [1, 1]], atol=1e-12)

    pts = conn.layout_diamond(conn.edges[2].half_edge)
    assert pts.shape == (4, 2)
    assert pts[2][1] > 0.0 > pts[3][1]
    assert np.linalg.norm(pts[2] - pts[0]) == pytest.approx(1.0)
    assert conn.layout_diamond(conn.edges[0].half_edge) is None


def test_split_interior_edge(square_conn):
    conn = square_conn
    split = conn.split_edge_topo(2, 0.25)
    assert split is not None
    assert split.new_vertex == 4
    assert len(conn.vertices) == 5
    assert len(conn.faces) == 4
    assert len(conn.edges) == 8
    assert conn.is_manifold()
    assert not conn.is_boundary_vertex(split.new_vertex)

    length = math.sqrt(2.0)
    assert conn.edges[2].intrinsic_length == pytest.approx(0.25 * length)
    assert conn.edges[split.new_edge].intrinsic_length == pytest.approx(0.75 * length)
    assert conn.half_edges[split.he_from_new].origin == split.new_vertex
    assert conn.dest(split.he_to_new) == split.new_vertex
    # 规范半边从顶点2指向顶点0
    np.testing.assert_allclose(conn.vertices[4].position, [0.75, 0.75, 0.0])
    assert len(conn.get_vertex_half_edges(split.new_vertex)) == 4


def test_split_boundary_edge(square_conn):
    conn = square_conn
    split = conn.split_edge_topo(0, 0.25)
    assert split is not None
    assert split.diag_back == INVALID_INDEX
    assert len(conn.faces) == 3
    assert len(conn.edges) == 7
    assert conn.is_manifold()
    assert conn.is_boundary_vertex(split.new_vertex)
    assert conn.count_boundary_edges() == 5
    np.testing.assert_allclose(conn.vertices[split.new_vertex].position, [0.25, 0.0, 0.0])


def test_split_edge_rejects_bad_parameter(square_conn):
    assert square_conn.split_edge_topo(2, 0.0) is None
    assert square_conn.split_edge_topo(2, 1.0) is None
    assert square_conn.split_edge_topo(99, 0.5) is None


def test_split_triangle_intrinsic():
    positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    conn = HalfEdgeMesh()
    conn.build(positions, np.array([[0, 1, 2]]))

    center = positions.mean(axis=0)
    radii = [float(np.linalg.norm(center - p)) for p in positions]
    new_v = conn.split_triangle_intrinsic(0, *radii)

    assert new_v == 3
    assert len(conn.faces) == 3
    assert len(conn.edges) == 6
    assert conn.is_manifold()
    assert not conn.is_boundary_vertex(new_v)
    for corner, radius in enumerate(radii):
        he = conn.find_edge(new_v, corner)
        assert conn.get_intrinsic_length(he) == pytest.approx(radius)
    for f in range(3):
        assert new_v in conn.get_face_vertices(f)


def test_remove_vertex_only_pops_unused_last(square_conn):
    conn = square_conn
    v = conn.add_intrinsic_vertex()
    assert not conn.remove_vertex(0)
    assert conn.remove_vertex(v)
    assert len(conn.vertices) == 4
    assert not conn.remove_vertex(3)


def test_to_arrays_and_statistics(square_conn):
    positions, faces = square_conn.to_arrays()
    assert positions.shape == (4, 3)
    assert faces.shape == (2, 3)
    stats = square_conn.statistics()
    assert stats['faces'] == 2
    assert stats['boundary_edges'] == 4
    assert stats['non_original_edges'] == 0


def _face_corner_angles(conn):
    """{(面顶点集合, 顶点): 由展开坐标算出的内角}"""
    corners = {}
    for f in range(len(conn.faces)):
        tri = conn.layout_triangle(f)
        key = frozenset(tri.indices)
        for i, v in enumerate(tri.indices):
            a = tri.vertices[(i + 1) % 3] - tri.vertices[i]
            b = tri.vertices[(i + 2) % 3] - tri.vertices[i]
            corners[(key, v)] = math.atan2(abs(a[0] * b[1] - a[1] * b[0]), float(np.dot(a, b)))
    return corners


def test_flip_twice_restores_square(square_conn):
    conn = square_conn
    faces_before = {frozenset(conn.get_face_vertices(f)) for f in range(2)}
    corners_before = _face_corner_angles(conn)

    assert conn.flip_edge(2)
    assert conn.flip_edge(2)
    assert set(conn.get_edge_vertices(2)) == {0, 2}
    assert conn.edges[2].intrinsic_length == pytest.approx(math.sqrt(2.0))
    assert {frozenset(conn.get_face_vertices(f)) for f in range(2)} == faces_before
    assert conn.is_manifold()

    corners_after = _face_corner_angles(conn)
    assert corners_after.keys() == corners_before.keys()
    for key, angle in corners_before.items():
        assert corners_after[key] == pytest.approx(angle, abs=1e-9)
    # 翻转时写入的内角与展开结果一致
    for f in range(2):
        key = frozenset(conn.get_face_vertices(f))
        for he in conn.get_face_half_edges(f):
            v = conn.half_edges[he].origin
            assert conn.half_edges[he].corner_angle == pytest.approx(corners_before[(key, v)], abs=1e-9)


def test_make_delaunay_jittered_grid():
    n = 6
    positions, faces = make_grid(n)
    rng = np.random.default_rng(0)
    for j in range(1, n - 1):
        for i in range(1, n - 1):
            positions[j * n + i, :2] += rng.uniform(-0.2, 0.2, size=2)

    conn = HalfEdgeMesh()
    conn.build(positions, faces)
    conn.make_delaunay(100)
    assert conn.is_manifold()
    assert all(conn.is_delaunay_edge(edge.half_edge) for edge in conn.edges)
