import logging
import math

import numpy as np
import pytest

from core.geodesic_tracer import GeodesicTracer, SurfacePoint, SurfacePointType, TraceOptions
from tests.conftest import build_signpost


@pytest.fixture
def square_tracer(flat_square):
    return GeodesicTracer(build_signpost(*flat_square))


def test_solve_ray_edge():
    t, u = GeodesicTracer.solve_ray_edge(
        np.array([1.0, 0.0]), np.array([0.0, 2.0]), np.array([3.0, -1.0])
    )
    assert t == pytest.approx(3.0)
    assert u == pytest.approx(0.5)
    assert GeodesicTracer.solve_ray_edge(
        np.array([1.0, 0.0]), np.array([2.0, 0.0]), np.array([0.0, 1.0])
    ) is None


def test_evaluate_surface_point(square_tracer):
    np.testing.assert_allclose(
        square_tracer.evaluate_surface_point(SurfacePoint.vertex(2)), [1.0, 1.0, 0.0]
    )
    # 边2的规范半边为 2->0
    np.testing.assert_allclose(
        square_tracer.evaluate_surface_point(SurfacePoint.edge(2, 0.25)), [0.75, 0.75, 0.0]
    )
    np.testing.assert_allclose(
        square_tracer.evaluate_surface_point(SurfacePoint.face(1, [0.2, 0.3, 0.5])), [0.3, 0.8, 0.0]
    )


def test_trace_in_face_hits_edge(square_tracer):
    start = SurfacePoint.face(0, [0.5, 0.25, 0.25])
    step = square_tracer.trace_in_face(start, np.array([-0.6, 0.8]), 0.5)
    assert step.success
    assert step.hit_edge
    assert not step.hit_vertex
    assert square_tracer.conn.half_edges[step.half_edge].edge == 2
    assert step.distance == pytest.approx(0.25 / 1.4, abs=1e-6)


def test_trace_crosses_interior_edge(square_tracer):
    result = square_tracer.trace_from_face(0, [0.5, 0.25, 0.25], np.array([-0.6, 0.8]), 0.5)
    assert result.success
    assert result.distance == pytest.approx(0.5)
    assert result.final_face == 1
    np.testing.assert_allclose(result.position_3d, [0.2, 0.65, 0.0], atol=1e-9)
    assert result.exit_point.kind == SurfacePointType.FACE
    kinds = [p.kind for p in result.path_points]
    assert kinds == [SurfacePointType.FACE, SurfacePointType.EDGE, SurfacePointType.FACE]


def test_trace_zero_length_returns_start(square_tracer):
    result = square_tracer.trace_from_face(0, [0.5, 0.25, 0.25], np.array([1.0, 0.0]), 0.0)
    assert result.success
    assert result.distance == 0.0
    np.testing.assert_allclose(result.position_3d, [0.5, 0.25, 0.0])


def test_trace_through_boundary_fails(square_tracer):
    result = square_tracer.trace_from_face(0, [1 / 3, 1 / 3, 1 / 3], np.array([0.0, -1.0]), 5.0)
    assert not result.success
    assert result.boundary_edge == 0
    np.testing.assert_allclose(result.position_3d, [2 / 3, 0.0, 0.0], atol=1e-9)


def test_trace_from_boundary_vertex_uses_power_map(square_tracer):
    # 顶点0的内角和为π/2，切平面中45°对应实际的22.5°
    direction = np.array([1.0, 1.0]) / math.sqrt(2.0)
    result = square_tracer.trace_from_vertex(0, 0, direction, 0.5)
    assert result.success
    angle = math.radians(22.5)
    np.testing.assert_allclose(
        result.position_3d, [0.5 * math.cos(angle), 0.5 * math.sin(angle), 0.0], atol=1e-7
    )
    assert result.path_points[0].kind == SurfacePointType.VERTEX


def test_trace_from_vertex_zero_length(square_tracer):
    result = square_tracer.trace_from_vertex(2, 1, np.array([1.0, 0.0]), 0.0)
    assert result.success
    assert result.final_face == 1
    np.testing.assert_allclose(result.position_3d, [1.0, 1.0, 0.0])


def test_trace_from_edge_both_sides(square_tracer):
    inside = square_tracer.trace_from_edge(2, 0.5, np.array([1.0, 0.0]), 0.25)
    assert inside.success
    assert inside.final_face == 0
    np.testing.assert_allclose(inside.position_3d, [0.75, 0.5, 0.0], atol=1e-9)

    across = square_tracer.trace_from_edge(2, 0.5, np.array([-1.0, 0.0]), 0.25)
    assert across.success
    assert across.final_face == 1
    np.testing.assert_allclose(across.position_3d, [0.25, 0.5, 0.0], atol=1e-9)
    assert across.path_points[0].kind == SurfacePointType.EDGE


def test_trace_from_boundary_edge_outward_fails(square_tracer):
    result = square_tracer.trace_from_edge(0, 0.5, np.array([0.0, -1.0]), 0.25)
    assert not result.success
    assert result.boundary_edge == 0


def test_trace_on_curved_surface(icosphere):
    tracer = GeodesicTracer(build_signpost(*icosphere))
    result = tracer.trace_from_face(0, [0.4, 0.35, 0.25], np.array([0.3, 1.0]), 0.6)
    assert result.success
    assert result.distance == pytest.approx(0.6, abs=1e-6)
    assert 0.9 < np.linalg.norm(result.position_3d) <= 1.0 + 1e-9
    assert len(result.path_points) >= 3


def test_trace_from_vertex_falls_back_to_nearest_edge(square_tracer, caplog):
    # 方向略低于边界边0->1，落在所有楔形之外
    direction = np.array([1.0, -0.1]) / math.hypot(1.0, 0.1)
    with caplog.at_level(logging.WARNING, logger='core.geodesic_tracer'):
        result = square_tracer.trace_from_vertex(0, 0, direction, 0.5)
    assert '兜底' in caplog.text
    assert result.success
    np.testing.assert_allclose(result.position_3d, [0.5, 0.0, 0.0], atol=1e-6)


def test_trace_from_vertex_without_forward_edge_fails(square_tracer, caplog):
    direction = np.array([-1.0, -1.0]) / math.sqrt(2.0)
    with caplog.at_level(logging.WARNING, logger='core.geodesic_tracer'):
        result = square_tracer.trace_from_vertex(0, 0, direction, 0.5)
    assert not result.success
    assert '找不到包含方向的楔形' in caplog.text


def test_direction_at_boundary_vertex(square_tracer):
    mesh = square_tracer.mesh
    conn = square_tracer.conn
    # 在面0中沿 1->2 与 0->2 的角平分线到达边界顶点2
    e1 = mesh.halfedge_vectors_in_face[conn.find_edge(1, 2)]
    e0 = -mesh.halfedge_vectors_in_face[conn.find_edge(2, 0)]
    arrival = e1 / np.linalg.norm(e1) + e0 / np.linalg.norm(e0)
    arrival /= np.linalg.norm(arrival)

    out = square_tracer.direction_at_vertex(0, 2, arrival)
    # 顶点2的切平面把实际90°内角放大到180°，回头方向位于135°
    np.testing.assert_allclose(out, [math.sqrt(0.5), -math.sqrt(0.5)], atol=1e-9)


def test_direction_at_cone_vertex_uses_angle_scale():
    n = 6
    ring = [[math.cos(2 * math.pi * i / n), math.sin(2 * math.pi * i / n), 0.0] for i in range(n)]
    positions = np.array([[0.0, 0.0, 0.8]] + ring)
    faces = np.array([[0, 1 + i, 1 + (i + 1) % n] for i in range(n)])
    tracer = GeodesicTracer(build_signpost(positions, faces))
    mesh = tracer.mesh
    conn = tracer.conn
    scale = mesh.vertex_angle_scales[0]
    assert scale > 1.0

    ref = conn.find_edge(0, 1)
    face = conn.half_edges[ref].face
    corner = conn.half_edges[ref].corner_angle
    face_base = mesh.halfedge_vectors_in_face[ref]
    back = math.atan2(face_base[1], face_base[0]) + 0.5 * corner
    arrival = -np.array([math.cos(back), math.sin(back)])

    out = tracer.direction_at_vertex(face, 0, arrival)
    vert_base = mesh.halfedge_vectors_in_vertex[ref]
    expected = math.atan2(vert_base[1], vert_base[0]) + 0.5 * corner * scale + math.pi
    np.testing.assert_allclose(out, [math.cos(expected), math.sin(expected)], atol=1e-9)


def test_step_limit_grows_with_face_count():
    assert TraceOptions().step_limit(10) == 100
    assert TraceOptions().step_limit(500) == 1000
    assert TraceOptions(max_iterations=7).step_limit(500) == 7


def test_explicit_step_limit_stops_trace(flat_square):
    tracer = GeodesicTracer(build_signpost(*flat_square), TraceOptions(max_iterations=1))
    result = tracer.trace_from_face(0, [0.5, 0.25, 0.25], np.array([-0.6, 0.8]), 0.5)
    assert not result.success
    assert result.final_face == 1
