import math

import numpy as np
import pytest
import trimesh

from core.halfedge_mesh import HalfEdgeMesh
from core.signpost_mesh import SignpostMesh


def make_grid(n: int, spacing: float = 1.0):
    """n x n个顶点的平面网格，顶点索引为 j * n + i"""
    positions = np.array(
        [[i * spacing, j * spacing, 0.0] for j in range(n) for i in range(n)]
    )
    faces = []
    for j in range(n - 1):
        for i in range(n - 1):
            a = j * n + i
            b = a + 1
            c = a + n + 1
            d = a + n
            faces.append([a, b, c])
            faces.append([a, c, d])
    return positions, np.array(faces)


def build_signpost(positions, faces) -> SignpostMesh:
    mesh = SignpostMesh()
    mesh.build_from_arrays(positions, faces)
    mesh.initialize_signposts()
    return mesh


@pytest.fixture
def flat_square():
    positions = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [1.0, 1.0, 0.0],
        [0.0, 1.0, 0.0],
    ])
    faces = np.array([[0, 1, 2], [0, 2, 3]])
    return positions, faces


@pytest.fixture
def rhombus():
    """AB为长对角线的菱形，AB不是Delaunay边"""
    positions = np.array([
        [-1.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 0.5, 0.0],
        [0.0, -0.5, 0.0],
    ])
    faces = np.array([[0, 1, 2], [1, 0, 3]])
    return positions, faces


@pytest.fixture
def skinny_triangle():
    """顶角10度的等腰三角形"""
    angle = math.radians(10.0)
    positions = np.array([
        [0.0, 0.0, 0.0],
        [10.0, 0.0, 0.0],
        [10.0 * math.cos(angle), 10.0 * math.sin(angle), 0.0],
    ])
    faces = np.array([[0, 1, 2]])
    return positions, faces


@pytest.fixture
def flat_grid():
    return make_grid(4)


@pytest.fixture
def icosphere():
    mesh = trimesh.creation.icosphere(subdivisions=2, radius=1.0)
    return np.asarray(mesh.vertices), np.asarray(mesh.faces)


@pytest.fixture
def square_conn(flat_square) -> HalfEdgeMesh:
    conn = HalfEdgeMesh()
    conn.build(*flat_square)
    return conn
