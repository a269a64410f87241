import pytest
import trimesh

from core.mesh_loader import MeshLoader


@pytest.fixture
def box_path(tmp_path):
    path = tmp_path / 'box.ply'
    trimesh.creation.box(extents=(1.0, 2.0, 3.0)).export(str(path))
    return path


def test_load_box(box_path):
    mesh = MeshLoader.load(str(box_path))
    assert mesh is not None
    assert len(mesh.vertices) == 8
    assert len(mesh.faces) == 12
    assert mesh.is_watertight


def test_load_missing_or_unsupported(tmp_path):
    assert MeshLoader.load(str(tmp_path / 'missing.stl')) is None
    path = tmp_path / 'notes.txt'
    path.write_text('not a mesh')
    assert MeshLoader.load(str(path)) is None


def test_get_mesh_info(box_path):
    info = MeshLoader.get_mesh_info(MeshLoader.load(str(box_path)))
    assert info['vertices'] == 8
    assert info['faces'] == 12
    assert info['is_watertight']
    assert info['euler_number'] == 2
    assert info['area'] == pytest.approx(22.0)
    assert info['mean_edge_length'] > 0.0


def test_save_mesh(tmp_path):
    mesh = trimesh.creation.icosphere(subdivisions=1)
    path = tmp_path / 'sphere.obj'
    assert MeshLoader.save_mesh(mesh, str(path))
    loaded = MeshLoader.load(str(path), repair=False)
    assert len(loaded.faces) == len(mesh.faces)
