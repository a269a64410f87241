import numpy as np

from core.common_subdivision import OverlayMesh
from core.exporter import Exporter


def _single_triangle_overlay():
    return OverlayMesh(
        vertices=np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]),
        colors=np.array([[1.0, 0.0, 0.0]] * 3),
        faces=np.array([[0, 1, 2]]),
    )


def test_export_overlay_obj(tmp_path):
    path = tmp_path / 'out' / 'overlay.obj'
    assert Exporter.export_overlay_obj(_single_triangle_overlay(), str(path))

    lines = [line for line in path.read_text().splitlines() if not line.startswith('#')]
    # 顶点行、颜色行、面行依次排列
    assert [line.split()[0] for line in lines] == ['v', 'v', 'v', 'vc', 'vc', 'vc', 'f']
    assert len(lines[0].split()) == 4
    assert [float(x) for x in lines[1].split()[1:]] == [1.0, 0.0, 0.0]
    assert [float(x) for x in lines[3].split()[1:]] == [1.0, 0.0, 0.0]
    assert lines[-1] == 'f 1 2 3'


def test_export_overlay_rejects_color_mismatch(tmp_path):
    overlay = _single_triangle_overlay()
    overlay.colors = overlay.colors[:2]
    path = tmp_path / 'bad.obj'
    assert not Exporter.export_overlay_obj(overlay, str(path))
    assert not path.exists()


def test_report_round_trip(tmp_path):
    path = tmp_path / 'report.json'
    params = {'step_size': 0.25, 'max_edge_length': None}
    output_stats = {'vertices': np.int64(12), 'min_angle_deg': np.float64(31.5)}
    assert Exporter.export_report(str(path), 'bunny.obj', params, {'faces': 4}, output_stats)

    report = Exporter.load_report(str(path))
    assert report['version'] == '1.0'
    assert report['mesh_path'] == 'bunny.obj'
    assert report['params'] == params
    assert report['output'] == {'vertices': 12, 'min_angle_deg': 31.5}


def test_load_report_missing_file(tmp_path):
    assert Exporter.load_report(str(tmp_path / 'missing.json')) is None
