"""文件导出模块"""
import json
import logging
from pathlib import Path
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

REPORT_VERSION = '1.0'


class Exporter:
    """文件导出器"""

    @staticmethod
    def export_overlay_obj(overlay, filepath: str) -> bool:
        """
        导出带顶点颜色的叠加网格为OBJ

        先写全部 "v x y z" 顶点行，再写同样数量的 "vc r g b" 颜色行，最后是从1开始的 "f" 面行。

        Args:
            overlay: OverlayMesh
            filepath: 保存路径

        Returns:
            是否成功
        """
        try:
            vertices = np.asarray(overlay.vertices, dtype=float).reshape(-1, 3)
            colors = np.asarray(overlay.colors, dtype=float).reshape(-1, 3)
            faces = np.asarray(overlay.faces, dtype=np.int64).reshape(-1, 3)
            if len(colors) != len(vertices):
                raise ValueError(f"颜色数量 {len(colors)} 与顶点数量 {len(vertices)} 不一致")

            lines = ['# intrinsic triangulation overlay']
            for p in vertices:
                lines.append(f'v {p[0]:.9g} {p[1]:.9g} {p[2]:.9g}')
            for c in colors:
                lines.append(f'vc {c[0]:.6f} {c[1]:.6f} {c[2]:.6f}')
            for tri in faces:
                lines.append(f'f {tri[0] + 1} {tri[1] + 1} {tri[2] + 1}')

            Path(filepath).parent.mkdir(parents=True, exist_ok=True)
            with open(filepath, 'w') as f:
                f.write('\n'.join(lines) + '\n')

            logger.info(f"已导出叠加网格: {filepath} ({len(vertices)} 顶点, {len(faces)} 面)")
            return True

        except Exception as e:
            logger.error(f"导出叠加网格失败: {e}")
            return False

    @staticmethod
    def export_report(
        filepath: str,
        mesh_path: str,
        params: dict,
        input_stats: dict,
        output_stats: dict
    ) -> bool:
        """
        导出重网格化报告为JSON

        Args:
            filepath: 保存路径
            mesh_path: 输入网格路径
            params: ODT参数
            input_stats: 输入网格统计
            output_stats: 结果网格统计

        Returns:
            是否成功
        """
        try:
            report = {
                'version': REPORT_VERSION,
                'mesh_path': mesh_path,
                'params': params,
                'input': input_stats,
                'output': output_stats,
            }

            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=_json_default)

            return True

        except Exception as e:
            logger.error(f"导出报告失败: {e}")
            return False

    @staticmethod
    def load_report(filepath: str) -> Optional[dict]:
        """
        加载重网格化报告

        Args:
            filepath: 文件路径

        Returns:
            报告字典，失败返回None
        """
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                return json.load(f)
        except Exception as e:
            logger.error(f"加载报告失败: {e}")
            return None


def _json_default(obj):
    """numpy标量和数组转成JSON可写的类型"""
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    raise TypeError(f"无法序列化类型 {type(obj).__name__}")
