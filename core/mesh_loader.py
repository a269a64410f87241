"""3D模型加载模块"""
import logging
from pathlib import Path
from typing import Optional

import numpy as np
import trimesh

logger = logging.getLogger(__name__)


class MeshLoader:
    """网格加载器，支持STL、OBJ、PLY等格式"""

    SUPPORTED_FORMATS = {'.stl', '.3mf', '.obj', '.ply', '.off', '.glb', '.gltf'}

    @classmethod
    def load(cls, filepath: str, repair: bool = True) -> Optional[trimesh.Trimesh]:
        """
        加载3D模型文件

        Args:
            filepath: 文件路径
            repair: 是否合并重复顶点、移除退化三角形并修复朝向

        Returns:
            trimesh.Trimesh对象，加载失败返回None
        """
        path = Path(filepath)

        if not path.exists():
            logger.error(f"文件不存在: {filepath}")
            return None

        suffix = path.suffix.lower()
        if suffix not in cls.SUPPORTED_FORMATS:
            logger.error(f"不支持的格式: {suffix}")
            return None

        try:
            mesh = trimesh.load(filepath, force='mesh', process=False)

            # 场景合并为单个网格
            if isinstance(mesh, trimesh.Scene):
                if len(mesh.geometry) == 0:
                    logger.error("场景中没有几何体")
                    return None
                mesh = trimesh.util.concatenate(list(mesh.geometry.values()))

            if not isinstance(mesh, trimesh.Trimesh) or len(mesh.faces) == 0:
                logger.error("无法解析为三角网格")
                return None

            if repair:
                mesh = cls._repair_mesh(mesh)

            logger.info(f"已加载 {path.name}: {len(mesh.vertices)} 顶点, {len(mesh.faces)} 面")
            return mesh

        except Exception as e:
            logger.error(f"加载模型失败: {e}")
            return None

    @classmethod
    def _repair_mesh(cls, mesh: trimesh.Trimesh) -> trimesh.Trimesh:
        """修复网格常见问题"""
        mesh.merge_vertices()

        # 退化三角形会让内蕴边长不满足三角不等式
        face_mask = mesh.nondegenerate_faces() if hasattr(mesh, 'nondegenerate_faces') else mesh.area_faces > 1e-10
        if not np.all(face_mask):
            logger.debug(f"移除 {int(np.sum(~face_mask))} 个退化三角形")
            mesh.update_faces(face_mask)
        mesh.remove_unreferenced_vertices()

        # 统一朝向，避免构建半边时出现重复的有向边
        mesh.fix_normals()

        return mesh

    @classmethod
    def get_mesh_info(cls, mesh: trimesh.Trimesh) -> dict:
        """获取网格信息"""
        edges = mesh.edges_unique_length
        return {
            'vertices': len(mesh.vertices),
            'faces': len(mesh.faces),
            'bounds': mesh.bounds.tolist(),
            'is_watertight': bool(mesh.is_watertight),
            'area': float(mesh.area),
            'mean_edge_length': float(np.mean(edges)) if len(edges) else 0.0,
            'euler_number': int(mesh.euler_number),
        }

    @classmethod
    def save_mesh(
        cls,
        mesh: trimesh.Trimesh,
        filepath: str,
        file_type: Optional[str] = None
    ) -> bool:
        """
        保存网格到文件

        Args:
            mesh: 要保存的网格
            filepath: 保存路径
            file_type: 文件类型，默认从扩展名推断

        Returns:
            是否保存成功
        """
        try:
            mesh.export(filepath, file_type=file_type)
            return True
        except Exception as e:
            logger.error(f"保存模型失败: {e}")
            return False
