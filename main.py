"""内蕴三角化重网格化工具 - 主程序入口"""
import sys
import os
import argparse
import logging
from dataclasses import asdict
from typing import List, Optional

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.exporter import Exporter
from core.halfedge_mesh import MeshTopologyError
from core.iodt import IntrinsicODT, ODTParams
from core.mesh_loader import MeshLoader

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='在输入曲面上做内蕴最优Delaunay重网格化'
    )
    parser.add_argument('input', help='输入网格文件 (STL/OBJ/PLY/OFF)')
    parser.add_argument('-o', '--output', help='重网格化结果的保存路径')
    parser.add_argument('--overlay', help='公共细分叠加网格的OBJ保存路径')
    parser.add_argument('--report', help='JSON报告的保存路径')
    parser.add_argument('--iterations', type=int, default=10, help='全局Delaunay翻转最大轮数')
    parser.add_argument('--min-angle', type=float, default=35.0, help='最小内角阈值 (度)')
    parser.add_argument('--max-edge-length', type=float, default=None, help='边长上限，超过时分裂')
    parser.add_argument('--step-size', type=float, default=0.25, help='顶点松弛步长 (0-1]')
    parser.add_argument('-v', '--verbose', action='store_true', help='输出调试日志')
    return parser


def setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    # 抑制第三方库的调试输出
    logging.getLogger('trimesh').setLevel(logging.WARNING)


def run(args: argparse.Namespace) -> int:
    """执行一次重网格化，返回进程退出码"""
    try:
        params = ODTParams(
            delaunay_iterations=args.iterations,
            min_angle_deg=args.min_angle,
            max_edge_length=args.max_edge_length,
            step_size=args.step_size,
        )
    except ValueError as e:
        logger.error(f"参数无效: {e}")
        return 2

    mesh = MeshLoader.load(args.input)
    if mesh is None:
        return 1
    input_info = MeshLoader.get_mesh_info(mesh)

    try:
        odt = IntrinsicODT.from_trimesh(mesh, params)
    except MeshTopologyError as e:
        logger.error(f"输入网格不可用: {e}")
        return 1

    odt.optimal_delaunay_triangulation()
    result = odt.to_trimesh()
    stats = odt.statistics()
    logger.info(
        f"完成: {stats['vertices']} 顶点, {stats['faces']} 面, "
        f"插入 {stats['inserted_vertices']} 个顶点, 最小角 {stats['min_angle_deg']:.2f}°"
    )

    ok = True
    if args.output:
        ok = MeshLoader.save_mesh(result, args.output) and ok
    if args.overlay:
        ok = odt.save_common_subdivision_obj(args.overlay) and ok
    if args.report:
        ok = Exporter.export_report(
            args.report, args.input, asdict(params), input_info, stats
        ) and ok
    return 0 if ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    """主函数"""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    return run(args)


if __name__ == '__main__':
    sys.exit(main())
