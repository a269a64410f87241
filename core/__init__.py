"""核心模块"""
from .mesh_loader import MeshLoader
from .halfedge_mesh import HalfEdgeMesh, MeshTopologyError, EdgeSplit
from .signpost_mesh import SignpostMesh
from .geodesic_tracer import GeodesicTracer, SurfacePoint, SurfacePointType, GeodesicTraceResult
from .common_subdivision import OverlayMesh
from .iodt import IntrinsicODT, ODTParams, VertexKind
from .exporter import Exporter
