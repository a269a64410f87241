"""工具模块"""
from .geometry import (
    point_to_barycentric,
    barycentric_to_point,
    compute_face_normal,
    cross_2d,
    layout_triangle_from_lengths,
    law_of_cosines_angle,
    circumcenter_2d,
    incircle_determinant,
    heron_area,
    compute_path_length
)
from .traversal import BoundedWalk, INVALID_INDEX, MAX_TRAVERSAL_STEPS
