from .base import MatrixExpr, OwnedMatrix, as_node, fabs
from .dynamic import DynamicMatrix
from .fixed import FixedMatrix, Matrix3, SpatialMatrix, SpatialVector, Vector3, fixed_matrix_type
from .views import ScalarView, SliceView

__all__ = [
    "MatrixExpr",
    "OwnedMatrix",
    "as_node",
    "fabs",
    "DynamicMatrix",
    "FixedMatrix",
    "fixed_matrix_type",
    "Vector3",
    "Matrix3",
    "SpatialVector",
    "SpatialMatrix",
    "SliceView",
    "ScalarView",
]
