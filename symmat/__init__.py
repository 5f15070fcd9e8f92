# Symbolic matrices - flat namespace for the types dynamics code works with
from symmat.config import DEFAULT_CONFIG, EvaluationConfig
from symmat.errors import (
    EvaluationError,
    InvalidAccess,
    ShapeMismatch,
    StaleViewError,
    SymmatError,
    UnboundSymbolError,
)
from symmat.matrix import (
    DynamicMatrix,
    FixedMatrix,
    Matrix3,
    MatrixExpr,
    ScalarView,
    SliceView,
    SpatialMatrix,
    SpatialVector,
    Vector3,
    fabs,
    fixed_matrix_type,
)
from symmat.symbolic import evaluate, is_equal, jacobian

__all__ = [
    # Matrix types
    "DynamicMatrix",
    "FixedMatrix",
    "fixed_matrix_type",
    "Vector3",
    "Matrix3",
    "SpatialVector",
    "SpatialMatrix",
    "MatrixExpr",
    # Views
    "SliceView",
    "ScalarView",
    # Functions
    "fabs",
    "evaluate",
    "jacobian",
    "is_equal",
    # Configuration
    "EvaluationConfig",
    "DEFAULT_CONFIG",
    # Errors
    "SymmatError",
    "ShapeMismatch",
    "InvalidAccess",
    "StaleViewError",
    "EvaluationError",
    "UnboundSymbolError",
]
