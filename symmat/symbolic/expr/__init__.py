# Core base classes and fundamental operations
from .expr import (
    Add,
    Constant,
    Div,
    Expr,
    Leaf,
    MatMul,
    Mul,
    Neg,
    Power,
    Region,
    SetRegion,
    Sub,
    Symbol,
    check_dims,
    post_order,
    region_slices,
    to_expr,
    traverse,
)

# Linear algebra operations
from .linalg import Dot, Inverse, Norm, Transpose

# Mathematical functions
from .math import Abs

__all__ = [
    # Core base classes and fundamental operations
    "Expr",
    "Leaf",
    "Symbol",
    "Constant",
    "to_expr",
    "traverse",
    "post_order",
    "check_dims",
    "region_slices",
    "Add",
    "Sub",
    "Mul",
    "Div",
    "MatMul",
    "Neg",
    "Power",
    # Region operations
    "Region",
    "SetRegion",
    # Linear algebra
    "Transpose",
    "Inverse",
    "Norm",
    "Dot",
    # Mathematical functions
    "Abs",
]
