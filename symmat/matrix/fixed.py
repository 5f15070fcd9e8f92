from typing import Dict, Tuple, Type

from symmat.errors import ShapeMismatch
from symmat.symbolic.expr import Constant, Expr, Symbol, check_dims

from .base import OwnedMatrix, as_node

_FIXED_TYPES: Dict[Tuple[int, int], Type["FixedMatrix"]] = {}


class FixedMatrix(OwnedMatrix):
    """Matrix whose shape is part of its type.

    Concrete types come from `fixed_matrix_type`, e.g. ``Vector3`` or
    ``SpatialMatrix``. Every operation that would change the shape of an
    instance (assignment of a differently shaped value, a non-square ``*=``,
    resize) raises `ShapeMismatch` and leaves the matrix untouched.

    Arithmetic between two fixed-size matrices yields a fixed-size matrix of the
    result shape; mixing in a `DynamicMatrix` or a view yields a `DynamicMatrix`.

    Example:
        >>> R = Matrix3.identity()
        >>> v = Vector3.from_array([1.0, 2.0, 3.0])
        >>> type(R * v).__name__
        'Vector3'
    """

    ROWS: int = None
    COLS: int = None

    def __init__(self, value=None):
        if self.ROWS is None:
            raise TypeError("FixedMatrix is abstract, use fixed_matrix_type(rows, cols)")
        if value is None:
            node = Constant.zeros(self.ROWS, self.COLS)
        else:
            node = as_node(value)
        if node.shape != (self.ROWS, self.COLS):
            raise ShapeMismatch(
                f"{type(self).__name__} needs shape {(self.ROWS, self.COLS)}, got {node.shape}"
            )
        super().__init__(node)

    def _replace(self, node: Expr):
        if node.shape != (self.ROWS, self.COLS):
            raise ShapeMismatch(
                f"{type(self).__name__} cannot take a value of shape {node.shape}"
            )
        super()._replace(node)

    @classmethod
    def zero(cls):
        return cls()

    @classmethod
    def identity(cls):
        if cls.ROWS != cls.COLS:
            raise ShapeMismatch(f"identity() needs a square type, {cls.__name__} is {cls.ROWS}x{cls.COLS}")
        return cls(Constant.eye(cls.ROWS))

    @classmethod
    def symbol(cls, name: str):
        return cls(Symbol(name, (cls.ROWS, cls.COLS)))

    @classmethod
    def from_array(cls, value):
        return cls(Constant(value))

    def resize(self, rows: int, cols: int = 1):
        if check_dims(rows, cols) != self.shape:
            raise ShapeMismatch(f"{type(self).__name__} cannot be resized to {(rows, cols)}")

    def to_dynamic(self):
        from .dynamic import DynamicMatrix

        return DynamicMatrix(self._node)


def _type_name(rows: int, cols: int) -> str:
    if cols == 1:
        return f"Vector{rows}"
    if rows == cols:
        return f"Matrix{rows}"
    return f"Matrix{rows}x{cols}"


def fixed_matrix_type(rows: int, cols: int = 1) -> Type[FixedMatrix]:
    """Return the (cached) fixed-size matrix type of shape ``(rows, cols)``."""
    key = check_dims(rows, cols)
    cls = _FIXED_TYPES.get(key)
    if cls is None:
        cls = type(_type_name(*key), (FixedMatrix,), {"ROWS": key[0], "COLS": key[1], "__module__": __name__})
        _FIXED_TYPES[key] = cls
    return cls


Vector3 = fixed_matrix_type(3, 1)
Matrix3 = fixed_matrix_type(3, 3)
SpatialVector = fixed_matrix_type(6, 1)
SpatialMatrix = fixed_matrix_type(6, 6)
