"""Operator surface shared by every matrix-like type.

Every matrix-like value (dynamic matrices, fixed-size matrices, views into
either) exposes one capability: a ``node`` property returning the expression
graph node it currently stands for. Each arithmetic operator is implemented once
against that capability, so any combination of operand kinds works, including
raw ``Expr`` nodes, numpy arrays and Python numbers.

Result types follow one promotion rule: the result is a fixed-size matrix only
when every matrix operand is fixed-size (Python scalars do not count), and a
`DynamicMatrix` otherwise.

Shape rules:
    - ``+`` and ``-`` require identical shapes.
    - ``*`` (and its alias ``@``) is matrix multiplication, ``lhs.cols == rhs.rows``.
      A 1x1 operand on either side scales the other one instead.
    - ``/`` divides by a 1x1 value, or elementwise by an identically shaped matrix.

All violations raise `ShapeMismatch` before any operand is modified.
"""

import numpy as np

from symmat.errors import InvalidAccess, ShapeMismatch
from symmat.symbolic.expr import (
    Abs,
    Add,
    Constant,
    Div,
    Dot,
    Expr,
    Inverse,
    MatMul,
    Mul,
    Neg,
    Norm,
    Region,
    Sub,
    Transpose,
    region_slices,
)
from symmat.symbolic.hashing import is_equal


def as_node(value) -> Expr:
    """Return the expression node behind any matrix-like operand."""
    if isinstance(value, MatrixExpr):
        return value.node
    if isinstance(value, Expr):
        return value
    return Constant(value)


def _is_scalar_operand(value) -> bool:
    return np.isscalar(value) or (isinstance(value, np.ndarray) and value.ndim == 0)


def wrap(node: Expr, *operands):
    """Wrap a result node in the matrix type implied by its operands."""
    from .dynamic import DynamicMatrix
    from .fixed import FixedMatrix, fixed_matrix_type

    matrices = [op for op in operands if not _is_scalar_operand(op)]
    if matrices and all(isinstance(op, FixedMatrix) for op in matrices):
        return fixed_matrix_type(*node.shape)(node)
    return DynamicMatrix(node)


def _elementwise(op, name: str, lhs, rhs):
    L, R = as_node(lhs), as_node(rhs)
    if L.shape != R.shape:
        raise ShapeMismatch(f"{name} requires identical shapes, got {L.shape} and {R.shape}")
    return wrap(op(L, R), lhs, rhs)


def _product(lhs, rhs):
    L, R = as_node(lhs), as_node(rhs)
    if L.shape == (1, 1) or R.shape == (1, 1):
        node = Mul(L, R)
    elif L.cols != R.rows:
        raise ShapeMismatch(
            f"Matrix product requires lhs.cols == rhs.rows, got {L.shape} * {R.shape}"
        )
    else:
        node = MatMul(L, R)
    return wrap(node, lhs, rhs)


def _quotient(lhs, rhs):
    L, R = as_node(lhs), as_node(rhs)
    if R.shape != (1, 1) and R.shape != L.shape:
        raise ShapeMismatch(
            f"Division needs a 1x1 or identically shaped divisor, got {L.shape} / {R.shape}"
        )
    return wrap(Div(L, R), lhs, rhs)


def fabs(matrix):
    """Elementwise absolute value of any matrix-like operand."""
    return wrap(Abs(as_node(matrix)), matrix)


def block_slices(shape, row_start, col_start, row_count, col_count):
    """Bounds of the block at ``(row_start, col_start)`` of extent ``(row_count, col_count)``.

    Raises:
        InvalidAccess: If any argument is not a non-negative integer or the block
            does not fit inside ``shape``
    """
    for arg in (row_start, col_start, row_count, col_count):
        if isinstance(arg, (bool, np.bool_)) or not isinstance(arg, (int, np.integer)):
            raise InvalidAccess(f"Block bounds must be integers, got {arg!r}")
        if arg < 0:
            raise InvalidAccess(
                f"Block bounds must be non-negative, got "
                f"({row_start}, {col_start}, {row_count}, {col_count})"
            )
    if row_start + row_count > shape[0] or col_start + col_count > shape[1]:
        raise InvalidAccess(
            f"Block ({row_start}, {col_start}) of extent ({row_count}, {col_count}) "
            f"does not fit in shape {shape}"
        )
    return (
        slice(int(row_start), int(row_start + row_count)),
        slice(int(col_start), int(col_start + col_count)),
    )


class MatrixExpr:
    """Anything that stands for a matrix-shaped expression node.

    Subclasses only provide `node`; shape queries, arithmetic, structural
    comparison and numeric evaluation are implemented here.

    Note:
        ``==`` is structural equality of the symbolic expressions, not an
        elementwise numeric comparison, and returns a plain bool. Two numeric
        matrices compare equal when their entries are equal because constant
        subgraphs fold to canonical constants, but e.g. ``x - x`` does not equal a
        zero matrix. Use `evaluate` for numeric comparisons.
    """

    # Take precedence over numpy arrays in mixed operations
    __array_priority__ = 1000
    __array_ufunc__ = None

    # Mutable and compared by value
    __hash__ = None

    @property
    def node(self) -> Expr:
        raise NotImplementedError(f"{type(self).__name__} does not expose a node")

    @property
    def shape(self):
        return self.node.shape

    @property
    def rows(self) -> int:
        return self.shape[0]

    @property
    def cols(self) -> int:
        return self.shape[1]

    @property
    def size(self) -> int:
        rows, cols = self.shape
        return rows * cols

    def __add__(self, other):
        return _elementwise(Add, "Addition", self, other)

    def __radd__(self, other):
        return _elementwise(Add, "Addition", other, self)

    def __sub__(self, other):
        return _elementwise(Sub, "Subtraction", self, other)

    def __rsub__(self, other):
        return _elementwise(Sub, "Subtraction", other, self)

    def __mul__(self, other):
        return _product(self, other)

    def __rmul__(self, other):
        return _product(other, self)

    __matmul__ = __mul__
    __rmatmul__ = __rmul__

    def __truediv__(self, other):
        return _quotient(self, other)

    def __rtruediv__(self, other):
        return _quotient(other, self)

    def __neg__(self):
        return wrap(Neg(self.node), self)

    def __abs__(self):
        return fabs(self)

    def __eq__(self, other):
        try:
            other_node = as_node(other)
        except (TypeError, ShapeMismatch):
            return NotImplemented
        return is_equal(self.node, other_node)

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def transpose(self):
        return wrap(Transpose(self.node), self)

    @property
    def T(self):
        return self.transpose()

    def inverse(self):
        """Matrix inverse.

        Raises:
            ShapeMismatch: If the matrix is not square. A singular matrix is only
                detected when the result is evaluated.
        """
        return wrap(Inverse(self.node), self)

    def dot(self, other):
        """Inner product with another vector of the same length, as a 1x1 matrix."""
        return wrap(Dot(self.node, as_node(other)), self, other)

    def norm(self):
        """L1 norm (sum of absolute values) of all entries, as a 1x1 matrix.

        Warning:
            Kept with the L1 meaning existing dynamics code was written against,
            although ``norm`` conventionally means the Euclidean norm. Prefer
            `norm_1` / `norm_2` in new code.
        """
        return self.norm_1()

    def squared_norm(self):
        """L2 norm of all entries, as a 1x1 matrix.

        Warning:
            Despite its name this is the Euclidean norm itself, not its square.
            Kept for existing call sites; square `norm_2` explicitly if needed.
        """
        return self.norm_2()

    def norm_1(self):
        return wrap(Norm(self.node, ord=1), self)

    def norm_2(self):
        return wrap(Norm(self.node, ord=2), self)

    def evaluate(self, values=None, config=None) -> np.ndarray:
        """Numeric value of this matrix given values for its free symbols."""
        from symmat.symbolic.lower import evaluate

        return evaluate(self.node, values, config)

    def to_numpy(self) -> np.ndarray:
        return self.evaluate()

    def jacobian(self, wrt, values=None, config=None) -> np.ndarray:
        """Jacobian with respect to a symbol matrix, see `symmat.symbolic.lower.jacobian`."""
        from symmat.symbolic.lower import jacobian

        return jacobian(self.node, wrt, values, config)

    def __repr__(self):
        return f"{type(self).__name__}({self.rows}x{self.cols}, {self.node!r})"


class OwnedMatrix(MatrixExpr):
    """A matrix value that owns one expression node and one view slot.

    Nodes are immutable, so every mutation builds a complete replacement node and
    swaps it in. Views handed out by `at`, `view` and item assignment occupy the
    single view slot; requesting a new one makes the previous view stale.
    """

    def __init__(self, node: Expr):
        self._node = node
        self._view = None

    @property
    def node(self) -> Expr:
        return self._node

    def _replace(self, node: Expr):
        self._node = node

    def assign(self, value):
        """Replace the whole value of this matrix."""
        self._replace(as_node(value))
        return self

    def copy(self):
        # nodes are immutable, sharing is a copy
        return type(self)(self._node)

    def set_zero(self):
        self._replace(Constant.zeros(*self.shape))

    # Mutable access

    def _open(self, view):
        self._view = view
        return view

    def at(self, row: int, col: int = 0):
        """Writable view of element ``(row, col)``.

        The view stays usable until the next `at`/`view`/item assignment on this
        matrix; after that any use raises `StaleViewError`.
        """
        from .views import ScalarView

        if isinstance(row, slice) or isinstance(col, slice):
            raise InvalidAccess("at() takes integer indices, use view() for blocks")
        rows, cols = region_slices(self.shape, (row, col))
        return self._open(ScalarView(self, rows, cols))

    def view(self, row_start: int, col_start: int, row_count: int, col_count: int):
        """Writable view of a block, with the same validity window as `at`."""
        from .views import SliceView

        rows, cols = block_slices(self.shape, row_start, col_start, row_count, col_count)
        return self._open(SliceView(self, rows, cols))

    def __setitem__(self, key, value):
        from .views import ScalarView, SliceView

        rows, cols = region_slices(self.shape, key)
        single = rows.stop - rows.start == 1 and cols.stop - cols.start == 1
        view_cls = ScalarView if single else SliceView
        # read the value before the slot is replaced, it may be a view of this matrix
        node = as_node(value)
        self._open(view_cls(self, rows, cols)).assign(node)

    # Read-only access

    def __getitem__(self, key):
        from .dynamic import DynamicMatrix

        rows, cols = region_slices(self.shape, key)
        return DynamicMatrix(Region(self._node, rows, cols))

    def get(self, row: int, col: int = 0):
        """Element ``(row, col)`` as an independent 1x1 matrix."""
        return self[row, col]

    def block(self, row_start: int, col_start: int, row_count: int, col_count: int, fixed: bool = False):
        """Copy of the block at ``(row_start, col_start)`` of extent ``(row_count, col_count)``.

        Args:
            fixed: The extent is known up front; return a fixed-size matrix of that
                shape instead of a `DynamicMatrix`.

        Raises:
            InvalidAccess: If the block does not fit inside the matrix
        """
        from .dynamic import DynamicMatrix
        from .fixed import fixed_matrix_type

        rows, cols = block_slices(self.shape, row_start, col_start, row_count, col_count)
        node = Region(self._node, rows, cols)
        if fixed:
            return fixed_matrix_type(row_count, col_count)(node)
        return DynamicMatrix(node)

    # Compound assignment: the new node is fully built before the swap

    def _update(self, result):
        self._replace(result.node)
        return self

    def __iadd__(self, other):
        return self._update(self + other)

    def __isub__(self, other):
        return self._update(self - other)

    def __imul__(self, other):
        return self._update(self * other)

    __imatmul__ = __imul__

    def __itruediv__(self, other):
        return self._update(self / other)
