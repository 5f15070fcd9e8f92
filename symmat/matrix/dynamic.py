import logging

from symmat.symbolic.expr import Constant, Expr, Region, SetRegion, Symbol, check_dims

from .base import MatrixExpr, OwnedMatrix

logger = logging.getLogger(__name__)


class DynamicMatrix(OwnedMatrix):
    """Variable-size symbolic matrix with a dense-linear-algebra interface.

    DynamicMatrix lets algorithm code written for resizable numeric matrices run
    over the expression graph instead: element and block assignment, compound
    operators and `resize` all look like in-place edits, but each one builds a
    new immutable node and replaces the one held by the matrix.

    Copies share the graph; ``b = a.copy()`` followed by ``b[0, 0] = 1`` leaves
    ``a`` untouched because ``b`` gets a new node, not an edited one.

    Example:
        >>> M = DynamicMatrix.zero(3, 3)
        >>> M[1, 1] = 5
        >>> M.evaluate()
        array([[0., 0., 0.],
               [0., 5., 0.],
               [0., 0., 0.]])

        >>> q = DynamicMatrix.symbol("q", 2)
        >>> energy = q.T * q
        >>> energy.jacobian(q, {"q": [1.0, 2.0]})
        array([[2., 4.]])
    """

    def __init__(self, rows=1, cols: int = 1):
        """Create a zero matrix of shape ``(rows, cols)``, or wrap an existing node.

        Args:
            rows: Number of rows, or an `Expr` / matrix whose node is adopted as is
            cols: Number of columns, ignored when wrapping a node
        """
        if isinstance(rows, MatrixExpr):
            node = rows.node
        elif isinstance(rows, Expr):
            node = rows
        else:
            node = Constant.zeros(rows, cols)
        super().__init__(node)

    @classmethod
    def zero(cls, rows: int, cols: int = 1) -> "DynamicMatrix":
        return cls(Constant.zeros(rows, cols))

    @classmethod
    def identity(cls, size: int) -> "DynamicMatrix":
        return cls(Constant.eye(size))

    @classmethod
    def symbol(cls, name: str, rows: int, cols: int = 1) -> "DynamicMatrix":
        """Free symbolic matrix, bound by ``name`` at evaluation time."""
        return cls(Symbol(name, (rows, cols)))

    @classmethod
    def from_array(cls, value) -> "DynamicMatrix":
        """Constant matrix from a number, 1-D (column) or 2-D array."""
        return cls(Constant(value))

    def resize(self, rows: int, cols: int = 1):
        """Change the shape, keeping the top-left overlap and zero-filling the rest.

        Meant for the cold path: views obtained before the resize are not adjusted
        and fail with `InvalidAccess` if their region no longer fits.
        """
        rows, cols = check_dims(rows, cols)
        old = self._node
        keep_rows = min(rows, old.rows)
        keep_cols = min(cols, old.cols)

        result = Constant.zeros(rows, cols)
        if keep_rows and keep_cols:
            overlap = (slice(0, keep_rows), slice(0, keep_cols))
            result = SetRegion(result, *overlap, Region(old, *overlap))

        logger.debug(
            "Resized matrix %s -> %s keeping a %dx%d overlap",
            old.shape,
            (rows, cols),
            keep_rows,
            keep_cols,
        )
        self._replace(result)

    conservative_resize = resize
