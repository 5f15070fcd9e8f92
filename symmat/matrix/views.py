"""Writable views into owning matrices.

A view names a rectangular region of its parent; it owns nothing. Reading a view
extracts that region from the parent's *current* node, and writing through it
replaces the parent's node with one where the region is substituted.

Each parent has a single view slot. Every `at`, `view` or item assignment on the
parent fills that slot with a new view, and the previous view becomes stale. A
stale view raises `StaleViewError` on any use instead of quietly acting on the
wrong element::

    v1 = M.at(0, 0)
    M.at(1, 1)            # v1 is now stale
    v1.assign(3.0)        # raises StaleViewError

For expressions that read several elements, use the read-only ``M[i, j]`` form,
which does not touch the view slot.
"""

from symmat.errors import StaleViewError
from symmat.symbolic.expr import Region, SetRegion

from .base import MatrixExpr, as_node


class SliceView(MatrixExpr):
    """Writable reference to a block of a parent matrix.

    Attributes:
        parent: The owning matrix
        row_slice: Row bounds of the block
        col_slice: Column bounds of the block
    """

    def __init__(self, parent, row_slice: slice, col_slice: slice):
        self._parent = parent
        self._rows = row_slice
        self._cols = col_slice

    @property
    def parent(self):
        return self._parent

    @property
    def row_slice(self) -> slice:
        return self._rows

    @property
    def col_slice(self) -> slice:
        return self._cols

    @property
    def is_valid(self) -> bool:
        """False once a later access on the parent replaced this view."""
        return self._parent._view is self

    def _check(self):
        if not self.is_valid:
            raise StaleViewError(
                f"{type(self).__name__} of [{self._rows.start}:{self._rows.stop}, "
                f"{self._cols.start}:{self._cols.stop}] is stale: a later access on "
                f"the same matrix replaced it"
            )

    @property
    def shape(self):
        return (self._rows.stop - self._rows.start, self._cols.stop - self._cols.start)

    @property
    def node(self):
        self._check()
        return Region(self._parent.node, self._rows, self._cols)

    @property
    def value(self):
        """Current contents of the region as an independent matrix."""
        from .dynamic import DynamicMatrix

        return DynamicMatrix(self.node)

    def read(self):
        return self.value

    def assign(self, value):
        """Write ``value`` into the region of the parent.

        ``value`` must have the shape of the region, or be 1x1 to fill it.
        """
        self._check()
        node = SetRegion(self._parent.node, self._rows, self._cols, as_node(value))
        self._parent._replace(node)
        return self

    def __iadd__(self, other):
        return self.assign(self + other)

    def __isub__(self, other):
        return self.assign(self - other)

    def __imul__(self, other):
        return self.assign(self * other)

    __imatmul__ = __imul__

    def __itruediv__(self, other):
        return self.assign(self / other)

    def __repr__(self):
        state = "" if self.is_valid else ", stale"
        return (
            f"{type(self).__name__}([{self._rows.start}:{self._rows.stop}, "
            f"{self._cols.start}:{self._cols.stop}]{state})"
        )


class ScalarView(SliceView):
    """Writable reference to a single element of a parent matrix."""

    @property
    def row(self) -> int:
        return self._rows.start

    @property
    def col(self) -> int:
        return self._cols.start

    def __float__(self):
        return float(self.evaluate()[0, 0])
