"""Linear algebra operations for symbolic expressions.

Key Operations:

- **Matrix Operations:**
    - `Transpose` - Matrix transposition
    - `Inverse` - Matrix inverse of a square expression
- **Reductions (1x1 results):**
    - `Norm` - L1 or L2 norm over all entries
    - `Dot` - Inner product of two vectors of equal length

Example:
    Kinetic energy of a body with symbolic velocity::

        from symmat.symbolic.expr import Constant, Dot, Symbol

        v = Symbol("v", shape=(3, 1))
        M = Constant(np.diag([2.0, 2.0, 2.0]))
        energy = 0.5 * Dot(v, M @ v)

Note:
    Inverse only checks squareness. Whether the matrix is actually invertible is
    unknown until the graph is evaluated numerically.
"""

import numpy as np

from symmat.errors import ShapeMismatch

from .expr import Constant, Expr, Shape, to_expr


class Transpose(Expr):
    """Matrix transpose: (m, n) -> (n, m).

    The canonicalization includes an optimization that eliminates double transposes:
    (A.T).T simplifies to A.

    Attributes:
        operand: Expression to transpose
    """

    def __init__(self, operand):
        self.operand = to_expr(operand)
        self._shape = self.check_shape()

    def children(self):
        return [self.operand]

    def _canonicalize(self) -> "Expr":
        operand = self.operand.canonicalize()

        # Double transpose optimization: (A.T).T = A
        if isinstance(operand, Transpose):
            return operand.operand
        if isinstance(operand, Constant):
            return Constant(operand.value.T)

        return Transpose(operand)

    def check_shape(self) -> Shape:
        rows, cols = self.operand.shape
        return (cols, rows)

    def __repr__(self):
        return f"({self.operand!r}).T"


class Inverse(Expr):
    """Matrix inverse of a square expression.

    Attributes:
        operand: Square expression to invert
    """

    def __init__(self, operand):
        self.operand = to_expr(operand)
        self._shape = self.check_shape()

    def children(self):
        return [self.operand]

    def _canonicalize(self) -> "Expr":
        operand = self.operand.canonicalize()
        if isinstance(operand, Constant) and operand.is_identity():
            return operand
        return Inverse(operand)

    def check_shape(self) -> Shape:
        rows, cols = self.operand.shape
        if rows != cols:
            raise ShapeMismatch(f"Inverse requires a square matrix, got shape {self.operand.shape}")
        return (rows, cols)

    def __repr__(self):
        return f"inv({self.operand!r})"


class Norm(Expr):
    """Vector norm over all entries of an expression, as a 1x1 result.

    Attributes:
        operand: Expression to compute the norm of
        ord: 1 (sum of absolute values) or 2 (Euclidean/Frobenius)

    Example:
        Define Norms:

            x = Symbol("x", shape=(3, 1))
            l1 = Norm(x, ord=1)
            l2 = Norm(x, ord=2)
    """

    def __init__(self, operand, ord=2):
        if ord not in (1, 2):
            raise ValueError(f"Norm order must be 1 or 2, got {ord!r}")
        self.operand = to_expr(operand)
        self.ord = ord
        self._shape = (1, 1)

    def children(self):
        return [self.operand]

    def _canonicalize(self) -> "Expr":
        """Canonicalize the operand but preserve the ord parameter."""
        operand = self.operand.canonicalize()
        if isinstance(operand, Constant):
            return Constant(np.linalg.norm(operand.value.ravel(), ord=self.ord))
        return Norm(operand, ord=self.ord)

    def check_shape(self) -> Shape:
        return (1, 1)

    def _hash_into(self, hasher):
        super()._hash_into(hasher)
        hasher.update(f"ord={self.ord}".encode())

    def __repr__(self):
        return f"norm({self.operand!r}, ord={self.ord!r})"


def is_vector(shape: Shape) -> bool:
    return shape[0] == 1 or shape[1] == 1


class Dot(Expr):
    """Inner product of two vectors with the same number of elements.

    Row and column vectors may be mixed; the result is 1x1.

    Attributes:
        left: First vector
        right: Second vector
    """

    def __init__(self, left, right):
        self.left = to_expr(left)
        self.right = to_expr(right)
        self._shape = self.check_shape()

    def children(self):
        return [self.left, self.right]

    def _canonicalize(self) -> "Expr":
        left = self.left.canonicalize()
        right = self.right.canonicalize()
        if isinstance(left, Constant) and isinstance(right, Constant):
            return Constant(np.dot(left.value.ravel(), right.value.ravel()))
        return Dot(left, right)

    def check_shape(self) -> Shape:
        L, R = self.left.shape, self.right.shape
        if not (is_vector(L) and is_vector(R)):
            raise ShapeMismatch(f"Dot requires vector operands, got {L} and {R}")
        if L[0] * L[1] != R[0] * R[1]:
            raise ShapeMismatch(f"Dot requires vectors of equal length, got {L} and {R}")
        return (1, 1)

    def __repr__(self):
        return f"dot({self.left!r}, {self.right!r})"
