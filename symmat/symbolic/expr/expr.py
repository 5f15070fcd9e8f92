import functools
from typing import Callable, Dict, List, Optional, Tuple, Union

import numpy as np

from symmat.errors import InvalidAccess, ShapeMismatch

Shape = Tuple[int, int]


def _defer_to_matrices(op):
    """Return NotImplemented for operands that wrap a node, so their reflected op runs."""

    @functools.wraps(op)
    def wrapper(self, other):
        if not isinstance(other, Expr) and isinstance(getattr(other, "node", None), Expr):
            return NotImplemented
        return op(self, other)

    return wrapper


class Expr:
    """Base class for nodes of the symbolic expression graph.

    Expr is the foundation of the expression graph that backs symbolic matrices.
    Every node is an immutable, two-dimensional value: its shape ``(rows, cols)``
    is computed and validated once, when the node is built, so a malformed graph
    can never be constructed. Expressions support:

    - Arithmetic operations: +, -, *, /, @ (NumPy semantics, ``*`` is elementwise)
    - Region extraction: [] with integer or unit-step slice keys
    - Transposition: .T property
    - Canonicalization (algebraic simplification) used by structural equality

    All Expr subclasses implement a tree structure where each node can have child
    expressions accessed via the children() method. Children are shared, not
    copied, so a graph is in general a DAG.

    Attributes:
        __array_priority__: Priority for operations with numpy arrays (set to 1000)

    Note:
        Nodes must never be mutated after construction. Shapes, canonical forms and
        structural digests are cached on the node.
    """

    # Give Expr objects higher priority than numpy arrays in operations
    __array_priority__ = 1000

    _shape = None
    _canonical = None
    _digest = None

    @_defer_to_matrices
    def __add__(self, other):
        return Add(self, to_expr(other))

    @_defer_to_matrices
    def __radd__(self, other):
        return Add(to_expr(other), self)

    @_defer_to_matrices
    def __sub__(self, other):
        return Sub(self, to_expr(other))

    @_defer_to_matrices
    def __rsub__(self, other):
        # e.g. 5 - a  ⇒ Sub(Constant(5), a)
        return Sub(to_expr(other), self)

    @_defer_to_matrices
    def __truediv__(self, other):
        return Div(self, to_expr(other))

    @_defer_to_matrices
    def __rtruediv__(self, other):
        return Div(to_expr(other), self)

    @_defer_to_matrices
    def __mul__(self, other):
        return Mul(self, to_expr(other))

    @_defer_to_matrices
    def __rmul__(self, other):
        return Mul(to_expr(other), self)

    @_defer_to_matrices
    def __matmul__(self, other):
        return MatMul(self, to_expr(other))

    @_defer_to_matrices
    def __rmatmul__(self, other):
        return MatMul(to_expr(other), self)

    def __neg__(self):
        return Neg(self)

    def __getitem__(self, key):
        rows, cols = region_slices(self.shape, key)
        return Region(self, rows, cols)

    @property
    def T(self):
        """Transpose property for matrix expressions.

        Returns:
            Transpose: A Transpose expression wrapping this expression

        Example:
            >>> A = Symbol("A", shape=(3, 4))
            >>> A_T = A.T  # Creates Transpose(A), result shape (4, 3)
        """
        from .linalg import Transpose

        return Transpose(self)

    @property
    def shape(self) -> Shape:
        """The ``(rows, cols)`` shape of this node."""
        if self._shape is None:
            self._shape = self.check_shape()
        return self._shape

    @property
    def rows(self) -> int:
        return self.shape[0]

    @property
    def cols(self) -> int:
        return self.shape[1]

    def children(self):
        """Return the child expressions of this node.

        Returns:
            list: List of child Expr objects. Empty list for leaf nodes.
        """
        return []

    def canonicalize(self) -> "Expr":
        """Return a canonical (simplified) form of this expression.

        Canonicalization performs algebraic simplifications such as:
        - Constant folding (e.g., 2 + 3 → 5)
        - Identity elimination (e.g., x + 0 → x, A @ I → A)
        - Flattening nested operations (e.g., Add(Add(a, b), c) → Add(a, b, c))
        - Region rewrites (e.g., reading back a region that was just written)

        The result is cached on the node, so repeated calls on a shared subgraph
        are cheap. Nodes are canonicalized children first from an explicit stack,
        so arbitrarily deep graphs (e.g. a long chain of element writes) never
        recurse.

        Returns:
            Expr: A canonical version of this expression
        """
        if self._canonical is None:
            for node in post_order(self, prune=_is_canonicalized):
                canonical = node._canonicalize()
                # canonical forms are fixed points
                if canonical._canonical is None:
                    canonical._canonical = canonical
                node._canonical = canonical
        return self._canonical

    def _canonicalize(self) -> "Expr":
        raise NotImplementedError(f"canonicalize() not implemented for {self.__class__.__name__}")

    def check_shape(self) -> Shape:
        """Compute and validate the shape of this expression.

        Child shapes are already known (they were validated when the children were
        built), so this only checks the rule of this node.

        Returns:
            tuple: The ``(rows, cols)`` shape of this expression.

        Raises:
            NotImplementedError: If shape checking is not implemented for this node type
            ShapeMismatch: If the operand shapes are incompatible
            InvalidAccess: If a region lies outside its base
        """
        raise NotImplementedError(f"check_shape() not implemented for {self.__class__.__name__}")

    def _hash_into(self, hasher):
        """Feed the structure of this node into a hashlib hasher."""
        from symmat.symbolic.hashing import structural_hash

        hasher.update(self.__class__.__name__.encode())
        hasher.update(str(self.shape).encode())
        for child in self.children():
            hasher.update(structural_hash(child).encode())

    def pretty(self, indent=0):
        """Generate a pretty-printed string representation of the expression tree.

        Args:
            indent: Current indentation level (default: 0)

        Returns:
            str: Multi-line string representation of the expression tree

        Example:
            >>> expr = (x + y) @ z
            >>> print(expr.pretty())
            MatMul
              Add
                Symbol
                Symbol
              Symbol
        """
        pad = "  " * indent
        lines = [f"{pad}{self.__class__.__name__}"]
        for child in self.children():
            lines.append(child.pretty(indent + 1))
        return "\n".join(lines)


def check_dims(rows: int, cols: int) -> Shape:
    """Validate a requested ``(rows, cols)`` shape."""
    if isinstance(rows, bool) or isinstance(cols, bool):
        raise ShapeMismatch(f"Matrix dimensions must be integers, got ({rows!r}, {cols!r})")
    try:
        r, c = int(rows), int(cols)
    except (TypeError, ValueError) as e:
        raise ShapeMismatch(f"Matrix dimensions must be integers, got ({rows!r}, {cols!r})") from e
    if r != rows or c != cols or r < 0 or c < 0:
        raise ShapeMismatch(f"Matrix dimensions must be non-negative integers, got ({rows!r}, {cols!r})")
    return r, c


def _axis_slice(key, dim: int, axis: str) -> slice:
    if isinstance(key, slice):
        if key.step not in (None, 1):
            raise InvalidAccess(f"Only unit-step {axis} slices are supported, got step {key.step}")
        start = 0 if key.start is None else key.start
        stop = dim if key.stop is None else key.stop
        if start < 0 or stop < 0:
            raise InvalidAccess(f"Negative {axis} bounds are not supported: {key}")
        if start > stop or stop > dim:
            raise InvalidAccess(f"{axis} slice {start}:{stop} out of range for {dim} {axis}s")
        return slice(start, stop)
    if isinstance(key, (bool, np.bool_)) or not isinstance(key, (int, np.integer)):
        raise InvalidAccess(f"{axis} index must be an integer or slice, got {key!r}")
    if key < 0 or key >= dim:
        raise InvalidAccess(f"{axis} index {key} out of range for {dim} {axis}s")
    return slice(int(key), int(key) + 1)


def region_slices(shape: Shape, key) -> Tuple[slice, slice]:
    """Normalize an indexing key into explicit ``(row_slice, col_slice)`` bounds.

    A bare index ``i`` addresses ``(i, 0)``. Integers select a single row/column,
    slices must have unit step and non-negative bounds.

    Raises:
        InvalidAccess: If the key is malformed or outside ``shape``
    """
    if not isinstance(key, tuple):
        key = (key, 0)
    if len(key) != 2:
        raise InvalidAccess(f"Expected a (row, col) key, got {key!r}")
    rows, cols = shape
    return _axis_slice(key[0], rows, "row"), _axis_slice(key[1], cols, "column")


def region_shape(rows: slice, cols: slice) -> Shape:
    return rows.stop - rows.start, cols.stop - cols.start


def _check_region(shape: Shape, rows: slice, cols: slice):
    if not (0 <= rows.start <= rows.stop <= shape[0] and 0 <= cols.start <= cols.stop <= shape[1]):
        raise InvalidAccess(
            f"Region [{rows.start}:{rows.stop}, {cols.start}:{cols.stop}] out of range "
            f"for shape {shape}"
        )


def _same_region(a_rows, a_cols, b_rows, b_cols) -> bool:
    return (a_rows.start, a_rows.stop, a_cols.start, a_cols.stop) == (
        b_rows.start,
        b_rows.stop,
        b_cols.start,
        b_cols.stop,
    )


def _disjoint(a_rows, a_cols, b_rows, b_cols) -> bool:
    return (
        a_rows.stop <= b_rows.start
        or b_rows.stop <= a_rows.start
        or a_cols.stop <= b_cols.start
        or b_cols.stop <= a_cols.start
    )


def _contains(outer_rows, outer_cols, inner_rows, inner_cols) -> bool:
    return (
        outer_rows.start <= inner_rows.start
        and inner_rows.stop <= outer_rows.stop
        and outer_cols.start <= inner_cols.start
        and inner_cols.stop <= outer_cols.stop
    )


def _broadcast(shapes, op: str) -> Shape:
    """Elementwise shape rule: identical shapes, or a 1x1 operand broadcast."""
    out = (1, 1)
    for s in shapes:
        if s == (1, 1):
            continue
        if out == (1, 1):
            out = s
        elif s != out:
            raise ShapeMismatch(f"{op} shapes incompatible: {list(shapes)}")
    return out


class Leaf(Expr):
    """
    Base class for leaf nodes (terminal expressions) in the expression graph.

    Attributes:
        name (str): Name identifier for the leaf node
    """

    def __init__(self, name: str, shape: Shape = (1, 1)):
        """Initialize a Leaf node.

        Args:
            name (str): Name identifier for the leaf node
            shape (tuple): ``(rows, cols)`` shape of the leaf node
        """
        super().__init__()
        if len(shape) != 2:
            raise ShapeMismatch(f"Leaf {name!r} needs a (rows, cols) shape, got {shape}")
        self.name = name
        self._shape = check_dims(*shape)

    def _canonicalize(self) -> "Expr":
        return self

    def check_shape(self) -> Shape:
        return self._shape

    def _hash_into(self, hasher):
        super()._hash_into(hasher)
        hasher.update(self.name.encode())

    def __repr__(self):
        return f"{self.__class__.__name__}('{self.name}', shape={self.shape})"


class Symbol(Leaf):
    """Free symbolic variable.

    Symbols are bound to numeric values by name when a graph is evaluated, and are
    the variables that :func:`symmat.symbolic.lower.jacobian` differentiates with
    respect to. Two symbols with the same name and shape are structurally equal.

    Example:
        q = Symbol("q", shape=(6, 1))
    """

    def __repr__(self):
        return f"Sym('{self.name}')"


def to_expr(x: Union[Expr, float, int, np.ndarray]) -> Expr:
    """Convert a value to an Expr if it is not already one.

    Numeric scalars and arrays are wrapped as Constant expressions, Expr instances
    are returned unchanged.

    Example:
        >>> to_expr(5.0)  # Returns Constant(5.0), shape (1, 1)
        >>> to_expr(sym)  # Returns sym unchanged
    """
    return x if isinstance(x, Expr) else Constant(x)


def traverse(expr: Expr, visit: Callable[[Expr], None]):
    """Depth-first traversal of an expression graph.

    Applies ``visit`` to every distinct node once, parents before children.
    Shared subgraphs are visited a single time.
    """
    seen = set()
    stack = [expr]
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        visit(node)
        stack.extend(reversed(node.children()))


def post_order(expr: Expr, prune: Optional[Callable[[Expr], bool]] = None) -> List[Expr]:
    """Return the distinct nodes of ``expr``, every child before its parents.

    The root comes last. Nodes for which ``prune`` returns True are left out
    together with everything only reachable through them.
    """
    if prune is not None and prune(expr):
        return []
    order = []
    seen = {id(expr)}
    stack = [(expr, iter(expr.children()))]
    while stack:
        node, children = stack[-1]
        for child in children:
            if id(child) in seen or (prune is not None and prune(child)):
                continue
            seen.add(id(child))
            stack.append((child, iter(child.children())))
            break
        else:
            stack.pop()
            order.append(node)
    return order


def _is_canonicalized(node: Expr) -> bool:
    return node._canonical is not None


Weighted = Tuple[Expr, Union[int, float]]


def _group_repeated(parts: List[Weighted]) -> List[Weighted]:
    """Sum the weights of structurally identical parts, keeping first-seen order."""
    from symmat.symbolic.hashing import structural_hash

    totals: Dict[str, List] = {}
    for part, weight in parts:
        entry = totals.setdefault(structural_hash(part), [part, 0])
        entry[1] += weight
    return [(part, weight) for part, weight in totals.values()]


def _split_coefficient(term: Expr) -> Weighted:
    """Split ``t * c`` with a trailing 1x1 constant ``c`` into ``(t, c)``."""
    if isinstance(term, Mul) and len(term.factors) > 1:
        coeff = term.factors[-1]
        if isinstance(coeff, Constant) and coeff.shape == (1, 1):
            rest = term.factors[:-1]
            base = rest[0] if len(rest) == 1 else Mul(*rest).canonicalize()
            return base, float(coeff.value[0, 0])
    return term, 1


class Constant(Expr):
    """Constant value expression.

    Values are stored as read-only float64 arrays of rank two: scalars become 1x1
    and vectors become columns.

    Attributes:
        value: The (rows, cols) numpy array this node stands for

    Example:
        >>> c1 = Constant(5.0)        # shape (1, 1)
        >>> c2 = Constant([1, 2, 3])  # shape (3, 1)
    """

    def __init__(self, value):
        try:
            value = np.array(value, dtype=float)
        except (TypeError, ValueError) as e:
            raise TypeError(f"Cannot build a Constant from {value!r}") from e
        if value.ndim == 0:
            value = value.reshape(1, 1)
        elif value.ndim == 1:
            value = value.reshape(-1, 1)
        elif value.ndim > 2:
            raise ShapeMismatch(f"Constant must be at most 2-D, got shape {value.shape}")
        # -0.0 and 0.0 hash identically
        value = value + 0.0
        value.flags.writeable = False
        self.value = value
        self._shape = value.shape

    @classmethod
    def zeros(cls, rows: int, cols: int = 1) -> "Constant":
        return cls(np.zeros(check_dims(rows, cols)))

    @classmethod
    def eye(cls, size: int) -> "Constant":
        n, _ = check_dims(size, size)
        return cls(np.eye(n))

    def is_zero(self) -> bool:
        return not np.any(self.value)

    def is_one(self) -> bool:
        return bool(np.all(self.value == 1))

    def is_identity(self) -> bool:
        r, c = self.shape
        return r == c and np.array_equal(self.value, np.eye(r))

    def _canonicalize(self) -> "Expr":
        return self

    def check_shape(self) -> Shape:
        return self.value.shape

    def _hash_into(self, hasher):
        super()._hash_into(hasher)
        hasher.update(np.ascontiguousarray(self.value).tobytes())

    def __repr__(self):
        if self.value.size == 1:
            return f"Const({self.value.item()!r})"
        return f"Const({self.value.tolist()!r})"


class Add(Expr):
    """Elementwise addition of two or more expressions.

    Operands must share one shape; a 1x1 operand is broadcast.

    Attributes:
        terms: List of expression operands to add together
    """

    def __init__(self, *args):
        if len(args) < 2:
            raise ValueError("Add requires two or more operands")
        self.terms = [to_expr(a) for a in args]
        self._shape = self.check_shape()

    def children(self):
        return list(self.terms)

    def _canonicalize(self) -> "Expr":
        """Canonicalize addition: flatten, fold constants, eliminate zeros."""
        terms = []
        const_vals = []

        for t in self.terms:
            c = t.canonicalize()
            for part in c.terms if isinstance(c, Add) else [c]:
                if isinstance(part, Constant):
                    const_vals.append(part.value)
                else:
                    terms.append(part)

        # x + 2 * x + y -> 3 * x + y
        terms = [
            term if weight == 1 else Mul(term, Constant(float(weight))).canonicalize()
            for term, weight in _group_repeated([_split_coefficient(t) for t in terms])
        ]

        if const_vals:
            total = sum(const_vals)
            # A zero term can only go if another term still carries the result shape
            covered = any(t.shape == self.shape for t in terms)
            if np.any(total) or not covered:
                terms.append(Constant(total))

        if len(terms) == 1:
            return terms[0]
        return Add(*terms)

    def check_shape(self) -> Shape:
        return _broadcast([t.shape for t in self.terms], "Add")

    def __repr__(self):
        inner = " + ".join(repr(e) for e in self.terms)
        return f"({inner})"


class Sub(Expr):
    """Elementwise subtraction (left - right).

    Attributes:
        left: Left-hand side expression (minuend)
        right: Right-hand side expression (subtrahend)
    """

    def __init__(self, left, right):
        self.left = to_expr(left)
        self.right = to_expr(right)
        self._shape = self.check_shape()

    def children(self):
        return [self.left, self.right]

    def _canonicalize(self) -> "Expr":
        """Canonicalize subtraction: fold constants, drop a zero subtrahend."""
        left = self.left.canonicalize()
        right = self.right.canonicalize()
        if isinstance(left, Constant) and isinstance(right, Constant):
            return Constant(left.value - right.value)
        if isinstance(right, Constant) and right.is_zero() and left.shape == self.shape:
            return left
        return Sub(left, right)

    def check_shape(self) -> Shape:
        return _broadcast([self.left.shape, self.right.shape], "Sub")

    def __repr__(self):
        return f"({self.left!r} - {self.right!r})"


class Mul(Expr):
    """Elementwise multiplication of two or more expressions.

    Also used for scaling a matrix by a 1x1 factor. For matrix multiplication,
    use MatMul or the @ operator.

    Attributes:
        factors: List of expression operands to multiply together
    """

    def __init__(self, *args):
        if len(args) < 2:
            raise ValueError("Mul requires two or more operands")
        self.factors = [to_expr(a) for a in args]
        self._shape = self.check_shape()

    def children(self):
        return list(self.factors)

    def _canonicalize(self) -> "Expr":
        """Canonicalize multiplication: flatten, fold constants, eliminate ones."""
        factors = []
        const_vals = []

        for f in self.factors:
            c = f.canonicalize()
            for part in c.factors if isinstance(c, Mul) else [c]:
                if isinstance(part, Constant):
                    const_vals.append(part.value)
                else:
                    factors.append(part)

        # s * s**2 -> s**3
        factors = [
            factor if count == 1 else Power(factor, count).canonicalize()
            for factor, count in _group_repeated(
                [(f.base, f.exponent) if isinstance(f, Power) else (f, 1) for f in factors]
            )
        ]

        if const_vals:
            prod = const_vals[0]
            for val in const_vals[1:]:
                prod = prod * val
            covered = any(f.shape == self.shape for f in factors)
            if not np.all(prod == 1) or not covered:
                factors.append(Constant(prod))

        if len(factors) == 1:
            return factors[0]
        return Mul(*factors)

    def check_shape(self) -> Shape:
        return _broadcast([f.shape for f in self.factors], "Mul")

    def __repr__(self):
        inner = " * ".join(repr(e) for e in self.factors)
        return f"({inner})"


class Power(Expr):
    """Elementwise power with a positive integer exponent.

    Produced by canonicalization when a product repeats a factor, ``x * x`` becomes
    ``Power(x, 2)``.

    Attributes:
        base: Expression raised to the power
        exponent: Positive integer exponent
    """

    def __init__(self, base, exponent: int):
        if isinstance(exponent, bool) or not isinstance(exponent, (int, np.integer)) or exponent < 1:
            raise ValueError(f"Power exponent must be a positive integer, got {exponent!r}")
        self.base = to_expr(base)
        self.exponent = int(exponent)
        self._shape = self.base.shape

    def children(self):
        return [self.base]

    def _canonicalize(self) -> "Expr":
        base = self.base.canonicalize()
        exponent = self.exponent
        if isinstance(base, Power):
            base, exponent = base.base, base.exponent * exponent
        if exponent == 1:
            return base
        if isinstance(base, Constant):
            return Constant(base.value**exponent)
        return Power(base, exponent)

    def check_shape(self) -> Shape:
        return self.base.shape

    def _hash_into(self, hasher):
        super()._hash_into(hasher)
        hasher.update(f"**{self.exponent}".encode())

    def __repr__(self):
        return f"({self.base!r})**{self.exponent}"


class Div(Expr):
    """Elementwise division (left / right).

    Attributes:
        left: Numerator expression
        right: Denominator expression
    """

    def __init__(self, left, right):
        self.left = to_expr(left)
        self.right = to_expr(right)
        self._shape = self.check_shape()

    def children(self):
        return [self.left, self.right]

    def _canonicalize(self) -> "Expr":
        lhs = self.left.canonicalize()
        rhs = self.right.canonicalize()
        if isinstance(lhs, Constant) and isinstance(rhs, Constant):
            with np.errstate(divide="ignore", invalid="ignore"):
                return Constant(lhs.value / rhs.value)
        return Div(lhs, rhs)

    def check_shape(self) -> Shape:
        return _broadcast([self.left.shape, self.right.shape], "Div")

    def __repr__(self):
        return f"({self.left!r} / {self.right!r})"


class MatMul(Expr):
    """Matrix multiplication: (m, n) @ (n, k) -> (m, k).

    Attributes:
        left: Left-hand side expression
        right: Right-hand side expression
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
            return Constant(left.value @ right.value)
        if isinstance(right, Constant) and right.is_identity():
            return left
        if isinstance(left, Constant) and left.is_identity():
            return right
        return MatMul(left, right)

    def check_shape(self) -> Shape:
        L, R = self.left.shape, self.right.shape
        if L[1] != R[0]:
            raise ShapeMismatch(f"MatMul incompatible: {L} @ {R}")
        return (L[0], R[1])

    def __repr__(self):
        return f"({self.left!r} @ {self.right!r})"


class Neg(Expr):
    """Elementwise negation.

    Attributes:
        operand: Expression to negate
    """

    def __init__(self, operand):
        self.operand = to_expr(operand)
        self._shape = self.operand.shape

    def children(self):
        return [self.operand]

    def _canonicalize(self) -> "Expr":
        o = self.operand.canonicalize()
        if isinstance(o, Constant):
            return Constant(-o.value)
        if isinstance(o, Neg):
            return o.operand
        return Neg(o)

    def check_shape(self) -> Shape:
        return self.operand.shape

    def __repr__(self):
        return f"(-{self.operand!r})"


class Region(Expr):
    """Extraction of a rectangular sub-block of an expression.

    Attributes:
        base: Expression to read from
        row_slice: Unit-step row bounds
        col_slice: Unit-step column bounds

    Example:
        >>> A = Symbol("A", shape=(4, 4))
        >>> top_left = A[0:2, 0:2]  # Creates Region(A, slice(0, 2), slice(0, 2))
    """

    def __init__(self, base: Expr, row_slice: slice, col_slice: slice):
        self.base = to_expr(base)
        self.row_slice = row_slice
        self.col_slice = col_slice
        self._shape = self.check_shape()

    def children(self):
        return [self.base]

    def _canonicalize(self) -> "Expr":
        base = self.base.canonicalize()
        rs, cs = self.row_slice, self.col_slice

        # walk down through compositions and earlier writes without recursing
        while True:
            if _same_region(rs, cs, slice(0, base.rows), slice(0, base.cols)):
                return base
            if isinstance(base, Constant):
                return Constant(base.value[rs, cs])
            if isinstance(base, Region):
                r0, c0 = base.row_slice.start, base.col_slice.start
                rs = slice(r0 + rs.start, r0 + rs.stop)
                cs = slice(c0 + cs.start, c0 + cs.stop)
                base = base.base
                continue
            if isinstance(base, SetRegion):
                ws, wc = base.row_slice, base.col_slice
                if _disjoint(rs, cs, ws, wc):
                    base = base.base
                    continue
                if _contains(ws, wc, rs, cs):
                    # reading (part of) what was just written
                    if base.value.shape != (1, 1):
                        rs = slice(rs.start - ws.start, rs.stop - ws.start)
                        cs = slice(cs.start - wc.start, cs.stop - wc.start)
                        base = base.value
                        continue
                    if self.shape == (1, 1):
                        return base.value
            return Region(base, rs, cs)

    def check_shape(self) -> Shape:
        _check_region(self.base.shape, self.row_slice, self.col_slice)
        return region_shape(self.row_slice, self.col_slice)

    def _hash_into(self, hasher):
        super()._hash_into(hasher)
        rs, cs = self.row_slice, self.col_slice
        hasher.update(f"[{rs.start}:{rs.stop},{cs.start}:{cs.stop}]".encode())

    def __repr__(self):
        rs, cs = self.row_slice, self.col_slice
        return f"{self.base!r}[{rs.start}:{rs.stop}, {cs.start}:{cs.stop}]"


class SetRegion(Expr):
    """Copy of ``base`` with a rectangular sub-block replaced by ``value``.

    This is how assignment into an immutable graph is expressed: the result has the
    shape of ``base``. ``value`` must have the shape of the region, or be 1x1 in
    which case it fills the whole region.

    Attributes:
        base: Expression being overwritten
        row_slice: Unit-step row bounds of the replaced block
        col_slice: Unit-step column bounds of the replaced block
        value: Expression written into the block
    """

    def __init__(self, base: Expr, row_slice: slice, col_slice: slice, value):
        self.base = to_expr(base)
        self.row_slice = row_slice
        self.col_slice = col_slice
        self.value = to_expr(value)
        self._shape = self.check_shape()

    def children(self):
        return [self.base, self.value]

    def _canonicalize(self) -> "Expr":
        base = self.base.canonicalize()
        value = self.value.canonicalize()
        rs, cs = self.row_slice, self.col_slice

        # earlier writes that this one completely overwrites
        while isinstance(base, SetRegion) and _contains(rs, cs, base.row_slice, base.col_slice):
            base = base.base

        if _same_region(rs, cs, slice(0, base.rows), slice(0, base.cols)) and value.shape == base.shape:
            return value
        if isinstance(base, Constant) and isinstance(value, Constant):
            out = np.array(base.value)
            out[rs, cs] = value.value
            return Constant(out)
        return SetRegion(base, rs, cs, value)

    def check_shape(self) -> Shape:
        _check_region(self.base.shape, self.row_slice, self.col_slice)
        target = region_shape(self.row_slice, self.col_slice)
        if self.value.shape not in (target, (1, 1)):
            raise ShapeMismatch(
                f"Cannot assign a {self.value.shape} value to a {target} region"
            )
        return self.base.shape

    def _hash_into(self, hasher):
        super()._hash_into(hasher)
        rs, cs = self.row_slice, self.col_slice
        hasher.update(f"[{rs.start}:{rs.stop},{cs.start}:{cs.stop}]".encode())

    def __repr__(self):
        rs, cs = self.row_slice, self.col_slice
        return f"set({self.base!r}[{rs.start}:{rs.stop}, {cs.start}:{cs.stop}] = {self.value!r})"
