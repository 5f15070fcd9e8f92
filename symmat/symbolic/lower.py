"""Lowering of expression graphs to executable JAX code.

The lowering process translates a symbolic graph into a function of the values
bound to its free symbols. That function can be evaluated, JIT-compiled, or
differentiated with JAX, which is how a dynamics algorithm written against
symbolic matrices gets its derivatives.

Architecture:
    Lowering follows a visitor pattern: `JaxLowerer` has one visitor per node type
    and `lower()` dispatches a node to it. Graphs are canonicalized before lowering
    so folded constants and eliminated identities never reach JAX.

Example:
    Evaluate and differentiate a small graph::

        from symmat.symbolic.expr import Symbol
        from symmat.symbolic.lower import evaluate, jacobian

        q = Symbol("q", shape=(2, 1))
        expr = q.T @ q
        evaluate(expr, {"q": [1.0, 2.0]})          # array([[5.]])
        jacobian(expr, q, {"q": [1.0, 2.0]})       # array([[2., 4.]])
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import jax
import jax.numpy as jnp
import numpy as np

from symmat.config import DEFAULT_CONFIG, EvaluationConfig
from symmat.errors import EvaluationError, ShapeMismatch, UnboundSymbolError
from symmat.symbolic.expr import Expr, Symbol, traverse

logger = logging.getLogger(__name__)


def lower(expr: Expr, lowerer: Any):
    """Dispatch an expression node to the appropriate lowerer backend.

    Args:
        expr: Symbolic expression to lower (any Expr subclass)
        lowerer: Backend lowerer instance (e.g., JaxLowerer)

    Returns:
        Backend-specific representation of the expression. For JaxLowerer, a
        callable with signature ``fn(env) -> array``.

    Raises:
        NotImplementedError: If the lowerer doesn't support the expression type
    """
    return lowerer.lower(expr)


def lower_to_jax(exprs: Union[Expr, Sequence[Expr]]) -> Union[Callable, List[Callable]]:
    """Lower symbolic expression(s) to JAX callable(s).

    - If ``exprs`` is a single Expr: returns a single callable ``fn(env)``
    - If ``exprs`` is a sequence: returns a list of callables sharing one lowerer
    """
    from symmat.symbolic.lowerers.jax import JaxLowerer

    jl = JaxLowerer()
    if isinstance(exprs, Expr):
        return lower(exprs, jl)
    return [lower(e, jl) for e in exprs]


def _as_expr(value) -> Expr:
    # matrices expose their current node
    node = getattr(value, "node", value)
    if not isinstance(node, Expr):
        raise TypeError(f"Expected an expression or matrix, got {type(value).__name__}")
    return node


def free_symbols(expr) -> List[Symbol]:
    """Return the distinct free symbols of a graph, ordered by name.

    Raises:
        ShapeMismatch: If one name is used with two different shapes
    """
    found: Dict[str, Symbol] = {}

    def visit(node):
        if isinstance(node, Symbol):
            seen = found.setdefault(node.name, node)
            if seen.shape != node.shape:
                raise ShapeMismatch(
                    f"Symbol {node.name!r} used with shapes {seen.shape} and {node.shape}"
                )

    traverse(_as_expr(expr), visit)
    return [found[name] for name in sorted(found)]


def _bind(symbols: Sequence[Symbol], values: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    values = values or {}
    env = {}
    for sym in symbols:
        if sym.name not in values:
            raise UnboundSymbolError(f"No value bound for symbol {sym.name!r}")
        val = np.asarray(values[sym.name], dtype=float)
        if val.ndim == 0:
            val = val.reshape(1, 1)
        elif val.ndim == 1:
            val = val.reshape(-1, 1)
        if val.shape != sym.shape:
            raise ShapeMismatch(
                f"Value for symbol {sym.name!r} has shape {val.shape}, expected {sym.shape}"
            )
        env[sym.name] = jnp.asarray(val)
    return env


def _prepare(config: EvaluationConfig):
    if config.enable_x64:
        jax.config.update("jax_enable_x64", True)


def compile_expr(expr, config: Optional[EvaluationConfig] = None) -> Callable[[Dict[str, Any]], Any]:
    """Lower ``expr`` (an Expr or matrix) to a function of a symbol environment.

    The returned callable takes a dict of symbol name to JAX array and returns the
    (rows, cols) result. With ``config.jit`` it is wrapped in ``jax.jit``.
    """
    config = config or DEFAULT_CONFIG
    _prepare(config)
    node = _as_expr(expr).canonicalize()
    fn = lower_to_jax(node)
    logger.debug("Lowered %s graph of shape %s to JAX (jit=%s)", type(node).__name__, node.shape, config.jit)
    if config.jit:
        fn = jax.jit(fn)
    return fn


def _check_finite(out: np.ndarray, config: EvaluationConfig, what: str):
    if config.check_finite and not np.all(np.isfinite(out)):
        logger.warning("Non-finite values while evaluating %s", what)
        raise EvaluationError(
            f"Evaluation of {what} produced non-finite values (singular inverse or NaN input?)"
        )


def evaluate(
    expr,
    values: Optional[Mapping[str, Any]] = None,
    config: Optional[EvaluationConfig] = None,
) -> np.ndarray:
    """Numerically evaluate ``expr`` with the given symbol values.

    Args:
        expr: Expression or matrix to evaluate
        values: Mapping of symbol name to numeric value (scalars, 1-D columns or 2-D)
        config: Evaluation settings, defaults to `DEFAULT_CONFIG`

    Returns:
        np.ndarray: The (rows, cols) numeric result

    Raises:
        UnboundSymbolError: If a free symbol has no value
        EvaluationError: If ``config.check_finite`` is set and the result is not finite
    """
    config = config or DEFAULT_CONFIG
    _prepare(config)
    node = _as_expr(expr)
    env = _bind(free_symbols(node), values)
    out = np.array(compile_expr(node, config)(env))
    _check_finite(out, config, "expression")
    return out


def jacobian(
    expr,
    wrt,
    values: Optional[Mapping[str, Any]] = None,
    config: Optional[EvaluationConfig] = None,
) -> np.ndarray:
    """Jacobian of ``expr`` with respect to the symbol ``wrt``.

    Both the output and the symbol are flattened row-major, so the result has shape
    ``(expr.rows * expr.cols, wrt.rows * wrt.cols)``.

    Args:
        expr: Expression or matrix to differentiate
        wrt: A Symbol, or a matrix whose node is a Symbol
        values: Mapping of symbol name to numeric value, must include ``wrt``
        config: Evaluation settings, defaults to `DEFAULT_CONFIG`
    """
    config = config or DEFAULT_CONFIG
    node = _as_expr(expr)
    sym = _as_expr(wrt)
    if not isinstance(sym, Symbol):
        raise TypeError(f"Can only differentiate with respect to a Symbol, got {type(sym).__name__}")
    symbols = {s.name: s for s in free_symbols(node)}
    symbols.setdefault(sym.name, sym)
    _prepare(config)
    env = _bind(list(symbols.values()), values)
    fn = compile_expr(node, config)

    def f(v):
        return fn({**env, sym.name: v})

    jac = np.array(jax.jacfwd(f)(env[sym.name]))
    jac = jac.reshape(node.rows * node.cols, sym.rows * sym.cols)
    _check_finite(jac, config, "jacobian")
    return jac
