from typing import Any, Callable, Dict, List, Type

import jax.numpy as jnp

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
    Power,
    Region,
    SetRegion,
    Sub,
    Symbol,
    Transpose,
    post_order,
)

_JAX_VISITORS: Dict[Type[Expr], Callable] = {}


def visitor(expr_cls: Type[Expr]):
    def register(fn: Callable[[Any, Expr], Callable]):
        _JAX_VISITORS[expr_cls] = fn
        return fn

    return register


def dispatch(lowerer: Any, expr: Expr):
    fn = _JAX_VISITORS.get(type(expr))
    if fn is None:
        raise NotImplementedError(
            f"{lowerer.__class__.__name__!r} has no visitor for {type(expr).__name__}"
        )
    return fn(lowerer, expr)


class JaxLowerer:
    """Lowers an expression graph into a JAX callable ``fn(env) -> array``.

    ``env`` maps symbol names to (rows, cols) arrays.

    Each visitor returns a step ``op(env, args)`` computing one node from the
    values of its children (``args``, in ``children()`` order). A lowered graph
    runs its steps once per call in post-order, storing every node's value, so a
    shared subgraph is computed once per evaluation and graph depth never turns
    into Python call depth.
    """

    def __init__(self):
        self._ops: Dict[int, Callable] = {}
        self._lowered: Dict[int, Callable] = {}
        # keeps lowered nodes alive so their ids stay unique
        self._nodes: List[Expr] = []

    def _op(self, node: Expr) -> Callable:
        op = self._ops.get(id(node))
        if op is None:
            op = dispatch(self, node)
            self._ops[id(node)] = op
            self._nodes.append(node)
        return op

    def lower(self, expr: Expr) -> Callable:
        fn = self._lowered.get(id(expr))
        if fn is not None:
            return fn

        nodes = post_order(expr)
        position = {id(node): i for i, node in enumerate(nodes)}
        steps = [
            (self._op(node), [position[id(child)] for child in node.children()])
            for node in nodes
        ]

        def fn(env):
            values = []
            for op, args in steps:
                values.append(op(env, [values[i] for i in args]))
            return values[-1]

        self._lowered[id(expr)] = fn
        self._nodes.append(expr)
        return fn

    @visitor(Constant)
    def _visit_constant(self, node: Constant):
        # capture the constant value once
        value = jnp.asarray(node.value)
        return lambda env, args: value

    @visitor(Symbol)
    def _visit_symbol(self, node: Symbol):
        name = node.name
        return lambda env, args: env[name]

    @visitor(Add)
    def _visit_add(self, node: Add):
        def op(env, args):
            acc = args[0]
            for term in args[1:]:
                acc = acc + term
            return acc

        return op

    @visitor(Sub)
    def _visit_sub(self, node: Sub):
        return lambda env, args: args[0] - args[1]

    @visitor(Mul)
    def _visit_mul(self, node: Mul):
        def op(env, args):
            acc = args[0]
            for factor in args[1:]:
                acc = acc * factor
            return acc

        return op

    @visitor(Power)
    def _visit_power(self, node: Power):
        exponent = node.exponent
        return lambda env, args: args[0] ** exponent

    @visitor(Div)
    def _visit_div(self, node: Div):
        return lambda env, args: args[0] / args[1]

    @visitor(MatMul)
    def _visit_matmul(self, node: MatMul):
        return lambda env, args: jnp.matmul(args[0], args[1])

    @visitor(Neg)
    def _visit_neg(self, node: Neg):
        return lambda env, args: -args[0]

    @visitor(Abs)
    def _visit_abs(self, node: Abs):
        return lambda env, args: jnp.abs(args[0])

    @visitor(Transpose)
    def _visit_transpose(self, node: Transpose):
        return lambda env, args: jnp.transpose(args[0])

    @visitor(Inverse)
    def _visit_inverse(self, node: Inverse):
        return lambda env, args: jnp.linalg.inv(args[0])

    @visitor(Norm)
    def _visit_norm(self, node: Norm):
        ord_val = node.ord
        return lambda env, args: jnp.linalg.norm(jnp.ravel(args[0]), ord=ord_val).reshape(1, 1)

    @visitor(Dot)
    def _visit_dot(self, node: Dot):
        return lambda env, args: jnp.sum(jnp.ravel(args[0]) * jnp.ravel(args[1])).reshape(1, 1)

    @visitor(Region)
    def _visit_region(self, node: Region):
        rs, cs = node.row_slice, node.col_slice
        return lambda env, args: args[0][rs, cs]

    @visitor(SetRegion)
    def _visit_set_region(self, node: SetRegion):
        rs, cs = node.row_slice, node.col_slice
        return lambda env, args: args[0].at[rs, cs].set(args[1])
