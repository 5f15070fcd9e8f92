from .expr import Expr, Symbol
from .hashing import is_equal, structural_hash
from .lower import compile_expr, evaluate, free_symbols, jacobian, lower_to_jax

__all__ = [
    "Expr",
    "Symbol",
    "is_equal",
    "structural_hash",
    "compile_expr",
    "evaluate",
    "free_symbols",
    "jacobian",
    "lower_to_jax",
]
