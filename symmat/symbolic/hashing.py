"""Structural hashing and structural equality for expression graphs.

Two graphs are structurally equal when their canonical forms hash identically:
same node kinds, same shapes, same constants, same symbol names, wired the same
way. This is a statement about symbolic expressions, not about the numbers they
evaluate to. ``x - x`` and ``0`` are different expressions here, while two
constant matrices with the same entries are equal because constants hash by
value and constant subgraphs are folded during canonicalization.
"""

import hashlib

from symmat.symbolic.expr import Expr, post_order


def structural_hash(expr: Expr) -> str:
    """Compute a SHA-256 digest of the structure of ``expr``.

    The digest is cached on the node. Children contribute through their own
    digests, which are computed first in post-order, so shared subgraphs are
    hashed once and graph depth is not bounded by the recursion limit.

    Args:
        expr: Root of the graph to hash

    Returns:
        A hex string representing the structure of the graph
    """
    if expr._digest is None:
        for node in post_order(expr, prune=_is_hashed):
            hasher = hashlib.sha256()
            node._hash_into(hasher)
            node._digest = hasher.hexdigest()
    return expr._digest


def _is_hashed(node: Expr) -> bool:
    return node._digest is not None


def is_equal(a: Expr, b: Expr) -> bool:
    """Return True if ``a`` and ``b`` are provably the same symbolic expression.

    Both sides are canonicalized first, so e.g. ``(A.T).T`` equals ``A`` and
    ``(A + B) + C`` equals ``A + (B + C)``.
    """
    if a is b:
        return True
    if a.shape != b.shape:
        return False
    return structural_hash(a.canonicalize()) == structural_hash(b.canonicalize())
