"""Tests for DynamicMatrix.

Tests cover:
- Construction and factories
- Element and block access
- Resize semantics, for numeric and symbolic contents
- Arithmetic, linear algebra and norms
- Structural equality
- Failed operations leaving the matrix untouched
"""

import sys

import numpy as np
import pytest

from symmat import DynamicMatrix, InvalidAccess, ShapeMismatch, fabs

# =============================================================================
# Construction
# =============================================================================


def test_default_is_one_by_one_zero():
    M = DynamicMatrix()
    assert M.shape == (1, 1)
    np.testing.assert_array_equal(M.evaluate(), [[0.0]])


def test_rows_and_cols_constructor_zero_fills():
    M = DynamicMatrix(2, 3)
    assert (M.rows, M.cols, M.size) == (2, 3, 6)
    np.testing.assert_array_equal(M.evaluate(), np.zeros((2, 3)))


def test_zero_and_identity():
    np.testing.assert_array_equal(DynamicMatrix.zero(4).evaluate(), np.zeros((4, 1)))
    np.testing.assert_array_equal(DynamicMatrix.identity(3).evaluate(), np.eye(3))


def test_from_array_and_symbol():
    v = DynamicMatrix.from_array([1.0, 2.0, 3.0])
    assert v.shape == (3, 1)
    q = DynamicMatrix.symbol("q", 2, 2)
    assert q.shape == (2, 2)
    np.testing.assert_array_equal(q.evaluate({"q": np.eye(2)}), np.eye(2))


def test_bad_dimensions_rejected():
    with pytest.raises(ShapeMismatch):
        DynamicMatrix(-1, 2)
    with pytest.raises(ShapeMismatch):
        DynamicMatrix.zero(2.5)


def test_copy_is_independent():
    a = DynamicMatrix.zero(2, 2)
    b = a.copy()
    b[0, 0] = 1.0
    np.testing.assert_array_equal(a.evaluate(), np.zeros((2, 2)))
    assert b.evaluate()[0, 0] == 1.0


def test_assign_and_set_zero():
    M = DynamicMatrix.identity(2)
    M.set_zero()
    assert M == DynamicMatrix.zero(2, 2)
    M.assign(np.ones((3, 1)))
    assert M.shape == (3, 1)


# =============================================================================
# Element and block access
# =============================================================================


def test_scenario_single_element_write():
    M = DynamicMatrix.zero(3, 3)
    M[1, 1] = 5
    assert M.rows == 3
    assert M[1, 1] == 5
    values = M.evaluate()
    assert values[1, 1] == 5.0
    values[1, 1] = 0.0
    assert not np.any(values)


def test_bare_index_addresses_first_column():
    v = DynamicMatrix.zero(3)
    v[2] = 7.0
    np.testing.assert_array_equal(v.evaluate(), [[0.0], [0.0], [7.0]])
    assert v.get(2) == 7.0


def test_block_write_and_fill():
    M = DynamicMatrix.zero(3, 3)
    M[0:2, 0:2] = np.array([[1.0, 2.0], [3.0, 4.0]])
    M[2, :] = 9.0
    np.testing.assert_array_equal(
        M.evaluate(), [[1.0, 2.0, 0.0], [3.0, 4.0, 0.0], [9.0, 9.0, 9.0]]
    )


def test_block_write_rejects_wrong_shape():
    M = DynamicMatrix.zero(3, 3)
    with pytest.raises(ShapeMismatch):
        M[0:2, 0:2] = np.ones((3, 1))


def test_block_extraction():
    M = DynamicMatrix.from_array(np.arange(16.0).reshape(4, 4))
    B = M.block(1, 2, 2, 2)
    assert isinstance(B, DynamicMatrix)
    np.testing.assert_array_equal(B.evaluate(), [[6.0, 7.0], [10.0, 11.0]])


def test_block_copy_does_not_follow_later_writes():
    M = DynamicMatrix.zero(2, 2)
    B = M.block(0, 0, 1, 2)
    M[0, 0] = 1.0
    np.testing.assert_array_equal(B.evaluate(), [[0.0, 0.0]])


@pytest.mark.parametrize(
    "bounds",
    [
        (3, 0, 2, 1),
        (0, 0, 5, 1),
        (-1, 0, 1, 1),
        (0, 0, 1, 1.5),
    ],
)
def test_block_out_of_range(bounds):
    M = DynamicMatrix.zero(4, 4)
    with pytest.raises(InvalidAccess):
        M.block(*bounds)


def test_element_access_out_of_range():
    M = DynamicMatrix.zero(2, 2)
    with pytest.raises(InvalidAccess):
        M[2, 0]
    with pytest.raises(InvalidAccess):
        M[0, 2] = 1.0
    with pytest.raises(IndexError):
        M.at(-1, 0)


# =============================================================================
# Resize
# =============================================================================


@pytest.mark.parametrize(
    "new_shape",
    [(2, 3), (3, 2), (1, 1), (4, 5), (2, 1), (0, 0)],
)
def test_resize_keeps_overlap_and_zero_fills(new_shape):
    original = np.arange(1.0, 7.0).reshape(2, 3)
    M = DynamicMatrix.from_array(original)
    M.resize(*new_shape)
    assert M.shape == new_shape

    expected = np.zeros(new_shape)
    r = min(new_shape[0], 2)
    c = min(new_shape[1], 3)
    expected[:r, :c] = original[:r, :c]
    np.testing.assert_array_equal(M.evaluate(), expected)


def test_resize_keeps_symbolic_entries():
    q = DynamicMatrix.symbol("q", 2)
    q.resize(3, 2)
    out = q.evaluate({"q": [4.0, 5.0]})
    np.testing.assert_array_equal(out, [[4.0, 0.0], [5.0, 0.0], [0.0, 0.0]])


def test_conservative_resize_is_resize():
    M = DynamicMatrix.identity(2)
    M.conservative_resize(3, 3)
    np.testing.assert_array_equal(M.evaluate(), np.diag([1.0, 1.0, 0.0]))


def test_resize_rejects_bad_dimensions():
    M = DynamicMatrix.identity(2)
    with pytest.raises(ShapeMismatch):
        M.resize(-2, 2)
    assert M == DynamicMatrix.identity(2)


# =============================================================================
# Arithmetic
# =============================================================================


def test_scenario_identity_sum():
    A = DynamicMatrix.identity(2)
    B = DynamicMatrix.identity(2) * 3
    C = A + B
    np.testing.assert_array_equal(C.evaluate(), [[4.0, 0.0], [0.0, 4.0]])


def test_product_is_matrix_multiplication():
    A = DynamicMatrix.from_array([[1.0, 2.0], [3.0, 4.0]])
    x = DynamicMatrix.from_array([1.0, 1.0])
    np.testing.assert_array_equal((A * x).evaluate(), [[3.0], [7.0]])
    np.testing.assert_array_equal((A @ x).evaluate(), [[3.0], [7.0]])


def test_one_by_one_operand_scales():
    A = DynamicMatrix.identity(2)
    s = DynamicMatrix.from_array(2.0)
    np.testing.assert_array_equal((s * A).evaluate(), 2 * np.eye(2))
    np.testing.assert_array_equal((A * s).evaluate(), 2 * np.eye(2))
    np.testing.assert_array_equal((A / 4).evaluate(), 0.25 * np.eye(2))


def test_elementwise_division_by_same_shape():
    A = DynamicMatrix.from_array([[2.0, 4.0]])
    B = DynamicMatrix.from_array([[2.0, 8.0]])
    np.testing.assert_array_equal((A / B).evaluate(), [[1.0, 0.5]])


def test_negation_and_subtraction():
    A = DynamicMatrix.from_array([1.0, -2.0])
    np.testing.assert_array_equal((-A).evaluate(), [[-1.0], [2.0]])
    np.testing.assert_array_equal((A - A).evaluate(), [[0.0], [0.0]])


@pytest.mark.parametrize(
    "op",
    [
        lambda a, b: a + b,
        lambda a, b: a - b,
        lambda a, b: a * b,
        lambda a, b: a / b,
    ],
)
def test_incompatible_shapes_raise(op):
    a = DynamicMatrix.zero(2, 3)
    b = DynamicMatrix.zero(2, 2)
    with pytest.raises(ShapeMismatch):
        op(a, b)


def test_compound_operators():
    M = DynamicMatrix.identity(2)
    M += DynamicMatrix.identity(2)
    M *= DynamicMatrix.from_array([[1.0, 1.0], [0.0, 1.0]])
    M -= DynamicMatrix.identity(2)
    M /= 2.0
    np.testing.assert_array_equal(M.evaluate(), [[0.5, 1.0], [0.0, 0.5]])


def test_compound_product_may_change_shape():
    M = DynamicMatrix.identity(3)
    M *= DynamicMatrix.from_array([1.0, 2.0, 3.0])
    assert M.shape == (3, 1)


def test_failed_compound_assignment_leaves_matrix_untouched():
    M = DynamicMatrix.identity(2)
    before = M.node
    with pytest.raises(ShapeMismatch):
        M += DynamicMatrix.zero(3, 3)
    with pytest.raises(ShapeMismatch):
        M *= DynamicMatrix.zero(3, 3)
    assert M.node is before


# =============================================================================
# Linear algebra and norms
# =============================================================================


def test_transpose():
    A = DynamicMatrix.from_array(np.arange(6.0).reshape(2, 3))
    assert A.T.shape == (3, 2)
    np.testing.assert_array_equal(A.transpose().evaluate(), np.arange(6.0).reshape(2, 3).T)


def test_inverse():
    A = DynamicMatrix.from_array([[4.0, 7.0], [2.0, 6.0]])
    np.testing.assert_allclose((A * A.inverse()).evaluate(), np.eye(2), atol=1e-12)
    with pytest.raises(ShapeMismatch):
        DynamicMatrix.zero(2, 3).inverse()


def test_dot():
    a = DynamicMatrix.from_array([1.0, 2.0, 3.0])
    b = DynamicMatrix.from_array([4.0, 5.0, 6.0])
    d = a.dot(b)
    assert d.shape == (1, 1)
    assert d.evaluate()[0, 0] == 32.0
    # row and column vectors of the same length combine
    assert a.T.dot(b) == d
    with pytest.raises(ShapeMismatch):
        a.dot(DynamicMatrix.zero(2))


def test_norms_keep_legacy_names():
    v = DynamicMatrix.from_array([3.0, -4.0])
    # norm() is the L1 norm and squared_norm() the L2 norm
    assert v.norm().evaluate()[0, 0] == 7.0
    assert v.squared_norm().evaluate()[0, 0] == 5.0
    assert v.norm_1() == v.norm()
    assert v.norm_2() == v.squared_norm()


def test_norm_of_matrix_uses_all_entries():
    M = DynamicMatrix.from_array([[1.0, -1.0], [1.0, -1.0]])
    assert M.norm().evaluate()[0, 0] == 4.0
    assert M.squared_norm().evaluate()[0, 0] == 2.0


def test_fabs():
    v = DynamicMatrix.from_array([-1.5, 2.0])
    np.testing.assert_array_equal(fabs(v).evaluate(), [[1.5], [2.0]])
    np.testing.assert_array_equal(abs(v).evaluate(), [[1.5], [2.0]])


def test_symbolic_jacobian():
    q = DynamicMatrix.symbol("q", 2)
    energy = q.T * q
    np.testing.assert_allclose(energy.jacobian(q, {"q": [1.0, 2.0]}), [[2.0, 4.0]])


# =============================================================================
# Structural equality
# =============================================================================


def test_identity_product_equals_original():
    A = DynamicMatrix.symbol("A", 3, 3)
    assert A * DynamicMatrix.identity(3) == A
    assert DynamicMatrix.identity(3) * A == A


def test_addition_is_associative_structurally():
    A = DynamicMatrix.symbol("A", 2, 2)
    B = DynamicMatrix.symbol("B", 2, 2)
    C = DynamicMatrix.symbol("C", 2, 2)
    assert (A + B) + C == A + (B + C)


def test_double_transpose_equals_original():
    A = DynamicMatrix.symbol("A", 2, 3)
    assert A.T.T == A


def test_equality_is_symbolic_not_numeric():
    A = DynamicMatrix.symbol("A", 2, 2)
    assert A - A != DynamicMatrix.zero(2, 2)
    assert A != DynamicMatrix.symbol("B", 2, 2)
    assert A != DynamicMatrix.symbol("A", 2, 1)


def test_equality_against_unrelated_object():
    assert (DynamicMatrix.zero(2, 2) == "zeros") is False


def test_matrices_are_unhashable():
    with pytest.raises(TypeError):
        hash(DynamicMatrix.zero(2, 2))


def test_to_numpy_returns_writable_values():
    M = DynamicMatrix.from_array([[1.0, 2.0], [3.0, 4.0]])
    out = M.to_numpy()
    assert isinstance(out, np.ndarray)
    np.testing.assert_array_equal(out, [[1.0, 2.0], [3.0, 4.0]])
    out[0, 0] = 5.0
    np.testing.assert_array_equal(M.to_numpy(), [[1.0, 2.0], [3.0, 4.0]])


# =============================================================================
# Large and shared graphs
# =============================================================================


def outer_product(q, n):
    H = DynamicMatrix.zero(n, n)
    for i in range(n):
        for j in range(n):
            H[i, j] = q[i] * q[j]
    return H


def test_elementwise_fill_of_large_matrix():
    n = 50
    # every write adds a level to the graph
    assert n * n > sys.getrecursionlimit()
    q = DynamicMatrix.symbol("q", n)
    H = outer_product(q, n)
    G = outer_product(q, n)

    vals = np.linspace(-1.0, 1.0, n)
    np.testing.assert_allclose(H.evaluate({"q": vals}), np.outer(vals, vals))
    assert H == G

    expected = np.zeros((n * n, n))
    for i in range(n):
        for j in range(n):
            expected[i * n + j, i] += vals[j]
            expected[i * n + j, j] += vals[i]
    np.testing.assert_allclose(H.jacobian(q, {"q": vals}), expected)


def test_repeated_self_addition():
    x = DynamicMatrix.symbol("x", 2, 2)
    total = x
    for _ in range(30):
        total = total + total
    assert total == x * 2.0**30
    vals = np.array([[1.0, 2.0], [3.0, 4.0]])
    np.testing.assert_allclose(total.evaluate({"x": vals}), vals * 2.0**30)


def test_repeated_self_product():
    s = DynamicMatrix.symbol("s", 1, 1)
    total = s
    for _ in range(20):
        total = total * total
    np.testing.assert_allclose(total.evaluate({"s": 1.0}), [[1.0]])
    np.testing.assert_allclose(total.jacobian(s, {"s": 1.0}), [[2.0**20]])
