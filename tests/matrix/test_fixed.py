import numpy as np
import pytest

from symmat import (
    DynamicMatrix,
    FixedMatrix,
    Matrix3,
    ShapeMismatch,
    SpatialMatrix,
    SpatialVector,
    Vector3,
    fixed_matrix_type,
)


def test_fixed_types_are_cached_and_named():
    assert fixed_matrix_type(3) is Vector3
    assert fixed_matrix_type(3, 3) is Matrix3
    assert fixed_matrix_type(6, 1) is SpatialVector
    assert fixed_matrix_type(6, 6) is SpatialMatrix
    assert fixed_matrix_type(2, 4).__name__ == "Matrix2x4"
    assert issubclass(Vector3, FixedMatrix)


def test_abstract_fixed_matrix_cannot_be_built():
    with pytest.raises(TypeError):
        FixedMatrix()


def test_default_is_zero():
    v = Vector3()
    assert v.shape == (3, 1)
    assert v == Vector3.zero()
    np.testing.assert_array_equal(v.evaluate(), np.zeros((3, 1)))


def test_constructor_checks_shape():
    Vector3([1.0, 2.0, 3.0])
    with pytest.raises(ShapeMismatch):
        Vector3([1.0, 2.0])
    with pytest.raises(ShapeMismatch):
        Matrix3(DynamicMatrix.identity(2))


def test_identity_and_symbol():
    np.testing.assert_array_equal(SpatialMatrix.identity().evaluate(), np.eye(6))
    with pytest.raises(ShapeMismatch):
        SpatialVector.identity()
    v = SpatialVector.symbol("v")
    assert v.shape == (6, 1)


# =============================================================================
# Type promotion
# =============================================================================


def test_fixed_operands_give_fixed_result():
    R = Matrix3.identity()
    v = Vector3.from_array([1.0, 2.0, 3.0])
    assert type(R * v) is Vector3
    assert type(v.T * v).__name__ == "Vector1"
    assert type(v * v.T) is Matrix3
    assert type(R + R) is Matrix3
    assert type(-v) is Vector3
    assert type(v.transpose()).__name__ == "Matrix1x3"


def test_python_scalars_keep_fixed_result():
    v = Vector3.from_array([1.0, 2.0, 3.0])
    assert type(2.0 * v) is Vector3
    assert type(v * 2) is Vector3
    assert type(v / 2.0) is Vector3


def test_mixing_dynamic_gives_dynamic():
    R = Matrix3.identity()
    x = DynamicMatrix.from_array([1.0, 0.0, 0.0])
    assert type(R * x) is DynamicMatrix
    assert type(x.T * R) is DynamicMatrix
    assert type(R + DynamicMatrix.identity(3)) is DynamicMatrix


def test_reductions_of_fixed_are_fixed():
    v = Vector3.from_array([3.0, -4.0, 0.0])
    assert isinstance(v.norm(), FixedMatrix)
    assert v.norm().shape == (1, 1)
    assert v.dot(v).evaluate()[0, 0] == 25.0


# =============================================================================
# Shape is part of the type
# =============================================================================


def test_shape_preserving_updates():
    M = Matrix3.identity()
    M *= Matrix3.identity() * 2
    M += Matrix3.identity()
    M[0, 2] = 5.0
    assert isinstance(M, Matrix3)
    np.testing.assert_array_equal(
        M.evaluate(), [[3.0, 0.0, 5.0], [0.0, 3.0, 0.0], [0.0, 0.0, 3.0]]
    )


def test_shape_changing_update_raises_without_mutation():
    v = Vector3.from_array([1.0, 2.0, 3.0])
    before = v.node
    with pytest.raises(ShapeMismatch):
        v *= v.T
    with pytest.raises(ShapeMismatch):
        v.assign(np.eye(3))
    assert v.node is before


def test_resize_only_to_same_shape():
    M = Matrix3.identity()
    M.resize(3, 3)
    with pytest.raises(ShapeMismatch):
        M.resize(2, 2)
    assert M.shape == (3, 3)


def test_block_with_known_extent():
    S = SpatialMatrix.identity()
    top = S.block(0, 0, 3, 3, fixed=True)
    assert type(top) is Matrix3
    assert top == Matrix3.identity()
    assert type(S.block(0, 0, 3, 3)) is DynamicMatrix


def test_to_dynamic_and_copy():
    v = Vector3.from_array([1.0, 2.0, 3.0])
    d = v.to_dynamic()
    assert type(d) is DynamicMatrix
    d.resize(4)
    assert v.shape == (3, 1)
    c = v.copy()
    assert type(c) is Vector3
    assert c == v


def test_repr_mentions_type_and_shape():
    assert repr(Vector3()).startswith("Vector3(3x1, ")
