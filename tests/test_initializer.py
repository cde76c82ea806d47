import numpy as np
import pytest

from graphfold.ir import Initializer, float16, float32, multiply, scale_along_axis


def test_from_array_flattens_row_major() -> None:
    init = Initializer.from_array("w", np.arange(6, dtype=np.float32).reshape(2, 3))
    assert init.shape == (2, 3)
    assert init.dtype == float32
    assert init.data.tolist() == [0, 1, 2, 3, 4, 5]
    np.testing.assert_array_equal(init.to_array(), np.arange(6).reshape(2, 3))


def test_scalar_initializer_has_rank_zero() -> None:
    init = Initializer.from_array("s", np.float32(3))
    assert init.rank == 0
    assert init.numel == 1


def test_buffer_must_match_shape() -> None:
    with pytest.raises(ValueError):
        Initializer(name="w", dtype=float32, shape=(2, 2), data=np.zeros(3, dtype=np.float32))


def test_scale_along_axis_by_scalar() -> None:
    w = Initializer.from_array("w", np.arange(18, dtype=np.float32).reshape(2, 1, 3, 3))
    s = Initializer.from_array("s", np.float32(0.5))
    out = scale_along_axis(w, s, 0)
    assert out.name == "w" and out.shape == w.shape and out.dtype == float32
    np.testing.assert_allclose(out.data, np.arange(18, dtype=np.float32) * 0.5)


def test_scale_along_axis_per_channel() -> None:
    w = Initializer.from_array("w", np.array([1, 2], dtype=np.float32).reshape(2, 1, 1, 1))
    s = Initializer.from_array("s", np.array([10, 100], dtype=np.float32).reshape(2, 1, 1))
    out = scale_along_axis(w, s, 0)
    assert out.data.tolist() == [10, 200]


def test_scale_along_inner_axis() -> None:
    a = Initializer.from_array("a", np.ones((2, 3), dtype=np.float32))
    b = Initializer.from_array("b", np.array([1, 2, 3], dtype=np.float32))
    out = scale_along_axis(a, b, 1)
    np.testing.assert_array_equal(out.to_array(), [[1, 2, 3], [1, 2, 3]])


def test_scale_along_axis_is_out_of_place() -> None:
    w = Initializer.from_array("w", np.ones((2, 1, 1, 1), dtype=np.float32))
    s = Initializer.from_array("s", np.array([3, 4], dtype=np.float32))
    before = w.data.copy()
    out = scale_along_axis(w, s, 0)
    assert out.data is not w.data
    np.testing.assert_array_equal(w.data, before)


def test_scale_along_axis_length_mismatch() -> None:
    w = Initializer.from_array("w", np.ones((2, 1, 1, 1), dtype=np.float32))
    s = Initializer.from_array("s", np.ones(3, dtype=np.float32))
    with pytest.raises(ValueError):
        scale_along_axis(w, s, 0)
    with pytest.raises(ValueError):
        scale_along_axis(w, s, 4)


def test_scale_keeps_half_precision() -> None:
    w = Initializer.from_array("w", np.array([1.5, 2.5], dtype=np.float16).reshape(2, 1, 1, 1))
    s = Initializer.from_array("s", np.array([2, 4], dtype=np.float16))
    out = scale_along_axis(w, s, 0)
    assert out.dtype == float16
    assert out.data.dtype == np.float16
    assert out.data.tolist() == [3.0, 10.0]


def test_multiply_broadcasts_scalar() -> None:
    b = Initializer.from_array("b", np.array([0, 1], dtype=np.float32))
    s = Initializer.from_array("s", np.float32(5))
    out = multiply(b, s)
    assert out.name == "b"
    assert out.data.tolist() == [0, 5]


def test_multiply_rejects_growing_shape() -> None:
    b = Initializer.from_array("b", np.array([0, 1], dtype=np.float32))
    s = Initializer.from_array("s", np.ones((2, 2), dtype=np.float32))
    with pytest.raises(ValueError):
        multiply(b, s)
