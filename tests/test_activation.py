import numpy as np
import pytest

from tinyvit.activation import gelu, gelu_derivative, relu, relu_derivative, softmax


def test_relu_clamps_negatives():
    values = relu(np.array([-2.0, -0.5, 0.0, 1.5]))
    assert values.tolist() == [0.0, 0.0, 0.0, 1.5]


def test_relu_derivative_is_step():
    values = relu_derivative(np.array([-1.0, 0.0, 2.0]))
    assert values.tolist() == [0.0, 0.0, 1.0]


def test_relu_on_scalar_returns_float():
    assert relu(3.0) == 3.0
    assert relu(-3.0) == 0.0


@pytest.mark.parametrize("x", [0.1, 0.7, 1.3, 2.5, 4.0])
def test_gelu_odd_part_identity(x):
    # gelu(x) - gelu(-x) == x for the tanh approximation
    assert gelu(x) - gelu(-x) == pytest.approx(x, abs=1e-9)


def test_gelu_approaches_relu_far_from_zero():
    assert gelu(10.0) == pytest.approx(relu(10.0), abs=1e-6)
    assert gelu(-10.0) == pytest.approx(relu(-10.0), abs=1e-6)


@pytest.mark.parametrize("x", [-3.0, -1.0, -0.2, 0.0, 0.5, 1.7, 3.2])
def test_gelu_derivative_matches_finite_difference(x):
    h = 1e-5
    numeric = (gelu(x + h) - gelu(x - h)) / (2 * h)
    assert gelu_derivative(x) == pytest.approx(numeric, abs=1e-4)


def test_gelu_array_keeps_shape():
    x = np.linspace(-2, 2, 12, dtype=np.float32).reshape(3, 4)
    out = gelu(x)
    assert out.shape == (3, 4)
    assert out.dtype == np.float32


def test_softmax_rows_sum_to_one():
    m = np.array([[1.0, 2.0, 3.0], [-5.0, 0.0, 5.0]], dtype=np.float32)
    probs = softmax(m)
    assert np.allclose(probs.sum(axis=1), 1.0, atol=1e-6)
    assert (probs > 0).all()


def test_softmax_shift_invariant():
    m = np.array([[0.3, -1.2, 2.0, 0.0]], dtype=np.float32)
    assert np.allclose(softmax(m), softmax(m + 100.0), atol=1e-6)


def test_softmax_preserves_order_and_handles_large_values():
    m = np.array([[1000.0, 1001.0, 999.0]], dtype=np.float32)
    probs = softmax(m)
    assert np.isfinite(probs).all()
    assert int(np.argmax(probs)) == 1


def test_softmax_uniform_row():
    probs = softmax(np.zeros((1, 4), dtype=np.float32))
    assert np.allclose(probs, 0.25)