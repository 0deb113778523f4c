"""Element-wise activations and a row-wise softmax."""

from __future__ import annotations

import math

import numpy as np

_SQRT_2_OVER_PI = math.sqrt(2.0 / math.pi)


def _result(values: np.ndarray):
    if values.ndim == 0:
        return float(values)
    return values.astype(np.float32)


def relu(x):
    """max(0, x), element-wise."""
    return _result(np.maximum(0.0, np.asarray(x, dtype=np.float64)))


def relu_derivative(x):
    """1 where x > 0, else 0."""
    return _result(np.where(np.asarray(x, dtype=np.float64) > 0, 1.0, 0.0))


def gelu(x):
    """The tanh approximation of GELU."""
    x = np.asarray(x, dtype=np.float64)
    return _result(0.5 * x * (1.0 + np.tanh(_SQRT_2_OVER_PI * (x + 0.044715 * x**3))))


def gelu_derivative(x):
    """Derivative of :func:`gelu`."""
    x = np.asarray(x, dtype=np.float64)
    t = np.tanh(_SQRT_2_OVER_PI * (x + 0.044715 * x**3))
    sech_sq = 1.0 - t * t
    return _result(
        0.5 * (1.0 + t) + 0.5 * x * sech_sq * _SQRT_2_OVER_PI * (1.0 + 0.134145 * x * x)
    )


def softmax(matrix: np.ndarray) -> np.ndarray:
    """Numerically stable softmax over each row."""
    m = np.asarray(matrix, dtype=np.float64)
    exps = np.exp(m - m.max(axis=1, keepdims=True))
    return (exps / exps.sum(axis=1, keepdims=True)).astype(np.float32)