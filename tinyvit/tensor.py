"""Helpers for the 2-D float32 matrices the model is built on."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from tinyvit import rng

Matrix = np.ndarray


def zeros(rows: int, cols: int) -> Matrix:
    """Return a ``rows`` x ``cols`` matrix of zeros."""
    return np.zeros((rows, cols), dtype=np.float32)


def from_rows(rows: Sequence[Sequence[float]]) -> Matrix:
    """Build a matrix from a non-empty sequence of equally long rows."""
    if len(rows) == 0 or len(rows[0]) == 0:
        raise ValueError("a matrix needs at least one row and one column")
    width = len(rows[0])
    if any(len(row) != width for row in rows):
        raise ValueError("all rows must have the same length")
    return np.array(rows, dtype=np.float32)


def xavier_init(rows: int, cols: int) -> Matrix:
    """Return a matrix drawn from N(0, sqrt(2 / (rows + cols)))."""
    return rng.randn(0.0, math.sqrt(2.0 / (rows + cols)), (rows, cols))


def he_init(rows: int, cols: int) -> Matrix:
    """Return a matrix drawn from N(0, sqrt(2 / rows))."""
    return rng.randn(0.0, math.sqrt(2.0 / rows), (rows, cols))


def eye(n: int) -> Matrix:
    """Return the ``n`` x ``n`` identity matrix."""
    return np.eye(n, dtype=np.float32)


def matmul(a: Matrix, b: Matrix) -> Matrix:
    """Matrix product, refusing mismatched inner dimensions."""
    if a.shape[1] != b.shape[0]:
        raise ValueError(f"cannot multiply {a.shape} by {b.shape}")
    return (a @ b).astype(np.float32)


def row_normalize(matrix: Matrix) -> Matrix:
    """Scale every row to unit Euclidean length (with a small epsilon)."""
    norms = np.sqrt(np.sum(matrix * matrix, axis=1, keepdims=True) + 1e-8)
    return (matrix / norms).astype(np.float32)


def format_matrix(matrix: Matrix) -> str:
    """Render a matrix one row per line, each value followed by a space."""
    return "".join("".join(f"{float(v):g} " for v in row) + "\n" for row in matrix)