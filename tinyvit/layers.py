"""Trainable building blocks: linear, layer norm, MLP and transformer block."""

from __future__ import annotations

import numpy as np

from tinyvit import tensor
from tinyvit.activation import gelu, gelu_derivative

_MAX_GRAD = 1.0


class Linear:
    """Fully connected layer computing ``x @ weight.T + bias.T``."""

    def __init__(self, in_features: int, out_features: int) -> None:
        self.in_features = in_features
        self.out_features = out_features
        self.weight = tensor.xavier_init(out_features, in_features)
        self.bias = tensor.zeros(out_features, 1)
        self.weight_grad = tensor.zeros(out_features, in_features)
        self.bias_grad = tensor.zeros(out_features, 1)
        self.last_input: np.ndarray | None = None
        self.training = True

    def forward(self, x: np.ndarray) -> np.ndarray:
        """Apply the layer to every row of ``x``."""
        x = np.asarray(x, dtype=np.float32)
        if x.ndim != 2 or x.shape[1] != self.weight.shape[1]:
            raise ValueError(
                f"expected input with {self.weight.shape[1]} columns, got shape {x.shape}"
            )
        if self.training:
            self.last_input = x
        return (x @ self.weight.T + self.bias.T).astype(np.float32)

    def backward(self, grad_output: np.ndarray) -> np.ndarray:
        """Accumulate parameter gradients and return the gradient for the input."""
        if self.last_input is None:
            raise RuntimeError("backward called before forward")
        grad_output = np.asarray(grad_output, dtype=np.float32)
        self.weight_grad = (self.weight_grad + grad_output.T @ self.last_input).astype(
            np.float32
        )
        self.bias_grad = (
            self.bias_grad + grad_output.sum(axis=0, dtype=np.float32).reshape(-1, 1)
        ).astype(np.float32)
        return (grad_output @ self.weight).astype(np.float32)

    def update(self, lr: float) -> None:
        """Clip gradients to [-1, 1] and take a gradient-descent step."""
        self.weight_grad = np.clip(self.weight_grad, -_MAX_GRAD, _MAX_GRAD)
        self.bias_grad = np.clip(self.bias_grad, -_MAX_GRAD, _MAX_GRAD)
        self.weight = (self.weight - np.float32(lr) * self.weight_grad).astype(np.float32)
        self.bias = (self.bias - np.float32(lr) * self.bias_grad).astype(np.float32)

    def zero_grad(self) -> None:
        """Reset accumulated gradients."""
        self.weight_grad = np.zeros_like(self.weight_grad)
        self.bias_grad = np.zeros_like(self.bias_grad)


class LayerNorm:
    """Row-wise layer normalisation with a learned scale and shift.

    The backward pass passes gradients straight through and the scale and
    shift are never trained.
    """

    def __init__(self, d_model: int, eps: float = 1e-5) -> None:
        self.d_model = d_model
        self.eps = eps
        self.gamma = np.ones((1, d_model), dtype=np.float32)
        self.beta = tensor.zeros(1, d_model)
        self.gamma_grad = tensor.zeros(1, d_model)
        self.beta_grad = tensor.zeros(1, d_model)
        self.last_input: np.ndarray | None = None
        self.last_mean: np.ndarray | None = None
        self.last_var: np.ndarray | None = None

    def forward(self, x: np.ndarray) -> np.ndarray:
        """Normalise each row to zero mean and unit variance, then scale and shift."""
        x = np.asarray(x, dtype=np.float32)
        self.last_input = x
        mean = x.mean(axis=1, keepdims=True, dtype=np.float32)
        var = ((x - mean) ** 2).mean(axis=1, keepdims=True, dtype=np.float32)
        self.last_mean = mean.astype(np.float32)
        self.last_var = var.astype(np.float32)
        normalized = (x - mean) / np.sqrt(var + np.float32(self.eps))
        return (self.gamma * normalized + self.beta).astype(np.float32)

    def backward(self, grad_output: np.ndarray) -> np.ndarray:
        """Return the incoming gradient unchanged."""
        return np.asarray(grad_output, dtype=np.float32)

    def update(self, lr: float) -> None:
        """Discard accumulated gradients; the parameters stay as they are."""
        self.zero_grad()

    def zero_grad(self) -> None:
        """Reset accumulated gradients."""
        self.gamma_grad = np.zeros_like(self.gamma_grad)
        self.beta_grad = np.zeros_like(self.beta_grad)


class MLP:
    """Two linear layers with GELU between them, followed by layer norm."""

    def __init__(self, d_model: int, hidden_dim: int) -> None:
        self.fc1 = Linear(d_model, hidden_dim)
        self.fc2 = Linear(hidden_dim, d_model)
        self.ln = LayerNorm(d_model)
        self.last_hidden: np.ndarray | None = None
        self.last_activated: np.ndarray | None = None
        self.training = True

    def forward(self, x: np.ndarray) -> np.ndarray:
        """Run the input through fc1, GELU, fc2 and layer norm."""
        self.last_hidden = self.fc1.forward(x)
        self.last_activated = gelu(self.last_hidden)
        return self.ln.forward(self.fc2.forward(self.last_activated))

    def backward(self, grad_output: np.ndarray) -> np.ndarray:
        """Back-propagate through the block and return the input gradient."""
        if self.last_hidden is None:
            raise RuntimeError("backward called before forward")
        grad_fc2 = self.fc2.backward(self.ln.backward(grad_output))
        grad_hidden = (grad_fc2 * gelu_derivative(self.last_hidden)).astype(np.float32)
        return self.fc1.backward(grad_hidden)

    def update(self, lr: float) -> None:
        """Update every sub-layer."""
        self.fc1.update(lr)
        self.fc2.update(lr)
        self.ln.update(lr)

    def zero_grad(self) -> None:
        """Reset gradients of every sub-layer."""
        self.fc1.zero_grad()
        self.fc2.zero_grad()
        self.ln.zero_grad()


class TransformerBlock:
    """Pre-norm block: a linear projection standing in for attention, then an MLP,
    each wrapped in a residual connection."""

    def __init__(self, d_model: int) -> None:
        self.attention_proj = Linear(d_model, d_model)
        self.mlp = MLP(d_model, d_model * 2)
        self.ln1 = LayerNorm(d_model)
        self.ln2 = LayerNorm(d_model)
        self.last_input: np.ndarray | None = None
        self.last_attn_out: np.ndarray | None = None
        self.last_residual1: np.ndarray | None = None
        self.last_normalized1: np.ndarray | None = None
        self.last_normalized2: np.ndarray | None = None

    def forward(self, x: np.ndarray) -> np.ndarray:
        """Apply both residual sub-blocks."""
        x = np.asarray(x, dtype=np.float32)
        self.last_input = x
        self.last_normalized1 = self.ln1.forward(x)
        self.last_attn_out = self.attention_proj.forward(self.last_normalized1)
        self.last_residual1 = (x + self.last_attn_out).astype(np.float32)
        self.last_normalized2 = self.ln2.forward(self.last_residual1)
        mlp_out = self.mlp.forward(self.last_normalized2)
        return (self.last_residual1 + mlp_out).astype(np.float32)

    def backward(self, grad_output: np.ndarray) -> np.ndarray:
        """Back-propagate through both residual paths and return the input gradient."""
        grad_output = np.asarray(grad_output, dtype=np.float32)
        grad_from_mlp = self.ln2.backward(self.mlp.backward(grad_output))
        grad_residual1 = (grad_output + grad_from_mlp).astype(np.float32)
        grad_from_attn = self.ln1.backward(self.attention_proj.backward(grad_residual1))
        return (grad_residual1 + grad_from_attn).astype(np.float32)

    def update(self, lr: float) -> None:
        """Update every sub-layer."""
        self.attention_proj.update(lr)
        self.mlp.update(lr)
        self.ln1.update(lr)
        self.ln2.update(lr)

    def zero_grad(self) -> None:
        """Reset gradients of every sub-layer."""
        self.attention_proj.zero_grad()
        self.mlp.zero_grad()
        self.ln1.zero_grad()
        self.ln2.zero_grad()