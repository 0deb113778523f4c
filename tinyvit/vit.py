"""A small Vision Transformer classifier and its text model format."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import TextIO

import numpy as np

from tinyvit import rng, tensor
from tinyvit.activation import softmax
from tinyvit.layers import LayerNorm, Linear, TransformerBlock

_MODEL_TAG = "MODEL_CONFIG"
_CONFIG_KEYS = (
    "image_size",
    "patch_size",
    "d_model",
    "num_layers",
    "num_classes",
    "num_patches",
)
_EMBED_STDDEV = 0.01


class ModelFormatError(ValueError):
    """Raised when a saved model file cannot be read."""


class _Tokens:
    """Whitespace-separated tokens of a model file, read in order."""

    def __init__(self, text: str) -> None:
        self._tokens: Iterator[str] = iter(text.split())

    def next(self, what: str) -> str:
        try:
            return next(self._tokens)
        except StopIteration:
            raise ModelFormatError(f"unexpected end of file while reading {what}") from None

    def next_int(self, what: str) -> int:
        token = self.next(what)
        try:
            return int(token)
        except ValueError:
            raise ModelFormatError(f"expected an integer for {what}, got {token!r}") from None

    def next_float(self, what: str) -> float:
        token = self.next(what)
        try:
            return float(token)
        except ValueError:
            raise ModelFormatError(f"expected a number for {what}, got {token!r}") from None


def _write_tensor(fh: TextIO, name: str, matrix: np.ndarray) -> None:
    rows, cols = matrix.shape
    fh.write(f"{name} {rows} {cols}\n")
    for row in matrix:
        fh.write(" ".join(f"{float(v):g}" for v in row) + "\n")


def _read_tensor(tokens: _Tokens, expected_name: str) -> np.ndarray:
    name = tokens.next("tensor name")
    if name != expected_name:
        raise ModelFormatError(
            f"expected tensor name {expected_name!r} but found {name!r}"
        )
    rows = tokens.next_int(f"{name} rows")
    cols = tokens.next_int(f"{name} cols")
    if rows < 0 or cols < 0:
        raise ModelFormatError(f"negative dimensions for {name}: {rows}x{cols}")
    values = [tokens.next_float(name) for _ in range(rows * cols)]
    return np.array(values, dtype=np.float32).reshape(rows, cols)


class VisionTransformer:
    """Patch embedding, a stack of transformer blocks and a linear classifier
    reading the class token."""

    def __init__(
        self,
        image_size: int,
        patch_size: int,
        d_model: int,
        num_layers: int,
        num_classes: int,
    ) -> None:
        if patch_size <= 0 or image_size < patch_size:
            raise ValueError("patch_size must be positive and no larger than image_size")
        self.image_size = image_size
        self.patch_size = patch_size
        self.d_model = d_model
        self.num_layers = num_layers
        self.num_classes = num_classes
        self.num_patches = (image_size // patch_size) ** 2
        self._build_layers()
        self.class_token = rng.randn(0.0, _EMBED_STDDEV, (1, d_model))
        self.position_embeddings = rng.randn(
            0.0, _EMBED_STDDEV, (self.num_patches + 1, d_model)
        )
        self.transformer_blocks = [TransformerBlock(d_model) for _ in range(num_layers)]
        self.last_patches: np.ndarray | None = None
        self.last_logits: np.ndarray | None = None

    def _build_layers(self) -> None:
        self.patch_embedding = Linear(self.patch_size * self.patch_size, self.d_model)
        self.classification_head = Linear(self.d_model, self.num_classes)
        self.final_ln = LayerNorm(self.d_model)

    def image_to_patches(self, image: np.ndarray) -> np.ndarray:
        """Cut the image into row-major patches, one flattened patch per row."""
        image = np.asarray(image, dtype=np.float32)
        if image.shape != (self.image_size, self.image_size):
            raise ValueError(
                f"expected a {self.image_size}x{self.image_size} image, got shape {image.shape}"
            )
        p = self.patch_size
        per_row = self.image_size // p
        used = image[: per_row * p, : per_row * p]
        patches = used.reshape(per_row, p, per_row, p).transpose(0, 2, 1, 3)
        return patches.reshape(per_row * per_row, p * p).astype(np.float32)

    def forward(self, image: np.ndarray) -> np.ndarray:
        """Return the 1 x num_classes logits for one image."""
        self.last_patches = self.image_to_patches(image)
        patch_emb = self.patch_embedding.forward(self.last_patches)
        sequence = np.vstack([self.class_token, patch_emb]).astype(np.float32)
        current = (sequence + self.position_embeddings).astype(np.float32)
        for block in self.transformer_blocks:
            current = block.forward(current)
        current = self.final_ln.forward(current)
        self.last_logits = self.classification_head.forward(current[0:1, :])
        return self.last_logits

    def _check_label(self, true_label: int) -> None:
        if not 0 <= true_label < self.num_classes:
            raise ValueError(f"label {true_label} outside 0..{self.num_classes - 1}")

    def backward(self, true_label: int) -> None:
        """Accumulate gradients of the cross-entropy loss for the last forward pass."""
        if self.last_logits is None:
            raise RuntimeError("backward called before forward")
        self._check_label(true_label)
        grad_logits = softmax(self.last_logits)
        grad_logits[0, true_label] -= 1.0
        grad_class_token = self.classification_head.backward(grad_logits)

        grad_sequence = tensor.zeros(self.num_patches + 1, self.d_model)
        grad_sequence[0:1, :] = grad_class_token
        grad = self.final_ln.backward(grad_sequence)
        for block in reversed(self.transformer_blocks):
            grad = block.backward(grad)
        self.patch_embedding.backward(grad[1 : self.num_patches + 1, :])

    def compute_loss(self, logits: np.ndarray, true_label: int) -> float:
        """Cross-entropy of the logits against the true label."""
        self._check_label(true_label)
        probs = softmax(logits)
        return float(-np.log(max(float(probs[0, true_label]), 1e-8)))

    def update_weights(self, lr: float) -> None:
        """Apply one gradient-descent step to every layer."""
        self.patch_embedding.update(lr)
        self.classification_head.update(lr)
        self.final_ln.update(lr)
        for block in self.transformer_blocks:
            block.update(lr)

    def zero_grad(self) -> None:
        """Reset every accumulated gradient."""
        self.patch_embedding.zero_grad()
        self.classification_head.zero_grad()
        self.final_ln.zero_grad()
        for block in self.transformer_blocks:
            block.zero_grad()

    def predict(self, image: np.ndarray) -> int:
        """Return the class with the largest logit (the first one on ties)."""
        logits = self.forward(image)
        return int(np.argmax(logits[0, : self.num_classes]))

    def _named_tensors(self) -> list[tuple[str, object, str]]:
        """(name, owner, attribute) for every saved tensor, in file order."""
        entries: list[tuple[str, object, str]] = [
            ("class_token", self, "class_token"),
            ("position_embeddings", self, "position_embeddings"),
            ("patch_embedding_weights", self.patch_embedding, "weight"),
            ("patch_embedding_biases", self.patch_embedding, "bias"),
        ]
        for i, block in enumerate(self.transformer_blocks):
            prefix = f"transformer_block_{i}"
            entries += [
                (f"{prefix}_attention_proj_weights", block.attention_proj, "weight"),
                (f"{prefix}_attention_proj_biases", block.attention_proj, "bias"),
                (f"{prefix}_mlp_fc1_weights", block.mlp.fc1, "weight"),
                (f"{prefix}_mlp_fc1_biases", block.mlp.fc1, "bias"),
                (f"{prefix}_mlp_fc2_weights", block.mlp.fc2, "weight"),
                (f"{prefix}_mlp_fc2_biases", block.mlp.fc2, "bias"),
                (f"{prefix}_mlp_ln_gamma", block.mlp.ln, "gamma"),
                (f"{prefix}_mlp_ln_beta", block.mlp.ln, "beta"),
                (f"{prefix}_ln1_gamma", block.ln1, "gamma"),
                (f"{prefix}_ln1_beta", block.ln1, "beta"),
                (f"{prefix}_ln2_gamma", block.ln2, "gamma"),
                (f"{prefix}_ln2_beta", block.ln2, "beta"),
            ]
        entries += [
            ("classification_head_weights", self.classification_head, "weight"),
            ("classification_head_biases", self.classification_head, "bias"),
            ("final_ln_gamma", self.final_ln, "gamma"),
            ("final_ln_beta", self.final_ln, "beta"),
        ]
        return entries

    def save_model(self, path: str | Path) -> None:
        """Write the configuration and all parameters as text."""
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(f"{_MODEL_TAG}\n")
            for key in _CONFIG_KEYS:
                fh.write(f"{key} {getattr(self, key)}\n")
            for name, owner, attr in self._named_tensors():
                _write_tensor(fh, name, getattr(owner, attr))

    def load_model(self, path: str | Path) -> None:
        """Replace the configuration and parameters with those saved in ``path``."""
        text = Path(path).read_text(encoding="utf-8")
        tokens = _Tokens(text)
        tag = tokens.next("file tag")
        if tag != _MODEL_TAG:
            raise ModelFormatError(f"unexpected file format: expected {_MODEL_TAG!r}")
        config = {}
        for key in _CONFIG_KEYS:
            tokens.next(f"{key} label")
            config[key] = tokens.next_int(key)
        if config["patch_size"] <= 0 or min(config.values()) < 0:
            raise ModelFormatError(f"invalid model configuration: {config}")

        for key, value in config.items():
            setattr(self, key, value)
        self._build_layers()
        self.class_token = tensor.zeros(1, self.d_model)
        self.position_embeddings = tensor.zeros(self.num_patches + 1, self.d_model)
        self.transformer_blocks = [
            TransformerBlock(self.d_model) for _ in range(self.num_layers)
        ]
        for name, owner, attr in self._named_tensors():
            setattr(owner, attr, _read_tensor(tokens, name))
        self.last_patches = None
        self.last_logits = None