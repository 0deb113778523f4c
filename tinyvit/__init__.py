"""A small Vision Transformer for 28x28 image classification built on NumPy."""

__version__ = "0.1.0"
__all__ = ["activation", "data", "infer", "layers", "rng", "tensor", "train", "vit"]