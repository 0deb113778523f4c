"""Loading labelled 28x28 images from CSV files and splitting them into sets."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from itertools import islice
from pathlib import Path

import numpy as np

from tinyvit import rng

IMAGE_SIDE = 28
_PIXELS = IMAGE_SIDE * IMAGE_SIDE


@dataclass
class Dataset:
    """Images paired with their integer labels."""

    images: list[np.ndarray] = field(default_factory=list)
    labels: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.images) != len(self.labels):
            raise ValueError("images and labels must have the same length")

    def __len__(self) -> int:
        return len(self.images)

    def __iter__(self) -> Iterator[tuple[np.ndarray, int]]:
        return zip(self.images, self.labels)

    def append(self, image: np.ndarray, label: int) -> None:
        """Add one labelled image."""
        self.images.append(image)
        self.labels.append(label)

    def subset(self, indices: Iterable[int]) -> Dataset:
        """Return a new dataset holding the samples at ``indices``, in that order."""
        chosen = list(indices)
        return Dataset(
            [self.images[i] for i in chosen], [self.labels[i] for i in chosen]
        )


@dataclass
class DataSplits:
    """Training, validation and test sets."""

    train: Dataset
    val: Dataset
    test: Dataset


def _parse_image(cells: Iterable[str]) -> np.ndarray:
    pixels = np.zeros(_PIXELS, dtype=np.float32)
    for i, cell in enumerate(islice(cells, _PIXELS)):
        pixels[i] = float(cell.strip()) / 255.0
    return pixels.reshape(IMAGE_SIDE, IMAGE_SIDE)


def load_csv(
    path: str | Path, max_samples: int | None = None, num_classes: int = 10
) -> Dataset:
    """Read ``label,pixel0,...,pixel783`` rows after a header line.

    Pixels are scaled to [0, 1]; missing pixels stay zero. Rows whose label is
    ``num_classes`` or more are skipped. ``max_samples`` of None or a negative
    number means no limit.
    """
    limit = None if max_samples is None or max_samples < 0 else max_samples
    dataset = Dataset()
    with open(path, encoding="utf-8") as fh:
        next(fh, None)
        for line in fh:
            if limit is not None and len(dataset) >= limit:
                break
            line = line.rstrip("\n")
            if not line:
                continue
            cells = iter(line.split(","))
            label = int(next(cells).strip())
            if label >= num_classes:
                continue
            dataset.append(_parse_image(cells), label)
    return dataset


def _check_fraction(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must lie in [0, 1], got {value}")


def split_dataset(
    dataset: Dataset, val_split: float = 0.1, test_split: float = 0.1
) -> DataSplits:
    """Shuffle and split into training, validation and test sets.

    The validation and test sizes are the truncated fractions of the total;
    the training set takes the rest.
    """
    _check_fraction("val_split", val_split)
    _check_fraction("test_split", test_split)
    if val_split + test_split > 1.0:
        raise ValueError("val_split and test_split together exceed 1")
    total = len(dataset)
    val_size = int(total * val_split)
    test_size = int(total * test_split)
    train_size = total - val_size - test_size
    order = rng.shuffled_indices(total)
    return DataSplits(
        train=dataset.subset(order[:train_size]),
        val=dataset.subset(order[train_size : train_size + val_size]),
        test=dataset.subset(order[train_size + val_size :]),
    )


def train_val_split(dataset: Dataset, val_split: float = 0.1) -> tuple[Dataset, Dataset]:
    """Shuffle and return ``(train, val)``; the first shuffled samples form ``val``."""
    _check_fraction("val_split", val_split)
    val_size = int(len(dataset) * val_split)
    order = rng.shuffled_indices(len(dataset))
    return dataset.subset(order[val_size:]), dataset.subset(order[:val_size])