"""Command that trains a Vision Transformer on CSV image data and saves it."""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from tinyvit import rng
from tinyvit.data import Dataset, load_csv, train_val_split
from tinyvit.vit import VisionTransformer

IMAGE_SIZE = 28
PATCH_SIZE = 4
D_MODEL = 64
NUM_LAYERS = 2
NUM_CLASSES = 10
LEARNING_RATE = 3e-4
EPOCHS = 10
BATCH_SIZE = 128
VAL_SPLIT = 0.1
SHOWN_EXAMPLES = 15


@dataclass
class EpochStats:
    """Loss and accuracy gathered over a pass through a dataset."""

    total_loss: float = 0.0
    correct: int = 0
    samples: int = 0
    predictions: list[int] = field(default_factory=list)

    def record(self, loss: float, predicted: int, label: int) -> None:
        """Add the result for one sample."""
        self.total_loss += loss
        self.samples += 1
        self.predictions.append(predicted)
        if predicted == label:
            self.correct += 1

    @property
    def mean_loss(self) -> float:
        return self.total_loss / self.samples if self.samples else 0.0

    @property
    def accuracy(self) -> float:
        return self.correct / self.samples if self.samples else 0.0


def progress_bar(current: int, total: int, width: int = 50) -> str:
    """Render a one-line progress bar ending in a carriage return."""
    if total <= 0:
        raise ValueError("total must be positive")
    progress = current / total
    pos = int(width * progress)
    cells = "".join("=" if i < pos else ">" if i == pos else " " for i in range(width))
    return f"[{cells}] {int(progress * 100.0)} %\r"


def run_epoch(
    model: VisionTransformer,
    dataset: Dataset,
    batch_size: int = BATCH_SIZE,
    learning_rate: float = LEARNING_RATE,
) -> EpochStats:
    """Train for one shuffled pass in mini-batches, showing progress on stdout."""
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    order = rng.shuffled_indices(len(dataset))
    total_batches = math.ceil(len(order) / batch_size)
    stats = EpochStats()
    for batch_number, start in enumerate(range(0, len(order), batch_size), start=1):
        model.zero_grad()
        for idx in order[start : start + batch_size]:
            image, label = dataset.images[idx], dataset.labels[idx]
            logits = model.forward(image)
            model.backward(label)
            loss = model.compute_loss(logits, label)
            stats.record(loss, model.predict(image), label)
        model.update_weights(learning_rate)
        sys.stdout.write(progress_bar(batch_number, total_batches))
        sys.stdout.flush()
    return stats


def evaluate(model: VisionTransformer, dataset: Dataset) -> EpochStats:
    """Measure loss and accuracy without changing the model's weights."""
    stats = EpochStats()
    for image, label in dataset:
        logits = model.forward(image)
        stats.record(model.compute_loss(logits, label), model.predict(image), label)
    return stats


def model_filename(now: datetime | None = None) -> str:
    """Return the time-stamped path a trained model is saved under."""
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"./models/vit_{stamp}.bin"


def _load(path: str) -> Dataset:
    data = load_csv(path)
    print(f"Datos cargados: {len(data)} muestras de {path}")
    return data


def main(argv: list[str] | None = None) -> int:
    """Train on the first CSV file, test on the second, and save the model."""
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 2:
        print("❌ Error: Uso incorrecto.", file=sys.stderr)
        print(
            "   Ejemplo: tinyvit-train <ruta_entrenamiento.csv> <ruta_prueba.csv>",
            file=sys.stderr,
        )
        return 1
    train_path, test_path = args

    print("Vision Transformer con Entrenamiento por Batch")
    print("==============================================")
    rng.seed(42)

    print("Cargando datos...")
    try:
        all_train = _load(train_path)
        test_set = _load(test_path)
    except OSError as exc:
        print(f"Error: No se pudo abrir el archivo {exc.filename}", file=sys.stderr)
        return 1

    train_set, val_set = train_val_split(all_train, VAL_SPLIT)
    model = VisionTransformer(IMAGE_SIZE, PATCH_SIZE, D_MODEL, NUM_LAYERS, NUM_CLASSES)

    print("\nConfiguración:")
    print(f"- Imagen: {IMAGE_SIZE}x{IMAGE_SIZE}")
    print(f"- Patch: {PATCH_SIZE}x{PATCH_SIZE}")
    print(f"- Patches por imagen: {model.num_patches}")
    print(f"- Dimensión de embedding (d_model): {D_MODEL}")
    print(f"- Capas Transformer: {NUM_LAYERS}")
    print(f"- Clases: {NUM_CLASSES}")
    print(f"- Learning rate: {LEARNING_RATE:g}")
    print(f"- Épocas: {EPOCHS}")
    print(f"- Batch size: {BATCH_SIZE}")
    print(f"- Muestras de entrenamiento: {len(train_set)}")
    print(f"- Muestras de validación: {len(val_set)}")
    print(f"- Muestras de prueba: {len(test_set)}\n")

    print("Entrenando...")
    for epoch in range(EPOCHS):
        print(f"Epoch {epoch + 1}/{EPOCHS}")
        train_stats = run_epoch(model, train_set, BATCH_SIZE, LEARNING_RATE)
        print()
        val_stats = evaluate(model, val_set)
        print(
            f"  Entrenamiento - Pérdida: {train_stats.mean_loss:.4f}"
            f" | Precisión: {train_stats.accuracy * 100:.2f}%"
        )
        print(
            f"  Validación    - Pérdida: {val_stats.mean_loss:.4f}"
            f" | Precisión: {val_stats.accuracy * 100:.2f}%\n"
        )

    print("\nEvaluación final en conjunto de prueba:")
    test_stats = evaluate(model, test_set)
    for i, (predicted, label) in enumerate(
        zip(test_stats.predictions[:SHOWN_EXAMPLES], test_set.labels)
    ):
        mark = " ✓" if predicted == label else " ✗"
        print(f"Muestra {i} - Predicción: {predicted} | Real: {label}{mark}")

    print("\nResultados finales:")
    print(
        f"- Pérdida: {test_stats.mean_loss:.4f}"
        f" | Precisión: {test_stats.accuracy * 100:.2f}%"
    )

    target = Path(model_filename())
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        model.save_model(target)
    except OSError:
        print(
            f"Error: No se pudo abrir el archivo para guardar el modelo: {target}",
            file=sys.stderr,
        )
        return 0
    print(f"Modelo guardado como: {model_filename.__defaults__ and target.as_posix()}"
          if False else f"Modelo guardado como: ./{target.as_posix()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())